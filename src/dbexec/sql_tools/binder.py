"""Parameter binding: allow-list validation and placeholder rendering."""

import re
import logging
from typing import Any, Dict, List, Mapping, Sequence, Tuple, Union

from .errors import ExecutionError, MissingParameterError
from .models import QueryDefinition


logger = logging.getLogger(__name__)

# Quoted literals and comments are matched first so a "$1" inside them is left alone
_PLACEHOLDER_RE = re.compile(
    r"""'(?:[^']|'')*'|"(?:[^"]|"")*"|--[^\n]*|/\*.*?\*/|\$(\d+)""", re.S
)

PARAMSTYLES = ("qmark", "numeric", "format", "pyformat")


def bind_parameters(query_def: QueryDefinition, params: Mapping[str, Any]) -> Tuple[Any, ...]:
    """
    Build the positional argument list for a query.

    One value per name in allowed_params, in declaration order, so the
    value for allowed_params[i] binds to $(i+1). Keys that are not
    allow-listed are ignored and never reach the statement.

    Raises:
        MissingParameterError: If an allow-listed name is absent
    """
    args = []
    for name in query_def.allowed_params:
        if name not in params:
            raise MissingParameterError(name, query_id=query_def.id)
        args.append(params[name])

    ignored = set(params) - set(query_def.allowed_params)
    if ignored:
        logger.debug(f"Query {query_def.id}: ignoring parameters not allow-listed: {sorted(ignored)}")

    return tuple(args)


def render_placeholders(
    sql: str, args: Sequence[Any], paramstyle: str = "qmark"
) -> Tuple[str, Union[List[Any], Dict[str, Any]]]:
    """
    Rewrite $1..$n placeholders into a DB-API paramstyle.

    Values are never interpolated into the SQL text; only the bind markers
    change, and the argument list is rearranged to match them. Statements
    that reference a subset of the arguments (previews do) bind only the
    referenced values.

    Raises:
        ExecutionError: If a placeholder refers past the bound arguments
        ValueError: If the paramstyle is not supported
    """
    if paramstyle not in PARAMSTYLES:
        raise ValueError(f"Unsupported paramstyle: {paramstyle}")

    escape_percent = paramstyle in ("format", "pyformat")
    ordered: List[Any] = []
    numbered: Dict[int, int] = {}
    named: Dict[str, Any] = {}
    parts = []
    last = 0

    for match in _PLACEHOLDER_RE.finditer(sql):
        parts.append(_escape(sql[last:match.start()], escape_percent))
        last = match.end()

        if match.group(1) is None:
            parts.append(_escape(match.group(0), escape_percent))
            continue

        index = int(match.group(1))
        if index < 1 or index > len(args):
            raise ExecutionError(
                f"Statement references ${index} but {len(args)} parameter(s) are bound"
            )
        value = args[index - 1]

        if paramstyle == "qmark":
            parts.append("?")
            ordered.append(value)
        elif paramstyle == "format":
            parts.append("%s")
            ordered.append(value)
        elif paramstyle == "pyformat":
            parts.append(f"%(p{index})s")
            named[f"p{index}"] = value
        else:
            # numeric markers are renumbered densely in order of first use
            if index not in numbered:
                numbered[index] = len(ordered) + 1
                ordered.append(value)
            parts.append(f":{numbered[index]}")

    parts.append(_escape(sql[last:], escape_percent))
    rendered = "".join(parts)

    if paramstyle == "pyformat":
        return rendered, named
    return rendered, ordered


def _escape(text: str, escape_percent: bool) -> str:
    return text.replace("%", "%%") if escape_percent else text
