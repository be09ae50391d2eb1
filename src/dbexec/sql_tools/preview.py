"""
Read-only detection and dry-run preview translation.

Both are keyword heuristics over a masked copy of the statement: quoted
literals keep their quotes but lose their contents, comments and whitespace
become plain spaces, and every character keeps its offset. Keywords are
searched in the masked copy and clauses are sliced verbatim from the
original text.

Only statement shapes whose target table and condition can be isolated are
translated; anything else raises PreviewTranslationError and is never run.
"""

import re
import logging
from typing import NamedTuple, Optional

from .errors import PreviewTranslationError


logger = logging.getLogger(__name__)

_MASK_RE = re.compile(r"""'(?:[^']|'')*'|"(?:[^"]|"")*"|--[^\n]*|/\*.*?\*/""", re.S)

_NAME = r'(?:"[^"]*"|`[^`]*`|\[[^\]]*\]|[A-Za-z_][\w$]*)'
_TABLE = rf"(?P<table>{_NAME}(?:\s*\.\s*{_NAME})*)"

_CLAUSE_WORDS = r"WHERE|ORDER\s+BY|LIMIT|RETURNING|USING|FROM|SET|ON"
_ALIAS = rf"(?:\s+(?:AS\s+)?(?P<alias>(?!(?:{_CLAUSE_WORDS})\b)[A-Za-z_]\w*))?"

_UPDATE_RE = re.compile(rf"^\s*UPDATE\s+(?:ONLY\s+)?{_TABLE}{_ALIAS}\s+SET\b", re.I)
_DELETE_RE = re.compile(rf"^\s*DELETE\s+FROM\s+(?:ONLY\s+)?{_TABLE}{_ALIAS}(?=\s|$)", re.I)
_INSERT_RE = re.compile(rf"^\s*INSERT\s+INTO\s+{_TABLE}\s*(?:\([^()]*\))?\s*", re.I)

_CONDITION_RE = re.compile(r"\b(?:WHERE|ORDER\s+BY|LIMIT)\b", re.I)
_RETURNING_RE = re.compile(r"\bRETURNING\b", re.I)
_UPDATE_FROM_RE = re.compile(r"\bFROM\b", re.I)
_DELETE_USING_RE = re.compile(r"\bUSING\b", re.I)
_UPSERT_RE = re.compile(r"\bON\s+(?:CONFLICT|DUPLICATE)\b", re.I)
_SELECT_INTO_RE = re.compile(r"\bINTO\b", re.I)
_DATA_MODIFYING_RE = re.compile(r"\b(?:INSERT|UPDATE|DELETE|MERGE|TRUNCATE)\b", re.I)
_LEADING_WORD_RE = re.compile(r"^[\s(]*([A-Za-z]+)")

READ_ONLY_KEYWORDS = frozenset({"SELECT", "VALUES", "SHOW", "TABLE"})


class _Statement(NamedTuple):
    original: str
    masked: str


def _prepare(sql: str) -> _Statement:
    """Strip a trailing semicolon and build the masked copy."""
    original = sql.strip()
    if original.endswith(";"):
        original = original[:-1].rstrip()

    def blank(match: re.Match) -> str:
        text = match.group(0)
        if text[0] in "'\"":
            return text[0] + "x" * (len(text) - 2) + text[-1]
        return " " * len(text)

    masked = _MASK_RE.sub(blank, original)
    masked = re.sub(r"\s", " ", masked)
    return _Statement(original, masked)


def _leading_keyword(masked: str) -> str:
    match = _LEADING_WORD_RE.match(masked)
    return match.group(1).upper() if match else ""


def _find_top_level(pattern, masked: str, start: int, end: Optional[int] = None) -> Optional[re.Match]:
    """First match of pattern in masked[start:end] outside any parentheses."""
    end = len(masked) if end is None else end
    for match in pattern.finditer(masked, start, end):
        depth = masked.count("(", start, match.start()) - masked.count(")", start, match.start())
        if depth == 0:
            return match
    return None


def is_read_only(sql: str) -> bool:
    """
    Return True for statements that cannot modify data.

    SELECT, VALUES, SHOW and TABLE are read-only unless a SELECT writes
    INTO a table; WITH is read-only when no data-modifying keyword appears
    anywhere outside literals.
    """
    statement = _prepare(sql)
    keyword = _leading_keyword(statement.masked)

    if keyword == "SELECT":
        return _find_top_level(_SELECT_INTO_RE, statement.masked, 0) is None
    if keyword in READ_ONLY_KEYWORDS:
        return True
    if keyword == "WITH":
        return _DATA_MODIFYING_RE.search(statement.masked) is None
    return False


def translate_preview(sql: str) -> str:
    """
    Derive a non-mutating statement showing what a mutating one would touch.

    UPDATE and DELETE become SELECT * FROM the target table with the
    original condition clause. INSERT becomes its VALUES list or source
    SELECT, i.e. the rows that would be inserted.

    Raises:
        PreviewTranslationError: If the statement shape is not recognized
    """
    statement = _prepare(sql)
    keyword = _leading_keyword(statement.masked)

    if ";" in statement.masked:
        raise PreviewTranslationError("Cannot preview multiple statements")

    if keyword == "UPDATE":
        preview = _translate_update(statement)
    elif keyword == "DELETE":
        preview = _translate_delete(statement)
    elif keyword == "INSERT":
        preview = _translate_insert(statement)
    else:
        raise PreviewTranslationError(
            f"Cannot derive a preview for {keyword or 'empty'} statement"
        )

    logger.debug(f"Preview translation: {sql!r} -> {preview!r}")
    return preview


def _translate_update(statement: _Statement) -> str:
    header = _UPDATE_RE.match(statement.masked)
    if not header:
        raise PreviewTranslationError("Cannot isolate target table of UPDATE statement")

    condition_start = _condition_start(statement, header.end())
    if _find_top_level(_UPDATE_FROM_RE, statement.masked, header.end(), condition_start):
        raise PreviewTranslationError("Cannot preview UPDATE ... FROM statement")

    return _select_from(statement, header, condition_start)


def _translate_delete(statement: _Statement) -> str:
    header = _DELETE_RE.match(statement.masked)
    if not header:
        raise PreviewTranslationError("Cannot isolate target table of DELETE statement")

    if _find_top_level(_DELETE_USING_RE, statement.masked, header.end()):
        raise PreviewTranslationError("Cannot preview DELETE ... USING statement")

    condition_start = _condition_start(statement, header.end())
    if statement.masked[header.end():condition_start].strip():
        raise PreviewTranslationError("Unrecognized clause in DELETE statement")

    return _select_from(statement, header, condition_start)


def _translate_insert(statement: _Statement) -> str:
    header = _INSERT_RE.match(statement.masked)
    if not header:
        raise PreviewTranslationError("Cannot isolate target table of INSERT statement")

    if _find_top_level(_UPSERT_RE, statement.masked, header.end()):
        raise PreviewTranslationError("Cannot preview INSERT with conflict handling")

    source_keyword = _leading_keyword(statement.masked[header.end():])
    if source_keyword not in ("VALUES", "SELECT", "WITH"):
        raise PreviewTranslationError("Unrecognized INSERT source")

    end = _returning_start(statement, header.end())
    return statement.original[header.end():end].strip()


def _condition_start(statement: _Statement, start: int) -> int:
    """Offset where the condition clause begins, or where the statement ends."""
    end = _returning_start(statement, start)
    match = _find_top_level(_CONDITION_RE, statement.masked, start, end)
    return match.start() if match else end


def _returning_start(statement: _Statement, start: int) -> int:
    match = _find_top_level(_RETURNING_RE, statement.masked, start)
    return match.start() if match else len(statement.masked)


def _select_from(statement: _Statement, header: re.Match, condition_start: int) -> str:
    table = statement.original[header.start("table"):header.end("table")]
    parts = ["SELECT * FROM", table]

    if header.group("alias"):
        parts.append(statement.original[header.start("alias"):header.end("alias")])

    end = _returning_start(statement, condition_start)
    condition = statement.original[condition_start:end].strip()
    if condition:
        parts.append(condition)

    return " ".join(parts)


class PreviewTranslator:
    """
    Read-only detection and preview translation behind one seam.

    The runner only talks to this class, so the keyword heuristics can be
    swapped for a real SQL parser without touching it.
    """

    def is_read_only(self, sql: str) -> bool:
        return is_read_only(sql)

    def translate(self, sql: str) -> str:
        return translate_preview(sql)
