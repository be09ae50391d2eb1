"""Render transaction results and the query catalog for the console."""

import uuid
from datetime import date, datetime, time
from typing import Any, Iterable, List

from dbexec.sql_tools import (
    QueryDefinition,
    StatementMode,
    StatementOutcome,
    TransactionResult,
    TransactionStatus,
)

NULL_DISPLAY = "<NULL>"


def format_value(value: Any) -> str:
    """
    Render one column value.

    None is shown as <NULL> so it never looks like an empty string. Binary
    values of UUID width are shown as UUIDs, other binary values as text
    when they decode as UTF-8 and as hex otherwise. Temporal values use a
    fixed, sortable layout.
    """
    if value is None:
        return NULL_DISPLAY

    if isinstance(value, (bytes, bytearray, memoryview)):
        raw = bytes(value)
        if len(raw) == 16:
            return str(uuid.UUID(bytes=raw))
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError:
            return raw.hex()

    # datetime is a subclass of date, so it is checked first
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, date):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, time):
        return value.strftime("%H:%M:%S")

    return str(value)


def format_rows(columns: List[str], rows: Iterable[tuple]) -> str:
    """Format rows one column per line, the way wide rows stay readable."""
    lines = ["\t".join(columns), "-" * 80]
    count = 0
    for count, row in enumerate(rows, start=1):
        lines.append(f"Row {count}:")
        lines.append("-" * 40)
        for column, value in zip(columns, row):
            lines.append(f"  {column}: {format_value(value)}")
        lines.append("")
    lines.append(f"Total rows: {count}")
    return "\n".join(lines)


def format_outcome(outcome: StatementOutcome) -> str:
    """Format a single statement outcome."""
    if outcome.mode is StatementMode.FAILED:
        return f"[FAILED] QueryID={outcome.query_id} Error={outcome.error}"

    if outcome.mode is StatementMode.PREVIEWED:
        parts = [
            f"[PREVIEW] QueryID={outcome.query_id} RowsWouldBeAffected={outcome.rows_affected}",
            f"SQL: {outcome.sql}",
        ]
    elif outcome.rows_affected is not None:
        parts = [f"[EXECUTED] QueryID={outcome.query_id} RowsAffected={outcome.rows_affected}"]
    else:
        parts = [f"[EXECUTED] QueryID={outcome.query_id}"]

    if outcome.has_result_set:
        parts.append("Results:")
        parts.append(format_rows(outcome.columns, outcome.rows or []))

    return "\n".join(parts)


def format_result(result: TransactionResult) -> str:
    """Format every outcome followed by the transaction summary."""
    parts = [format_outcome(outcome) for outcome in result.outcomes]

    if result.status is TransactionStatus.COMMITTED:
        parts.append("All queries committed successfully.")
    elif result.status is TransactionStatus.ROLLED_BACK_DRY_RUN:
        parts.append("Dry run completed. No changes applied.")
    else:
        parts.append(f"Transaction rolled back: {result.error.message if result.error else 'unknown error'}")
        if result.correlation_id:
            parts.append(f"Correlation ID: {result.correlation_id}")

    return "\n".join(parts)


def format_catalog(queries: Iterable[QueryDefinition]) -> str:
    """List available queries with their parameters."""
    queries = sorted(queries, key=lambda q: q.id)
    if not queries:
        return "No queries available."

    lines = ["Available queries:", ""]
    for q in queries:
        # First line of description for brevity
        desc_first_line = q.description.split('\n')[0].strip()
        flags = []
        if q.requires_approval:
            flags.append("requires approval")
        if q.max_rows_affected:
            flags.append(f"max rows {q.max_rows_affected}")
        suffix = f" [{', '.join(flags)}]" if flags else ""
        params = ", ".join(q.allowed_params) or "none"
        lines.append(f"  {q.id} - {desc_first_line}{suffix}")
        lines.append(f"      params: {params}")
    return "\n".join(lines)
