"""Error taxonomy for query loading and transactional execution."""

from typing import Optional


class DbExecError(Exception):
    """Base class for every error surfaced by the execution engine."""

    error_code = "DBEXEC_ERROR"

    def __init__(self, message: str, query_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.query_id = query_id


class LoadError(DbExecError):
    """Query definitions could not be read, parsed or validated."""

    error_code = "LOAD_ERROR"


class UnknownQueryError(DbExecError):
    """Requested query ID is not in the catalog."""

    error_code = "UNKNOWN_QUERY"

    def __init__(self, query_id: str):
        super().__init__(f"Unknown query ID: {query_id}", query_id=query_id)


class MissingParameterError(DbExecError):
    """An allow-listed parameter was not supplied."""

    error_code = "MISSING_PARAMETER"

    def __init__(self, param_name: str, query_id: Optional[str] = None):
        message = f"Missing parameter: {param_name}"
        if query_id:
            message = f"{message} (query {query_id})"
        super().__init__(message, query_id=query_id)
        self.param_name = param_name


class ApprovalRequiredError(DbExecError):
    """Query is flagged requires_approval and would run without approval."""

    error_code = "APPROVAL_REQUIRED"

    def __init__(self, query_id: str):
        super().__init__(
            f"Query {query_id} requires approval and cannot be executed in a dry run",
            query_id=query_id,
        )


class PreviewTranslationError(DbExecError):
    """Mutating statement shape is not recognized by the preview translator."""

    error_code = "PREVIEW_TRANSLATION_ERROR"


class ExecutionError(DbExecError):
    """Backing store rejected a statement, or commit failed."""

    error_code = "EXECUTION_ERROR"


class RowLimitExceededError(DbExecError):
    """Statement affected more rows than its max_rows_affected ceiling."""

    error_code = "ROW_LIMIT_EXCEEDED"

    def __init__(self, query_id: str, actual: int, allowed: int):
        super().__init__(
            f"Exceeded row limit for {query_id}: {actual} > {allowed}",
            query_id=query_id,
        )
        self.actual = actual
        self.allowed = allowed
