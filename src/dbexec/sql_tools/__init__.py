"""Transactional execution engine for pre-approved YAML query definitions."""
from .models import (
    QueryDefinition,
    ExecutionRequest,
    ExecutionContext,
    StatementMode,
    StatementOutcome,
    TransactionStatus,
    TransactionResult,
)
from .errors import (
    DbExecError,
    LoadError,
    UnknownQueryError,
    MissingParameterError,
    ApprovalRequiredError,
    PreviewTranslationError,
    ExecutionError,
    RowLimitExceededError,
)
from .loader import QueryCatalog
from .binder import bind_parameters, render_placeholders
from .preview import PreviewTranslator, is_read_only, translate_preview
from .executor import Transaction, TransactionRunner

__all__ = [
    "QueryDefinition",
    "ExecutionRequest",
    "ExecutionContext",
    "StatementMode",
    "StatementOutcome",
    "TransactionStatus",
    "TransactionResult",
    "DbExecError",
    "LoadError",
    "UnknownQueryError",
    "MissingParameterError",
    "ApprovalRequiredError",
    "PreviewTranslationError",
    "ExecutionError",
    "RowLimitExceededError",
    "QueryCatalog",
    "bind_parameters",
    "render_placeholders",
    "PreviewTranslator",
    "is_read_only",
    "translate_preview",
    "Transaction",
    "TransactionRunner",
]
