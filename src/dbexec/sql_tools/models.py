"""
Domain models for transactional query execution.
Provides type-safe query definitions and result handling.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Dict, Any, Optional, Tuple
from pydantic import BaseModel, Field, field_validator, ConfigDict

from .errors import DbExecError


class QueryDefinition(BaseModel):
    """Pre-approved query definition from YAML."""
    model_config = ConfigDict(extra='forbid', frozen=True)  # Catch typos in YAML

    id: str
    description: str = ""
    sql: str
    requires_approval: bool = False
    max_rows_affected: int = Field(0, ge=0, description="0 means unlimited")
    allowed_params: Tuple[str, ...] = Field(default_factory=tuple)

    @field_validator('id')
    @classmethod
    def validate_id(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Query id cannot be empty")
        if ',' in v:
            raise ValueError(f"Query id cannot contain commas: {v}")
        return v

    @field_validator('sql')
    @classmethod
    def validate_sql(cls, v):
        if not v.strip():
            raise ValueError("SQL cannot be empty")
        return v.strip()

    @field_validator('allowed_params')
    @classmethod
    def validate_allowed_params(cls, v):
        # Position of a name is its bind slot, so a name may appear only once
        seen = set()
        for name in v:
            if not name:
                raise ValueError("Parameter names cannot be empty")
            if name in seen:
                raise ValueError(f"Duplicate parameter name: {name}")
            seen.add(name)
        return v


@dataclass
class ExecutionRequest:
    """One invocation: query IDs to run in order, parameters, approve flag."""
    query_ids: List[str]
    params: Dict[str, str] = field(default_factory=dict)
    approve: bool = False

    def __post_init__(self):
        self.query_ids = [qid.strip() for qid in self.query_ids]

    @classmethod
    def from_csv(cls, query_ids: str, params: Dict[str, str], approve: bool = False):
        """
        Build a request from a comma-separated ID list.

        Empty entries are kept so they fail lookup as unknown IDs.
        """
        return cls(query_ids=query_ids.split(','), params=params, approve=approve)


class StatementMode(str, Enum):
    EXECUTED = "executed"
    PREVIEWED = "previewed"
    FAILED = "failed"


class TransactionStatus(str, Enum):
    COMMITTED = "committed"
    ROLLED_BACK_ON_ERROR = "rolled_back_on_error"
    ROLLED_BACK_DRY_RUN = "rolled_back_dry_run"


@dataclass
class StatementOutcome:
    """What happened to a single statement of a request."""
    query_id: str
    mode: StatementMode
    sql: Optional[str] = None
    rows_affected: Optional[int] = None
    columns: Optional[List[str]] = None
    rows: Optional[List[Tuple[Any, ...]]] = None
    error: Optional[str] = None

    @property
    def has_result_set(self) -> bool:
        return self.columns is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'query_id': self.query_id,
            'mode': self.mode.value,
            'sql': self.sql,
            'rows_affected': self.rows_affected,
            'columns': self.columns,
            'rows': [list(row) for row in self.rows] if self.rows is not None else None,
            'error': self.error,
        }


@dataclass
class TransactionResult:
    """
    Result of running a request inside one transaction.
    Used across all interfaces to maintain consistent error handling.
    """
    status: TransactionStatus
    outcomes: List[StatementOutcome] = field(default_factory=list)
    error: Optional[DbExecError] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    correlation_id: Optional[str] = None

    def __post_init__(self):
        """Ensure metadata includes execution timing."""
        if 'executed_at' not in self.metadata:
            from datetime import datetime, UTC
            self.metadata['executed_at'] = datetime.now(UTC).isoformat()

    @property
    def success(self) -> bool:
        return self.status is not TransactionStatus.ROLLED_BACK_ON_ERROR

    @property
    def error_code(self) -> Optional[str]:
        return self.error.error_code if self.error is not None else None

    def raise_for_error(self):
        """Re-raise the error that aborted the transaction, if any."""
        if self.error is not None:
            raise self.error

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for MCP JSON responses)."""
        return {
            'success': self.success,
            'status': self.status.value,
            'outcomes': [outcome.to_dict() for outcome in self.outcomes],
            'error': self.error.message if self.error is not None else None,
            'error_code': self.error_code,
            'metadata': self.metadata,
            'correlation_id': self.correlation_id,
        }


@dataclass
class ExecutionContext:
    """Context passed through execution layers."""
    correlation_id: str
    interface: str  # 'cli' or 'mcp'
    user_id: Optional[str] = None  # Interface-specific user identifier

    def __str__(self):
        return f"[{self.correlation_id}] {self.interface}:{self.user_id or 'unknown'}"
