"""Tests for dbexec.sql_tools catalog loading and models."""

import os
import pytest
from pathlib import Path
from unittest.mock import patch
from pydantic import ValidationError

from dbexec.sql_tools import (
    QueryCatalog,
    QueryDefinition,
    ExecutionRequest,
    ExecutionContext,
    StatementMode,
    StatementOutcome,
    TransactionResult,
    TransactionStatus,
    LoadError,
    UnknownQueryError,
    RowLimitExceededError,
)


SINGLE_QUERY_YAML = """
- id: activate_user
  description: "Activate a user"
  sql: |
    UPDATE users SET status=$1 WHERE user_id=$2
  requires_approval: false
  max_rows_affected: 1
  allowed_params: [status, user_id]
"""

SECOND_FILE_YAML = """
- id: list_users
  description: "List users"
  sql: "SELECT * FROM users"
"""


@pytest.fixture
def temp_queries_dir(tmp_path):
    """Create a directory with two query YAML files."""
    (tmp_path / "a_users.yaml").write_text(SINGLE_QUERY_YAML)
    (tmp_path / "b_reports.yml").write_text(SECOND_FILE_YAML)
    return tmp_path


class TestQueryCatalog:
    """Tests for QueryCatalog."""

    def test_load_from_file(self, catalog):
        """Test loading a list of definitions from one file."""
        assert len(catalog) == 10
        assert "activate_user" in catalog
        assert "nonexistent" not in catalog

    def test_load_from_directory(self, temp_queries_dir):
        """Test loading and merging every YAML file in a directory."""
        catalog = QueryCatalog.load(temp_queries_dir)
        assert sorted(catalog.ids()) == ["activate_user", "list_users"]

    def test_lookup(self, catalog):
        """Test getting query by ID."""
        query = catalog.lookup("activate_user")
        assert query.sql == "UPDATE users SET status=$1 WHERE user_id=$2"
        assert query.allowed_params == ("status", "user_id")
        assert query.max_rows_affected == 1

    def test_lookup_not_found(self, catalog):
        """Test unknown IDs raise UnknownQueryError."""
        with pytest.raises(UnknownQueryError) as exc_info:
            catalog.lookup("nonexistent")
        assert exc_info.value.query_id == "nonexistent"
        assert exc_info.value.error_code == "UNKNOWN_QUERY"

    def test_get_returns_none_when_missing(self, catalog):
        assert catalog.get("nonexistent") is None

    def test_defaults(self, catalog):
        """Test optional fields get their defaults."""
        query = catalog.lookup("merge_users")
        assert query.requires_approval is False
        assert query.max_rows_affected == 0
        assert query.allowed_params == ()

    def test_catalog_is_read_only(self, catalog):
        """Test the catalog mapping cannot be mutated after load."""
        with pytest.raises(TypeError):
            catalog.queries["new"] = catalog.lookup("get_user")

    def test_definitions_are_frozen(self, catalog):
        with pytest.raises(ValidationError):
            catalog.lookup("get_user").sql = "DELETE FROM users"

    def test_missing_source(self, tmp_path):
        with pytest.raises(LoadError, match="not found"):
            QueryCatalog.load(tmp_path / "missing.yaml")

    def test_empty_directory(self, tmp_path):
        with pytest.raises(LoadError, match="No YAML files"):
            QueryCatalog.load(tmp_path)

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("- id: x\n  sql: [unclosed\n")
        with pytest.raises(LoadError, match="Failed to parse"):
            QueryCatalog.load(path)

    def test_top_level_must_be_list(self, tmp_path):
        path = tmp_path / "mapping.yaml"
        path.write_text("id: x\nsql: SELECT 1\n")
        with pytest.raises(LoadError, match="Expected a list"):
            QueryCatalog.load(path)

    def test_entry_must_be_mapping(self, tmp_path):
        path = tmp_path / "scalars.yaml"
        path.write_text("- just a string\n")
        with pytest.raises(LoadError, match="not a mapping"):
            QueryCatalog.load(path)

    def test_invalid_definition(self, tmp_path):
        """Test a definition failing validation becomes a LoadError."""
        path = tmp_path / "invalid.yaml"
        path.write_text("- id: x\n  sql: SELECT 1\n  max_rows_affected: -1\n")
        with pytest.raises(LoadError) as exc_info:
            QueryCatalog.load(path)
        assert isinstance(exc_info.value.__cause__, ValidationError)

    def test_duplicate_ids_rejected(self, tmp_path):
        path = tmp_path / "dupes.yaml"
        path.write_text(SINGLE_QUERY_YAML + SINGLE_QUERY_YAML)
        with pytest.raises(LoadError, match="Duplicate query id 'activate_user'"):
            QueryCatalog.load(path)

    def test_empty_file_loads_nothing(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert len(QueryCatalog.load(path)) == 0

    def test_uses_env_var(self, temp_queries_dir):
        """Test that QUERY_DEFINITIONS_PATH env var is used."""
        with patch.dict(os.environ, {"QUERY_DEFINITIONS_PATH": str(temp_queries_dir)}):
            catalog = QueryCatalog.load()
            assert len(catalog) == 2

    def test_defaults_to_queries_yaml(self, tmp_path, monkeypatch):
        """Test the conventional filename is used when nothing is configured."""
        monkeypatch.delenv("QUERY_DEFINITIONS_PATH", raising=False)
        monkeypatch.chdir(tmp_path)
        Path("queries.yaml").write_text(SINGLE_QUERY_YAML)
        catalog = QueryCatalog.load()
        assert catalog.ids() == ["activate_user"]


class TestQueryDefinition:
    """Tests for QueryDefinition model."""

    def test_valid_definition(self):
        """Test creating valid query definition."""
        query_def = QueryDefinition(
            id="activate_user",
            description="Test description",
            sql="  UPDATE users SET status=$1 WHERE user_id=$2  ",
            max_rows_affected=1,
            allowed_params=["status", "user_id"],
        )
        assert query_def.sql == "UPDATE users SET status=$1 WHERE user_id=$2"
        assert query_def.allowed_params == ("status", "user_id")
        assert query_def.requires_approval is False

    def test_empty_sql_rejected(self):
        """Test validation rejects empty SQL."""
        with pytest.raises(ValidationError):
            QueryDefinition(id="x", sql="   ")

    def test_empty_id_rejected(self):
        with pytest.raises(ValidationError):
            QueryDefinition(id="  ", sql="SELECT 1")

    def test_comma_in_id_rejected(self):
        """IDs are passed as a comma-separated list, so they cannot hold commas."""
        with pytest.raises(ValidationError):
            QueryDefinition(id="a,b", sql="SELECT 1")

    def test_negative_row_limit_rejected(self):
        with pytest.raises(ValidationError):
            QueryDefinition(id="x", sql="SELECT 1", max_rows_affected=-1)

    def test_duplicate_params_rejected(self):
        """Test a parameter name can own only one position."""
        with pytest.raises(ValidationError):
            QueryDefinition(id="x", sql="SELECT $1, $2", allowed_params=["a", "a"])

    def test_extra_fields_rejected(self):
        """Test that extra fields in YAML are rejected."""
        with pytest.raises(ValidationError):
            QueryDefinition(id="x", sql="SELECT 1", max_rows=5)


class TestExecutionRequest:
    """Tests for ExecutionRequest."""

    def test_ids_are_stripped(self):
        request = ExecutionRequest(query_ids=[" a ", "b"])
        assert request.query_ids == ["a", "b"]
        assert request.approve is False

    def test_from_csv(self):
        request = ExecutionRequest.from_csv("a, b,c", {"k": "v"}, approve=True)
        assert request.query_ids == ["a", "b", "c"]
        assert request.params == {"k": "v"}
        assert request.approve is True

    def test_from_csv_keeps_empty_entries(self):
        request = ExecutionRequest.from_csv("a,,b,", {})
        assert request.query_ids == ["a", "", "b", ""]


class TestTransactionResult:
    """Tests for TransactionResult dataclass."""

    def test_committed_result(self):
        result = TransactionResult(status=TransactionStatus.COMMITTED, correlation_id="abc123")
        assert result.success is True
        assert result.error is None
        assert result.error_code is None
        assert "executed_at" in result.metadata

    def test_dry_run_is_success(self):
        result = TransactionResult(status=TransactionStatus.ROLLED_BACK_DRY_RUN)
        assert result.success is True

    def test_error_result(self):
        error = RowLimitExceededError("bulk_status", 3, 2)
        result = TransactionResult(status=TransactionStatus.ROLLED_BACK_ON_ERROR, error=error)
        assert result.success is False
        assert result.error_code == "ROW_LIMIT_EXCEEDED"
        with pytest.raises(RowLimitExceededError):
            result.raise_for_error()

    def test_to_dict(self):
        """Test serialization to dict."""
        outcome = StatementOutcome(
            query_id="get_user",
            mode=StatementMode.EXECUTED,
            columns=["user_id"],
            rows=[("123",)],
        )
        result = TransactionResult(
            status=TransactionStatus.COMMITTED,
            outcomes=[outcome],
            correlation_id="abc123",
        )
        d = result.to_dict()
        assert d["success"] is True
        assert d["status"] == "committed"
        assert d["outcomes"][0]["mode"] == "executed"
        assert d["outcomes"][0]["rows"] == [["123"]]
        assert d["correlation_id"] == "abc123"


class TestErrors:
    """Tests for error context."""

    def test_row_limit_error_carries_counts(self):
        error = RowLimitExceededError("bulk_status", 3, 2)
        assert error.actual == 3
        assert error.allowed == 2
        assert error.query_id == "bulk_status"
        assert "3 > 2" in str(error)


class TestExecutionContext:
    """Tests for ExecutionContext dataclass."""

    def test_str_representation(self):
        """Test string representation."""
        context = ExecutionContext(
            correlation_id="abc123",
            interface="cli",
            user_id="user456",
        )
        s = str(context)
        assert "abc123" in s
        assert "cli" in s
        assert "user456" in s

    def test_str_without_user_id(self):
        """Test string representation without user ID."""
        context = ExecutionContext(
            correlation_id="abc123",
            interface="mcp",
        )
        assert "unknown" in str(context)
