"""Shared fixtures: a YAML catalog and a file-backed sqlite database."""

import sqlite3
from pathlib import Path

import pytest

from dbexec.sql_tools import QueryCatalog


QUERIES_YAML = """
- id: activate_user
  description: "Set a user's status"
  sql: "UPDATE users SET status=$1 WHERE user_id=$2"
  requires_approval: false
  max_rows_affected: 1
  allowed_params: [status, user_id]

- id: get_user
  description: "Look up one user"
  sql: "SELECT user_id, status, name FROM users WHERE user_id = $1"
  allowed_params: [user_id]

- id: bulk_status
  description: "Move every user from one status to another"
  sql: "UPDATE users SET status = $2 WHERE status = $1"
  max_rows_affected: 2
  allowed_params: [from_status, to_status]

- id: delete_user
  description: "Remove a user"
  sql: "DELETE FROM users WHERE user_id = $1"
  max_rows_affected: 1
  allowed_params: [user_id]

- id: add_audit
  description: "Record an audit entry"
  sql: "INSERT INTO audit (user_id, action) VALUES ($1, $2)"
  allowed_params: [user_id, action]

- id: export_users
  description: "Sensitive export"
  sql: "SELECT * FROM users ORDER BY user_id"
  requires_approval: true

- id: approved_delete
  description: "Delete that needs approval"
  sql: "DELETE FROM audit WHERE user_id = $1"
  requires_approval: true
  allowed_params: [user_id]

- id: merge_users
  description: "Shape the preview translator does not handle"
  sql: "MERGE INTO users USING staging ON users.user_id = staging.user_id WHEN MATCHED THEN UPDATE SET status = staging.status"

- id: broken
  description: "References a table that does not exist"
  sql: "UPDATE missing_table SET x = 1"

- id: too_many_placeholders
  description: "References $3 with two parameters"
  sql: "UPDATE users SET status = $1 WHERE user_id = $3"
  allowed_params: [status, user_id]
"""

USERS = [
    ("123", "inactive", "Ada"),
    ("456", "inactive", "Grace"),
    ("789", "active", "Linus"),
]


@pytest.fixture
def queries_file(tmp_path) -> Path:
    path = tmp_path / "queries.yaml"
    path.write_text(QUERIES_YAML)
    return path


@pytest.fixture
def catalog(queries_file) -> QueryCatalog:
    return QueryCatalog.load(queries_file)


@pytest.fixture
def db_path(tmp_path) -> Path:
    path = tmp_path / "test.db"
    conn = sqlite3.connect(path)
    conn.execute("CREATE TABLE users (user_id TEXT PRIMARY KEY, status TEXT, name TEXT)")
    conn.execute("CREATE TABLE audit (user_id TEXT, action TEXT)")
    conn.executemany("INSERT INTO users VALUES (?, ?, ?)", USERS)
    conn.commit()
    conn.close()
    return path


@pytest.fixture
def connection(db_path):
    conn = sqlite3.connect(db_path)
    yield conn
    conn.close()


def snapshot(db_path: Path) -> dict:
    """Read the committed state through a separate connection."""
    conn = sqlite3.connect(db_path)
    try:
        users = conn.execute("SELECT user_id, status, name FROM users ORDER BY user_id").fetchall()
        audit = conn.execute("SELECT user_id, action FROM audit ORDER BY rowid").fetchall()
    finally:
        conn.close()
    return {"users": users, "audit": audit}


@pytest.fixture
def read_state(db_path):
    """Callable returning the committed database state."""
    return lambda: snapshot(db_path)
