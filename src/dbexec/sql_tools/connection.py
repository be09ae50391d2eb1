"""Backing store connection via pyodbc."""

import logging
from typing import Any

try:
    import pyodbc
    PYODBC_AVAILABLE = True
except ImportError:
    PYODBC_AVAILABLE = False

from .errors import ExecutionError


logger = logging.getLogger(__name__)

# pyodbc binds with '?' markers
PARAMSTYLE = "qmark"


def connect(database_url: str) -> Any:
    """
    Open a connection for a single transactional run.

    Args:
        database_url: ODBC connection string

    Returns:
        pyodbc connection with autocommit disabled

    Raises:
        ExecutionError: If pyodbc is missing or the connection fails
    """
    if not PYODBC_AVAILABLE:
        raise ExecutionError("pyodbc not installed - cannot connect to the database")

    if not database_url:
        raise ExecutionError("Connection string is empty")

    logger.debug("Opening database connection")
    try:
        return pyodbc.connect(database_url, autocommit=False)
    except pyodbc.Error as e:
        raise ExecutionError(f"Failed to connect to database: {e}") from e


def close(connection: Any):
    """Close a connection, logging rather than raising on failure."""
    try:
        connection.close()
        logger.debug("Closed database connection")
    except Exception as e:
        logger.error(f"Error closing connection: {e}")
