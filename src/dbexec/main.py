"""
Command-line entry point: run catalog queries in one transaction.

Dry run by default; pass --approve to execute and commit.
"""
import os
import sys
import json
import logging
import argparse
import uuid
from typing import Dict, List, Optional

from dbexec.config import load_config, setup_logging
from dbexec.interfaces.cli.formatting import format_catalog, format_result
from dbexec.sql_tools import (
    DbExecError,
    ExecutionContext,
    ExecutionRequest,
    QueryCatalog,
    TransactionRunner,
)
from dbexec.sql_tools.connection import PARAMSTYLE, close, connect

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line parser."""
    parser = argparse.ArgumentParser(
        prog='dbexec',
        description='Execute pre-approved SQL queries inside a single transaction',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  dbexec --list
  dbexec --queries activate_user --params '{"status": "active", "user_id": "123"}'
  dbexec --queries activate_user,audit_user --params '{"user_id": "123"}' --approve

Environment variables:
  DATABASE_URL             ODBC connection string (required to execute)
  QUERY_DEFINITIONS_PATH   Query definitions file or directory (default: queries.yaml)
  LOG_LEVEL                DEBUG, INFO, WARNING, ERROR (default: INFO)

Without --approve every statement is previewed and the transaction is rolled back.
        """
    )

    parser.add_argument(
        '--queries',
        help='Comma-separated list of query IDs to run, in order'
    )
    parser.add_argument(
        '--params',
        default='{}',
        help='JSON object of string parameters shared by all queries'
    )
    parser.add_argument(
        '--approve',
        action='store_true',
        help='Execute and commit (default is a dry run that rolls back)'
    )
    parser.add_argument(
        '--definitions',
        help='Query definitions path (overrides QUERY_DEFINITIONS_PATH)'
    )
    parser.add_argument(
        '--list',
        action='store_true',
        help='List available queries and exit'
    )

    return parser


def parse_params(raw: str) -> Dict[str, str]:
    """
    Parse the --params JSON object.

    Raises:
        ValueError: If it is not a JSON object of string values
    """
    try:
        params = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"Failed to parse parameters: {e}") from e

    if not isinstance(params, dict):
        raise ValueError("Parameters must be a JSON object")

    non_strings = [key for key, value in params.items() if not isinstance(value, str)]
    if non_strings:
        raise ValueError(f"Parameter values must be strings: {', '.join(sorted(non_strings))}")

    return params


def main(argv: Optional[List[str]] = None) -> int:
    """
    Load the catalog, run the requested queries, print the outcome.

    Returns:
        0 on a commit or a successful dry run, 1 on any failure.
        Usage errors exit with status 2 through argparse.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config()
    except ValueError as e:
        print(e, file=sys.stderr)
        return EXIT_FAILURE

    setup_logging(config.log_level)

    if not args.list and not args.queries:
        parser.error("You must provide --queries (or --list)")

    try:
        params = parse_params(args.params)
    except ValueError as e:
        parser.error(str(e))

    try:
        catalog = QueryCatalog.load(args.definitions or config.query_definitions_path)
    except DbExecError as e:
        logger.error(f"Failed to load queries: {e.message}")
        print(f"Failed to load queries: {e.message}", file=sys.stderr)
        return EXIT_FAILURE

    if args.list:
        print(format_catalog(catalog))
        return EXIT_OK

    request = ExecutionRequest.from_csv(args.queries, params, approve=args.approve)

    try:
        connection = connect(config.require_database_url())
    except (ValueError, DbExecError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    context = ExecutionContext(
        correlation_id=str(uuid.uuid4()),
        interface='cli',
        user_id=os.getenv('USER')
    )

    try:
        runner = TransactionRunner(catalog, connection, paramstyle=PARAMSTYLE)
        result = runner.run(request, context)
    finally:
        close(connection)

    print(format_result(result))
    return EXIT_OK if result.success else EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
