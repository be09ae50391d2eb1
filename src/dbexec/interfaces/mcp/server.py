"""
MCP server exposing catalog queries as transactional tools over stdio.
"""
import sys
import asyncio
import json
import logging
import uuid
from typing import Any, Callable, Dict, Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp import types

from dbexec.config import Config, load_config
from dbexec.interfaces.cli.formatting import format_value
from dbexec.sql_tools import (
    DbExecError,
    ExecutionContext,
    ExecutionRequest,
    QueryCatalog,
    TransactionResult,
    TransactionRunner,
)
from dbexec.sql_tools.connection import PARAMSTYLE, close, connect
from .converters import QueryToolConverter, RUN_TRANSACTION_TOOL


logger = logging.getLogger(__name__)


class SQLTransactionMCPServer:
    """MCP server for transactional SQL query tools."""

    def __init__(
        self,
        catalog: QueryCatalog,
        config: Config,
        connection_factory: Callable[[str], Any] = connect,
        paramstyle: str = PARAMSTYLE,
    ):
        self.server = Server("dbexec")
        self.catalog = catalog
        self.config = config
        self.connection_factory = connection_factory
        self.paramstyle = paramstyle
        self.converter = QueryToolConverter()

        # Convert all queries to MCP tools
        self.tools = self._build_tools()

        # Register handlers
        self._register_handlers()

        logger.info(f"MCP Server initialized with {len(self.tools)} tools")

    def _build_tools(self) -> Dict[str, Dict[str, Any]]:
        """Build MCP tools from the catalog."""
        tools_list = self.converter.convert_all(self.catalog)
        # Index by name for fast lookup
        return {tool['name']: tool for tool in tools_list}

    def build_request(self, name: str, arguments: Dict[str, Any]) -> ExecutionRequest:
        """
        Map tool arguments to an ExecutionRequest.

        Raises:
            ValueError: If the tool is unknown or the arguments are malformed
        """
        tool_def = self.tools.get(name)
        if not tool_def:
            raise ValueError(f"Unknown tool: {name}")

        arguments = dict(arguments or {})
        approve = bool(arguments.pop('approve', False))

        if name == RUN_TRANSACTION_TOOL:
            query_ids = arguments.get('query_ids')
            if not isinstance(query_ids, list) or not query_ids:
                raise ValueError("query_ids must be a non-empty list")
            params = arguments.get('params') or {}
            if not isinstance(params, dict):
                raise ValueError("params must be an object")
            return ExecutionRequest(
                query_ids=[str(qid) for qid in query_ids],
                params=_stringify(params),
                approve=approve,
            )

        return ExecutionRequest(
            query_ids=[tool_def['metadata']['query_id']],
            params=_stringify(arguments),
            approve=approve,
        )

    def handle_call(self, name: str, arguments: Dict[str, Any], user_id: Optional[str] = None) -> Dict[str, Any]:
        """Run one tool call in its own connection and transaction."""
        context = ExecutionContext(
            correlation_id=str(uuid.uuid4()),
            interface='mcp',
            user_id=user_id or 'mcp_client'  # Could extract from MCP session metadata
        )

        try:
            request = self.build_request(name, arguments)
            connection = self.connection_factory(self.config.require_database_url())
        except (ValueError, DbExecError) as e:
            logger.error(f"{context} {e}")
            return {
                'success': False,
                'error': str(e),
                'error_code': getattr(e, 'error_code', 'INVALID_REQUEST'),
                'correlation_id': context.correlation_id,
            }

        try:
            runner = TransactionRunner(self.catalog, connection, paramstyle=self.paramstyle)
            result = runner.run(request, context)
        finally:
            close(connection)

        return _result_payload(result)

    def _register_handlers(self):
        """Register MCP protocol handlers."""

        @self.server.list_tools()
        async def list_tools() -> list[types.Tool]:
            """Return list of available tools."""
            return [
                types.Tool(
                    name=tool['name'],
                    description=tool['description'],
                    inputSchema=tool['inputSchema']
                )
                for tool in self.tools.values()
            ]

        @self.server.call_tool()
        async def call_tool(
            name: str,
            arguments: dict
        ) -> list[types.TextContent]:
            """Execute a tool (one transaction)."""
            response = self.handle_call(name, arguments)
            return [types.TextContent(
                type="text",
                text=json.dumps(response, indent=2, default=str)
            )]

    async def run(self):
        """Run the MCP server on stdio."""
        logger.info("Starting MCP server on stdio...")
        async with stdio_server() as (read_stream, write_stream):
            await self.server.run(
                read_stream,
                write_stream,
                self.server.create_initialization_options()
            )


def _stringify(params: Dict[str, Any]) -> Dict[str, str]:
    """Parameters bind as strings; JSON scalars are converted, nulls dropped."""
    return {str(key): str(value) for key, value in params.items() if value is not None}


def _result_payload(result: TransactionResult) -> Dict[str, Any]:
    """Serialize a result with column values rendered for display."""
    payload = result.to_dict()
    for outcome in payload['outcomes']:
        if outcome['rows'] is not None:
            outcome['rows'] = [
                [None if value is None else format_value(value) for value in row]
                for row in outcome['rows']
            ]
    return payload


async def main():
    """Entry point for MCP server."""
    config = load_config()

    # MCP uses stdout for protocol
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper()),
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        handlers=[logging.StreamHandler(sys.stderr)]
    )

    catalog = QueryCatalog.load(config.query_definitions_path)
    server = SQLTransactionMCPServer(catalog, config)
    await server.run()


def run_server():
    """Console script entry point."""
    asyncio.run(main())

