"""
Convert catalog query definitions to MCP tool schemas.
"""
import re
import logging
from typing import Dict, List, Any

from dbexec.sql_tools import QueryCatalog, QueryDefinition


logger = logging.getLogger(__name__)

RUN_TRANSACTION_TOOL = "run_transaction"

APPROVE_PROPERTY = {
    'type': 'boolean',
    'default': False,
    'description': 'Execute and commit. When false, mutating statements are '
                   'previewed and the transaction is rolled back.',
}

_INVALID_TOOL_CHARS = re.compile(r'[^A-Za-z0-9_-]')


class QueryToolConverter:
    """Converts QueryDefinition to MCP tool schema."""

    def tool_name(self, query_def: QueryDefinition) -> str:
        """MCP tool names allow letters, digits, '_' and '-' only."""
        return _INVALID_TOOL_CHARS.sub('_', query_def.id)

    def convert(self, query_def: QueryDefinition) -> Dict[str, Any]:
        """
        Convert a single query to MCP tool schema.

        Every allow-listed parameter becomes a required string property,
        plus an optional approve flag.
        """
        description = query_def.description.strip() or f"Run query {query_def.id}"
        notes = []
        if query_def.requires_approval:
            notes.append("requires approve=true to execute")
        if query_def.max_rows_affected:
            notes.append(f"fails if more than {query_def.max_rows_affected} rows are affected")
        if notes:
            description = f"{description} ({'; '.join(notes)})"

        properties = {
            name: {'type': 'string', 'description': f"Value bound to ${position}"}
            for position, name in enumerate(query_def.allowed_params, start=1)
        }
        properties['approve'] = dict(APPROVE_PROPERTY)

        return {
            'name': self.tool_name(query_def),
            'description': description,
            'inputSchema': {
                'type': 'object',
                'properties': properties,
                'required': list(query_def.allowed_params),
            },
            'metadata': {
                'query_id': query_def.id,
            }
        }

    def transaction_tool(self, catalog: QueryCatalog) -> Dict[str, Any]:
        """Schema for the tool that runs several queries in one transaction."""
        return {
            'name': RUN_TRANSACTION_TOOL,
            'description': 'Run several catalog queries, in order, inside one transaction. '
                           'Any failure rolls back all of them.',
            'inputSchema': {
                'type': 'object',
                'properties': {
                    'query_ids': {
                        'type': 'array',
                        'items': {'type': 'string', 'enum': sorted(catalog.ids())},
                        'minItems': 1,
                    },
                    'params': {
                        'type': 'object',
                        'additionalProperties': {'type': 'string'},
                        'description': 'Parameters shared by all queries',
                    },
                    'approve': dict(APPROVE_PROPERTY),
                },
                'required': ['query_ids'],
            },
            'metadata': {},
        }

    def convert_all(self, catalog: QueryCatalog) -> List[Dict[str, Any]]:
        """Convert all queries to MCP tools, plus the transaction tool."""
        tools = []
        seen = {RUN_TRANSACTION_TOOL}
        for query_def in catalog:
            tool_schema = self.convert(query_def)
            if tool_schema['name'] in seen:
                # Log but don't fail entire conversion
                logger.error(f"Skipping query {query_def.id}: tool name {tool_schema['name']} already in use")
                continue
            seen.add(tool_schema['name'])
            tools.append(tool_schema)
        tools.append(self.transaction_tool(catalog))
        return tools
