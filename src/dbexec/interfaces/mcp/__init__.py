"""MCP interface: catalog queries as transactional tools."""
