"""Caller-facing interfaces (CLI and MCP)."""
