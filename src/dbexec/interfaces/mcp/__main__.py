"""Serve the query catalog over MCP stdio: python -m dbexec.interfaces.mcp"""
from .server import run_server

if __name__ == "__main__":
    run_server()
