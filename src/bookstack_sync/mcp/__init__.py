"""MCP server exposing BookStack sync operations over stdio."""
