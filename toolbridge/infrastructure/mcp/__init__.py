"""
MCP (Model Context Protocol) Infrastructure Layer.

Architecture:
- Transport: wire protocol implementations (local-process, http-stream, server-push)
- MCPClient: uniform client with the MCP handshake over any transport
- ServerRegistry: layered server configuration with change events
- ConnectionManager: one client per configured server, reconciled on change
- ToolCatalog: categorized, snapshot-based index of discovered tools
"""
