"""toolbridge: discovery, catalog and proxy routing for MCP tool servers."""

__version__ = "0.1.0"
