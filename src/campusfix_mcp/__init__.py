"""CampusFix MCP Server - Model Context Protocol integration.

Lets AI assistants used by facility staff browse issues, move them through
the resolution workflow and read the maintenance dashboard.

Modules:
- server: stdio MCP server implementation
- formatters: Response formatting utilities
- tools: MCP tool definitions
- handlers: Tool implementation handlers
"""

__version__ = "1.0.0"

from . import formatters
from . import tools
from . import handlers

__all__ = ["formatters", "tools", "handlers", "__version__"]
