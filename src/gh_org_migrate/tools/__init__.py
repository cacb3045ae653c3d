"""Local command-line tools used during migration."""

from .process import ExternalTool, ExternalToolError, ToolResult

__all__ = ['ExternalTool', 'ExternalToolError', 'ToolResult']
