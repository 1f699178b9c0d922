"""Tool implementations for toolgate."""

from toolgate.tools.base import Tool, ToolExecutionContext, ToolResult, ToolValidationResult
from toolgate.tools.registry import RegistryStats, ToolRegistry, build_default_registry

__all__ = [
    "RegistryStats",
    "Tool",
    "ToolExecutionContext",
    "ToolRegistry",
    "ToolResult",
    "ToolValidationResult",
    "build_default_registry",
]
