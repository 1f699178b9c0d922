"""
Tool registry for toolgate.

The registry is the catalog of tools a language model may request. It is
permission-level-only and user-agnostic: per-user category and deny-list
evaluation belongs to SecurityManager.

Design:
    - No process-wide default registry; callers own their registry
    - Registration is rare (startup) and serialized on a lock
    - Every write publishes a fresh immutable snapshot, so reads never
      take the lock and never observe a half-applied registration
    - Duplicate names are an error, never a silent overwrite

Usage:
    from toolgate.tools.registry import build_default_registry

    registry = build_default_registry()
    tool = registry.get("ReadFileContents")
"""

import json
import threading
from collections.abc import Iterator
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from toolgate.errors import ToolAlreadyRegisteredError, ToolNotFoundError
from toolgate.schema import PermissionLevel, ToolCategory
from toolgate.tools.base import Tool


@dataclass(frozen=True)
class RegistryStats:
    """Summary counts over the registered tools."""

    total_tools: int = 0
    tools_by_category: dict[ToolCategory, int] = field(default_factory=dict)
    tools_by_permission_level: dict[PermissionLevel, int] = field(default_factory=dict)
    tools_requiring_approval: int = 0
    modifying_tools: int = 0
    read_only_tools: int = 0


class ToolRegistry:
    """
    Registry for looking up tools by name.

    Attributes:
        _tools: Current immutable snapshot of name -> tool
        _write_lock: Serializes writers
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._tools: Mapping[str, Tool] = MappingProxyType({})
        self._write_lock = threading.Lock()

    def register(self, tool: Tool) -> None:
        """
        Register a tool in the registry.

        Args:
            tool: The tool instance to register

        Raises:
            ValueError: If tool is None or has an empty name
            ToolAlreadyRegisteredError: If the name is already taken
        """
        if tool is None:
            msg = "Cannot register None as a tool"
            raise ValueError(msg)

        name = tool.name
        if not name or not name.strip():
            msg = "Tool must have a non-empty name"
            raise ValueError(msg)

        with self._write_lock:
            if name in self._tools:
                raise ToolAlreadyRegisteredError(tool=name)
            updated = dict(self._tools)
            updated[name] = tool
            self._tools = MappingProxyType(updated)

    def unregister(self, name: str) -> bool:
        """
        Remove a tool from the registry.

        Returns:
            True if the tool was removed, False if it wasn't registered
        """
        with self._write_lock:
            if name not in self._tools:
                return False
            updated = dict(self._tools)
            del updated[name]
            self._tools = MappingProxyType(updated)
            return True

    def get(self, name: str) -> Tool | None:
        """Look up a tool by name, returning None if not found."""
        if not name:
            return None
        return self._tools.get(name)

    def require(self, name: str) -> Tool:
        """
        Look up a tool by name.

        Raises:
            ToolNotFoundError: If no tool with that name is registered
        """
        tool = self.get(name)
        if tool is None:
            raise ToolNotFoundError(tool=name)
        return tool

    def has(self, name: str) -> bool:
        return name in self._tools

    def all_tools(self) -> list[Tool]:
        """All registered tools, sorted by name."""
        snapshot = self._tools
        return [snapshot[name] for name in sorted(snapshot)]

    def list_tools(self) -> list[str]:
        """All registered tool names in sorted order."""
        return sorted(self._tools)

    def list_by_category(self, category: ToolCategory) -> list[Tool]:
        return [t for t in self.all_tools() if t.category == category]

    def list_by_max_permission(self, level: PermissionLevel) -> list[Tool]:
        """Tools whose required permission does not exceed `level`."""
        return [t for t in self.all_tools() if t.required_permission <= level]

    def authorized_tools(self, level: PermissionLevel) -> list[Tool]:
        """
        Tools visible to a caller at `level`.

        Only the permission ceiling is applied; category and deny-list
        filtering is SecurityManager's job.
        """
        return self.list_by_max_permission(level)

    def search(self, text: str) -> list[Tool]:
        """Case-insensitive substring search over name and description."""
        if not text or not text.strip():
            return self.all_tools()
        needle = text.strip().lower()
        return [
            t
            for t in self.all_tools()
            if needle in t.name.lower() or needle in t.description.lower()
        ]

    def generate_schema(self) -> str:
        """
        Machine-readable description of every registered tool.

        Returns:
            Indented JSON with "type", "items" and "tools" keys
        """
        schema = {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {},
                "required": ["name", "parameters"],
            },
            "tools": [
                {
                    "name": t.name,
                    "description": t.description,
                    "category": t.category.value,
                    "permission_level": t.required_permission.label,
                    "requires_approval": t.requires_approval,
                    "is_modifying": t.is_modifying,
                    "parameter_schema": t.definition.parameter_schema,
                }
                for t in self.all_tools()
            ],
        }
        return json.dumps(schema, indent=2)

    def describe_for_prompt(self, tools: list[Tool] | None = None) -> str:
        """
        Prompt-formatted tool catalog.

        Tools are grouped by category in first-seen order and sorted by name
        within each group. Each entry carries its [MODIFIES SYSTEM] or
        [READ-ONLY] marker, an approval note and its raw parameter schema.

        Args:
            tools: Tools to describe (default: every registered tool)
        """
        if tools is None:
            tools = self.all_tools()

        groups: dict[ToolCategory, list[Tool]] = {}
        for tool in tools:
            groups.setdefault(tool.category, []).append(tool)

        lines: list[str] = []
        for category, members in groups.items():
            lines.append(f"### {category.value} Tools")
            for tool in sorted(members, key=lambda t: t.name):
                modifying_note = " [MODIFIES SYSTEM]" if tool.is_modifying else " [READ-ONLY]"
                approval_note = " (requires user approval)" if tool.requires_approval else ""
                lines.append(
                    f"- **{tool.name}**{modifying_note}{approval_note}: {tool.description}"
                )
                lines.append(f"  Parameters: {tool.definition.parameter_schema}")
                lines.append("")
        return "\n".join(lines)

    def statistics(self) -> RegistryStats:
        tools = self.all_tools()
        by_category: dict[ToolCategory, int] = {}
        by_level: dict[PermissionLevel, int] = {}
        for tool in tools:
            by_category[tool.category] = by_category.get(tool.category, 0) + 1
            by_level[tool.required_permission] = by_level.get(tool.required_permission, 0) + 1

        modifying = sum(1 for t in tools if t.is_modifying)
        return RegistryStats(
            total_tools=len(tools),
            tools_by_category=by_category,
            tools_by_permission_level=by_level,
            tools_requiring_approval=sum(1 for t in tools if t.requires_approval),
            modifying_tools=modifying,
            read_only_tools=len(tools) - modifying,
        )

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self) -> Iterator[Tool]:
        return iter(self.all_tools())

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __repr__(self) -> str:
        tools = ", ".join(self.list_tools())
        return f"<ToolRegistry: [{tools}]>"


def build_default_registry() -> ToolRegistry:
    """
    Create a registry holding the built-in tools.

    Tools are registered from an explicit list; there is no discovery.
    """
    from toolgate.tools.fs import ListDirectoryTool, ReadFileContentsTool, WriteFileContentsTool
    from toolgate.tools.network import CheckHostReachabilityTool
    from toolgate.tools.system import GetSystemInfoTool

    registry = ToolRegistry()
    for tool in (
        ReadFileContentsTool(),
        WriteFileContentsTool(),
        ListDirectoryTool(),
        GetSystemInfoTool(),
        CheckHostReachabilityTool(),
    ):
        registry.register(tool)
    return registry
