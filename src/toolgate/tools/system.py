"""
System information tool.

Reports facts about the host the agent runs on. Read-only and available at
the lowest permission level.
"""

import os
import platform
import shutil
import socket
from pathlib import Path
from typing import Any

from toolgate.schema import ToolCategory
from toolgate.tools.base import Tool, ToolExecutionContext, ToolResult


class GetSystemInfoTool(Tool):
    """
    Describe the host system.

    Arguments:
        includeDisk (bool): Include disk usage of the working directory,
            default True

    Returns:
        dict with platform, python, hostname, cpu_count and (optionally) disk
    """

    @property
    def name(self) -> str:
        return "GetSystemInfo"

    @property
    def description(self) -> str:
        return "Get operating system, Python runtime, CPU and disk information"

    @property
    def category(self) -> ToolCategory:
        return ToolCategory.INFORMATION

    @property
    def parameter_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "includeDisk": {
                    "type": "boolean",
                    "description": "Include disk usage of the working directory (optional, default: true)",
                    "default": True,
                },
            },
        }

    def get_execution_preview(self, parameters: dict[str, Any]) -> str:
        return "Collect operating system and hardware information"

    def execute(self, context: ToolExecutionContext) -> ToolResult:
        info: dict[str, Any] = {
            "platform": {
                "system": platform.system(),
                "release": platform.release(),
                "version": platform.version(),
                "machine": platform.machine(),
            },
            "python": {
                "implementation": platform.python_implementation(),
                "version": platform.python_version(),
            },
            "hostname": socket.gethostname(),
            "cpu_count": os.cpu_count(),
        }

        if context.parameters.get("includeDisk", True):
            try:
                usage = shutil.disk_usage(Path(context.working_directory).resolve())
            except OSError as e:
                return ToolResult.fail(f"Cannot read disk usage: {e}", exception=e)
            info["disk"] = {
                "path": str(Path(context.working_directory).resolve()),
                "total_bytes": usage.total,
                "used_bytes": usage.used,
                "free_bytes": usage.free,
            }

        return ToolResult.ok(
            info,
            message=f"{info['platform']['system']} {info['platform']['release']} on {info['hostname']}",
        )
