"""
Network diagnostic tools.

CheckHostReachability resolves a host name and attempts a TCP connection.
It sends no payload and reads nothing, so it is read-only.
"""

import socket
import time
from typing import Any

from toolgate.schema import PermissionLevel, ToolCategory
from toolgate.tools.base import Tool, ToolExecutionContext, ToolResult

DEFAULT_PORT = 443
DEFAULT_TIMEOUT_SECONDS = 5.0


class CheckHostReachabilityTool(Tool):
    """
    Check whether a host accepts TCP connections on a port.

    Arguments:
        host (str): Host name or IP address (required)
        port (int): TCP port, default 443
        timeoutSeconds (number): Connect timeout, 0.1-30, default 5

    Returns:
        dict with host, port, resolved addresses, reachable flag and
        latency_ms. An unreachable host is still a successful check.
    """

    @property
    def name(self) -> str:
        return "CheckHostReachability"

    @property
    def description(self) -> str:
        return "Resolve a host name and test TCP connectivity to a port"

    @property
    def category(self) -> ToolCategory:
        return ToolCategory.NETWORK

    @property
    def required_permission(self) -> PermissionLevel:
        return PermissionLevel.USER

    @property
    def parameter_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "host": {
                    "type": "string",
                    "description": "Host name or IP address",
                    "minLength": 1,
                    "maxLength": 253,
                },
                "port": {
                    "type": "integer",
                    "description": "TCP port (optional, default: 443)",
                    "minimum": 1,
                    "maximum": 65535,
                    "default": DEFAULT_PORT,
                },
                "timeoutSeconds": {
                    "type": "number",
                    "description": "Connection timeout in seconds (optional, default: 5)",
                    "minimum": 0.1,
                    "maximum": 30,
                    "default": DEFAULT_TIMEOUT_SECONDS,
                },
            },
            "required": ["host"],
        }

    def get_execution_preview(self, parameters: dict[str, Any]) -> str:
        host = parameters.get("host", "")
        port = parameters.get("port", DEFAULT_PORT)
        return f"Open a TCP connection to {host}:{port}"

    def execute(self, context: ToolExecutionContext) -> ToolResult:
        params = context.parameters
        host = params["host"].strip()
        port = int(params.get("port", DEFAULT_PORT))
        timeout = min(float(params.get("timeoutSeconds", DEFAULT_TIMEOUT_SECONDS)), context.timeout)

        try:
            infos = socket.getaddrinfo(host, port, type=socket.SOCK_STREAM)
        except socket.gaierror as e:
            return ToolResult.fail(f"Cannot resolve host {host}: {e}", exception=e)

        addresses = sorted({info[4][0] for info in infos})
        result: dict[str, Any] = {
            "host": host,
            "port": port,
            "addresses": addresses,
            "reachable": False,
            "latency_ms": None,
            "error": None,
        }

        start = time.perf_counter()
        try:
            with socket.create_connection((host, port), timeout=timeout):
                result["reachable"] = True
                result["latency_ms"] = round((time.perf_counter() - start) * 1000, 2)
        except OSError as e:
            result["error"] = str(e) or e.__class__.__name__

        if result["reachable"]:
            message = f"{host}:{port} is reachable ({result['latency_ms']} ms)"
        else:
            message = f"{host}:{port} is not reachable: {result['error']}"
        return ToolResult.ok(result, message=message)
