"""
JSON report builders for toolgate.

Turns agent responses, audit trails and the tool catalog into plain dicts
for `--json` output and programmatic consumption.

Design Principles:
    - Complete data: every execution step and its security decisions
    - Consistent schema: same keys whether a call succeeded or not
    - ISO timestamps and seconds for durations
"""

import json
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

from toolgate.agent.orchestrator import AgentResponse, ToolExecutionResult
from toolgate.errors import ToolgateError
from toolgate.schema import ToolExecutionAuditEntry
from toolgate.tools.base import Tool

REPORT_VERSION = "1.0"


def execution_to_dict(result: ToolExecutionResult) -> dict[str, Any]:
    """Serialize one tool execution."""
    tool_result = result.tool_result
    return {
        "call_id": result.tool_call.id,
        "tool_name": result.tool_call.tool_name,
        "parameters": result.tool_call.parameters,
        "reasoning": result.tool_call.reasoning,
        "success": tool_result.success,
        "message": tool_result.message,
        "error": tool_result.error_message,
        "failure_kind": result.failure_kind.value if result.failure_kind else None,
        "error_code": (
            tool_result.exception.code
            if isinstance(tool_result.exception, ToolgateError)
            else None
        ),
        "data": tool_result.data,
        "execution_time": tool_result.execution_time,
        "modified_files": list(tool_result.modified_files),
        "required_approval": result.required_approval,
        "approval": (
            result.approval_result.model_dump(mode="json") if result.approval_result else None
        ),
        "security": (
            result.security_result.model_dump(mode="json") if result.security_result else None
        ),
        "backup": result.backup_info.model_dump(mode="json") if result.backup_info else None,
    }


def build_response_dict(response: AgentResponse) -> dict[str, Any]:
    """Serialize an AgentResponse."""
    return {
        "report_version": REPORT_VERSION,
        "generated_at": datetime.now(UTC).isoformat(),
        "state": response.state.value,
        "is_complete": response.is_complete,
        "response_text": response.response_text,
        "iterations": response.iterations,
        "processing_time": response.processing_time,
        "reasoning": response.reasoning,
        "errors": response.errors,
        "warnings": response.warnings,
        "tool_executions": [execution_to_dict(r) for r in response.tool_executions],
    }


def build_audit_list(entries: Sequence[ToolExecutionAuditEntry]) -> list[dict[str, Any]]:
    return [entry.model_dump(mode="json") for entry in entries]


def build_catalog_list(tools: Sequence[Tool]) -> list[dict[str, Any]]:
    """Serialize tool definitions, with the parameter schema decoded."""
    catalog = []
    for tool in tools:
        entry = tool.definition.model_dump(mode="json")
        entry["required_permission"] = tool.required_permission.label
        entry["parameter_schema"] = tool.parameter_schema
        catalog.append(entry)
    return catalog


def to_json(data: Any, indent: int = 2) -> str:
    return json.dumps(data, indent=indent, default=_json_serializer, ensure_ascii=False)


def _json_serializer(obj: Any) -> Any:
    """Custom JSON serializer for objects not serializable by default."""
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, (set, frozenset, tuple)):
        return list(obj)
    return str(obj)
