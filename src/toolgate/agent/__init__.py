"""
Toolgate agent module.

This module connects a language model to the tool registry through the
security manager.

The ReAct cycle implements a reason -> act -> observe loop:
1. The model reasons about the query and emits tool-call directives
2. Each directive is validated, security-checked, approved and executed
3. Results are fed back to the model as observations

Usage:
    from toolgate.agent import AgentOrchestrator

    orchestrator = AgentOrchestrator(registry, security)
    response = orchestrator.execute_react_cycle("alice", "Read notes.txt")
"""

from toolgate.agent.orchestrator import (
    AgentConfig,
    AgentOrchestrator,
    AgentResponse,
    AgentState,
    ToolExecutionResult,
)
from toolgate.agent.protocol import format_tool_call, parse_tool_calls, strip_tool_markup

__all__ = [
    "AgentConfig",
    "AgentOrchestrator",
    "AgentResponse",
    "AgentState",
    "ToolExecutionResult",
    "format_tool_call",
    "parse_tool_calls",
    "strip_tool_markup",
]
