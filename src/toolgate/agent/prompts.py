"""
Prompt builders for the orchestrator.

Every prompt carries the user's query on a line starting with
QUERY_MARKER. ReAct prompts add the transcript of earlier iterations and,
once tools have run, an OBSERVATIONS_MARKER section with their results.
"""

import json
import re
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from toolgate.llm.base import CONTEXT_MARKER, OBSERVATIONS_MARKER, QUERY_MARKER

if TYPE_CHECKING:
    from toolgate.agent.orchestrator import ToolExecutionResult
    from toolgate.tools.base import Tool
    from toolgate.tools.registry import ToolRegistry

NO_TOOLS_TEXT = "No tools are currently available for your permission level."
ITERATION_SEPARATOR = "\n---ITERATION---\n"
MAX_DATA_CHARS = 2000

TOOL_CALL_EXAMPLE = """### Tool Call Format
To call a tool, use this exact format:
```
<tool_call>
{
  "tool_name": "ToolName",
  "parameters": {
    "param1": "value1",
    "param2": "value2"
  },
  "reasoning": "Why this tool is needed"
}
</tool_call>
```
"""

REACT_GUIDELINES = """## Instructions
Continue the reasoning process. If you need more information or actions, use the available tools. If you have enough information to provide a complete answer, explain your conclusion without using more tools.

Guidelines:
1. Reason about what you know so far
2. Identify what information is still needed
3. Use tools to gather missing information
4. Observe the results and continue reasoning
5. Provide a final answer when you have sufficient information

Remember to format tool calls correctly and explain your reasoning clearly."""

# Tried in order; the first match wins
REASONING_PATTERNS = [
    re.compile(r"## Reasoning\s*\n(.*?)(?=\n##|\n<tool_call>|$)", re.DOTALL | re.IGNORECASE),
    re.compile(r"## Analysis\s*\n(.*?)(?=\n##|\n<tool_call>|$)", re.DOTALL | re.IGNORECASE),
    re.compile(r"Let me think about this\.\s*(.*?)(?=\n<tool_call>|$)", re.DOTALL | re.IGNORECASE),
    re.compile(r"I need to\s*(.*?)(?=\n<tool_call>|$)", re.DOTALL | re.IGNORECASE),
]


def build_tools_prompt(registry: "ToolRegistry", tools: Sequence["Tool"]) -> str:
    """Tool-advertisement section for the given tools."""
    if not tools:
        return NO_TOOLS_TEXT
    return (
        "## Available Tools\n\n"
        "You can use the following tools to help answer the user's question. "
        "To use a tool, format your response with <tool_call> tags containing JSON "
        "with the tool name and parameters.\n\n"
        f"{registry.describe_for_prompt(list(tools))}\n"
        f"{TOOL_CALL_EXAMPLE}"
    )


def _context_section(context: str) -> str:
    return f"\n{CONTEXT_MARKER}\n{context.strip()}\n" if context and context.strip() else ""


def build_initial_prompt(query: str, tools_prompt: str, context: str = "") -> str:
    return f"""You are an AI assistant with access to system tools.

{tools_prompt}

{QUERY_MARKER} {query}
{_context_section(context)}
Please analyze the user's query and determine if any tools would be helpful to provide a complete answer. If so, use the appropriate tools and then provide a comprehensive response based on the results.

If you need to use tools, call them first, then provide your analysis and response based on the tool results."""


def build_react_prompt(
    query: str,
    tools_prompt: str,
    transcript: Sequence[str],
    iteration: int,
    observations: str = "",
    context: str = "",
) -> str:
    """
    Prompt for one ReAct iteration.

    Args:
        query: The original user query
        tools_prompt: Output of build_tools_prompt
        transcript: Model text of each earlier iteration
        iteration: Zero-based iteration number
        observations: Formatted results of every tool run so far
        context: Background text from the context retriever
    """
    history = ITERATION_SEPARATOR.join(
        f"Iteration {i + 1}:\n{text}" for i, text in enumerate(transcript)
    )
    sections = [
        f"You are in iteration {iteration + 1} of a ReAct (Reasoning, Acting, Observing) cycle.",
        tools_prompt,
        f"{QUERY_MARKER} {query}",
    ]
    if context and context.strip():
        sections.append(f"{CONTEXT_MARKER}\n{context.strip()}")
    sections.append(f"Previous Iterations:\n{history or '(none)'}")
    if observations:
        sections.append(f"{OBSERVATIONS_MARKER}\n{observations}")
    sections.append(REACT_GUIDELINES)
    return "\n\n".join(sections)


def _serialize(value: Any) -> str:
    text = json.dumps(value, default=str, ensure_ascii=False)
    if len(text) > MAX_DATA_CHARS:
        text = text[:MAX_DATA_CHARS] + "... (truncated)"
    return text


def format_observation(result: "ToolExecutionResult") -> str:
    """One tool execution as observation text."""
    call = result.tool_call
    tool_result = result.tool_result
    lines = [
        f"Tool: {call.tool_name}",
        f"Parameters: {_serialize(call.parameters)}",
        f"Result: {'Success' if tool_result.success else 'Failed'}",
    ]
    if tool_result.success:
        lines.append(f"Data: {_serialize(tool_result.data)}")
        lines.append(f"Message: {tool_result.message}")
    else:
        lines.append(f"Error: {tool_result.error_message}")
    return "\n".join(lines)


def format_observations(results: Sequence["ToolExecutionResult"]) -> str:
    return "\n\n".join(format_observation(r) for r in results)


def build_follow_up_prompt(query: str, results: Sequence["ToolExecutionResult"]) -> str:
    return f"""{QUERY_MARKER} {query}

Tool Execution Results:

{format_observations(results)}

Based on the tool execution results above, provide a comprehensive response to the user's original query.
Incorporate the data from successful tool executions and explain any failures clearly.
Be helpful, accurate, and informative."""


def extract_reasoning(text: str) -> str:
    """
    The model's stated reasoning for an iteration.

    Looks for "## Reasoning" / "## Analysis" sections and "Let me think
    about this." / "I need to" lead-ins, falling back to the first line.
    """
    for pattern in REASONING_PATTERNS:
        match = pattern.search(text)
        if match and match.group(1).strip():
            return match.group(1).strip()
    for line in text.splitlines():
        if line.strip():
            return line.strip()
    return ""
