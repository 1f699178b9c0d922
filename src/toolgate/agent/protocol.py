"""
Tool-call wire protocol.

Language models request tools by embedding JSON directives in their text.
Two grammars are accepted, tried in order:

    A. Tagged (tag name is case-insensitive):
        <tool_call>
        {"tool_name": "ReadFileContents", "parameters": {"filePath": "a.txt"}}
        </tool_call>

    B. Fenced, only when grammar A produced no calls:
        ```json
        {"tool_name": "ReadFileContents", "parameters": {"filePath": "a.txt"}}
        ```

The JSON object is located with a bracket-depth scanner that understands
strings and escapes, so nested parameter objects and strings containing
braces or closing tags are never clipped.

A directive that is not valid JSON, is not an object, lacks a string
tool_name, or carries non-object parameters is dropped silently. Parsing
never raises.
"""

import json
import re
from dataclasses import dataclass
from typing import Any

from toolgate.schema import ToolCall

OPEN_TAG = re.compile(r"<tool_call\s*>", re.IGNORECASE)
CLOSE_TAG = re.compile(r"</tool_call\s*>", re.IGNORECASE)
FENCE_OPEN = re.compile(r"```json[ \t]*\r?\n?", re.IGNORECASE)
FENCE_CLOSE = "```"


@dataclass(frozen=True)
class Directive:
    """A located directive: its span in the source text and its JSON body."""

    start: int
    end: int
    body: str


def find_json_object(text: str, start: int) -> tuple[int, int] | None:
    """
    Locate a balanced JSON object starting at the first non-space char.

    Args:
        text: Text to scan
        start: Index to start from

    Returns:
        (begin, end) slice bounds of the object, or None if the text at
        `start` does not open an object or the object never closes
    """
    i = start
    length = len(text)
    while i < length and text[i].isspace():
        i += 1
    if i >= length or text[i] != "{":
        return None

    begin = i
    depth = 0
    in_string = False
    escape_next = False

    for i in range(begin, length):
        char = text[i]
        if in_string:
            if escape_next:
                escape_next = False
            elif char == "\\":
                escape_next = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return begin, i + 1

    return None


def _skip_space(text: str, index: int) -> int:
    while index < len(text) and text[index].isspace():
        index += 1
    return index


def find_tagged_directives(text: str) -> list[Directive]:
    """Grammar A directives, in order of appearance."""
    directives: list[Directive] = []
    pos = 0
    while True:
        opened = OPEN_TAG.search(text, pos)
        if opened is None:
            break

        span = find_json_object(text, opened.end())
        if span is not None:
            closed = CLOSE_TAG.match(text, _skip_space(text, span[1]))
            if closed is not None:
                directives.append(Directive(opened.start(), closed.end(), text[span[0]:span[1]]))
                pos = closed.end()
                continue

        # No clean object before the closing tag: keep the raw body so it
        # fails to parse, and resume after the closing tag
        closed = CLOSE_TAG.search(text, opened.end())
        if closed is None:
            break
        directives.append(
            Directive(opened.start(), closed.end(), text[opened.end():closed.start()])
        )
        pos = closed.end()
    return directives


def find_fenced_directives(text: str) -> list[Directive]:
    """Grammar B blocks whose body mentions tool_name, in order of appearance."""
    directives: list[Directive] = []
    pos = 0
    while True:
        opened = FENCE_OPEN.search(text, pos)
        if opened is None:
            break

        span = find_json_object(text, opened.end())
        if span is not None and text.startswith(FENCE_CLOSE, _skip_space(text, span[1])):
            end = _skip_space(text, span[1]) + len(FENCE_CLOSE)
            body = text[span[0]:span[1]]
        else:
            close_index = text.find(FENCE_CLOSE, opened.end())
            if close_index < 0:
                break
            end = close_index + len(FENCE_CLOSE)
            body = text[opened.end():close_index]

        if '"tool_name"' in body:
            directives.append(Directive(opened.start(), end, body))
        pos = end
    return directives


def to_parameter_value(value: Any) -> Any:
    """
    Map a decoded JSON value onto a parameter value.

    Integers stay int, other numbers float, booleans bool, null becomes an
    empty string, arrays lists and objects dicts (recursively).
    """
    if value is None:
        return ""
    if isinstance(value, dict):
        return {str(k): to_parameter_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [to_parameter_value(v) for v in value]
    return value


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return json.dumps(value)


def parse_directive(body: str) -> ToolCall | None:
    """
    Turn one directive body into a ToolCall.

    Returns:
        The ToolCall, or None if the body is not a usable directive
    """
    try:
        data = json.loads(body.strip())
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None

    tool_name = data.get("tool_name")
    if not isinstance(tool_name, str) or not tool_name.strip():
        return None

    raw_parameters = data.get("parameters")
    if raw_parameters is None:
        raw_parameters = {}
    if not isinstance(raw_parameters, dict):
        return None

    return ToolCall(
        tool_name=tool_name.strip(),
        parameters=to_parameter_value(raw_parameters),
        reasoning=_optional_text(data.get("reasoning")),
        expected_output=_optional_text(data.get("expected_output")),
    )


def parse_tool_calls(text: str) -> list[ToolCall]:
    """
    Extract tool calls from model text.

    Grammar A is tried first; grammar B only if A produced no calls.
    Calls are returned in the order they appear in the text.
    """
    if not text:
        return []

    calls = _parse_all(find_tagged_directives(text))
    if calls:
        return calls
    return _parse_all(find_fenced_directives(text))


def _parse_all(directives: list[Directive]) -> list[ToolCall]:
    calls = []
    for directive in directives:
        call = parse_directive(directive.body)
        if call is not None:
            calls.append(call)
    return calls


def format_tool_call(call: ToolCall) -> str:
    """Render a ToolCall as a grammar A directive."""
    payload: dict[str, Any] = {
        "tool_name": call.tool_name,
        "parameters": call.parameters,
    }
    if call.reasoning is not None:
        payload["reasoning"] = call.reasoning
    if call.expected_output is not None:
        payload["expected_output"] = call.expected_output
    return f"<tool_call>\n{json.dumps(payload, indent=2, ensure_ascii=False)}\n</tool_call>"


def _remove_spans(text: str, directives: list[Directive]) -> str:
    parts: list[str] = []
    pos = 0
    for directive in directives:
        parts.append(text[pos:directive.start])
        pos = directive.end
    parts.append(text[pos:])
    return "".join(parts)


def strip_tool_markup(text: str) -> str:
    """Remove every grammar A and grammar B directive, leaving the prose."""
    if not text:
        return ""
    cleaned = _remove_spans(text, find_tagged_directives(text))
    cleaned = _remove_spans(cleaned, find_fenced_directives(cleaned))
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
    return cleaned.strip()
