"""
Parameter screening and canonical parameter signatures.

scan_parameters() walks every string value (recursively through lists and
dicts) and reports injection patterns. It is deliberately blunt: any match
denies the call.

parameter_signature() produces a type-aware canonical form of a parameter
map, so {"n": 1} and {"n": "1"} never share a remembered approval.
"""

import hashlib
import json
from typing import Any

PATH_TRAVERSAL_PATTERNS = ("..", "\\\\", "//")
COMMAND_INJECTION_PATTERNS = (";", "|", "&")
SCRIPT_INJECTION_PATTERNS = ("<script", "javascript:")


def _iter_strings(value: Any, path: str):
    """Yield (path, string) for every string reachable from value."""
    if isinstance(value, str):
        yield path, value
    elif isinstance(value, dict):
        for key, item in value.items():
            yield from _iter_strings(item, f"{path}.{key}")
    elif isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            yield from _iter_strings(item, f"{path}[{index}]")


def scan_parameters(parameters: dict[str, Any]) -> list[str]:
    """
    Report injection patterns found in parameter values.

    Args:
        parameters: The parameter map to screen

    Returns:
        One message per (parameter, pattern class) match; empty if clean
    """
    issues: list[str] = []
    for key, value in parameters.items():
        for name, text in _iter_strings(value, str(key)):
            if any(p in text for p in PATH_TRAVERSAL_PATTERNS):
                issues.append(f"Suspicious path traversal pattern in parameter '{name}'")
            if any(p in text for p in COMMAND_INJECTION_PATTERNS):
                issues.append(f"Potential command injection pattern in parameter '{name}'")
            lowered = text.lower()
            if any(p in lowered for p in SCRIPT_INJECTION_PATTERNS):
                issues.append(f"Potential script injection in parameter '{name}'")
    return issues


def _canonical_default(value: Any) -> Any:
    # Non-JSON values keep their type name so distinct types never collide
    if isinstance(value, (set, frozenset)):
        return {"__set__": sorted(canonical_json(v) for v in value)}
    if isinstance(value, bytes):
        return {"__bytes__": value.hex()}
    return {"__type__": type(value).__qualname__, "value": str(value)}


def canonical_json(value: Any) -> str:
    """Deterministic JSON: sorted keys, no whitespace, types preserved."""
    return json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=_canonical_default,
    )


def parameter_signature(parameters: dict[str, Any]) -> str:
    """SHA-256 hex digest of the canonical parameter form."""
    return hashlib.sha256(canonical_json(parameters).encode("utf-8")).hexdigest()


def approval_key(user_id: str, tool_name: str, parameters: dict[str, Any]) -> str:
    """Cache key for a remembered approval: user:tool:signature."""
    return f"{user_id}:{tool_name}:{parameter_signature(parameters)}"
