"""
Reporting module for toolgate.

Output formats:
    - Console: Rich tables and panels for responses, audit trail, tool catalog
    - JSON: Plain dicts for programmatic consumption

Example:
    from toolgate.report import build_response_dict, render_response, to_json

    render_response(response)
    print(to_json(build_response_dict(response)))
"""

from toolgate.report.console import render_audit_trail, render_response, render_tool_catalog
from toolgate.report.json import (
    build_audit_list,
    build_catalog_list,
    build_response_dict,
    execution_to_dict,
    to_json,
)

__all__ = [
    "build_audit_list",
    "build_catalog_list",
    "build_response_dict",
    "execution_to_dict",
    "render_audit_trail",
    "render_response",
    "render_tool_catalog",
    "to_json",
]
