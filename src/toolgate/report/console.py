"""
Console rendering for toolgate.

Renders agent responses, the audit trail and the tool catalog with Rich.

Design Principles:
    - Status at a glance: icons and colors for outcomes
    - Progressive detail: summary first, parameters and data with verbose
    - Consistent formatting: same columns for live results and audit history
"""

from collections.abc import Sequence
from typing import Any

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from toolgate.agent.orchestrator import AgentResponse, AgentState, ToolExecutionResult
from toolgate.errors import ErrorKind
from toolgate.schema import ToolExecutionAuditEntry
from toolgate.tools.base import Tool

ICON_SUCCESS = "[green]✓[/green]"
ICON_ERROR = "[red]✗[/red]"
ICON_DENIED = "[yellow]⊘[/yellow]"

DENIAL_KINDS = frozenset({
    ErrorKind.PERMISSION_DENIED,
    ErrorKind.APPROVAL_DENIED,
    ErrorKind.SECURITY_VIOLATION,
})


def _truncate(s: str, max_len: int) -> str:
    """Truncate string with ellipsis."""
    if len(s) <= max_len:
        return s
    return s[: max_len - 3] + "..."


def _execution_icon(result: ToolExecutionResult) -> str:
    if result.tool_result.success:
        return ICON_SUCCESS
    if result.failure_kind in DENIAL_KINDS:
        return ICON_DENIED
    return ICON_ERROR


def render_response(
    response: AgentResponse,
    console: Console | None = None,
    verbose: bool = False,
) -> None:
    """
    Print an AgentResponse: header, tool timeline, answer, warnings/errors.

    Args:
        response: The response to render
        console: Rich Console instance (creates one if not provided)
        verbose: Show parameters, backups and reasoning
    """
    if console is None:
        console = Console()

    _print_header(console, response)
    console.print()

    if response.tool_executions:
        _print_timeline(console, response.tool_executions, verbose)
        console.print()

    if verbose and response.reasoning:
        console.print("[bold]Reasoning[/bold]")
        for i, reasoning in enumerate(response.reasoning, start=1):
            console.print(f"  [dim]{i}.[/dim] {_truncate(reasoning, 200)}")
        console.print()

    console.print(Panel(Markdown(response.response_text or "_(no response)_"), title="Answer"))

    for warning in response.warnings:
        console.print(f"[yellow]⚠ {warning}[/yellow]")
    for error in response.errors:
        console.print(f"[red]✗ {error}[/red]")


def _print_header(console: Console, response: AgentResponse) -> None:
    if response.state == AgentState.DONE and response.is_complete:
        style, icon = "green", ICON_SUCCESS
    elif response.state == AgentState.DONE:
        style, icon = "yellow", ICON_DENIED
    else:
        style, icon = "red", ICON_ERROR

    header = Text()
    header.append(" State ", style="bold")
    header.append(response.state.value.upper(), style=f"bold {style}")
    header.append(" │ ", style="dim")
    header.append(f"{response.iterations} iteration(s)")
    header.append(" │ ", style="dim")
    header.append(f"{response.processing_time:.2f}s")
    header.append_text(Text.from_markup(f" {icon}"))
    console.print(Panel(header, expand=False))


def _print_timeline(
    console: Console,
    results: Sequence[ToolExecutionResult],
    verbose: bool,
) -> None:
    """Print the tool executions of a response."""
    table = Table(show_header=True, header_style="bold", show_lines=verbose, expand=True)
    table.add_column("#", style="dim", width=3, justify="right")
    table.add_column("Status", width=6, justify="center")
    table.add_column("Tool", style="cyan")
    table.add_column("Duration", justify="right", width=10)
    table.add_column("Details", overflow="fold")

    for i, result in enumerate(results, start=1):
        table.add_row(
            str(i),
            _execution_icon(result),
            result.tool_call.tool_name,
            f"{result.tool_result.execution_time * 1000:.1f}ms",
            _format_details(result, verbose),
        )

    console.print(table)


def _format_details(result: ToolExecutionResult, verbose: bool) -> str:
    """Format the details column for one execution."""
    parts = []
    parameters = result.tool_call.parameters

    if verbose and parameters:
        args = ", ".join(f"{k}={_truncate(str(v), 30)}" for k, v in parameters.items())
        parts.append(f"[dim]params:[/dim] {args}")

    tool_result = result.tool_result
    if tool_result.success:
        if tool_result.message:
            parts.append(_truncate(tool_result.message, 80))
    elif result.failure_kind in DENIAL_KINDS:
        parts.append(f"[yellow]{_truncate(tool_result.error_message or '', 80)}[/yellow]")
    else:
        parts.append(f"[red]{_truncate(tool_result.error_message or '', 80)}[/red]")

    if verbose and result.backup_info is not None:
        parts.append(f"[dim]backup: {result.backup_info.backup_id}[/dim]")
    if verbose and result.approval_result is not None:
        verdict = "approved" if result.approval_result.is_approved else "denied"
        parts.append(f"[dim]approval: {verdict}[/dim]")

    return "\n".join(parts)


def render_audit_trail(
    entries: Sequence[ToolExecutionAuditEntry],
    console: Console | None = None,
) -> None:
    """Print audit entries, newest first, as a table."""
    if console is None:
        console = Console()

    if not entries:
        console.print("[dim]No audit entries found.[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Time")
    table.add_column("User", style="cyan")
    table.add_column("Tool", style="cyan")
    table.add_column("Status", width=6, justify="center")
    table.add_column("Duration", justify="right")
    table.add_column("Approval", justify="center")
    table.add_column("Backup")
    table.add_column("Result", overflow="fold")

    for entry in entries:
        table.add_row(
            entry.execution_time.strftime("%Y-%m-%d %H:%M:%S"),
            entry.user_id,
            entry.tool_name,
            ICON_SUCCESS if entry.is_success else ICON_ERROR,
            f"{entry.duration.total_seconds() * 1000:.1f}ms",
            "yes" if entry.required_approval else "—",
            entry.backup_id[:8] if entry.backup_id else "—",
            _truncate(entry.execution_result, 60),
        )

    console.print(table)
    successes = sum(1 for e in entries if e.is_success)
    console.print(
        f"[dim]Total: {len(entries)} | Succeeded: {successes} | "
        f"Failed: {len(entries) - successes}[/dim]"
    )


def render_tool_catalog(
    tools: Sequence[Tool],
    console: Console | None = None,
    authorized: set[str] | None = None,
) -> None:
    """
    Print the tool catalog.

    Args:
        tools: Tools to list
        console: Rich Console instance
        authorized: Names the current user may invoke (None hides the column)
    """
    if console is None:
        console = Console()

    if not tools:
        console.print("[dim]No tools found.[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Tool", style="cyan")
    table.add_column("Category")
    table.add_column("Permission")
    table.add_column("Approval", justify="center")
    table.add_column("Effect")
    if authorized is not None:
        table.add_column("Allowed", justify="center")
    table.add_column("Description", overflow="fold")

    for tool in tools:
        row: list[Any] = [
            tool.name,
            tool.category.value,
            tool.required_permission.label,
            "yes" if tool.requires_approval else "—",
            "[yellow]modifies[/yellow]" if tool.is_modifying else "read-only",
        ]
        if authorized is not None:
            row.append(ICON_SUCCESS if tool.name in authorized else ICON_ERROR)
        row.append(tool.description)
        table.add_row(*row)

    console.print(table)
