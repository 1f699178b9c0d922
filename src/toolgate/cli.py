"""
CLI entry point for toolgate.

This module provides the Typer-based command-line interface for toolgate.

Commands:
    ask          Answer a query with a single reasoning pass
    react        Answer a query with the bounded ReAct cycle
    tools        List the tool catalog (optionally for one user)
    audit        Show the audit trail
    permissions  Show (or change for this session) a user's permissions
    parse        Extract tool-call directives from a text file
    doctor       Check environment and model connectivity

Architecture Note:
    The CLI is intentionally thin: it loads settings, wires components with
    toolgate.config.build_orchestrator and renders results with
    toolgate.report. All behaviour lives in the library.
"""

import json
import sys
import threading
import traceback
from datetime import datetime
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from toolgate import __version__
from toolgate.agent.orchestrator import AgentOrchestrator, AgentResponse
from toolgate.agent.protocol import parse_tool_calls, strip_tool_markup
from toolgate.config import Settings, build_orchestrator, load_settings
from toolgate.logging import configure_logging
from toolgate.report import (
    build_audit_list,
    build_catalog_list,
    build_response_dict,
    render_audit_trail,
    render_response,
    render_tool_catalog,
    to_json,
)
from toolgate.schema import PermissionLevel
from toolgate.security.approval import ConsoleApprovalProvider

app = typer.Typer(
    name="toolgate",
    help="Run language-model tool calls through permission, approval, backup and audit.",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()

DEFAULT_USER = "local"

ConfigOption = Annotated[
    Optional[Path],
    typer.Option(
        "--config",
        "-c",
        help="Path to a toolgate YAML settings file.",
        exists=True,
        readable=True,
        resolve_path=True,
    ),
]
UserOption = Annotated[str, typer.Option("--user", "-u", help="User the tools run for.")]
ApproveOption = Annotated[
    bool,
    typer.Option(
        "--approve/--no-approve",
        help="Ask for approval interactively instead of the simulated approver.",
    ),
]
VerboseOption = Annotated[bool, typer.Option("--verbose", help="Enable verbose output.")]
JsonOption = Annotated[bool, typer.Option("--json", help="Output results in JSON format.")]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]toolgate[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """
    Toolgate - security-mediated tool execution for language-model agents.

    Every tool call a model asks for is permission-checked, scanned,
    approved, backed up and audited before it runs.
    """


# =============================================================================
# Helpers
# =============================================================================


def _output_json_error(error_type: str, message: str, include_traceback: bool = False) -> None:
    """Output an error in JSON format."""
    output = {
        "error": True,
        "error_type": error_type,
        "message": message,
    }
    if include_traceback:
        output["traceback"] = traceback.format_exc()
    print(json.dumps(output, indent=2))


def _load_settings(config: Path | None, verbose: bool, json_output: bool) -> Settings:
    """Load settings and configure logging, exiting on invalid configuration."""
    try:
        settings = load_settings(config)
    except Exception as e:
        if json_output:
            _output_json_error("config_error", str(e))
        else:
            console.print(f"[red]Error loading config: {e}[/red]")
        raise typer.Exit(code=1)

    configure_logging("DEBUG" if verbose else settings.logging.level, settings.logging.file)
    return settings


def _build(settings: Settings, approve: bool) -> AgentOrchestrator:
    provider = ConsoleApprovalProvider(console) if approve else None
    return build_orchestrator(settings, approval_provider=provider)


def _close(orchestrator: AgentOrchestrator) -> None:
    orchestrator.security.close()
    model = orchestrator.language_model
    if model is not None and hasattr(model, "close"):
        model.close()


def _finish(response: AgentResponse, json_output: bool, verbose: bool) -> None:
    if json_output:
        print(to_json(build_response_dict(response)))
    else:
        render_response(response, console=console, verbose=verbose)
    raise typer.Exit(code=0 if response.is_complete else 1)


def _run_query(
    query: str,
    config: Path | None,
    user: str,
    approve: bool,
    verbose: bool,
    json_output: bool,
    max_iterations: int | None = None,
    single_pass: bool = False,
) -> None:
    settings = _load_settings(config, verbose, json_output)
    orchestrator = _build(settings, approve)
    cancel_event = threading.Event()

    try:
        if verbose and not json_output:
            model = orchestrator.language_model
            backend = model.get_name() if model is not None and model.is_available else "fallback"
            console.print(f"[dim]Model: {backend}[/dim]")
            console.print(f"[dim]Working directory: {orchestrator.config.working_directory}[/dim]")
            console.print()

        try:
            if single_pass:
                response = orchestrator.process_query(user, query, cancel_event)
            else:
                response = orchestrator.execute_react_cycle(
                    user, query, max_iterations, cancel_event
                )
        except KeyboardInterrupt:
            cancel_event.set()
            console.print("[yellow]Cancelled.[/yellow]")
            raise typer.Exit(code=130)

        _finish(response, json_output, verbose)
    finally:
        _close(orchestrator)


# =============================================================================
# Query Commands
# =============================================================================


@app.command()
def ask(
    query: Annotated[str, typer.Argument(help="The request for the agent.")],
    config: ConfigOption = None,
    user: UserOption = DEFAULT_USER,
    approve: ApproveOption = False,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """
    Answer a query with a single reasoning pass.

    The model is prompted once; any tool calls it emits are executed and the
    results summarized.

    Example:
        $ toolgate ask "Read notes.txt" --user alice
    """
    _run_query(query, config, user, approve, verbose, json_output, single_pass=True)


@app.command()
def react(
    query: Annotated[str, typer.Argument(help="The request for the agent.")],
    max_iterations: Annotated[
        Optional[int],
        typer.Option(
            "--max-iterations",
            "-n",
            help="Maximum reasoning iterations (default from settings).",
        ),
    ] = None,
    config: ConfigOption = None,
    user: UserOption = DEFAULT_USER,
    approve: ApproveOption = False,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """
    Answer a query with the bounded ReAct cycle.

    Example:
        $ toolgate react "Write hello to out.txt" --approve -n 3
    """
    _run_query(query, config, user, approve, verbose, json_output, max_iterations=max_iterations)


# =============================================================================
# Inspection Commands
# =============================================================================


@app.command()
def tools(
    user: Annotated[
        Optional[str],
        typer.Option("--user", "-u", help="Mark which tools this user may invoke."),
    ] = None,
    search: Annotated[
        Optional[str],
        typer.Option("--search", "-s", help="Case-insensitive name/description filter."),
    ] = None,
    prompt: Annotated[
        bool,
        typer.Option("--prompt", help="Print the tools prompt the model would see."),
    ] = False,
    config: ConfigOption = None,
    json_output: JsonOption = False,
) -> None:
    """
    List the tool catalog.

    Example:
        $ toolgate tools --user alice --search file
    """
    settings = _load_settings(config, False, json_output)
    orchestrator = _build(settings, approve=False)
    try:
        registry = orchestrator.registry
        if prompt:
            print(orchestrator.get_available_tools_prompt(user or DEFAULT_USER))
            return

        found = registry.search(search or "")
        if json_output:
            catalog = build_catalog_list(found)
            if user:
                for entry in catalog:
                    entry["allowed"] = orchestrator.security.has_permission(
                        user, registry.require(entry["name"])
                    )
            print(to_json(catalog))
            return

        authorized = None
        if user:
            authorized = {t.name for t in found if orchestrator.security.has_permission(user, t)}
        render_tool_catalog(found, console=console, authorized=authorized)

        stats = registry.statistics()
        console.print(
            f"[dim]Total: {stats.total_tools} | Approval: {stats.tools_requiring_approval} | "
            f"Modifying: {stats.modifying_tools} | Read-only: {stats.read_only_tools}[/dim]"
        )
    finally:
        _close(orchestrator)


@app.command()
def audit(
    user: Annotated[
        Optional[str],
        typer.Option("--user", "-u", help="Only entries for this user."),
    ] = None,
    since: Annotated[
        Optional[datetime],
        typer.Option("--since", help="Only entries at or after this time (UTC if naive)."),
    ] = None,
    until: Annotated[
        Optional[datetime],
        typer.Option("--until", help="Only entries at or before this time (UTC if naive)."),
    ] = None,
    config: ConfigOption = None,
    json_output: JsonOption = False,
) -> None:
    """
    Show the audit trail, newest first.

    The trail persists across invocations only when security.audit_db_path
    is set.

    Example:
        $ toolgate audit --user alice --since 2026-01-01 -c toolgate.yaml
    """
    settings = _load_settings(config, False, json_output)
    if settings.security.audit_db_path is None and not json_output:
        console.print(
            "[yellow]security.audit_db_path is not set; the trail only holds this session.[/yellow]"
        )

    orchestrator = _build(settings, approve=False)
    try:
        entries = orchestrator.security.get_audit_trail(user, since, until)
        if json_output:
            print(to_json(build_audit_list(entries)))
        else:
            render_audit_trail(entries, console=console)
    finally:
        _close(orchestrator)


@app.command()
def permissions(
    user: Annotated[str, typer.Argument(help="The user to inspect.")],
    level: Annotated[
        Optional[str],
        typer.Argument(help="Level to apply first: read, user, elevated or administrator."),
    ] = None,
    config: ConfigOption = None,
    json_output: JsonOption = False,
) -> None:
    """
    Show a user's effective permissions.

    With LEVEL, the level is applied first (for this process only; use
    security.user_levels in the settings file to make it stick).

    Example:
        $ toolgate permissions alice elevated
    """
    settings = _load_settings(config, False, json_output)
    orchestrator = _build(settings, approve=False)
    try:
        security = orchestrator.security
        if level is not None:
            try:
                security.set_user_permission_level(user, PermissionLevel.parse(level))
            except ValueError as e:
                if json_output:
                    _output_json_error("invalid_level", str(e))
                else:
                    console.print(f"[red]{e}[/red]")
                raise typer.Exit(code=1)

        user_settings = security.get_user_settings(user)
        allowed = [t.name for t in orchestrator.registry if security.has_permission(user, t)]

        if json_output:
            output = user_settings.model_dump(mode="json")
            output["invocable_tools"] = allowed
            print(to_json(output))
            return

        console.print(f"[bold]{user}[/bold]: {user_settings.permission_level.label}")
        categories = sorted(c.value for c in user_settings.allowed_categories)
        console.print(f"  Categories: {', '.join(categories) or '—'}")
        if user_settings.explicitly_allowed_tools:
            console.print(f"  Allowed: {', '.join(sorted(user_settings.explicitly_allowed_tools))}")
        if user_settings.explicitly_denied_tools:
            console.print(f"  Denied: {', '.join(sorted(user_settings.explicitly_denied_tools))}")
        console.print(f"  Invocable tools: {', '.join(allowed) or '—'}")
    finally:
        _close(orchestrator)


@app.command()
def parse(
    file: Annotated[
        Path,
        typer.Argument(
            help="Text file with model output ('-' reads stdin).",
            allow_dash=True,
        ),
    ],
    json_output: JsonOption = False,
) -> None:
    """
    Extract tool-call directives from model output.

    Example:
        $ toolgate parse reply.txt
    """
    if str(file) == "-":
        text = sys.stdin.read()
    else:
        try:
            text = file.read_text(encoding="utf-8")
        except OSError as e:
            console.print(f"[red]Cannot read {file}: {e}[/red]")
            raise typer.Exit(code=1)

    calls = parse_tool_calls(text)
    if json_output:
        print(to_json({
            "tool_calls": [call.model_dump(mode="json") for call in calls],
            "text": strip_tool_markup(text),
        }))
        return

    if not calls:
        console.print("[dim]No tool calls found.[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("#", style="dim", width=3)
    table.add_column("Tool", style="cyan")
    table.add_column("Parameters", overflow="fold")
    table.add_column("Reasoning", overflow="fold")
    for i, call in enumerate(calls, start=1):
        table.add_row(
            str(i),
            call.tool_name,
            json.dumps(call.parameters, ensure_ascii=False),
            call.reasoning or "",
        )
    console.print(table)


@app.command()
def doctor(
    config: ConfigOption = None,
    json_output: JsonOption = False,
) -> None:
    """
    Check system environment and dependencies.

    Verifies:
    - Python version (3.11+)
    - Ollama connectivity and the configured model
    - Audit database and backup directory locations

    Example:
        $ toolgate doctor
    """
    from toolgate.llm.ollama import OllamaConfig, OllamaModel

    settings = _load_settings(config, False, json_output)
    checks = []

    py_version = sys.version_info
    py_ok = py_version >= (3, 11)
    checks.append({
        "name": "Python version",
        "ok": py_ok,
        "value": f"{py_version.major}.{py_version.minor}.{py_version.micro}",
        "message": "OK" if py_ok else "Requires Python 3.11+",
    })

    llm = settings.llm
    if llm.enabled:
        with OllamaModel(OllamaConfig(base_url=llm.base_url, model=llm.model)) as model:
            ollama_ok, ollama_message = model.check_connection()
    else:
        ollama_ok, ollama_message = True, "Disabled; the deterministic fallback model is used"
    checks.append({
        "name": "Ollama",
        "ok": ollama_ok,
        "value": f"{llm.base_url} ({llm.model})",
        "message": ollama_message,
    })

    for name, location in (
        ("Audit database", settings.security.audit_db_path),
        ("Backup directory", settings.security.backup_directory),
    ):
        if location is None:
            checks.append({"name": name, "ok": True, "value": "—", "message": "Not configured"})
            continue
        path = Path(location).expanduser()
        parent = path if name == "Backup directory" and path.exists() else path.parent
        ok = parent.exists() and parent.is_dir()
        checks.append({
            "name": name,
            "ok": ok,
            "value": str(path),
            "message": "OK" if ok else f"Parent directory missing: {parent}",
        })

    all_ok = all(check["ok"] for check in checks)

    if json_output:
        print(json.dumps({"ok": all_ok, "version": __version__, "checks": checks}, indent=2))
    else:
        console.print(f"[bold]Toolgate Doctor[/bold] v{__version__}")
        console.print()
        for check in checks:
            icon = "[green]✓[/green]" if check["ok"] else "[red]✗[/red]"
            if check["ok"]:
                console.print(f"{icon} {check['name']}: [dim]{check['value']}[/dim] - {check['message']}")
            else:
                console.print(f"{icon} {check['name']}: [dim]{check['value']}[/dim]")
                console.print(f"    [red]{check['message']}[/red]")
        console.print()
        if all_ok:
            console.print("[green]All checks passed![/green]")
        else:
            console.print("[yellow]Some checks failed. See above for details.[/yellow]")

    raise typer.Exit(code=0 if all_ok else 1)


if __name__ == "__main__":
    app()
