"""
Human approval providers.

SecurityManager delegates the approval round-trip to an ApprovalProvider.
Production code installs a provider that asks a human; the deterministic
default simulates one.

Providers:
    - SimulatedApprovalProvider: non-modifying tools approve, modifying deny
    - CallbackApprovalProvider: wraps a plain callable
    - ScriptedApprovalProvider: replays a fixed sequence of decisions
    - ConsoleApprovalProvider: asks on the terminal with rich prompts

Providers may block. SecurityManager runs them under its approval timeout
and de-duplicates identical concurrent requests, so providers need no
locking of their own unless they keep state.
"""

import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt

from toolgate.schema import ToolApprovalResult, ToolDefinition

AUTO_APPROVAL_VALIDITY = timedelta(hours=1)


@dataclass(frozen=True)
class ApprovalRequest:
    """
    Everything an approver sees for one decision.

    Attributes:
        user_id: The user on whose behalf the tool would run
        tool: Definition of the tool awaiting approval
        parameters: The exact parameters that would be used
        preview: Human-readable description of the action
    """

    user_id: str
    tool: ToolDefinition
    parameters: dict[str, Any] = field(default_factory=dict)
    preview: str = ""


class ApprovalProvider(ABC):
    """Performs one human approval round-trip."""

    @abstractmethod
    def request_approval(self, request: ApprovalRequest) -> ToolApprovalResult:
        """
        Ask for a decision.

        Args:
            request: The tool, parameters and preview to decide on

        Returns:
            The approver's decision
        """
        ...


class SimulatedApprovalProvider(ApprovalProvider):
    """
    Deterministic stand-in for a human.

    Non-modifying tools are approved for one hour; modifying tools are
    denied because nobody explicitly granted them.
    """

    def request_approval(self, request: ApprovalRequest) -> ToolApprovalResult:
        if not request.tool.is_modifying:
            return ToolApprovalResult.approved(
                comments="Auto-approved (non-modifying)",
                validity=AUTO_APPROVAL_VALIDITY,
            )
        return ToolApprovalResult.denied("Approval required for modifying operations")


class CallbackApprovalProvider(ApprovalProvider):
    """
    Adapts a callable into a provider.

    The callable may return a ToolApprovalResult or a plain bool.
    """

    def __init__(self, callback: Callable[[ApprovalRequest], ToolApprovalResult | bool]) -> None:
        self._callback = callback

    def request_approval(self, request: ApprovalRequest) -> ToolApprovalResult:
        decision = self._callback(request)
        if isinstance(decision, ToolApprovalResult):
            return decision
        if decision:
            return ToolApprovalResult.approved(comments="Approved")
        return ToolApprovalResult.denied("Denied by approver")


class ScriptedApprovalProvider(ApprovalProvider):
    """
    Replays pre-recorded decisions in order.

    Once the script is exhausted every further request is denied.
    All received requests are kept in `requests`.
    """

    def __init__(self, decisions: Iterable[ToolApprovalResult | bool]) -> None:
        self._decisions = list(decisions)
        self._lock = threading.Lock()
        self.requests: list[ApprovalRequest] = []

    def request_approval(self, request: ApprovalRequest) -> ToolApprovalResult:
        with self._lock:
            self.requests.append(request)
            decision = self._decisions.pop(0) if self._decisions else False
        if isinstance(decision, ToolApprovalResult):
            return decision
        if decision:
            return ToolApprovalResult.approved(comments="Approved by script")
        return ToolApprovalResult.denied("Denied by script")

    @property
    def call_count(self) -> int:
        return len(self.requests)


class ConsoleApprovalProvider(ApprovalProvider):
    """
    Interactive terminal approval.

    Shows the tool, its flags and its execution preview, then asks for a
    yes/no decision and an optional comment. An approval also asks whether
    to remember it; answering no always means the next identical call
    prompts again.

    Terminal reads cannot be interrupted. If SecurityManager times out a
    prompt, that prompt keeps the terminal until someone answers it, and
    later requests queue behind it and time out as denials.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()
        # Terminal prompts must not interleave
        self._lock = threading.Lock()

    def request_approval(self, request: ApprovalRequest) -> ToolApprovalResult:
        with self._lock:
            tool = request.tool
            flags = []
            if tool.is_modifying:
                flags.append("[red]MODIFIES SYSTEM[/red]")
            flags.append(f"category: {tool.category.value}")
            body = (
                f"[bold]{tool.name}[/bold] ({', '.join(flags)})\n"
                f"{tool.description}\n\n"
                f"[bold]Action:[/bold] {request.preview}\n"
                f"[bold]User:[/bold] {request.user_id}"
            )
            self.console.print(Panel(body, title="Approval Required", border_style="yellow"))

            approved = Confirm.ask("Allow this action?", default=False, console=self.console)
            comments = Prompt.ask(
                "Comment (optional)", default="", show_default=False, console=self.console
            )
            if not approved:
                return ToolApprovalResult.denied(comments or "Denied by user")

            remember = Confirm.ask(
                "Remember this decision for one hour?", default=False, console=self.console
            )
            return ToolApprovalResult.approved(
                comments=comments or "Approved by user",
                validity=AUTO_APPROVAL_VALIDITY if remember else None,
                remember=remember,
            )
