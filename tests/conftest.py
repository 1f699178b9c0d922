"""
Pytest configuration and fixtures for toolgate tests.

This module provides shared fixtures and test doubles used across unit,
integration and security tests:
    - ScriptedLanguageModel: replays canned model replies and records prompts
    - RecordingTool / RecordingModifyingTool: tools that record executions
    - EventLogBackupStrategy: backup strategy that records capture order
"""

import tempfile
import threading
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Generator

import pytest

from toolgate.agent.orchestrator import AgentConfig, AgentOrchestrator
from toolgate.llm.base import LanguageModel
from toolgate.schema import PermissionLevel, ToolBackupInfo, ToolCategory
from toolgate.security.approval import ScriptedApprovalProvider
from toolgate.security.backup import BackupCapture, BackupStrategy
from toolgate.security.manager import SecurityManager
from toolgate.store.memory import MemoryStore
from toolgate.tools.base import Tool, ToolExecutionContext, ToolResult
from toolgate.tools.registry import ToolRegistry, build_default_registry


# =============================================================================
# Test Doubles
# =============================================================================


class ScriptedLanguageModel(LanguageModel):
    """LanguageModel that returns canned replies in order and records prompts."""

    def __init__(self, replies: Iterable[str], available: bool = True) -> None:
        self._replies = list(replies)
        self.available = available
        self.prompts: list[str] = []

    @property
    def is_available(self) -> bool:
        return self.available

    def generate(self, prompt: str, cancel_event: threading.Event | None = None) -> str:
        self.prompts.append(prompt)
        if not self._replies:
            return "Final answer: nothing more to do."
        return self._replies.pop(0)


class FailingLanguageModel(LanguageModel):
    """LanguageModel whose generate() always raises."""

    def __init__(self, error: Exception) -> None:
        self.error = error

    @property
    def is_available(self) -> bool:
        return True

    def generate(self, prompt: str, cancel_event: threading.Event | None = None) -> str:
        raise self.error


class RecordingTool(Tool):
    """Read-only tool that records every execution context it receives."""

    def __init__(
        self,
        name: str = "Echo",
        category: ToolCategory = ToolCategory.INFORMATION,
        permission: PermissionLevel = PermissionLevel.READ,
        requires_approval: bool = False,
        result: ToolResult | None = None,
        error: Exception | None = None,
    ) -> None:
        self._name = name
        self._category = category
        self._permission = permission
        self._requires_approval = requires_approval
        self._result = result
        self._error = error
        self.executions: list[ToolExecutionContext] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return f"Echo the message back ({self._name})"

    @property
    def category(self) -> ToolCategory:
        return self._category

    @property
    def required_permission(self) -> PermissionLevel:
        return self._permission

    @property
    def requires_approval(self) -> bool:
        return self._requires_approval

    @property
    def parameter_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {"message": {"type": "string"}},
        }

    def execute(self, context: ToolExecutionContext) -> ToolResult:
        self.executions.append(context)
        if self._error is not None:
            raise self._error
        if self._result is not None:
            return self._result
        return ToolResult.ok(
            {"echo": context.parameters.get("message", "")},
            message=f"Echoed {context.parameters.get('message', '')!r}",
        )


class RecordingModifyingTool(RecordingTool):
    """Modifying, approval-requiring tool that appends to a shared event log."""

    def __init__(self, events: list[str] | None = None, name: str = "Touch") -> None:
        super().__init__(
            name=name,
            category=ToolCategory.FILE_SYSTEM,
            permission=PermissionLevel.USER,
            requires_approval=True,
        )
        self.events = events if events is not None else []

    @property
    def is_modifying(self) -> bool:
        return True

    def backup_targets(self, parameters: dict[str, Any], working_directory: str) -> list[Path]:
        return [Path(working_directory) / str(parameters.get("message", "target"))]

    def execute(self, context: ToolExecutionContext) -> ToolResult:
        self.executions.append(context)
        self.events.append("execute")
        target = str(Path(context.working_directory) / str(context.parameters.get("message", "")))
        return ToolResult.ok({"touched": target}, message="Touched", modified_files=[target])


class EventLogBackupStrategy(BackupStrategy):
    """Records capture/restore calls into a shared event log."""

    def __init__(self, events: list[str] | None = None) -> None:
        self.events = events if events is not None else []
        self.captured: list[tuple[str, list[Path]]] = []

    def capture(self, backup_id: str, targets: list[Path]) -> BackupCapture:
        self.events.append("capture")
        self.captured.append((backup_id, list(targets)))
        return BackupCapture(backed_up_files=[str(t) for t in targets])

    def restore(self, info: ToolBackupInfo) -> bool:
        self.events.append("restore")
        return True


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def registry() -> ToolRegistry:
    """Registry with the built-in tools."""
    return build_default_registry()


@pytest.fixture
def security() -> Generator[SecurityManager, None, None]:
    """SecurityManager with in-memory store and the simulated approver."""
    manager = SecurityManager(store=MemoryStore(), approval_timeout_seconds=5.0)
    yield manager
    manager.close()


@pytest.fixture
def event_log() -> list[str]:
    return []


@pytest.fixture
def make_orchestrator(temp_dir: Path):
    """
    Factory for an orchestrator over a custom tool set.

    Usage:
        orchestrator, security = make_orchestrator(tools=[...], replies=[...])
    """
    managers: list[SecurityManager] = []

    def factory(
        tools: Iterable[Tool] = (),
        replies: Iterable[str] | None = None,
        approvals: Iterable[Any] | None = None,
        backup_strategy: BackupStrategy | None = None,
        language_model: LanguageModel | None = None,
    ) -> tuple[AgentOrchestrator, SecurityManager]:
        registry = ToolRegistry()
        for tool in tools:
            registry.register(tool)
        manager = SecurityManager(
            store=MemoryStore(),
            approval_provider=ScriptedApprovalProvider(approvals) if approvals is not None else None,
            backup_strategy=backup_strategy,
            approval_timeout_seconds=5.0,
            working_directory=str(temp_dir),
        )
        managers.append(manager)
        if language_model is None and replies is not None:
            language_model = ScriptedLanguageModel(replies)
        orchestrator = AgentOrchestrator(
            registry,
            manager,
            language_model=language_model,
            config=AgentConfig(working_directory=str(temp_dir), client_identifier="test-host"),
        )
        return orchestrator, manager

    yield factory
    for manager in managers:
        manager.close()


def tool_call_text(tool_name: str, parameters: dict[str, Any] | None = None, prose: str = "") -> str:
    """Model reply containing one grammar A directive."""
    import json

    body = json.dumps({"tool_name": tool_name, "parameters": parameters or {}})
    return f"{prose}\n<tool_call>\n{body}\n</tool_call>\n"
