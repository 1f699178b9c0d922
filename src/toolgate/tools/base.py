"""
Base classes for the tool interface.

This module defines the core abstractions for tools in toolgate:
- Tool: Abstract base class that all tools must implement
- ToolExecutionContext: Runtime context passed to tools during execution
- ToolResult: Standardized, immutable result of one execution
- ToolValidationResult: Outcome of parameter validation

Design Principles:
    - Tools are stateless - all state comes from ToolExecutionContext
    - Tools receive validated parameters - validation happens before execution
    - Tools return ToolResult - never raise exceptions for expected failures
    - Tools describe themselves - ToolDefinition is derived, never hand-built
"""

import json
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Any

from jsonschema import Draft7Validator

from toolgate.schema import (
    PermissionLevel,
    ToolBackupInfo,
    ToolCategory,
    ToolDefinition,
    new_id,
    utc_now,
)


@dataclass(frozen=True)
class ToolResult:
    """
    Standardized output from tool execution.

    Every execution attempt yields exactly one ToolResult, whether the tool
    body ran or the call was short-circuited by validation or security.

    Attributes:
        success: Whether the tool executed successfully
        data: The output data from the tool (type varies by tool)
        message: Human-readable summary
        error_message: Error description if success is False
        exception: The originating exception, if any
        execution_time: Wall-clock seconds spent executing
        modified_files: Files the tool changed
        backup_info: Backup captured before the tool ran, if any
    """

    success: bool
    data: Any = None
    message: str = ""
    error_message: str | None = None
    exception: BaseException | None = None
    execution_time: float = 0.0
    modified_files: tuple[str, ...] = ()
    backup_info: ToolBackupInfo | None = None

    @classmethod
    def ok(
        cls,
        data: Any = None,
        message: str = "",
        modified_files: list[str] | tuple[str, ...] = (),
    ) -> "ToolResult":
        """Create a successful result."""
        return cls(
            success=True,
            data=data,
            message=message,
            modified_files=tuple(modified_files),
        )

    @classmethod
    def fail(
        cls,
        error: str,
        exception: BaseException | None = None,
        message: str = "",
    ) -> "ToolResult":
        """Create a failed result."""
        return cls(
            success=False,
            message=message or error,
            error_message=error,
            exception=exception,
        )

    def with_backup(self, info: ToolBackupInfo | None) -> "ToolResult":
        """Return a copy referencing the given backup."""
        return replace(self, backup_info=info)

    def with_execution_time(self, seconds: float) -> "ToolResult":
        """Return a copy with execution_time set."""
        return replace(self, execution_time=seconds)


@dataclass(frozen=True)
class ToolValidationResult:
    """Outcome of validating a parameter map against a tool's contract."""

    is_valid: bool
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()

    @classmethod
    def valid(cls, warnings: list[str] | None = None) -> "ToolValidationResult":
        return cls(is_valid=True, warnings=tuple(warnings or ()))

    @classmethod
    def invalid(
        cls, errors: list[str], warnings: list[str] | None = None
    ) -> "ToolValidationResult":
        return cls(is_valid=False, errors=tuple(errors), warnings=tuple(warnings or ()))


@dataclass
class ToolExecutionContext:
    """
    Runtime context passed to tools during execution.

    Created per invocation and discarded afterwards.

    Attributes:
        parameters: The parameter map for this call
        user_id: The user on whose behalf the tool runs
        execution_id: Unique identifier for this execution
        approval_granted: Whether a human approved this execution
        working_directory: Base directory for relative paths
        timeout: Seconds the tool body may take
        cancel_event: Cooperative cancellation signal
        execution_time: When the context was created
    """

    parameters: dict[str, Any]
    user_id: str
    execution_id: str = field(default_factory=new_id)
    approval_granted: bool = False
    working_directory: str = "."
    timeout: float = 300.0
    cancel_event: threading.Event = field(default_factory=threading.Event)
    execution_time: datetime = field(default_factory=utc_now)

    @property
    def is_cancelled(self) -> bool:
        return self.cancel_event.is_set()


class Tool(ABC):
    """
    Abstract base class for all toolgate tools.

    Each tool:
    - Has a unique name (e.g., "ReadFileContents")
    - Declares its category, permission floor and approval/modification flags
    - Publishes a JSON-Schema parameter contract
    - Implements the execute() method and returns a ToolResult

    Subclasses must implement:
    - name, category properties
    - execute(): Performs the tool's action

    Example:
        class EchoTool(Tool):
            @property
            def name(self) -> str:
                return "Echo"

            @property
            def category(self) -> ToolCategory:
                return ToolCategory.INFORMATION

            def execute(self, context: ToolExecutionContext) -> ToolResult:
                return ToolResult.ok(context.parameters.get("message", ""))
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The unique identifier for this tool."""
        ...

    @property
    def description(self) -> str:
        """Human-readable description of what the tool does."""
        return f"Tool: {self.name}"

    @property
    @abstractmethod
    def category(self) -> ToolCategory:
        """Category used for per-user access control."""
        ...

    @property
    def required_permission(self) -> PermissionLevel:
        return PermissionLevel.READ

    @property
    def requires_approval(self) -> bool:
        return False

    @property
    def is_modifying(self) -> bool:
        return False

    @property
    def parameter_schema(self) -> dict[str, Any]:
        """
        JSON Schema (draft 7) describing the accepted parameters.

        The default accepts any object.
        """
        return {"type": "object", "properties": {}}

    @property
    def definition(self) -> ToolDefinition:
        """Immutable, serializable description of this tool."""
        return ToolDefinition(
            name=self.name,
            description=self.description,
            category=self.category,
            required_permission=self.required_permission,
            requires_approval=self.requires_approval,
            is_modifying=self.is_modifying,
            parameter_schema=json.dumps(self.parameter_schema),
        )

    def validate_parameters(self, parameters: dict[str, Any]) -> ToolValidationResult:
        """
        Validate parameters against parameter_schema.

        Subclasses may extend this with semantic checks; call super() first.

        Args:
            parameters: The parameter map to validate

        Returns:
            ToolValidationResult listing every schema violation
        """
        validator = Draft7Validator(self.parameter_schema)
        errors = []
        for error in sorted(validator.iter_errors(parameters), key=lambda e: list(e.path)):
            location = ".".join(str(p) for p in error.path)
            errors.append(f"{location}: {error.message}" if location else error.message)
        if errors:
            return ToolValidationResult.invalid(errors)
        return ToolValidationResult.valid()

    def get_execution_preview(self, parameters: dict[str, Any]) -> str:
        """Human-readable description of what execute() would do."""
        return f"Execute {self.name} with {len(parameters)} parameter(s)"

    def backup_targets(self, parameters: dict[str, Any], working_directory: str) -> list[Path]:
        """Files a backup strategy should capture before execution."""
        return []

    @abstractmethod
    def execute(self, context: ToolExecutionContext) -> ToolResult:
        """
        Execute the tool.

        Called only after validation, security checks, approval and backup
        have all passed.

        Args:
            context: Runtime context with parameters, user and cancellation

        Returns:
            ToolResult indicating success or failure with data/error

        Note:
            - Do NOT raise exceptions for expected failures (file not found, etc.)
            - Use ToolResult.fail() for expected errors
        """
        ...

    def __repr__(self) -> str:
        return f"<Tool: {self.name}>"
