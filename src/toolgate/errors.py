"""
Exception hierarchy for toolgate.

All toolgate exceptions inherit from ToolgateError, allowing callers to catch
all toolgate-specific exceptions with a single except clause.

Exception Categories:
    - SecurityError: permission, approval and injection-scan failures
    - RegistryError: duplicate or unknown tools
    - OrchestrationError: unexpected faults in the ReAct loop
    - LLMError: language-model boundary failures
    - StorageError: audit/backup/approval store failures

Per-call failures inside the orchestrator are NOT raised: they are recorded
as failed ToolResults tagged with an ErrorKind, carrying the matching
exception (PermissionDeniedError, ApprovalDeniedError, ...) in
ToolResult.exception. Raised exceptions are reserved for programming errors
and collaborator faults.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


# =============================================================================
# Error Codes
# =============================================================================

# Security errors: 1xxx
ERROR_PERMISSION_DENIED = 1001
ERROR_APPROVAL_DENIED = 1002
ERROR_SECURITY_VIOLATION = 1003
ERROR_BACKUP_FAILED = 1004
ERROR_BACKUP_NOT_FOUND = 1005

# Registry/tool errors: 2xxx
ERROR_TOOL_NOT_FOUND = 2001
ERROR_TOOL_ALREADY_REGISTERED = 2002
ERROR_TOOL_INVALID_PARAMS = 2003
ERROR_TOOL_EXECUTION_FAILED = 2004

# LLM errors: 3xxx
ERROR_LLM_CONNECTION = 3001
ERROR_LLM_TIMEOUT = 3002
ERROR_LLM_MODEL_NOT_FOUND = 3003
ERROR_LLM_RESPONSE = 3004

# Orchestration errors: 4xxx
ERROR_ORCHESTRATION = 4001
ERROR_CANCELLED = 4002

# Storage errors: 5xxx
ERROR_STORAGE_CONNECTION = 5001
ERROR_STORAGE_WRITE = 5002
ERROR_STORAGE_READ = 5003


class ErrorKind(str, Enum):
    """Classification of why a single tool-call attempt did not succeed."""

    VALIDATION = "validation"
    PERMISSION_DENIED = "permission_denied"
    APPROVAL_DENIED = "approval_denied"
    SECURITY_VIOLATION = "security_violation"
    EXECUTION_FAILURE = "execution_failure"
    UNKNOWN_TOOL = "unknown_tool"
    CANCELLED = "cancelled"
    ORCHESTRATION = "orchestration"


# Failure kinds that end the ReAct loop for the current query
NON_RECOVERABLE_KINDS = frozenset(
    {ErrorKind.PERMISSION_DENIED, ErrorKind.SECURITY_VIOLATION}
)


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class ToolgateError(Exception):
    """
    Base exception for all toolgate errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


# =============================================================================
# Security Errors
# =============================================================================


@dataclass
class SecurityError(ToolgateError):
    """
    Base class for security decisions surfaced as exceptions.

    Attributes:
        user_id: The user the decision was made for
        tool: Name of the tool involved
    """

    user_id: str = ""
    tool: str = ""

    def __post_init__(self) -> None:
        self.context.update({"user_id": self.user_id, "tool": self.tool})


@dataclass
class PermissionDeniedError(SecurityError):
    """Raised when a user may not invoke a tool."""

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Insufficient permissions for {self.tool}"
        if self.code == 0:
            self.code = ERROR_PERMISSION_DENIED
        if not self.suggestion:
            self.suggestion = "Raise the user's permission level or allow the tool explicitly"
        super().__post_init__()


@dataclass
class ApprovalDeniedError(SecurityError):
    """Raised when a human approval round-trip ends in a denial."""

    comments: str | None = None

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"User approval denied for {self.tool}: {self.comments}"
        if self.code == 0:
            self.code = ERROR_APPROVAL_DENIED
        super().__post_init__()
        self.context["comments"] = self.comments


@dataclass
class SecurityViolationError(SecurityError):
    """Raised when parameters match an injection pattern."""

    issues: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Security validation failed: {', '.join(self.issues)}"
        if self.code == 0:
            self.code = ERROR_SECURITY_VIOLATION
        super().__post_init__()
        self.context["issues"] = self.issues


@dataclass
class BackupError(SecurityError):
    """Raised when a backup strategy cannot capture or restore state."""

    backup_id: str = ""
    underlying_error: str = ""

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Backup operation failed: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_BACKUP_FAILED
        super().__post_init__()
        self.context.update({
            "backup_id": self.backup_id,
            "underlying_error": self.underlying_error,
        })


# =============================================================================
# Registry Errors
# =============================================================================


@dataclass
class RegistryError(ToolgateError):
    """
    Base class for tool registry errors.

    Attributes:
        tool: Name of the tool involved
    """

    tool: str = ""

    def __post_init__(self) -> None:
        self.context["tool"] = self.tool


@dataclass
class ToolNotFoundError(RegistryError):
    """Raised when a tool is not registered."""

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Tool not found: {self.tool}"
        if self.code == 0:
            self.code = ERROR_TOOL_NOT_FOUND
        if not self.suggestion:
            self.suggestion = "Check tool name spelling or register the tool"
        super().__post_init__()


@dataclass
class ToolAlreadyRegisteredError(RegistryError):
    """Raised when registering a second tool under an existing name."""

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Tool '{self.tool}' is already registered"
        if self.code == 0:
            self.code = ERROR_TOOL_ALREADY_REGISTERED
        if not self.suggestion:
            self.suggestion = "Unregister the existing tool first or choose a different name"
        super().__post_init__()


# =============================================================================
# LLM Errors
# =============================================================================


@dataclass
class LLMError(ToolgateError):
    """
    Base class for language-model boundary errors.

    Attributes:
        backend: Backend name (e.g., "ollama")
        model: Model identifier
    """

    backend: str = ""
    model: str = ""

    def __post_init__(self) -> None:
        self.context.update({"backend": self.backend, "model": self.model})


@dataclass
class LLMConnectionError(LLMError):
    """Raised when the model backend cannot be reached."""

    url: str = ""
    underlying_error: str = ""

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Cannot connect to {self.backend} at {self.url}"
            if self.underlying_error:
                self.message += f": {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_LLM_CONNECTION
        if not self.suggestion:
            self.suggestion = "Check that the model server is running"
        super().__post_init__()
        self.context.update({"url": self.url, "underlying_error": self.underlying_error})


@dataclass
class LLMTimeoutError(LLMError):
    """Raised when generation exceeds its timeout."""

    timeout_seconds: float = 0.0

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"{self.backend} timed out after {self.timeout_seconds}s"
        if self.code == 0:
            self.code = ERROR_LLM_TIMEOUT
        if not self.suggestion:
            self.suggestion = "Increase llm.timeout_seconds or use a smaller model"
        super().__post_init__()
        self.context["timeout_seconds"] = self.timeout_seconds


@dataclass
class LLMModelNotFoundError(LLMError):
    """Raised when the configured model is not available on the backend."""

    available_models: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Model not found: {self.model}"
        if self.code == 0:
            self.code = ERROR_LLM_MODEL_NOT_FOUND
        if not self.suggestion:
            self.suggestion = f"Pull the model first: ollama pull {self.model}"
        super().__post_init__()
        self.context["available_models"] = self.available_models


@dataclass
class LLMResponseError(LLMError):
    """Raised when the backend returns an unusable response."""

    raw_response: str = ""
    reason: str = ""

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Invalid response from {self.backend}: {self.reason}"
        if self.code == 0:
            self.code = ERROR_LLM_RESPONSE
        super().__post_init__()
        self.context.update({"raw_response": self.raw_response, "reason": self.reason})


# =============================================================================
# Orchestration Errors
# =============================================================================


@dataclass
class OrchestrationError(ToolgateError):
    """Raised for unexpected top-level faults while processing a query."""

    query: str = ""
    underlying_error: str = ""

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Orchestration failed: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_ORCHESTRATION
        self.context.update({"query": self.query, "underlying_error": self.underlying_error})


@dataclass
class OperationCancelledError(OrchestrationError):
    """Raised when a cancellation signal is observed mid-query."""

    def __post_init__(self) -> None:
        if not self.message:
            self.message = "Operation cancelled"
        if self.code == 0:
            self.code = ERROR_CANCELLED
        super().__post_init__()


# =============================================================================
# Storage Errors
# =============================================================================


@dataclass
class StorageError(ToolgateError):
    """
    Base class for storage/database errors.

    Attributes:
        operation: The operation that failed (e.g., "append_audit")
    """

    operation: str = ""

    def __post_init__(self) -> None:
        self.context["operation"] = self.operation


@dataclass
class StorageConnectionError(StorageError):
    """Raised when database connection fails."""

    db_path: str = ""

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Failed to connect to database: {self.db_path}"
        if self.code == 0:
            self.code = ERROR_STORAGE_CONNECTION
        if not self.suggestion:
            self.suggestion = "Check that the database path is valid and writable"
        super().__post_init__()
        self.context["db_path"] = self.db_path


@dataclass
class StorageWriteError(StorageError):
    """Raised when a write operation fails."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Database write failed: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_STORAGE_WRITE
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


@dataclass
class StorageReadError(StorageError):
    """Raised when a read operation fails."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Database read failed: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_STORAGE_READ
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error
