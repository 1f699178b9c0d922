"""
Schema definitions for toolgate.

This module defines the Pydantic models shared across the registry, the
security manager and the orchestrator:
- ToolCategory/PermissionLevel: the closed enumerations gating access
- ToolDefinition: the immutable, serializable description of a tool
- ToolCall: a directive extracted from model output
- UserPermissionSettings: per-user access policy
- ToolApprovalResult/SecurityCheckResult: security decisions
- ToolExecutionAuditEntry/ToolBackupInfo: persisted security records

Runtime values that carry arbitrary Python objects (ToolResult,
ToolExecutionResult, AgentResponse) are dataclasses living next to the code
that produces them.
"""

import copy
import uuid
from datetime import UTC, datetime, timedelta
from enum import Enum, IntEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# Enums
# =============================================================================


class ToolCategory(str, Enum):
    """Categories for organizing and controlling tool access."""

    INFORMATION = "Information"
    FILE_SYSTEM = "FileSystem"
    CONFIGURATION = "Configuration"
    NETWORK = "Network"
    REGISTRY = "Registry"
    SYSTEM = "System"
    ADMINISTRATIVE = "Administrative"


class PermissionLevel(IntEnum):
    """
    Ordered permission tiers.

    The integer values define the ordering: READ < USER < ELEVATED < ADMINISTRATOR.
    """

    READ = 0
    USER = 1
    ELEVATED = 2
    ADMINISTRATOR = 3

    @property
    def label(self) -> str:
        """Display name, e.g. "Administrator"."""
        return self.name.title()

    @classmethod
    def parse(cls, value: "str | int | PermissionLevel") -> "PermissionLevel":
        """Parse a level from its name (case-insensitive) or integer value."""
        if isinstance(value, cls):
            return value
        if isinstance(value, int):
            return cls(value)
        try:
            return cls[value.strip().upper()]
        except KeyError:
            valid = ", ".join(level.name.lower() for level in cls)
            msg = f"Unknown permission level: {value!r} (expected one of: {valid})"
            raise ValueError(msg) from None


# Fixed level -> category mapping applied whenever a user's level is set.
# This is policy, not user configuration.
LEVEL_CATEGORIES: dict[PermissionLevel, frozenset[ToolCategory]] = {
    PermissionLevel.READ: frozenset({ToolCategory.INFORMATION}),
    PermissionLevel.USER: frozenset(
        {ToolCategory.INFORMATION, ToolCategory.FILE_SYSTEM, ToolCategory.NETWORK}
    ),
    PermissionLevel.ELEVATED: frozenset(
        {
            ToolCategory.INFORMATION,
            ToolCategory.FILE_SYSTEM,
            ToolCategory.NETWORK,
            ToolCategory.CONFIGURATION,
            ToolCategory.SYSTEM,
        }
    ),
    PermissionLevel.ADMINISTRATOR: frozenset(ToolCategory),
}


def utc_now() -> datetime:
    """Current UTC time."""
    return datetime.now(UTC)


def new_id() -> str:
    """Generate a unique identifier for calls, approvals, backups and audits."""
    return str(uuid.uuid4())


# =============================================================================
# Tool Models
# =============================================================================


class ToolDefinition(BaseModel):
    """
    Immutable description of a registered tool.

    Attributes:
        name: Unique tool name (registry key)
        description: Human-readable description
        category: Category used for per-user access control
        required_permission: Minimum permission level to invoke the tool
        requires_approval: Whether a human must approve each execution
        is_modifying: Whether the tool changes system state
        parameter_schema: JSON-Schema-like parameter contract, serialized
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1, description="Unique tool name")
    description: str = Field(default="", description="What the tool does")
    category: ToolCategory = Field(..., description="Tool category")
    required_permission: PermissionLevel = Field(
        default=PermissionLevel.READ,
        description="Minimum permission level",
    )
    requires_approval: bool = Field(default=False, description="Needs human approval")
    is_modifying: bool = Field(default=False, description="Modifies system state")
    parameter_schema: str = Field(default="{}", description="Serialized parameter schema")


class ToolCall(BaseModel):
    """
    A structured tool directive extracted from model text.

    Attributes:
        id: Unique identifier for this call
        tool_name: Name of the tool to invoke
        parameters: Parameter map for the tool
        reasoning: Why the model wants this call (optional)
        expected_output: What the model expects back (optional)
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=new_id, description="Unique call identifier")
    tool_name: str = Field(..., description="Tool to invoke")
    parameters: dict[str, Any] = Field(default_factory=dict, description="Tool parameters")
    reasoning: str | None = Field(default=None, description="Model's reasoning")
    expected_output: str | None = Field(default=None, description="Expected result")


# =============================================================================
# Security Models
# =============================================================================


class UserPermissionSettings(BaseModel):
    """
    Per-user access policy.

    Mutated only through SecurityManager (level changes and explicit
    allow/deny edits); callers receive copies.
    """

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    user_id: str
    permission_level: PermissionLevel = PermissionLevel.USER
    allowed_categories: set[ToolCategory] = Field(
        default_factory=lambda: set(LEVEL_CATEGORIES[PermissionLevel.USER])
    )
    explicitly_allowed_tools: set[str] = Field(default_factory=set)
    explicitly_denied_tools: set[str] = Field(default_factory=set)
    remember_approvals: bool = True
    default_approval_duration: timedelta = timedelta(hours=1)
    max_modified_files: int = Field(default=100, ge=0)
    require_approval_for_modifying: bool = True
    auto_create_backups: bool = True

    @classmethod
    def for_level(cls, user_id: str, level: PermissionLevel) -> "UserPermissionSettings":
        """Create settings with the default category set for a level."""
        return cls(
            user_id=user_id,
            permission_level=level,
            allowed_categories=set(LEVEL_CATEGORIES[level]),
        )


class ToolApprovalResult(BaseModel):
    """
    Outcome of one human approval round-trip.

    Attributes:
        is_approved: Whether execution may proceed
        approval_id: Unique identifier of the decision
        approval_time: When the decision was made
        user_comments: Free-text comment from the approver
        validity_duration: How long the decision may be reused
        remember_decision: True or False when the approver chose whether to
            remember it, None to defer to the user's settings
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    is_approved: bool
    approval_id: str = Field(default_factory=new_id)
    approval_time: datetime = Field(default_factory=utc_now)
    user_comments: str | None = None
    validity_duration: timedelta | None = None
    remember_decision: bool | None = None

    @classmethod
    def approved(
        cls,
        comments: str | None = None,
        validity: timedelta | None = None,
        remember: bool | None = None,
        approval_id: str | None = None,
    ) -> "ToolApprovalResult":
        """Create an APPROVED decision."""
        return cls(
            is_approved=True,
            approval_id=approval_id or new_id(),
            user_comments=comments,
            validity_duration=validity,
            remember_decision=remember,
        )

    @classmethod
    def denied(
        cls,
        comments: str | None = None,
        approval_id: str | None = None,
    ) -> "ToolApprovalResult":
        """Create a DENIED decision."""
        return cls(
            is_approved=False,
            approval_id=approval_id or new_id(),
            user_comments=comments,
        )

    def expires_at(self) -> datetime | None:
        """When this decision stops being reusable, or None if it never was."""
        if self.validity_duration is None:
            return None
        return self.approval_time + self.validity_duration

    def is_valid_at(self, now: datetime) -> bool:
        """Whether a remembered copy of this decision may satisfy a request at `now`."""
        expiry = self.expires_at()
        return expiry is not None and expiry > now


class SecurityCheckResult(BaseModel):
    """
    Result of SecurityManager.validate_execution.

    Attributes:
        is_allowed: Whether execution may proceed
        denial_reason: Why it was denied
        denial_kind: Taxonomy entry for the denial ("permission_denied",
            "security_violation")
        required_actions: Steps required before execution
        warnings: Non-blocking concerns
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    is_allowed: bool
    denial_reason: str | None = None
    denial_kind: str | None = None
    required_actions: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @classmethod
    def allow(
        cls,
        warnings: list[str] | None = None,
        required_actions: list[str] | None = None,
    ) -> "SecurityCheckResult":
        """Create an ALLOW result."""
        return cls(
            is_allowed=True,
            warnings=warnings or [],
            required_actions=required_actions or [],
        )

    @classmethod
    def deny(
        cls,
        reason: str,
        kind: str | None = None,
        required_actions: list[str] | None = None,
    ) -> "SecurityCheckResult":
        """Create a DENY result."""
        return cls(
            is_allowed=False,
            denial_reason=reason,
            denial_kind=kind,
            required_actions=required_actions or [],
        )


class ToolBackupInfo(BaseModel):
    """
    State captured before a modifying tool runs.

    Attributes:
        backup_id: Unique identifier
        backup_time: When the backup was created
        backed_up_files: Files captured
        backed_up_registry_keys: Registry keys captured
        description: What the backup is for
        can_restore: Whether restore_backup may act on it
        storage_location: Where the strategy stored the copies (if anywhere)
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    backup_id: str = Field(default_factory=new_id)
    backup_time: datetime = Field(default_factory=utc_now)
    backed_up_files: list[str] = Field(default_factory=list)
    backed_up_registry_keys: list[str] = Field(default_factory=list)
    description: str | None = None
    can_restore: bool = True
    storage_location: str | None = None


class ToolExecutionAuditEntry(BaseModel):
    """
    Immutable audit record of one execution attempt.

    Every attempt, successful or not, produces exactly one entry.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    audit_id: str = Field(default_factory=new_id)
    user_id: str
    tool_name: str
    parameters: dict[str, Any] = Field(default_factory=dict)
    execution_result: str
    is_success: bool
    execution_time: datetime = Field(default_factory=utc_now)
    duration: timedelta = timedelta(0)
    modified_files: tuple[str, ...] = ()
    backup_id: str | None = None
    client_identifier: str | None = None
    required_approval: bool = False
    approval_id: str | None = None

    @field_validator("parameters", mode="before")
    @classmethod
    def snapshot_parameters(cls, v: Any) -> Any:
        """Store a deep copy so later caller mutations don't leak in."""
        if isinstance(v, dict):
            return copy.deepcopy(v)
        return v
