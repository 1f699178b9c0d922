"""
Security Manager for toolgate.

The SecurityManager is the security boundary between model-requested tool
calls and the tools themselves. Every call the orchestrator executes is
checked here first.

Design Principles:
    - Least privilege: a tool is invocable only when the user's level,
      categories and explicit lists all permit it; the deny-list always wins
    - Fail-closed: a scan hit, an approval timeout or a denial stops the call
    - Backup-before-modify: modifying tools get a backup before they run
    - Append-only audit: every attempt is recorded, reads never mutate

Concurrency:
    One manager-wide RLock guards user settings, the remembered-approval
    cache, the in-flight approval and backup tables, the backup index and
    the audit trail. Checking for a remembered approval and registering an
    in-flight request happen under the same lock acquisition, so two
    identical concurrent requests reach the approver exactly once. The
    approver itself and backup I/O run outside the lock.
"""

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from toolgate.errors import ErrorKind
from toolgate.schema import (
    LEVEL_CATEGORIES,
    PermissionLevel,
    SecurityCheckResult,
    ToolApprovalResult,
    ToolBackupInfo,
    ToolDefinition,
    ToolExecutionAuditEntry,
    UserPermissionSettings,
    new_id,
    utc_now,
)
from toolgate.security.approval import ApprovalProvider, ApprovalRequest, SimulatedApprovalProvider
from toolgate.security.backup import BackupStrategy, NullBackupStrategy
from toolgate.security.scanner import approval_key, scan_parameters
from toolgate.store.base import SecurityStore
from toolgate.store.memory import MemoryStore
from toolgate.tools.base import Tool

logger = logging.getLogger(__name__)

DEFAULT_APPROVAL_TIMEOUT_SECONDS = 300.0

# Fields callers may change through update_user_settings(); level and
# categories change only through set_user_permission_level()
UPDATABLE_SETTINGS = frozenset({
    "explicitly_allowed_tools",
    "explicitly_denied_tools",
    "remember_approvals",
    "default_approval_duration",
    "max_modified_files",
    "require_approval_for_modifying",
    "auto_create_backups",
})


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


class SecurityManager:
    """
    Gatekeeper for tool execution.

    Usage:
        manager = SecurityManager()
        check = manager.validate_execution("alice", tool, params)
        if check.is_allowed and tool.requires_approval:
            approval = manager.request_approval("alice", tool, params)

    Attributes:
        store: Persistence for audit entries, backups and approvals
        approval_provider: Performs human approval round-trips
        backup_strategy: Captures and restores state for modifying tools
        approval_timeout_seconds: Seconds to wait for an approver
            (None waits indefinitely)
        default_permission_level: Level given to users on first reference
        working_directory: Base directory passed to Tool.backup_targets
    """

    def __init__(
        self,
        store: SecurityStore | None = None,
        approval_provider: ApprovalProvider | None = None,
        backup_strategy: BackupStrategy | None = None,
        approval_timeout_seconds: float | None = DEFAULT_APPROVAL_TIMEOUT_SECONDS,
        default_permission_level: PermissionLevel = PermissionLevel.USER,
        working_directory: str = ".",
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store or MemoryStore()
        self.approval_provider = approval_provider or SimulatedApprovalProvider()
        self.backup_strategy = backup_strategy or NullBackupStrategy()
        self.approval_timeout_seconds = approval_timeout_seconds
        self.default_permission_level = default_permission_level
        self.working_directory = working_directory
        self._clock = clock

        self._lock = threading.RLock()
        self._user_settings: dict[str, UserPermissionSettings] = {}
        self._pending_approvals: dict[str, Future[ToolApprovalResult]] = {}
        self._pending_backups: dict[str, Future[ToolBackupInfo]] = {}
        self._executor: ThreadPoolExecutor | None = None

    def close(self) -> None:
        """Stop the approval worker pool and close the store."""
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)
        self.store.close()

    def register_approval_provider(self, provider: ApprovalProvider) -> None:
        """Replace the approval provider (e.g. with an interactive one)."""
        if provider is None:
            msg = "Approval provider cannot be None"
            raise ValueError(msg)
        with self._lock:
            self.approval_provider = provider

    # =========================================================================
    # User Settings
    # =========================================================================

    def _settings_for(self, user_id: str) -> UserPermissionSettings:
        """The live settings object for a user. Caller must hold the lock."""
        settings = self._user_settings.get(user_id)
        if settings is None:
            settings = UserPermissionSettings.for_level(user_id, self.default_permission_level)
            self._user_settings[user_id] = settings
        return settings

    def get_user_settings(self, user_id: str) -> UserPermissionSettings:
        """A copy of the user's settings; mutating it has no effect."""
        with self._lock:
            return self._settings_for(user_id).model_copy(deep=True)

    def update_user_settings(self, user_id: str, **changes: Any) -> UserPermissionSettings:
        """
        Change explicit allow/deny lists and approval/backup flags.

        Args:
            user_id: The user to update
            **changes: Field values, limited to UPDATABLE_SETTINGS

        Returns:
            A copy of the updated settings

        Raises:
            ValueError: On unknown or non-updatable fields, or invalid values
        """
        unknown = set(changes) - UPDATABLE_SETTINGS
        if unknown:
            msg = f"Cannot update settings field(s): {', '.join(sorted(unknown))}"
            raise ValueError(msg)

        with self._lock:
            current = self._settings_for(user_id)
            updated = UserPermissionSettings.model_validate({**current.model_dump(), **changes})
            self._user_settings[user_id] = updated
            logger.info("Updated settings for %s: %s", user_id, ", ".join(sorted(changes)))
            return updated.model_copy(deep=True)

    def get_user_permission_level(self, user_id: str) -> PermissionLevel:
        with self._lock:
            return self._settings_for(user_id).permission_level

    def set_user_permission_level(self, user_id: str, level: PermissionLevel) -> None:
        """
        Set a user's level and reset their categories to the level's defaults.

        Explicit per-tool allow and deny entries are kept.
        """
        level = PermissionLevel.parse(level)
        with self._lock:
            settings = self._settings_for(user_id)
            settings.permission_level = level
            settings.allowed_categories = set(LEVEL_CATEGORIES[level])
        logger.info("Permission level for %s set to %s", user_id, level.label)

    # =========================================================================
    # Permission & Validation
    # =========================================================================

    def has_permission(self, user_id: str, tool: Tool | ToolDefinition) -> bool:
        """
        Whether the user may invoke the tool.

        Requires level >= tool's required permission, and the tool's
        category or name allowed, and the name not explicitly denied.
        """
        with self._lock:
            settings = self._settings_for(user_id)
            if tool.name in settings.explicitly_denied_tools:
                return False
            if settings.permission_level < tool.required_permission:
                return False
            return (
                tool.category in settings.allowed_categories
                or tool.name in settings.explicitly_allowed_tools
            )

    def validate_execution(
        self,
        user_id: str,
        tool: Tool | ToolDefinition,
        parameters: dict[str, Any],
    ) -> SecurityCheckResult:
        """
        Composite pre-execution check.

        Order: permission, modifying-tool warnings, parameter scan. The
        first denial short-circuits.
        """
        if not self.has_permission(user_id, tool):
            logger.warning("Permission denied: %s may not use %s", user_id, tool.name)
            return SecurityCheckResult.deny(
                "Insufficient permissions for this tool",
                kind=ErrorKind.PERMISSION_DENIED.value,
                required_actions=[
                    f"Requires {tool.required_permission.label} level and access to "
                    f"{tool.category.value} tools"
                ],
            )

        warnings: list[str] = []
        required_actions: list[str] = []
        if tool.is_modifying:
            warnings.append("This operation will modify system state")
            with self._lock:
                settings = self._settings_for(user_id)
                if settings.require_approval_for_modifying and tool.requires_approval:
                    required_actions.append("User approval required for modifying operation")
                if settings.auto_create_backups:
                    required_actions.append("Backup will be created before execution")

        issues = scan_parameters(parameters)
        if issues:
            logger.warning("Security scan rejected %s for %s: %s", tool.name, user_id, issues)
            return SecurityCheckResult.deny(
                f"Security validation failed: {', '.join(issues)}",
                kind=ErrorKind.SECURITY_VIOLATION.value,
            )

        return SecurityCheckResult.allow(warnings=warnings, required_actions=required_actions)

    # =========================================================================
    # Approval
    # =========================================================================

    def request_approval(
        self,
        user_id: str,
        tool: Tool,
        parameters: dict[str, Any],
    ) -> ToolApprovalResult:
        """
        Obtain an approval decision for one tool call.

        A still-valid remembered approval for the same (user, tool,
        parameters) is returned without asking. Otherwise the approval
        provider is asked once, even if several identical requests arrive
        concurrently; they all receive the same decision.

        Returns:
            The decision. Timeouts yield a denial.
        """
        key = approval_key(user_id, tool.name, parameters)

        with self._lock:
            remembered = self.store.get_approval(key)
            if remembered is not None:
                if remembered.is_approved and remembered.is_valid_at(self._clock()):
                    logger.debug("Reusing remembered approval %s", remembered.approval_id)
                    return remembered
                self.store.delete_approval(key)

            pending = self._pending_approvals.get(key)
            is_owner = pending is None
            if is_owner:
                pending = Future()
                self._pending_approvals[key] = pending
            settings = self._settings_for(user_id).model_copy()
            provider = self.approval_provider

        if not is_owner:
            return pending.result()

        try:
            request = ApprovalRequest(
                user_id=user_id,
                tool=tool.definition,
                parameters=dict(parameters),
                preview=tool.get_execution_preview(parameters),
            )
            result = self._ask_provider(provider, request)

            remember = result.remember_decision
            if remember is None:
                remember = settings.remember_approvals
            if result.is_approved and remember:
                result = result.model_copy(
                    update={
                        "validity_duration": result.validity_duration
                        or settings.default_approval_duration
                    }
                )
                with self._lock:
                    self.store.save_approval(key, result)

            if result.is_approved:
                logger.info("Approval %s granted for %s", result.approval_id, tool.name)
            else:
                logger.warning("Approval denied for %s: %s", tool.name, result.user_comments)
            pending.set_result(result)
            return result
        except BaseException as e:
            pending.set_exception(e)
            raise
        finally:
            with self._lock:
                self._pending_approvals.pop(key, None)

    def _ask_provider(
        self, provider: ApprovalProvider, request: ApprovalRequest
    ) -> ToolApprovalResult:
        """
        Run the provider under the configured timeout.

        A timed-out call is denied but not stopped: a provider that is
        already running keeps its pool worker until it returns.
        """
        if self.approval_timeout_seconds is None:
            return provider.request_approval(request)

        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=4, thread_name_prefix="toolgate-approval"
                )
            executor = self._executor

        future = executor.submit(provider.request_approval, request)
        try:
            return future.result(timeout=self.approval_timeout_seconds)
        except FuturesTimeoutError:
            future.cancel()
            logger.warning(
                "Approval for %s timed out after %ss",
                request.tool.name,
                self.approval_timeout_seconds,
            )
            return ToolApprovalResult.denied("Approval request timed out")

    # =========================================================================
    # Backup
    # =========================================================================

    def create_backup(
        self,
        tool: Tool,
        parameters: dict[str, Any],
        description: str | None = None,
        user_id: str = "",
    ) -> ToolBackupInfo:
        """
        Capture state before a modifying tool runs and index it.

        Concurrent requests from the same user for the same tool and
        parameters share one backup.

        Raises:
            BackupError: If the backup strategy cannot capture the targets
        """
        key = approval_key(user_id, tool.name, parameters)

        with self._lock:
            pending = self._pending_backups.get(key)
            is_owner = pending is None
            if is_owner:
                pending = Future()
                self._pending_backups[key] = pending
            strategy = self.backup_strategy

        if not is_owner:
            return pending.result()

        try:
            backup_id = new_id()
            targets = tool.backup_targets(parameters, self.working_directory)
            capture = strategy.capture(backup_id, [Path(t) for t in targets])
            info = ToolBackupInfo(
                backup_id=backup_id,
                backup_time=self._clock(),
                backed_up_files=capture.backed_up_files,
                description=description or f"Backup before {tool.name} execution",
                can_restore=capture.can_restore,
                storage_location=capture.storage_location,
            )
            with self._lock:
                self.store.save_backup(info)
            logger.info("Created backup %s for %s", backup_id, tool.name)
            pending.set_result(info)
            return info
        except BaseException as e:
            pending.set_exception(e)
            raise
        finally:
            with self._lock:
                self._pending_backups.pop(key, None)

    def get_backup(self, backup_id: str) -> ToolBackupInfo | None:
        with self._lock:
            return self.store.get_backup(backup_id)

    def restore_backup(self, backup_id: str) -> bool:
        """
        Restore a backup.

        Returns:
            False if the id is unknown or the backup cannot be restored

        Raises:
            BackupError: If the strategy fails part-way through restoring
        """
        info = self.get_backup(backup_id)
        if info is None:
            logger.warning("Unknown backup: %s", backup_id)
            return False
        if not info.can_restore:
            logger.warning("Backup %s cannot be restored", backup_id)
            return False
        return self.backup_strategy.restore(info)

    # =========================================================================
    # Audit
    # =========================================================================

    def log_execution(self, entry: ToolExecutionAuditEntry) -> None:
        """Append an entry to the audit trail."""
        with self._lock:
            self.store.append_audit(entry)
        logger.debug(
            "Audit %s: %s %s -> %s",
            entry.audit_id,
            entry.user_id,
            entry.tool_name,
            "ok" if entry.is_success else "failed",
        )

    def get_audit_trail(
        self,
        user_id: str | None = None,
        from_date: datetime | None = None,
        to_date: datetime | None = None,
    ) -> list[ToolExecutionAuditEntry]:
        """
        Audit entries matching every given filter, newest first.

        Naive datetimes are taken to be UTC. The trail itself is never
        changed by a read.
        """
        with self._lock:
            return self.store.list_audit(
                user_id=user_id or None,
                from_date=_as_utc(from_date),
                to_date=_as_utc(to_date),
            )
