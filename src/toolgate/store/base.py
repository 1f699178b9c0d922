"""
Storage interface for security state.

SecurityManager persists three things through a SecurityStore:
    - the append-only audit trail
    - the backup-id -> ToolBackupInfo index
    - the remembered-approval cache, keyed by approval signature

Stores are not required to be thread-safe on their own; SecurityManager
serializes every call under its lock.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from toolgate.schema import ToolApprovalResult, ToolBackupInfo, ToolExecutionAuditEntry


class SecurityStore(ABC):
    """Persistence boundary for SecurityManager."""

    # =========================================================================
    # Audit
    # =========================================================================

    @abstractmethod
    def append_audit(self, entry: ToolExecutionAuditEntry) -> None:
        """Append an entry. Duplicate audit ids are stored, never rejected."""
        ...

    @abstractmethod
    def list_audit(
        self,
        user_id: str | None = None,
        from_date: datetime | None = None,
        to_date: datetime | None = None,
    ) -> list[ToolExecutionAuditEntry]:
        """
        Entries matching every given filter, newest first.

        Args:
            user_id: Only entries for this user
            from_date: Only entries at or after this time
            to_date: Only entries at or before this time
        """
        ...

    @abstractmethod
    def count_audit(self) -> int:
        ...

    # =========================================================================
    # Backups
    # =========================================================================

    @abstractmethod
    def save_backup(self, info: ToolBackupInfo) -> None:
        ...

    @abstractmethod
    def get_backup(self, backup_id: str) -> ToolBackupInfo | None:
        ...

    # =========================================================================
    # Approvals
    # =========================================================================

    @abstractmethod
    def save_approval(self, key: str, result: ToolApprovalResult) -> None:
        """Remember a decision under `key`, replacing any previous one."""
        ...

    @abstractmethod
    def get_approval(self, key: str) -> ToolApprovalResult | None:
        """The remembered decision for `key`, expired or not."""
        ...

    @abstractmethod
    def delete_approval(self, key: str) -> None:
        ...

    def close(self) -> None:
        """Release any resources held by the store."""
        return None

    def __enter__(self) -> "SecurityStore":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
