"""In-process SecurityStore used when no database path is configured."""

from datetime import datetime

from toolgate.schema import ToolApprovalResult, ToolBackupInfo, ToolExecutionAuditEntry
from toolgate.store.base import SecurityStore


class MemoryStore(SecurityStore):
    """Keeps security state in plain containers for the life of the process."""

    def __init__(self) -> None:
        self._audit: list[ToolExecutionAuditEntry] = []
        self._backups: dict[str, ToolBackupInfo] = {}
        self._approvals: dict[str, ToolApprovalResult] = {}

    def append_audit(self, entry: ToolExecutionAuditEntry) -> None:
        self._audit.append(entry.model_copy(deep=True))

    def list_audit(
        self,
        user_id: str | None = None,
        from_date: datetime | None = None,
        to_date: datetime | None = None,
    ) -> list[ToolExecutionAuditEntry]:
        # Insertion index breaks ties so equal timestamps stay newest-first
        indexed = [
            (i, e)
            for i, e in enumerate(self._audit)
            if (user_id is None or e.user_id == user_id)
            and (from_date is None or e.execution_time >= from_date)
            and (to_date is None or e.execution_time <= to_date)
        ]
        indexed.sort(key=lambda pair: (pair[1].execution_time, pair[0]), reverse=True)
        return [e.model_copy(deep=True) for _, e in indexed]

    def count_audit(self) -> int:
        return len(self._audit)

    def save_backup(self, info: ToolBackupInfo) -> None:
        self._backups[info.backup_id] = info

    def get_backup(self, backup_id: str) -> ToolBackupInfo | None:
        return self._backups.get(backup_id)

    def save_approval(self, key: str, result: ToolApprovalResult) -> None:
        self._approvals[key] = result

    def get_approval(self, key: str) -> ToolApprovalResult | None:
        return self._approvals.get(key)

    def delete_approval(self, key: str) -> None:
        self._approvals.pop(key, None)
