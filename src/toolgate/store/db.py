"""
SQLite storage for toolgate security state.

Design Principles:
    - Append-only audit: rows are inserted, never updated or deleted
    - Ordered reads: audit rows carry a monotonically increasing sequence
      number that breaks timestamp ties
    - Self-contained: a single .db file holds audit, backups and approvals

Tables:
    - audit_entries: one row per tool execution attempt
    - backups: ToolBackupInfo records by id
    - approvals: remembered approval decisions by signature key
"""

import json
import sqlite3
from contextlib import contextmanager
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any, Generator

from toolgate.errors import StorageConnectionError, StorageReadError, StorageWriteError
from toolgate.schema import ToolApprovalResult, ToolBackupInfo, ToolExecutionAuditEntry
from toolgate.store.base import SecurityStore

SCHEMA_VERSION = 1

CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL
);

-- audit_id is not unique: duplicate ids are stored, never rejected
CREATE TABLE IF NOT EXISTS audit_entries (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    audit_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    tool_name TEXT NOT NULL,
    parameters_json TEXT NOT NULL,
    execution_result TEXT NOT NULL,
    is_success INTEGER NOT NULL,
    execution_time TEXT NOT NULL,
    duration_seconds REAL NOT NULL,
    modified_files_json TEXT NOT NULL,
    backup_id TEXT,
    client_identifier TEXT,
    required_approval INTEGER NOT NULL,
    approval_id TEXT
);

CREATE TABLE IF NOT EXISTS backups (
    backup_id TEXT PRIMARY KEY,
    backup_time TEXT NOT NULL,
    info_json TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS approvals (
    approval_key TEXT PRIMARY KEY,
    approval_json TEXT NOT NULL,
    saved_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_audit_user ON audit_entries(user_id);
CREATE INDEX IF NOT EXISTS idx_audit_time ON audit_entries(execution_time);
"""


def to_utc_iso(value: datetime) -> str:
    """ISO timestamp in UTC; naive datetimes are taken to be UTC already."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def now_iso() -> str:
    """Get current UTC time in ISO format."""
    return datetime.now(UTC).isoformat()


class SQLiteStore(SecurityStore):
    """
    SQLite-backed SecurityStore.

    Usage:
        store = SQLiteStore("toolgate.db")
        store.append_audit(entry)
        store.close()

    Or use as context manager:
        with SQLiteStore("toolgate.db") as store:
            ...
    """

    def __init__(self, db_path: str | Path) -> None:
        """
        Open (or create) the database.

        Args:
            db_path: Path to the SQLite file, or ":memory:"
        """
        self.db_path = Path(db_path) if str(db_path) != ":memory:" else None
        self._target = str(db_path)
        self._conn: sqlite3.Connection | None = None
        self._connect()
        self._init_schema()

    def _connect(self) -> None:
        try:
            if self.db_path is not None:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self._target, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
        except (sqlite3.Error, OSError) as e:
            raise StorageConnectionError(
                db_path=self._target,
                operation="connect",
                message=f"Failed to connect to database: {e}",
            ) from e

    def _init_schema(self) -> None:
        try:
            cursor = self._conn.executescript(CREATE_TABLES_SQL)
            cursor.close()

            cursor = self._conn.execute(
                "SELECT version FROM schema_version ORDER BY version DESC LIMIT 1"
            )
            if cursor.fetchone() is None:
                self._conn.execute(
                    "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
                    (SCHEMA_VERSION, now_iso()),
                )
            self._conn.commit()
        except sqlite3.Error as e:
            raise StorageWriteError(
                operation="init_schema",
                underlying_error=str(e),
            ) from e

    @contextmanager
    def transaction(self) -> Generator[None, None, None]:
        """Context manager for database transactions."""
        try:
            yield
            self._conn.commit()
        except Exception:
            self._conn.rollback()
            raise

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None

    # =========================================================================
    # Audit
    # =========================================================================

    def append_audit(self, entry: ToolExecutionAuditEntry) -> None:
        try:
            with self.transaction():
                self._conn.execute(
                    """
                    INSERT INTO audit_entries (
                        audit_id, user_id, tool_name, parameters_json,
                        execution_result, is_success, execution_time,
                        duration_seconds, modified_files_json, backup_id,
                        client_identifier, required_approval, approval_id
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        entry.audit_id,
                        entry.user_id,
                        entry.tool_name,
                        json.dumps(entry.parameters, sort_keys=True, default=str),
                        entry.execution_result,
                        int(entry.is_success),
                        to_utc_iso(entry.execution_time),
                        entry.duration.total_seconds(),
                        json.dumps(entry.modified_files),
                        entry.backup_id,
                        entry.client_identifier,
                        int(entry.required_approval),
                        entry.approval_id,
                    ),
                )
        except sqlite3.Error as e:
            raise StorageWriteError(
                operation="append_audit",
                underlying_error=str(e),
            ) from e

    def list_audit(
        self,
        user_id: str | None = None,
        from_date: datetime | None = None,
        to_date: datetime | None = None,
    ) -> list[ToolExecutionAuditEntry]:
        clauses: list[str] = []
        args: list[Any] = []
        if user_id is not None:
            clauses.append("user_id = ?")
            args.append(user_id)
        if from_date is not None:
            clauses.append("execution_time >= ?")
            args.append(to_utc_iso(from_date))
        if to_date is not None:
            clauses.append("execution_time <= ?")
            args.append(to_utc_iso(to_date))

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        try:
            cursor = self._conn.execute(
                f"SELECT * FROM audit_entries {where} ORDER BY execution_time DESC, seq DESC",
                args,
            )
            return [self._row_to_audit(row) for row in cursor]
        except sqlite3.Error as e:
            raise StorageReadError(
                operation="list_audit",
                underlying_error=str(e),
            ) from e

    def count_audit(self) -> int:
        try:
            cursor = self._conn.execute("SELECT COUNT(*) FROM audit_entries")
            return int(cursor.fetchone()[0])
        except sqlite3.Error as e:
            raise StorageReadError(
                operation="count_audit",
                underlying_error=str(e),
            ) from e

    @staticmethod
    def _row_to_audit(row: sqlite3.Row) -> ToolExecutionAuditEntry:
        return ToolExecutionAuditEntry(
            audit_id=row["audit_id"],
            user_id=row["user_id"],
            tool_name=row["tool_name"],
            parameters=json.loads(row["parameters_json"]),
            execution_result=row["execution_result"],
            is_success=bool(row["is_success"]),
            execution_time=datetime.fromisoformat(row["execution_time"]),
            duration=timedelta(seconds=row["duration_seconds"]),
            modified_files=json.loads(row["modified_files_json"]),
            backup_id=row["backup_id"],
            client_identifier=row["client_identifier"],
            required_approval=bool(row["required_approval"]),
            approval_id=row["approval_id"],
        )

    # =========================================================================
    # Backups
    # =========================================================================

    def save_backup(self, info: ToolBackupInfo) -> None:
        try:
            with self.transaction():
                self._conn.execute(
                    "INSERT OR REPLACE INTO backups (backup_id, backup_time, info_json) "
                    "VALUES (?, ?, ?)",
                    (info.backup_id, to_utc_iso(info.backup_time), info.model_dump_json()),
                )
        except sqlite3.Error as e:
            raise StorageWriteError(
                operation="save_backup",
                underlying_error=str(e),
            ) from e

    def get_backup(self, backup_id: str) -> ToolBackupInfo | None:
        try:
            cursor = self._conn.execute(
                "SELECT info_json FROM backups WHERE backup_id = ?",
                (backup_id,),
            )
            row = cursor.fetchone()
        except sqlite3.Error as e:
            raise StorageReadError(
                operation="get_backup",
                underlying_error=str(e),
            ) from e
        if row is None:
            return None
        return ToolBackupInfo.model_validate_json(row["info_json"])

    # =========================================================================
    # Approvals
    # =========================================================================

    def save_approval(self, key: str, result: ToolApprovalResult) -> None:
        try:
            with self.transaction():
                self._conn.execute(
                    "INSERT OR REPLACE INTO approvals (approval_key, approval_json, saved_at) "
                    "VALUES (?, ?, ?)",
                    (key, result.model_dump_json(), now_iso()),
                )
        except sqlite3.Error as e:
            raise StorageWriteError(
                operation="save_approval",
                underlying_error=str(e),
            ) from e

    def get_approval(self, key: str) -> ToolApprovalResult | None:
        try:
            cursor = self._conn.execute(
                "SELECT approval_json FROM approvals WHERE approval_key = ?",
                (key,),
            )
            row = cursor.fetchone()
        except sqlite3.Error as e:
            raise StorageReadError(
                operation="get_approval",
                underlying_error=str(e),
            ) from e
        if row is None:
            return None
        return ToolApprovalResult.model_validate_json(row["approval_json"])

    def delete_approval(self, key: str) -> None:
        try:
            with self.transaction():
                self._conn.execute("DELETE FROM approvals WHERE approval_key = ?", (key,))
        except sqlite3.Error as e:
            raise StorageWriteError(
                operation="delete_approval",
                underlying_error=str(e),
            ) from e
