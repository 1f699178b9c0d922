"""
Backup strategies.

SecurityManager decides WHEN a backup is taken and records its metadata;
a BackupStrategy decides HOW state is captured and restored.

Strategies:
    - NullBackupStrategy: records metadata only, copies nothing
    - FileCopyBackupStrategy: copies target files into a backup directory
      and can copy them back
"""

import json
import logging
import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path

from toolgate.errors import BackupError
from toolgate.schema import ToolBackupInfo

logger = logging.getLogger(__name__)

MANIFEST_NAME = "manifest.json"


@dataclass(frozen=True)
class BackupCapture:
    """What a strategy captured for one backup."""

    backed_up_files: list[str] = field(default_factory=list)
    storage_location: str | None = None
    can_restore: bool = True


class BackupStrategy(ABC):
    """Captures and restores the state a modifying tool may change."""

    @abstractmethod
    def capture(self, backup_id: str, targets: list[Path]) -> BackupCapture:
        """
        Capture the current state of `targets`.

        Raises:
            BackupError: If the state cannot be captured
        """
        ...

    @abstractmethod
    def restore(self, info: ToolBackupInfo) -> bool:
        """
        Put captured state back.

        Raises:
            BackupError: If restoration fails part-way
        """
        ...


class NullBackupStrategy(BackupStrategy):
    """Metadata-only backups; restoring one is a no-op."""

    def capture(self, backup_id: str, targets: list[Path]) -> BackupCapture:
        return BackupCapture()

    def restore(self, info: ToolBackupInfo) -> bool:
        return True


class FileCopyBackupStrategy(BackupStrategy):
    """
    Copies target files to <backup_directory>/<backup_id>/.

    A manifest maps each original path to its copy. Targets that did not
    exist at capture time are recorded as absent, and restoring removes
    them again.
    """

    def __init__(self, backup_directory: str | Path) -> None:
        self.backup_directory = Path(backup_directory)

    def capture(self, backup_id: str, targets: list[Path]) -> BackupCapture:
        location = self.backup_directory / backup_id
        manifest: dict[str, str | None] = {}
        backed_up: list[str] = []
        try:
            location.mkdir(parents=True, exist_ok=False)
            for index, target in enumerate(targets):
                target = Path(target)
                if target.is_file():
                    copy = location / f"{index:04d}_{target.name}"
                    shutil.copy2(target, copy)
                    manifest[str(target)] = copy.name
                    backed_up.append(str(target))
                elif not target.exists():
                    manifest[str(target)] = None
                else:
                    logger.warning("Skipping backup of non-file target %s", target)
            (location / MANIFEST_NAME).write_text(json.dumps(manifest, indent=2), encoding="utf-8")
        except OSError as e:
            raise BackupError(
                backup_id=backup_id,
                underlying_error=str(e),
            ) from e

        logger.debug("Captured %d file(s) into %s", len(backed_up), location)
        return BackupCapture(backed_up_files=backed_up, storage_location=str(location))

    def restore(self, info: ToolBackupInfo) -> bool:
        if info.storage_location is None:
            return False
        location = Path(info.storage_location)
        manifest_path = location / MANIFEST_NAME
        if not manifest_path.is_file():
            return False

        try:
            manifest: dict[str, str | None] = json.loads(manifest_path.read_text(encoding="utf-8"))
            for original, copy_name in manifest.items():
                original_path = Path(original)
                if copy_name is None:
                    original_path.unlink(missing_ok=True)
                else:
                    shutil.copy2(location / copy_name, original_path)
        except (OSError, ValueError) as e:
            raise BackupError(
                backup_id=info.backup_id,
                underlying_error=str(e),
            ) from e

        logger.info("Restored backup %s (%d file(s))", info.backup_id, len(manifest))
        return True
