"""
Security layer for toolgate.

Every model-requested tool call passes through SecurityManager before it
runs: permission check, parameter scan, human approval, backup and audit.
"""

from toolgate.security.approval import (
    ApprovalProvider,
    ApprovalRequest,
    CallbackApprovalProvider,
    ConsoleApprovalProvider,
    ScriptedApprovalProvider,
    SimulatedApprovalProvider,
)
from toolgate.security.backup import BackupStrategy, FileCopyBackupStrategy, NullBackupStrategy
from toolgate.security.manager import SecurityManager
from toolgate.security.scanner import approval_key, parameter_signature, scan_parameters

__all__ = [
    "ApprovalProvider",
    "ApprovalRequest",
    "BackupStrategy",
    "CallbackApprovalProvider",
    "ConsoleApprovalProvider",
    "FileCopyBackupStrategy",
    "NullBackupStrategy",
    "ScriptedApprovalProvider",
    "SecurityManager",
    "SimulatedApprovalProvider",
    "approval_key",
    "parameter_signature",
    "scan_parameters",
]
