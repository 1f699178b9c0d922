"""
Integration tests for end-to-end agent flows.

These wire the real registry, security manager, stores and backup strategy
through build_orchestrator and drive them with scripted or fallback models.

Tests cover:
- Reading a real file with the deterministic fallback model
- Approved writes with on-disk backups that can be restored
- Denied writes leaving the file system untouched
- Ordered execution of several directives from one reply
- Audit persistence in SQLite
"""

from collections.abc import Iterator

import pytest

from conftest import ScriptedLanguageModel, tool_call_text
from toolgate.agent.orchestrator import AgentOrchestrator, AgentState
from toolgate.config import build_orchestrator, load_settings_from_string
from toolgate.errors import ErrorKind
from toolgate.security.approval import ScriptedApprovalProvider
from toolgate.store import SQLiteStore


def make_settings(temp_dir, extra: str = ""):
    return load_settings_from_string(
        "agent:\n"
        f"  working_directory: {temp_dir / 'work'}\n"
        "  client_identifier: integration\n"
        "security:\n"
        f"  audit_db_path: {temp_dir / 'audit.db'}\n"
        f"  backup_directory: {temp_dir / 'backups'}\n"
        f"{extra}"
        "llm:\n"
        "  enabled: false\n"
    )


@pytest.fixture
def work_dir(temp_dir):
    path = temp_dir / "work"
    path.mkdir()
    return path


@pytest.fixture
def build(temp_dir, work_dir) -> Iterator:
    """Factory: build_orchestrator over temp_dir with optional approvals and replies."""
    built: list[AgentOrchestrator] = []

    def factory(approvals=None, replies=None, extra: str = "") -> AgentOrchestrator:
        provider = ScriptedApprovalProvider(approvals) if approvals is not None else None
        orchestrator = build_orchestrator(make_settings(temp_dir, extra), approval_provider=provider)
        if replies is not None:
            orchestrator.register_language_model(ScriptedLanguageModel(replies))
        built.append(orchestrator)
        return orchestrator

    yield factory
    for orchestrator in built:
        orchestrator.security.close()


class TestFallbackFlow:
    """Flows driven by the deterministic fallback model."""

    def test_reads_real_file(self, build, work_dir):
        (work_dir / "notes.txt").write_text("first\nsecond\nthird\n", encoding="utf-8")
        orchestrator = build()

        response = orchestrator.execute_react_cycle("alice", "Please read the file notes.txt")

        assert response.state == AgentState.DONE
        assert response.is_complete
        (execution,) = response.tool_executions
        assert execution.tool_call.tool_name == "ReadFileContents"
        assert execution.tool_result.data["lines"] == ["first", "second", "third"]
        assert "Successfully read 3 lines from notes.txt" in response.response_text

    def test_missing_file_is_reported(self, build):
        orchestrator = build()

        response = orchestrator.process_query("alice", "read the file ghost.txt")

        assert not response.is_complete
        assert response.tool_executions[0].failure_kind == ErrorKind.EXECUTION_FAILURE
        assert "File not found" in response.response_text


class TestWriteWithBackup:
    """Approved and denied writes against the real file system."""

    def test_approved_write_is_backed_up_and_restorable(self, build, work_dir):
        target = work_dir / "config.ini"
        target.write_text("original", encoding="utf-8")
        orchestrator = build(
            approvals=[True],
            replies=[
                tool_call_text(
                    "WriteFileContents",
                    {"filePath": "config.ini", "content": "changed"},
                    prose="## Reasoning\nUpdate the config.",
                ),
                "The config was updated.",
            ],
        )

        response = orchestrator.execute_react_cycle("alice", "Change config.ini")

        assert response.state == AgentState.DONE
        assert response.response_text == "The config was updated."
        assert response.reasoning[0] == "Update the config."
        assert target.read_text(encoding="utf-8") == "changed"

        (execution,) = response.tool_executions
        backup = execution.backup_info
        assert backup is not None
        assert backup.backed_up_files == [str(target)]

        (entry,) = orchestrator.security.get_audit_trail("alice")
        assert entry.backup_id == backup.backup_id
        assert entry.required_approval is True
        assert entry.client_identifier == "integration"
        assert entry.modified_files == (str(target),)

        assert orchestrator.security.restore_backup(backup.backup_id)
        assert target.read_text(encoding="utf-8") == "original"

    def test_restoring_new_file_removes_it(self, build, work_dir):
        orchestrator = build(
            approvals=[True],
            replies=[tool_call_text("WriteFileContents", {"filePath": "new.txt", "content": "x"})],
        )

        response = orchestrator.execute_react_cycle("alice", "Create new.txt")
        backup_id = response.tool_executions[0].backup_info.backup_id

        assert (work_dir / "new.txt").exists()
        assert orchestrator.security.restore_backup(backup_id)
        assert not (work_dir / "new.txt").exists()

    def test_denied_write_changes_nothing(self, build, work_dir, temp_dir):
        target = work_dir / "config.ini"
        target.write_text("original", encoding="utf-8")
        orchestrator = build(
            approvals=[False],
            replies=[
                tool_call_text("WriteFileContents", {"filePath": "config.ini", "content": "changed"}),
                "I was not allowed to change it.",
            ],
        )

        response = orchestrator.execute_react_cycle("alice", "Change config.ini")

        assert target.read_text(encoding="utf-8") == "original"
        assert response.tool_executions[0].failure_kind == ErrorKind.APPROVAL_DENIED
        assert not (temp_dir / "backups").exists() or not any((temp_dir / "backups").iterdir())

        (entry,) = orchestrator.security.get_audit_trail()
        assert entry.required_approval is True
        assert entry.backup_id is None
        assert not entry.is_success

    def test_read_level_user_cannot_write(self, build, work_dir):
        orchestrator = build(
            approvals=[True],
            replies=[
                tool_call_text("WriteFileContents", {"filePath": "x.txt", "content": "x"}),
                "Denied.",
            ],
            extra="  user_levels:\n    guest: read\n",
        )

        response = orchestrator.execute_react_cycle("guest", "Write x.txt")

        assert response.state == AgentState.FAILED
        assert response.tool_executions[0].failure_kind == ErrorKind.PERMISSION_DENIED
        assert orchestrator.security.approval_provider.call_count == 0
        assert not (work_dir / "x.txt").exists()


class TestOrderingAndPersistence:
    def test_directives_run_in_text_order(self, build, work_dir):
        reply = (
            tool_call_text("WriteFileContents", {"filePath": "log.txt", "content": "a"})
            + tool_call_text(
                "WriteFileContents", {"filePath": "log.txt", "content": "b", "mode": "append"}
            )
            + tool_call_text("ReadFileContents", {"filePath": "log.txt"})
        )
        orchestrator = build(approvals=[True, True], replies=[reply, "Done."])

        response = orchestrator.execute_react_cycle("alice", "Build log.txt")

        assert [r.succeeded for r in response.tool_executions] == [True, True, True]
        assert response.tool_executions[2].tool_result.data["lines"] == ["ab"]

    def test_audit_survives_restart(self, build, temp_dir, work_dir):
        (work_dir / "notes.txt").write_text("x\n", encoding="utf-8")
        build().process_query("alice", "read the file notes.txt")

        with SQLiteStore(temp_dir / "audit.db") as store:
            entries = store.list_audit(user_id="alice")

        assert [e.tool_name for e in entries] == ["ReadFileContents"]
        assert entries[0].is_success
