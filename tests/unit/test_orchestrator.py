"""
Unit tests for AgentOrchestrator.

Tests:
- execute_tool_call pipeline: every short-circuit branch and its audit entry
- Backup-before-execute ordering and approval flags in the tool context
- process_query single pass
- execute_react_cycle: termination rules, iteration bound, warnings, states
- Cancellation and unexpected-error handling
"""

import threading

import pytest

from conftest import (
    EventLogBackupStrategy,
    FailingLanguageModel,
    RecordingModifyingTool,
    RecordingTool,
    ScriptedLanguageModel,
    tool_call_text,
)
from toolgate.agent.orchestrator import (
    APOLOGY_REACT,
    APOLOGY_SINGLE_PASS,
    CANCELLED_TEXT,
    NO_ITERATIONS_TEXT,
    NO_RESULTS_TEXT,
    AgentConfig,
    AgentOrchestrator,
    AgentResponse,
    AgentState,
    ToolExecutionResult,
    has_completion_phrase,
)
from toolgate.agent.prompts import NO_TOOLS_TEXT
from toolgate.errors import (
    ERROR_PERMISSION_DENIED,
    ApprovalDeniedError,
    BackupError,
    ErrorKind,
    LLMConnectionError,
    PermissionDeniedError,
    SecurityViolationError,
    ToolNotFoundError,
)
from toolgate.llm.base import CONTEXT_MARKER, OBSERVATIONS_MARKER, StaticContextRetriever
from toolgate.llm.fallback import GENERIC_ACKNOWLEDGEMENT
from toolgate.schema import PermissionLevel, ToolCall
from toolgate.security.backup import BackupStrategy
from toolgate.security.manager import SecurityManager
from toolgate.tools.base import ToolExecutionContext, ToolResult
from toolgate.tools.registry import ToolRegistry


# =============================================================================
# Test Fixtures
# =============================================================================


class FailingBackupStrategy(BackupStrategy):
    def capture(self, backup_id, targets):
        raise BackupError(backup_id=backup_id, underlying_error="read-only volume")

    def restore(self, info):
        return False


class CancellingTool(RecordingTool):
    """Sets the cancel event while executing."""

    def execute(self, context: ToolExecutionContext) -> ToolResult:
        self.executions.append(context)
        context.cancel_event.set()
        return ToolResult.ok("cancelled the rest")


class FollowUpFailsModel(ScriptedLanguageModel):
    """Answers the first prompt, then fails every later call."""

    def generate(self, prompt, cancel_event=None):
        if self.prompts:
            self.prompts.append(prompt)
            raise LLMConnectionError(backend="test", url="http://nowhere")
        return super().generate(prompt, cancel_event)


def echo_call(message: str = "hi") -> ToolCall:
    return ToolCall(tool_name="Echo", parameters={"message": message})


def touch_call(name: str = "a.txt") -> ToolCall:
    return ToolCall(tool_name="Touch", parameters={"message": name})


# =============================================================================
# Construction
# =============================================================================


class TestConstruction:
    def test_requires_registry_and_security(self):
        with pytest.raises(ValueError):
            AgentOrchestrator(None, SecurityManager())
        with pytest.raises(ValueError):
            AgentOrchestrator(ToolRegistry(), None)

    def test_register_language_model(self, make_orchestrator):
        orchestrator, _ = make_orchestrator()
        model = ScriptedLanguageModel([])

        orchestrator.register_language_model(model)

        assert orchestrator.language_model is model
        with pytest.raises(ValueError):
            orchestrator.register_language_model(None)

    def test_tools_prompt_respects_level(self, make_orchestrator):
        orchestrator, security = make_orchestrator(tools=[RecordingTool(), RecordingModifyingTool()])
        security.set_user_permission_level("reader", PermissionLevel.READ)

        reader_prompt = orchestrator.get_available_tools_prompt("reader")
        user_prompt = orchestrator.get_available_tools_prompt("alice")

        assert "**Echo**" in reader_prompt
        assert "**Touch**" not in reader_prompt
        assert "**Touch**" in user_prompt

    def test_no_tools_prompt(self, make_orchestrator):
        orchestrator, _ = make_orchestrator()

        assert orchestrator.get_available_tools_prompt("alice") == NO_TOOLS_TEXT


# =============================================================================
# execute_tool_call
# =============================================================================


class TestExecuteToolCall:
    """Tests for the single-call pipeline."""

    def test_success(self, make_orchestrator, temp_dir):
        tool = RecordingTool()
        orchestrator, security = make_orchestrator(tools=[tool])
        call = echo_call()

        result = orchestrator.execute_tool_call("alice", call)

        assert result.succeeded
        assert result.failure_kind is None
        assert result.tool_result.data == {"echo": "hi"}
        assert result.tool_result.execution_time > 0
        assert result.security_result.is_allowed
        context = tool.executions[0]
        assert context.user_id == "alice"
        assert context.execution_id == call.id
        assert context.working_directory == str(temp_dir)
        assert context.timeout == 300.0
        assert context.approval_granted is False

        (entry,) = security.get_audit_trail()
        assert entry.is_success
        assert entry.execution_result == "Success"
        assert entry.tool_name == "Echo"
        assert entry.parameters == {"message": "hi"}
        assert entry.client_identifier == "test-host"
        assert entry.required_approval is False

    def test_unknown_tool(self, make_orchestrator):
        orchestrator, security = make_orchestrator()

        result = orchestrator.execute_tool_call("alice", ToolCall(tool_name="Nope"))

        assert result.failure_kind == ErrorKind.UNKNOWN_TOOL
        assert result.tool_result.error_message == "Unknown tool: Nope"
        assert isinstance(result.tool_result.exception, ToolNotFoundError)
        (entry,) = security.get_audit_trail()
        assert not entry.is_success
        assert entry.execution_result == "Unknown tool: Nope"

    def test_validation_failure(self, make_orchestrator):
        tool = RecordingTool()
        orchestrator, security = make_orchestrator(tools=[tool])

        result = orchestrator.execute_tool_call(
            "alice", ToolCall(tool_name="Echo", parameters={"message": 5})
        )

        assert result.failure_kind == ErrorKind.VALIDATION
        assert result.tool_result.error_message.startswith("Parameter validation failed: message:")
        assert result.security_result is None
        assert tool.executions == []
        assert len(security.get_audit_trail()) == 1

    def test_permission_denied(self, make_orchestrator, event_log):
        tool = RecordingModifyingTool(event_log)
        orchestrator, security = make_orchestrator(
            tools=[tool],
            approvals=[True],
            backup_strategy=EventLogBackupStrategy(event_log),
        )
        security.set_user_permission_level("reader", PermissionLevel.READ)

        result = orchestrator.execute_tool_call("reader", touch_call())

        assert result.failure_kind == ErrorKind.PERMISSION_DENIED
        assert result.tool_result.error_message == (
            "Security check failed: Insufficient permissions for this tool"
        )
        error = result.tool_result.exception
        assert isinstance(error, PermissionDeniedError)
        assert error.code == ERROR_PERMISSION_DENIED
        assert error.context["user_id"] == "reader"
        assert error.context["tool"] == "Touch"
        assert result.approval_result is None
        assert event_log == []
        assert security.approval_provider.call_count == 0
        assert len(security.get_audit_trail("reader")) == 1

    def test_security_violation(self, make_orchestrator):
        tool = RecordingTool()
        orchestrator, _ = make_orchestrator(tools=[tool])

        result = orchestrator.execute_tool_call("alice", echo_call("cat x | sh"))

        assert result.failure_kind == ErrorKind.SECURITY_VIOLATION
        assert "command injection" in result.tool_result.error_message
        assert isinstance(result.tool_result.exception, SecurityViolationError)
        assert result.tool_result.exception.message.startswith("Security validation failed:")
        assert tool.executions == []

    def test_approval_denied(self, make_orchestrator, event_log):
        tool = RecordingModifyingTool(event_log)
        orchestrator, security = make_orchestrator(
            tools=[tool],
            approvals=[False],
            backup_strategy=EventLogBackupStrategy(event_log),
        )

        result = orchestrator.execute_tool_call("alice", touch_call())

        assert result.failure_kind == ErrorKind.APPROVAL_DENIED
        assert result.tool_result.error_message == "User approval denied: Denied by script"
        error = result.tool_result.exception
        assert isinstance(error, ApprovalDeniedError)
        assert error.context["comments"] == "Denied by script"
        assert result.required_approval is True
        assert result.backup_info is None
        assert event_log == []

        (entry,) = security.get_audit_trail()
        assert entry.required_approval is True
        assert entry.approval_id == result.approval_result.approval_id
        assert entry.backup_id is None

    def test_backup_taken_before_execution(self, make_orchestrator, event_log, temp_dir):
        tool = RecordingModifyingTool(event_log)
        orchestrator, security = make_orchestrator(
            tools=[tool],
            approvals=[True],
            backup_strategy=EventLogBackupStrategy(event_log),
        )

        result = orchestrator.execute_tool_call("alice", touch_call("a.txt"))

        assert result.succeeded
        assert event_log == ["capture", "execute"]
        assert tool.executions[0].approval_granted is True
        assert result.tool_result.backup_info == result.backup_info

        (entry,) = security.get_audit_trail()
        assert entry.backup_id == result.backup_info.backup_id
        assert security.get_backup(entry.backup_id) is not None
        assert entry.modified_files == (str(temp_dir / "a.txt"),)
        assert entry.approval_id == result.approval_result.approval_id

    def test_backup_skipped_when_disabled(self, make_orchestrator, event_log):
        orchestrator, security = make_orchestrator(
            tools=[RecordingModifyingTool(event_log)],
            approvals=[True],
            backup_strategy=EventLogBackupStrategy(event_log),
        )
        security.update_user_settings("alice", auto_create_backups=False)

        result = orchestrator.execute_tool_call("alice", touch_call())

        assert result.succeeded
        assert result.backup_info is None
        assert event_log == ["execute"]

    def test_backup_failure_stops_execution(self, make_orchestrator, event_log):
        orchestrator, security = make_orchestrator(
            tools=[RecordingModifyingTool(event_log)],
            approvals=[True],
            backup_strategy=FailingBackupStrategy(),
        )

        result = orchestrator.execute_tool_call("alice", touch_call())

        assert result.failure_kind == ErrorKind.EXECUTION_FAILURE
        assert result.tool_result.error_message == (
            "Backup failed: Backup operation failed: read-only volume"
        )
        assert event_log == []
        assert len(security.get_audit_trail()) == 1

    def test_read_only_tool_with_approval_uses_simulated_provider(self, make_orchestrator):
        tool = RecordingTool(requires_approval=True)
        orchestrator, _ = make_orchestrator(tools=[tool])

        result = orchestrator.execute_tool_call("alice", echo_call())

        assert result.succeeded
        assert result.required_approval is True
        assert result.approval_result.user_comments == "Auto-approved (non-modifying)"

    def test_cancelled_before_execution(self, make_orchestrator):
        tool = RecordingTool()
        orchestrator, security = make_orchestrator(tools=[tool])
        event = threading.Event()
        event.set()

        result = orchestrator.execute_tool_call("alice", echo_call(), cancel_event=event)

        assert result.failure_kind == ErrorKind.CANCELLED
        assert result.tool_result.error_message == "Operation cancelled"
        assert tool.executions == []
        assert len(security.get_audit_trail()) == 1

    def test_tool_exception_is_contained(self, make_orchestrator):
        orchestrator, security = make_orchestrator(tools=[RecordingTool(error=RuntimeError("boom"))])

        result = orchestrator.execute_tool_call("alice", echo_call())

        assert result.failure_kind == ErrorKind.EXECUTION_FAILURE
        assert result.tool_result.error_message == "Execution error: boom"
        assert isinstance(result.tool_result.exception, RuntimeError)
        assert security.get_audit_trail()[0].execution_result == "Execution error: boom"

    def test_tool_reported_failure(self, make_orchestrator):
        orchestrator, _ = make_orchestrator(
            tools=[RecordingTool(result=ToolResult.fail("File not found: x"))]
        )

        result = orchestrator.execute_tool_call("alice", echo_call())

        assert result.failure_kind == ErrorKind.EXECUTION_FAILURE
        assert result.tool_result.error_message == "File not found: x"


# =============================================================================
# process_query
# =============================================================================


class TestProcessQuery:
    """Tests for the single-pass mode."""

    def test_plain_answer(self, make_orchestrator):
        orchestrator, _ = make_orchestrator(tools=[RecordingTool()], replies=["Hello there!"])

        response = orchestrator.process_query("alice", "Hi")

        assert response.response_text == "Hello there!"
        assert response.state == AgentState.DONE
        assert response.iterations == 1
        assert response.is_complete
        assert response.tool_executions == []

    def test_tool_round_then_follow_up(self, make_orchestrator):
        orchestrator, security = make_orchestrator(
            tools=[RecordingTool()],
            replies=[tool_call_text("Echo", {"message": "ping"}), "The echo said ping."],
        )

        response = orchestrator.process_query("alice", "Echo ping")

        assert response.response_text == "The echo said ping."
        assert [r.tool_call.tool_name for r in response.tool_executions] == ["Echo"]
        assert response.state == AgentState.DONE
        assert response.is_complete
        assert len(security.get_audit_trail()) == 1
        follow_up_prompt = orchestrator.language_model.prompts[1]
        assert "Tool Execution Results:" in follow_up_prompt
        assert "Tool: Echo" in follow_up_prompt

    def test_failed_tool_marks_incomplete(self, make_orchestrator):
        orchestrator, _ = make_orchestrator(
            tools=[RecordingTool()],
            replies=[tool_call_text("Missing"), "Could not do it."],
        )

        response = orchestrator.process_query("alice", "Do it")

        assert response.state == AgentState.DONE
        assert not response.is_complete
        assert response.errors == ["Tool Missing failed: Unknown tool: Missing"]

    def test_model_error_yields_apology(self, make_orchestrator):
        orchestrator, _ = make_orchestrator(language_model=FailingLanguageModel(RuntimeError("kaput")))

        response = orchestrator.process_query("alice", "Hi")

        assert response.state == AgentState.FAILED
        assert response.response_text == APOLOGY_SINGLE_PASS
        assert response.errors == ["Unexpected error: kaput"]
        assert not response.is_complete

    def test_follow_up_falls_back_on_llm_error(self, make_orchestrator):
        model = FollowUpFailsModel([tool_call_text("Echo", {"message": "x"})])
        orchestrator, _ = make_orchestrator(tools=[RecordingTool()], language_model=model)

        response = orchestrator.process_query("alice", "Echo x")

        assert response.state == AgentState.DONE
        assert response.response_text.startswith("Based on the tool execution results:")

    def test_unavailable_model_uses_fallback(self, make_orchestrator):
        model = ScriptedLanguageModel(["never used"], available=False)
        orchestrator, _ = make_orchestrator(language_model=model)

        response = orchestrator.process_query("alice", "What time is it?")

        assert model.prompts == []
        assert response.response_text == GENERIC_ACKNOWLEDGEMENT

    def test_context_retriever_feeds_prompt(self, make_orchestrator):
        orchestrator, _ = make_orchestrator(replies=["ok"])
        orchestrator.register_context_retriever(
            StaticContextRetriever({"Backups live in /srv/backups": ["backup"]})
        )

        orchestrator.process_query("alice", "Where is the backup?")

        prompt = orchestrator.language_model.prompts[0]
        assert CONTEXT_MARKER in prompt
        assert "Backups live in /srv/backups" in prompt

    def test_cancelled_before_start(self, make_orchestrator):
        orchestrator, _ = make_orchestrator(replies=["unused"])
        event = threading.Event()
        event.set()

        response = orchestrator.process_query("alice", "Hi", cancel_event=event)

        assert response.state == AgentState.FAILED
        assert response.response_text == CANCELLED_TEXT
        assert response.errors == ["Operation cancelled"]
        assert orchestrator.language_model.prompts == []


# =============================================================================
# execute_react_cycle
# =============================================================================


class TestReactCycle:
    """Tests for the bounded ReAct loop."""

    def test_zero_iterations(self, make_orchestrator):
        orchestrator, security = make_orchestrator(tools=[RecordingTool()], replies=["unused"])

        response = orchestrator.execute_react_cycle("alice", "Hi", max_iterations=0)

        assert response.response_text == NO_ITERATIONS_TEXT
        assert response.state == AgentState.DONE
        assert response.iterations == 0
        assert orchestrator.language_model.prompts == []
        assert security.get_audit_trail() == []

    def test_answer_without_tools(self, make_orchestrator):
        orchestrator, _ = make_orchestrator(replies=["Nothing to run. <tool_call>oops</tool_call>"])

        response = orchestrator.execute_react_cycle("alice", "Hi")

        assert response.response_text == "Nothing to run."
        assert response.state == AgentState.DONE
        assert response.iterations == 1
        assert response.is_complete

    def test_observations_feed_next_iteration(self, make_orchestrator):
        orchestrator, _ = make_orchestrator(
            tools=[RecordingTool()],
            replies=[tool_call_text("Echo", {"message": "ping"}), "The tool answered ping."],
        )

        response = orchestrator.execute_react_cycle("alice", "Echo ping")

        assert response.response_text == "The tool answered ping."
        assert response.iterations == 2
        assert response.state == AgentState.DONE
        assert response.is_complete
        first, second = orchestrator.language_model.prompts
        assert OBSERVATIONS_MARKER not in first
        assert OBSERVATIONS_MARKER in second
        assert "Tool: Echo" in second
        assert "iteration 2 of a ReAct" in second

    def test_calls_in_one_reply_run_in_order(self, make_orchestrator):
        tool = RecordingTool()
        reply = (
            tool_call_text("Echo", {"message": "one"})
            + tool_call_text("Echo", {"message": "two"})
            + tool_call_text("Echo", {"message": "three"})
        )
        orchestrator, security = make_orchestrator(tools=[tool], replies=[reply, "Done."])

        response = orchestrator.execute_react_cycle("alice", "Echo three times")

        assert [c.parameters["message"] for c in tool.executions] == ["one", "two", "three"]
        assert len(response.tool_executions) == 3
        assert len(security.get_audit_trail()) == 3

    def test_exhaustion_warns_and_fails(self, make_orchestrator):
        reply = tool_call_text("Echo", {"message": "again"})
        orchestrator, _ = make_orchestrator(
            tools=[RecordingTool()],
            replies=[reply, reply, "Summary of two echoes."],
        )

        response = orchestrator.execute_react_cycle("alice", "Loop", max_iterations=2)

        assert response.iterations == 2
        assert response.warnings == ["Reached maximum iterations (2)"]
        assert response.state == AgentState.FAILED
        assert response.response_text == "Summary of two echoes."
        assert len(response.tool_executions) == 2

    def test_default_iteration_bound_from_config(self, make_orchestrator):
        reply = tool_call_text("Echo")
        orchestrator, _ = make_orchestrator(tools=[RecordingTool()], replies=[reply] * 10)
        orchestrator.config.max_iterations = 3

        response = orchestrator.execute_react_cycle("alice", "Loop")

        assert response.iterations == 3
        assert "Reached maximum iterations (3)" in response.warnings

    def test_permission_denial_stops_loop(self, make_orchestrator):
        orchestrator, security = make_orchestrator(
            tools=[RecordingModifyingTool()],
            replies=[tool_call_text("Touch", {"message": "a.txt"}), "Follow-up text", "unused"],
        )
        security.set_user_permission_level("reader", PermissionLevel.READ)

        response = orchestrator.execute_react_cycle("reader", "Touch a file")

        assert response.iterations == 1
        assert response.state == AgentState.FAILED
        assert response.tool_executions[0].failure_kind == ErrorKind.PERMISSION_DENIED
        assert response.errors == [
            "Tool Touch failed: Security check failed: Insufficient permissions for this tool"
        ]
        assert response.response_text == "Follow-up text"

    def test_security_violation_stops_loop(self, make_orchestrator):
        orchestrator, _ = make_orchestrator(
            tools=[RecordingTool()],
            replies=[tool_call_text("Echo", {"message": "<script>alert(1)</script>"}), "Stopped."],
        )

        response = orchestrator.execute_react_cycle("alice", "Echo script")

        assert response.iterations == 1
        assert response.state == AgentState.FAILED
        assert response.tool_executions[0].failure_kind == ErrorKind.SECURITY_VIOLATION

    def test_approval_denial_does_not_stop_loop(self, make_orchestrator):
        orchestrator, _ = make_orchestrator(
            tools=[RecordingModifyingTool()],
            approvals=[False],
            replies=[tool_call_text("Touch", {"message": "a.txt"}), "I could not touch it."],
        )

        response = orchestrator.execute_react_cycle("alice", "Touch a file")

        assert response.iterations == 2
        assert response.state == AgentState.DONE
        assert not response.is_complete
        assert response.response_text == "I could not touch it."

    def test_completion_phrase_stops_loop(self, make_orchestrator):
        reply = tool_call_text("Echo", {"message": "x"}, prose="Final answer: here it is.")
        orchestrator, _ = make_orchestrator(
            tools=[RecordingTool()],
            replies=[reply, "Follow-up summary.", "unused"],
        )

        response = orchestrator.execute_react_cycle("alice", "Echo x")

        assert response.iterations == 1
        assert response.state == AgentState.DONE
        assert response.response_text == "Follow-up summary."

    def test_security_warnings_collected_once(self, make_orchestrator):
        reply = tool_call_text("Touch", {"message": "a.txt"}) + tool_call_text(
            "Touch", {"message": "b.txt"}
        )
        orchestrator, _ = make_orchestrator(
            tools=[RecordingModifyingTool()],
            approvals=[True, True],
            replies=[reply, "Done."],
        )

        response = orchestrator.execute_react_cycle("alice", "Touch two")

        assert response.warnings.count("This operation will modify system state") == 1

    def test_modified_files_limit_warning(self, make_orchestrator):
        orchestrator, security = make_orchestrator(
            tools=[RecordingModifyingTool()],
            approvals=[True],
            replies=[tool_call_text("Touch", {"message": "a.txt"}), "Done."],
        )
        security.update_user_settings("alice", max_modified_files=0)

        response = orchestrator.execute_react_cycle("alice", "Touch")

        assert "Modified 1 files, exceeding the limit of 0" in response.warnings

    def test_cancelled_between_calls(self, make_orchestrator):
        canceller = CancellingTool(name="Stop")
        follower = RecordingTool(name="Echo")
        reply = tool_call_text("Stop") + tool_call_text("Echo")
        orchestrator, security = make_orchestrator(tools=[canceller, follower], replies=[reply])

        response = orchestrator.execute_react_cycle("alice", "Stop then echo")

        assert response.state == AgentState.FAILED
        assert response.response_text == CANCELLED_TEXT
        assert response.errors == ["Operation cancelled"]
        assert len(response.tool_executions) == 1
        assert follower.executions == []
        assert len(security.get_audit_trail()) == 1

    def test_unexpected_error(self, make_orchestrator):
        orchestrator, _ = make_orchestrator(language_model=FailingLanguageModel(RuntimeError("kaput")))

        response = orchestrator.execute_react_cycle("alice", "Hi")

        assert response.state == AgentState.FAILED
        assert response.response_text == APOLOGY_REACT
        assert response.errors == ["ReAct cycle error: kaput"]

    def test_fallback_model_reads_file(self, make_orchestrator, temp_dir):
        """Without a model, the deterministic fallback drives a complete cycle."""
        from toolgate.tools.fs import ReadFileContentsTool

        (temp_dir / "notes.txt").write_text("alpha\nbeta\n", encoding="utf-8")
        orchestrator, _ = make_orchestrator(tools=[ReadFileContentsTool()])

        response = orchestrator.execute_react_cycle("alice", "Please read the file notes.txt")

        assert response.state == AgentState.DONE
        assert response.iterations == 2
        assert response.tool_executions[0].succeeded
        assert response.tool_executions[0].tool_result.data["lines"] == ["alpha", "beta"]
        assert response.response_text.startswith("Final answer:")


# =============================================================================
# Follow-up and helpers
# =============================================================================


class TestFollowUp:
    def test_no_results(self, make_orchestrator):
        orchestrator, _ = make_orchestrator()

        assert orchestrator.generate_follow_up_response("q", []) == NO_RESULTS_TEXT

    def test_fallback_summary(self, make_orchestrator):
        orchestrator, _ = make_orchestrator()
        results = [
            ToolExecutionResult(
                tool_call=echo_call(),
                tool_result=ToolResult.ok(None, message="Echoed"),
            )
        ]

        text = orchestrator.generate_follow_up_response("q", results)

        assert "✅ Successfully executed Echo" in text


class TestHelpers:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Final answer: 42", True),
            ("In conclusion, it works.", True),
            ("I HAVE COMPLETED the task", True),
            ("Let me check one more thing.", False),
        ],
    )
    def test_completion_phrases(self, text, expected):
        assert has_completion_phrase(text) is expected

    def test_add_warning_dedupes(self):
        response = AgentResponse()

        response.add_warning("w")
        response.add_warning("w")

        assert response.warnings == ["w"]

    def test_agent_config_defaults(self):
        config = AgentConfig()

        assert config.max_iterations == 5
        assert config.client_identifier
