"""
Agent orchestrator for toolgate.

The orchestrator connects a language model to the tool registry through the
security manager. It runs a bounded ReAct cycle:

1. Reasoning: prompt the model with the query, the authorized tools, the
   transcript so far and the observed tool results
2. Acting: parse tool-call directives out of the reply and execute them
   one by one, in the order they appear
3. Observing: stop on a completion phrase or a security/permission
   denial, otherwise loop

Design Principles:
    - Model output is untrusted: every call is validated, security-checked,
      approved and backed up as required before the tool body runs
    - Sequential execution: calls run in text order, never in parallel
    - Every attempt is audited, including short-circuited ones
    - Failures degrade to a coherent AgentResponse; nothing propagates
    - No per-query state on the orchestrator: concurrent queries are safe
"""

import logging
import socket
import threading
import time
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum

from toolgate.agent.prompts import (
    build_follow_up_prompt,
    build_initial_prompt,
    build_react_prompt,
    build_tools_prompt,
    extract_reasoning,
    format_observations,
)
from toolgate.agent.protocol import parse_tool_calls, strip_tool_markup
from toolgate.errors import (
    NON_RECOVERABLE_KINDS,
    ApprovalDeniedError,
    BackupError,
    ErrorKind,
    LLMError,
    OperationCancelledError,
    PermissionDeniedError,
    SecurityError,
    SecurityViolationError,
    ToolNotFoundError,
)
from toolgate.llm.base import ContextRetriever, LanguageModel
from toolgate.llm.fallback import DeterministicFallbackModel
from toolgate.schema import (
    SecurityCheckResult,
    ToolApprovalResult,
    ToolBackupInfo,
    ToolCall,
    ToolExecutionAuditEntry,
)
from toolgate.security.manager import SecurityManager
from toolgate.tools.base import Tool, ToolExecutionContext, ToolResult
from toolgate.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

COMPLETION_PHRASES = (
    "i have completed",
    "task is complete",
    "no further actions needed",
    "that concludes",
    "final answer:",
    "in conclusion",
    "to summarize",
)

APOLOGY_SINGLE_PASS = (
    "I apologize, but I encountered an error processing your request. Please try again."
)
APOLOGY_REACT = "I encountered an error during the reasoning cycle. Please try again."
CANCELLED_TEXT = "The operation was cancelled before it could complete."
NO_ITERATIONS_TEXT = (
    "No reasoning iterations were allowed for this request, so no tools were run."
)
NO_RESULTS_TEXT = "No tools were executed for this request."


class AgentState(str, Enum):
    """Phases of the ReAct state machine."""

    IDLE = "idle"
    REASONING = "reasoning"
    ACTING = "acting"
    OBSERVING = "observing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class AgentConfig:
    """
    Configuration for the orchestrator.

    Attributes:
        max_iterations: Default ReAct iteration bound
        working_directory: Base directory handed to tools
        tool_timeout_seconds: Timeout passed to each tool execution
        client_identifier: Recorded in every audit entry
    """

    max_iterations: int = 5
    working_directory: str = "."
    tool_timeout_seconds: float = 300.0
    client_identifier: str = field(default_factory=socket.gethostname)


@dataclass
class ToolExecutionResult:
    """
    Audit-ready record of one tool-call attempt.

    Attributes:
        tool_call: The directive that was executed
        tool_result: What happened (a failure if any step short-circuited)
        required_approval: Whether the tool needed human approval
        approval_result: The approval decision, if one was requested
        security_result: The security check, if it was reached
        backup_info: The backup taken before execution, if any
        failure_kind: Which step stopped the call, None on success
    """

    tool_call: ToolCall
    tool_result: ToolResult
    required_approval: bool = False
    approval_result: ToolApprovalResult | None = None
    security_result: SecurityCheckResult | None = None
    backup_info: ToolBackupInfo | None = None
    failure_kind: ErrorKind | None = None

    @property
    def succeeded(self) -> bool:
        return self.tool_result.success


@dataclass
class AgentResponse:
    """
    The orchestrator's answer to one user turn.

    Attributes:
        response_text: Final user-facing text
        tool_executions: Every attempted call, in execution order
        is_complete: True only with no errors and every call successful
        errors: Failure descriptions
        warnings: Non-blocking concerns
        processing_time: Wall-clock seconds
        iterations: Model calls made in the reasoning loop
        reasoning: Reasoning extracted from each model reply
        state: Terminal AgentState
    """

    response_text: str = ""
    tool_executions: list[ToolExecutionResult] = field(default_factory=list)
    is_complete: bool = False
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    processing_time: float = 0.0
    iterations: int = 0
    reasoning: list[str] = field(default_factory=list)
    state: AgentState = AgentState.IDLE

    def add_warning(self, warning: str) -> None:
        if warning not in self.warnings:
            self.warnings.append(warning)

    def finalize(self, start: float) -> "AgentResponse":
        self.is_complete = not self.errors and all(
            r.tool_result.success for r in self.tool_executions
        )
        self.processing_time = time.perf_counter() - start
        return self


def has_completion_phrase(text: str) -> bool:
    """Whether model text declares the task finished."""
    lowered = text.lower()
    return any(phrase in lowered for phrase in COMPLETION_PHRASES)


def _security_error(kind: ErrorKind, reason: str, user_id: str, tool: str) -> SecurityError:
    if kind == ErrorKind.SECURITY_VIOLATION:
        return SecurityViolationError(message=reason, user_id=user_id, tool=tool)
    return PermissionDeniedError(message=reason, user_id=user_id, tool=tool)


class AgentOrchestrator:
    """
    Drives tool-using conversations with a language model.

    Usage:
        orchestrator = AgentOrchestrator(registry, security)
        response = orchestrator.execute_react_cycle("alice", "Read notes.txt")

    Attributes:
        registry: Catalog of tools
        security: Gatekeeper for every call
        language_model: Preferred model (None uses the fallback)
        fallback_model: Deterministic model used when no other is available
        context_retriever: Optional background-text provider
        config: Iteration bound, working directory, timeouts
    """

    def __init__(
        self,
        registry: ToolRegistry,
        security: SecurityManager,
        language_model: LanguageModel | None = None,
        context_retriever: ContextRetriever | None = None,
        config: AgentConfig | None = None,
    ) -> None:
        if registry is None or security is None:
            msg = "registry and security are required"
            raise ValueError(msg)
        self.registry = registry
        self.security = security
        self.language_model = language_model
        self.fallback_model = DeterministicFallbackModel()
        self.context_retriever = context_retriever
        self.config = config or AgentConfig()

    def register_language_model(self, model: LanguageModel) -> None:
        if model is None:
            msg = "Language model cannot be None"
            raise ValueError(msg)
        self.language_model = model

    def register_context_retriever(self, retriever: ContextRetriever | None) -> None:
        self.context_retriever = retriever

    # =========================================================================
    # Public API
    # =========================================================================

    def get_available_tools_prompt(self, user_id: str) -> str:
        """Prompt section advertising the tools the user's level can see."""
        level = self.security.get_user_permission_level(user_id)
        return build_tools_prompt(self.registry, self.registry.authorized_tools(level))

    def parse_tool_calls(self, text: str) -> list[ToolCall]:
        return parse_tool_calls(text)

    def process_query(
        self,
        user_id: str,
        query: str,
        cancel_event: threading.Event | None = None,
    ) -> AgentResponse:
        """
        Single pass: one prompt, one round of tool calls, one summary.

        Returns:
            AgentResponse; never raises
        """
        start = time.perf_counter()
        cancel_event = cancel_event or threading.Event()
        response = AgentResponse()
        logger.info("Processing query for %s", user_id)

        try:
            response.state = AgentState.REASONING
            prompt = build_initial_prompt(
                query, self.get_available_tools_prompt(user_id), self._context_for(query)
            )
            text = self._generate(prompt, cancel_event)
            response.iterations = 1
            response.reasoning.append(extract_reasoning(text))

            calls = self.parse_tool_calls(text)
            if calls:
                response.state = AgentState.ACTING
                self._execute_calls(user_id, calls, response, cancel_event)
                response.state = AgentState.OBSERVING
                response.response_text = self._follow_up(query, response, cancel_event)
            else:
                response.response_text = strip_tool_markup(text)
            response.state = AgentState.DONE
        except OperationCancelledError:
            self._mark_cancelled(response)
        except Exception as e:
            logger.exception("Query processing failed")
            response.errors.append(f"Unexpected error: {e}")
            response.response_text = APOLOGY_SINGLE_PASS
            response.state = AgentState.FAILED

        return response.finalize(start)

    def execute_react_cycle(
        self,
        user_id: str,
        query: str,
        max_iterations: int | None = None,
        cancel_event: threading.Event | None = None,
    ) -> AgentResponse:
        """
        Run the bounded Reasoning -> Acting -> Observing loop.

        Args:
            user_id: The user on whose behalf tools run
            query: The user's request
            max_iterations: Iteration bound (default from config); <= 0
                returns immediately without model or tool calls
            cancel_event: Checked before every model call and tool call

        Returns:
            AgentResponse; never raises
        """
        start = time.perf_counter()
        cancel_event = cancel_event or threading.Event()
        if max_iterations is None:
            max_iterations = self.config.max_iterations
        response = AgentResponse()

        if max_iterations <= 0:
            response.response_text = NO_ITERATIONS_TEXT
            response.state = AgentState.DONE
            return response.finalize(start)

        logger.info("Starting ReAct cycle for %s (max %d iterations)", user_id, max_iterations)
        try:
            tools_prompt = self.get_available_tools_prompt(user_id)
            context = self._context_for(query)
            transcript: list[str] = []
            stopped_by_denial = False
            exhausted = True

            for iteration in range(max_iterations):
                response.state = AgentState.REASONING
                prompt = build_react_prompt(
                    query,
                    tools_prompt,
                    transcript,
                    iteration,
                    observations=format_observations(response.tool_executions),
                    context=context,
                )
                text = self._generate(prompt, cancel_event)
                response.iterations += 1
                transcript.append(text)
                response.reasoning.append(extract_reasoning(text))

                calls = self.parse_tool_calls(text)
                if not calls:
                    response.response_text = strip_tool_markup(text)
                    exhausted = False
                    break

                response.state = AgentState.ACTING
                executed = self._execute_calls(user_id, calls, response, cancel_event)

                response.state = AgentState.OBSERVING
                if any(r.failure_kind in NON_RECOVERABLE_KINDS for r in executed):
                    logger.warning("Stopping ReAct cycle after a security denial")
                    stopped_by_denial = True
                    exhausted = False
                    break
                if has_completion_phrase(text):
                    exhausted = False
                    break

            if exhausted:
                response.add_warning(f"Reached maximum iterations ({max_iterations})")

            if not response.response_text:
                response.response_text = self._follow_up(query, response, cancel_event)

            response.state = (
                AgentState.FAILED if exhausted or stopped_by_denial else AgentState.DONE
            )
        except OperationCancelledError:
            self._mark_cancelled(response)
        except Exception as e:
            logger.exception("ReAct cycle failed")
            response.errors.append(f"ReAct cycle error: {e}")
            response.response_text = APOLOGY_REACT
            response.state = AgentState.FAILED

        logger.info(
            "ReAct cycle finished in state %s after %d iteration(s)",
            response.state.value,
            response.iterations,
        )
        return response.finalize(start)

    def generate_follow_up_response(
        self,
        query: str,
        results: list[ToolExecutionResult],
        cancel_event: threading.Event | None = None,
    ) -> str:
        """
        Final answer built from tool results.

        Uses the language model when one is available, otherwise (or if the
        model fails) the deterministic summary.
        """
        if not results:
            return NO_RESULTS_TEXT

        model = self._active_model()
        if model is self.fallback_model:
            return self.fallback_model.summarize(results)

        try:
            return model.generate(build_follow_up_prompt(query, results), cancel_event)
        except LLMError as e:
            logger.warning("Follow-up generation failed, using summary: %s", e.message)
            return self.fallback_model.summarize(results)

    def execute_tool_call(
        self,
        user_id: str,
        call: ToolCall,
        cancel_event: threading.Event | None = None,
    ) -> ToolExecutionResult:
        """
        Run one call through the full pipeline and audit it.

        Pipeline: lookup, parameter validation, security check, approval
        (if required), backup (if modifying), execution. The first failing
        step short-circuits the call. Exactly one audit entry is written.

        Returns:
            ToolExecutionResult; expected failures never raise
        """
        cancel_event = cancel_event or threading.Event()
        start = time.perf_counter()
        result = ToolExecutionResult(
            tool_call=call,
            tool_result=ToolResult.fail("Tool was not executed"),
        )

        try:
            self._run_pipeline(user_id, call, result, cancel_event)
        except BackupError as e:
            result.tool_result = ToolResult.fail(f"Backup failed: {e.message}", exception=e)
            result.failure_kind = ErrorKind.EXECUTION_FAILURE
        except Exception as e:
            logger.exception("Tool call %s raised", call.tool_name)
            result.tool_result = ToolResult.fail(f"Execution error: {e}", exception=e)
            result.failure_kind = ErrorKind.EXECUTION_FAILURE

        elapsed = time.perf_counter() - start
        result.tool_result = result.tool_result.with_execution_time(elapsed)
        if not result.tool_result.success and result.failure_kind is None:
            result.failure_kind = ErrorKind.EXECUTION_FAILURE

        self._audit(user_id, result, elapsed)
        if result.tool_result.success:
            logger.info("Tool %s succeeded for %s", call.tool_name, user_id)
        else:
            logger.warning(
                "Tool %s failed for %s (%s): %s",
                call.tool_name,
                user_id,
                result.failure_kind.value,
                result.tool_result.error_message,
            )
        return result

    # =========================================================================
    # Internals
    # =========================================================================

    def _run_pipeline(
        self,
        user_id: str,
        call: ToolCall,
        result: ToolExecutionResult,
        cancel_event: threading.Event,
    ) -> None:
        """Fill in `result` step by step, returning at the first failure."""
        tool = self.registry.get(call.tool_name)
        if tool is None:
            self._fail(
                result,
                f"Unknown tool: {call.tool_name}",
                ErrorKind.UNKNOWN_TOOL,
                ToolNotFoundError(tool=call.tool_name),
            )
            return

        validation = tool.validate_parameters(call.parameters)
        if not validation.is_valid:
            self._fail(
                result,
                f"Parameter validation failed: {', '.join(validation.errors)}",
                ErrorKind.VALIDATION,
            )
            return

        check = self.security.validate_execution(user_id, tool, call.parameters)
        result.security_result = check
        if not check.is_allowed:
            kind = ErrorKind(check.denial_kind) if check.denial_kind else ErrorKind.PERMISSION_DENIED
            self._fail(
                result,
                f"Security check failed: {check.denial_reason}",
                kind,
                _security_error(kind, check.denial_reason or "", user_id, tool.name),
            )
            return

        approval: ToolApprovalResult | None = None
        if tool.requires_approval:
            result.required_approval = True
            approval = self.security.request_approval(user_id, tool, call.parameters)
            result.approval_result = approval
            if not approval.is_approved:
                self._fail(
                    result,
                    f"User approval denied: {approval.user_comments}",
                    ErrorKind.APPROVAL_DENIED,
                    ApprovalDeniedError(
                        user_id=user_id, tool=tool.name, comments=approval.user_comments
                    ),
                )
                return

        if cancel_event.is_set():
            self._fail(result, "Operation cancelled", ErrorKind.CANCELLED)
            return

        if tool.is_modifying and self.security.get_user_settings(user_id).auto_create_backups:
            result.backup_info = self.security.create_backup(
                tool, call.parameters, user_id=user_id
            )

        result.tool_result = self._execute_tool(tool, user_id, call, approval, cancel_event)
        if result.backup_info is not None:
            result.tool_result = result.tool_result.with_backup(result.backup_info)

    def _execute_tool(
        self,
        tool: Tool,
        user_id: str,
        call: ToolCall,
        approval: ToolApprovalResult | None,
        cancel_event: threading.Event,
    ) -> ToolResult:
        context = ToolExecutionContext(
            parameters=dict(call.parameters),
            user_id=user_id,
            execution_id=call.id,
            approval_granted=approval is not None and approval.is_approved,
            working_directory=self.config.working_directory,
            timeout=self.config.tool_timeout_seconds,
            cancel_event=cancel_event,
        )
        logger.debug("Executing %s: %s", tool.name, tool.get_execution_preview(call.parameters))
        return tool.execute(context)

    @staticmethod
    def _fail(
        result: ToolExecutionResult,
        message: str,
        kind: ErrorKind,
        exception: BaseException | None = None,
    ) -> None:
        result.tool_result = ToolResult.fail(message, exception=exception)
        result.failure_kind = kind

    def _audit(self, user_id: str, result: ToolExecutionResult, elapsed: float) -> None:
        tool_result = result.tool_result
        self.security.log_execution(
            ToolExecutionAuditEntry(
                user_id=user_id,
                tool_name=result.tool_call.tool_name,
                parameters=result.tool_call.parameters,
                execution_result=(
                    "Success" if tool_result.success else tool_result.error_message or "Failed"
                ),
                is_success=tool_result.success,
                duration=timedelta(seconds=elapsed),
                modified_files=tool_result.modified_files,
                backup_id=result.backup_info.backup_id if result.backup_info else None,
                client_identifier=self.config.client_identifier,
                required_approval=result.required_approval,
                approval_id=(
                    result.approval_result.approval_id if result.approval_result else None
                ),
            )
        )

    def _execute_calls(
        self,
        user_id: str,
        calls: list[ToolCall],
        response: AgentResponse,
        cancel_event: threading.Event,
    ) -> list[ToolExecutionResult]:
        """Execute calls in order, recording results, errors and warnings."""
        executed: list[ToolExecutionResult] = []
        for call in calls:
            if cancel_event.is_set():
                raise OperationCancelledError()

            result = self.execute_tool_call(user_id, call, cancel_event)
            executed.append(result)
            response.tool_executions.append(result)

            if not result.tool_result.success:
                response.errors.append(
                    f"Tool {call.tool_name} failed: {result.tool_result.error_message}"
                )
            if result.security_result is not None:
                for warning in result.security_result.warnings:
                    response.add_warning(warning)

        self._check_modified_files(user_id, response)
        return executed

    def _check_modified_files(self, user_id: str, response: AgentResponse) -> None:
        limit = self.security.get_user_settings(user_id).max_modified_files
        modified = {
            path for r in response.tool_executions for path in r.tool_result.modified_files
        }
        if len(modified) > limit:
            response.add_warning(
                f"Modified {len(modified)} files, exceeding the limit of {limit}"
            )

    def _active_model(self) -> LanguageModel:
        model = self.language_model
        if model is not None and model.is_available:
            return model
        return self.fallback_model

    def _generate(self, prompt: str, cancel_event: threading.Event) -> str:
        if cancel_event.is_set():
            raise OperationCancelledError()
        model = self._active_model()
        logger.debug("Prompting %s:\n%s", model.get_name(), prompt)
        return model.generate(prompt, cancel_event)

    def _follow_up(
        self, query: str, response: AgentResponse, cancel_event: threading.Event
    ) -> str:
        if cancel_event.is_set():
            raise OperationCancelledError()
        return self.generate_follow_up_response(query, response.tool_executions, cancel_event)

    def _context_for(self, query: str) -> str:
        if self.context_retriever is None:
            return ""
        return self.context_retriever.retrieve(query)

    @staticmethod
    def _mark_cancelled(response: AgentResponse) -> None:
        logger.warning("Query cancelled")
        response.errors.append("Operation cancelled")
        response.response_text = CANCELLED_TEXT
        response.state = AgentState.FAILED
