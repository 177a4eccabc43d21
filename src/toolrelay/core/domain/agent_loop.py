"""
Agent Loop Controller

Drives one conversation through the cycle

    idle -> awaiting_model -> (dispatching -> awaiting_model)* -> done | aborted

Each model call is one iteration. Before every model call the loop checks,
in order: cancellation, the iteration cap, the wall-clock cap. It then
compresses older turns out of the prompt window when the window has grown
past ``compression_threshold``.

Every turn (user message, assistant reply, tool results, continuation nudge)
is appended to the conversation store before the loop moves on, so an
interrupted run leaves a consistent prefix that can be resumed.
"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog

from toolrelay.core.domain.enums import GenerationMode, LoopPhase
from toolrelay.core.domain.errors import (
    BudgetExceededError,
    CancelledError,
    NoContentError,
    ProviderError,
    ToolrelayError,
)
from toolrelay.core.domain.loop_components.context_compressor import (
    ContextCompressor,
    compression_boundary,
    merge_resources,
)
from toolrelay.core.domain.loop_components.prompt_builder import LoopPromptBuilder
from toolrelay.core.domain.loop_components.tool_dispatcher import (
    ToolDispatcher,
    summarize_results,
)
from toolrelay.core.domain.models import (
    LoopBudget,
    LoopResult,
    LoopState,
    Message,
    StructuredResponse,
)
from toolrelay.core.domain.response_parser import ResponseRecoveryParser
from toolrelay.core.interfaces.conversation import ConversationStoreProtocol
from toolrelay.core.interfaces.llm import LLMProviderProtocol
from toolrelay.core.interfaces.logging import LoggerProtocol
from toolrelay.core.interfaces.tools import ToolServerRegistryProtocol
from toolrelay.core.prompts.loop_prompts import (
    AGENT_LOOP_KERNEL_PROMPT,
    CONTINUATION_NUDGE,
    SUMMARY_TURN_TEMPLATE,
)


class AgentLoop:
    """
    Agent loop controller with structured-output tool calling.

    Collaborators are injected; only ``llm_provider``, ``registry`` and
    ``store`` are required; parser, dispatcher and compressor default to the
    standard implementations.
    """

    DEFAULT_COMPRESSION_THRESHOLD = 20
    DEFAULT_KEEP_RECENT_MESSAGES = 6

    def __init__(
        self,
        *,
        llm_provider: LLMProviderProtocol,
        registry: ToolServerRegistryProtocol,
        store: ConversationStoreProtocol,
        parser: ResponseRecoveryParser | None = None,
        dispatcher: ToolDispatcher | None = None,
        compressor: ContextCompressor | None = None,
        system_prompt: str | None = None,
        compression_threshold: int | None = None,
        keep_recent_messages: int | None = None,
        default_budget: LoopBudget | None = None,
        logger: LoggerProtocol | None = None,
    ) -> None:
        """
        Initialize the loop with injected dependencies.

        Args:
            llm_provider: Provider adapter producing raw model text.
            registry: Tool server registry used for the tool catalog and dispatch.
            store: Append-only conversation store.
            parser: Response recovery parser.
            dispatcher: Tool dispatcher (defaults to one over ``registry``).
            compressor: Context compressor (defaults to one over ``llm_provider``).
            system_prompt: Base instructions; defaults to ``AGENT_LOOP_KERNEL_PROMPT``.
            compression_threshold: Window size (in messages) that triggers compression.
            keep_recent_messages: Messages kept verbatim after compression.
            default_budget: Budget used when ``run`` receives none.
        """
        self._llm_provider = llm_provider
        self._registry = registry
        self._store = store
        self._logger = logger or structlog.get_logger(__name__).bind(component="agent_loop")
        self._parser = parser or ResponseRecoveryParser()
        self._dispatcher = dispatcher or ToolDispatcher(registry=registry)
        self._compressor = compressor or ContextCompressor(llm_provider=llm_provider)
        self._prompt_builder = LoopPromptBuilder(
            base_system_prompt=system_prompt or AGENT_LOOP_KERNEL_PROMPT,
            registry=registry,
            dispatcher=self._dispatcher,
        )
        self._compression_threshold = (
            compression_threshold or self.DEFAULT_COMPRESSION_THRESHOLD
        )
        self._keep_recent_messages = (
            keep_recent_messages or self.DEFAULT_KEEP_RECENT_MESSAGES
        )
        self._default_budget = default_budget or LoopBudget()

    async def run(
        self,
        conversation_id: str,
        user_message: str,
        budget: LoopBudget | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> LoopResult:
        """
        Run the loop for one user request.

        Args:
            conversation_id: Conversation to load and append to.
            user_message: The new user request.
            budget: Caps for this run (defaults to the loop's default budget).
            cancel_event: Cooperative cancellation signal.

        Returns:
            LoopResult with the final content and run counters.

        Raises:
            ProviderError: Provider transport or auth failure.
            NoContentError: The model returned nothing usable.
            BudgetExceededError: Iteration or wall-clock cap reached.
            CancelledError: ``cancel_event`` was set.
        """
        budget = budget or self._default_budget
        history = await self._store.load(conversation_id)
        state = LoopState(
            conversation_id=conversation_id,
            conversation=list(history),
            budget=budget,
        )
        self._logger.info(
            "loop_start",
            conversation_id=conversation_id,
            history_length=len(history),
            max_iterations=budget.max_iterations,
            max_duration_seconds=budget.max_duration_seconds,
        )
        await self._append(state, Message.user(user_message))

        while True:
            self._check_limits(state, cancel_event)
            await self._maybe_compress(state)

            self._set_phase(state, LoopPhase.AWAITING_MODEL)
            state.iteration_count += 1
            response = await self._call_model(state)

            if response.content:
                state.last_content = response.content
            await self._append(
                state, Message.assistant(response.content, list(response.tool_calls))
            )

            if response.has_tool_calls:
                await self._dispatch(state, response, cancel_event)
                continue

            if response.needs_more_work:
                self._logger.debug(
                    "loop_continue_requested",
                    conversation_id=conversation_id,
                    iteration=state.iteration_count,
                )
                await self._append(state, Message.user(CONTINUATION_NUDGE))
                continue

            self._set_phase(state, LoopPhase.DONE)
            result = LoopResult(
                conversation_id=conversation_id,
                final_content=response.content or state.last_content or "",
                iterations=state.iteration_count,
                tool_calls_executed=state.tool_calls_executed,
            )
            self._logger.info(
                "loop_complete",
                conversation_id=conversation_id,
                iterations=result.iterations,
                tool_calls_executed=result.tool_calls_executed,
                elapsed_seconds=round(state.elapsed_seconds(), 3),
            )
            return result

    async def _call_model(self, state: LoopState) -> StructuredResponse:
        messages = await self._prompt_builder.build_messages(state)
        self._logger.debug(
            "model_call",
            conversation_id=state.conversation_id,
            iteration=state.iteration_count,
            message_count=len(messages),
        )
        try:
            raw = await self._llm_provider.generate(messages, mode=GenerationMode.TOOL_CALL)
            return self._parser.parse(raw)
        except (ProviderError, NoContentError) as error:
            self._abort(state, error)
            raise

    async def _dispatch(
        self,
        state: LoopState,
        response: StructuredResponse,
        cancel_event: asyncio.Event | None,
    ) -> None:
        self._set_phase(state, LoopPhase.DISPATCHING)
        results = await self._dispatcher.execute(
            list(response.tool_calls),
            timeout=state.budget.tool_timeout_seconds,
            cancel_event=cancel_event,
        )
        state.tool_calls_executed += len(results)
        self._logger.info(
            "tool_batch_complete",
            conversation_id=state.conversation_id,
            iteration=state.iteration_count,
            **summarize_results(results),
        )
        await self._append(state, Message.tool(results))

    def _check_limits(self, state: LoopState, cancel_event: asyncio.Event | None) -> None:
        """Raise when the run must stop before the next model call."""
        if cancel_event is not None and cancel_event.is_set():
            error: ToolrelayError = CancelledError(
                "Agent loop cancelled",
                details={"iterations": state.iteration_count},
            )
            self._abort(state, error)
            raise error

        if state.iteration_count >= state.budget.max_iterations:
            error = BudgetExceededError(
                f"Iteration budget of {state.budget.max_iterations} exhausted",
                limit="max_iterations",
                iterations=state.iteration_count,
                elapsed_seconds=state.elapsed_seconds(),
                partial_content=state.last_content,
            )
            self._abort(state, error)
            raise error

        elapsed = state.elapsed_seconds()
        if elapsed > state.budget.max_duration_seconds:
            error = BudgetExceededError(
                f"Duration budget of {state.budget.max_duration_seconds:g}s exhausted",
                limit="max_duration_seconds",
                iterations=state.iteration_count,
                elapsed_seconds=elapsed,
                partial_content=state.last_content,
            )
            self._abort(state, error)
            raise error

    async def _maybe_compress(self, state: LoopState) -> None:
        """Move older turns out of the prompt window once it grows too large."""
        window_size = len(state.conversation) - state.window_start
        if window_size <= self._compression_threshold:
            return

        boundary = compression_boundary(
            state.conversation, state.window_start, self._keep_recent_messages
        )
        if boundary <= state.window_start:
            return

        to_compress = state.conversation[state.window_start : boundary]
        if state.summary:
            to_compress = [
                Message.user(SUMMARY_TURN_TEMPLATE.format(summary=state.summary)),
                *to_compress,
            ]

        extraction = await self._compressor.compress(to_compress)
        if extraction.is_empty:
            self._logger.warning(
                "context_compression_skipped",
                conversation_id=state.conversation_id,
                window_size=window_size,
            )
            return

        state.resources = merge_resources(state.resources, extraction.resources)
        if not extraction.summary:
            return

        state.summary = extraction.summary
        previous_start = state.window_start
        state.window_start = boundary
        self._logger.info(
            "context_compressed",
            conversation_id=state.conversation_id,
            compressed_messages=boundary - previous_start,
            window_size=len(state.conversation) - boundary,
            resources=len(state.resources),
        )

    async def _append(self, state: LoopState, message: Message) -> None:
        await self._store.append(state.conversation_id, message)
        state.conversation.append(message)

    def _set_phase(self, state: LoopState, phase: LoopPhase) -> None:
        self._logger.debug(
            "loop_phase",
            conversation_id=state.conversation_id,
            previous=state.phase.value,
            phase=phase.value,
            iteration=state.iteration_count,
        )
        state.phase = phase

    def _abort(self, state: LoopState, error: ToolrelayError) -> None:
        """Attach partial progress to the error and log the abort."""
        details: dict[str, Any] = error.details if error.details is not None else {}
        details.setdefault("partial_content", state.last_content)
        details.setdefault("iterations", state.iteration_count)
        error.details = details
        self._set_phase(state, LoopPhase.ABORTED)
        self._logger.warning(
            "loop_aborted",
            conversation_id=state.conversation_id,
            error_type=error.kind,
            error=str(error)[:200],
            iterations=state.iteration_count,
            elapsed_seconds=round(state.elapsed_seconds(), 3),
        )


async def run_agent_loop(
    conversation_id: str,
    user_message: str,
    *,
    llm_provider: LLMProviderProtocol,
    registry: ToolServerRegistryProtocol,
    store: ConversationStoreProtocol,
    budget: LoopBudget | None = None,
    cancel_event: asyncio.Event | None = None,
    system_prompt: str | None = None,
) -> LoopResult:
    """Build an ``AgentLoop`` with default components and run it once."""
    loop = AgentLoop(
        llm_provider=llm_provider,
        registry=registry,
        store=store,
        system_prompt=system_prompt,
    )
    return await loop.run(
        conversation_id, user_message, budget=budget, cancel_event=cancel_event
    )
