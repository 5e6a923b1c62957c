"""Plan -> execute -> synthesize pipeline behind every adapter."""

from __future__ import annotations

import inspect
import json
import time
from typing import Any, Awaitable, Callable, Optional, Union

from camille.ai.agents import PlannerAgent, SynthesizerAgent
from camille.ai.history import HistoryService
from camille.ai.models import (
    OrchestratorResponse,
    OrchestratorStatus,
    Plan,
    ProcessingStatus,
    ToolCallSummary,
    ToolExecutionResult,
)
from camille.ai.tools.base import ToolContext
from camille.ai.tools.registry import ToolRegistry
from camille.config import AppConfig
from camille.core.session import SessionManager
from camille.core.types import ClientType, MessageRole
from camille.log import get_logger
from camille.storage.models import ToolCallRecord, now_ms
from camille.storage.tool_call_repo import ToolCallRepository

logger = get_logger(__name__)

StatusCallback = Callable[[OrchestratorStatus], Union[None, Awaitable[None]]]
ChunkCallback = Callable[[str], Union[None, Awaitable[None]]]


def safe_json_dumps(value: Any) -> str:
    """Serialize for the audit log; unserializable values become their ``str``."""
    try:
        return json.dumps(value)
    except (TypeError, ValueError):
        return json.dumps(str(value))


async def _call(callback: Optional[Callable[[Any], Any]], arg: Any) -> None:
    if callback is None:
        return
    outcome = callback(arg)
    if inspect.isawaitable(outcome):
        await outcome


class Orchestrator:
    """Runs one request through the planner, the tools and the synthesizer.

    Tool failures are captured per step and never abort the request;
    planner and synthesizer failures propagate to the caller.
    """

    def __init__(
        self,
        config: AppConfig,
        tools: ToolRegistry,
        history: HistoryService,
        tool_calls: ToolCallRepository,
        sessions: SessionManager,
        planner: PlannerAgent | None = None,
        synthesizer: SynthesizerAgent | None = None,
    ):
        self._config = config
        self._tools = tools
        self._history = history
        self._tool_calls = tool_calls
        self._sessions = sessions
        self._planner = planner or PlannerAgent(config)
        self._synthesizer = synthesizer or SynthesizerAgent(config)

    async def create_session(
        self, client_type: ClientType = ClientType.IPC, client_id: str | None = None
    ) -> str:
        return await self._sessions.create(client_type, client_id)

    async def ensure_session(
        self, session_id: str, client_type: ClientType, client_id: str | None = None
    ) -> None:
        await self._sessions.ensure(session_id, client_type, client_id)

    async def process_message(
        self,
        text: str,
        session_id: str,
        on_status: Optional[StatusCallback] = None,
        on_chunk: Optional[ChunkCallback] = None,
    ) -> OrchestratorResponse:
        context = ToolContext(session_id=session_id, agent_home=self._config.llm.provider)

        # Read before appending so the new message is not duplicated in context.
        history = await self._history.get_recent(session_id)
        user_message_at = now_ms()
        await self._history.append(session_id, MessageRole.USER, text, user_message_at)

        await _call(on_status, OrchestratorStatus(ProcessingStatus.PLANNING))
        logger.debug("planning", session_id=session_id, input=text[:100])
        plan = await self._planner.run(text, self._tools.describe_all(), history)
        logger.debug(
            "plan_received",
            session_id=session_id,
            requires_tools=plan.requires_tools,
            steps=len(plan.steps),
            reasoning=plan.reasoning,
        )

        results: list[ToolExecutionResult] = []
        if plan.requires_tools and plan.steps:
            results = await self._execute_plan(plan, context, on_status)

        await _call(on_status, OrchestratorStatus(ProcessingStatus.SYNTHESIZING))

        async def _relay(chunk: str) -> None:
            await _call(on_status, OrchestratorStatus(ProcessingStatus.STREAMING, chunk=chunk))
            await _call(on_chunk, chunk)

        answer = await self._synthesizer.run(text, results, history, on_chunk=_relay)

        await self._history.append(
            session_id,
            MessageRole.ASSISTANT,
            answer,
            max(now_ms(), user_message_at + 1),
        )
        await _call(on_status, OrchestratorStatus(ProcessingStatus.DONE))

        if not (plan.requires_tools and plan.steps):
            return OrchestratorResponse(text=answer)

        # Results are positional: result i came from step i.
        return OrchestratorResponse(
            text=answer,
            tool_calls=[
                ToolCallSummary(
                    tool=result.tool,
                    input=step.input,
                    result=result.result,
                    error=result.error,
                )
                for step, result in zip(plan.steps, results)
            ],
        )

    async def _execute_plan(
        self,
        plan: Plan,
        context: ToolContext,
        on_status: Optional[StatusCallback],
    ) -> list[ToolExecutionResult]:
        """Run up to ``max_tool_calls`` steps in order; extra steps are dropped."""
        max_calls = self._config.effective_max_tool_calls
        if len(plan.steps) > max_calls:
            logger.info("plan_truncated", planned=len(plan.steps), max_tool_calls=max_calls)

        results: list[ToolExecutionResult] = []
        for step in plan.steps[:max_calls]:
            await _call(
                on_status, OrchestratorStatus(ProcessingStatus.EXECUTING_TOOL, tool=step.tool)
            )
            serialized_input = safe_json_dumps(step.input)

            tool = self._tools.get(step.tool)
            if tool is None:
                error = f'Tool "{step.tool}" not found'
                logger.warning("tool_not_found", tool=step.tool)
                results.append(ToolExecutionResult(tool=step.tool, error=error))
                await self._tool_calls.insert(
                    ToolCallRecord(
                        session_id=context.session_id,
                        tool_name=step.tool,
                        input=serialized_input,
                        error=error,
                    )
                )
                continue

            started = time.monotonic()
            try:
                output = await tool.execute(step.input, context)
            except Exception as e:
                duration_ms = int((time.monotonic() - started) * 1000)
                error = str(e) or type(e).__name__
                logger.error("tool_failed", tool=step.tool, error=error, duration_ms=duration_ms)
                results.append(ToolExecutionResult(tool=step.tool, error=error))
                await self._tool_calls.insert(
                    ToolCallRecord(
                        session_id=context.session_id,
                        tool_name=step.tool,
                        input=serialized_input,
                        error=error,
                        duration_ms=duration_ms,
                    )
                )
                continue

            duration_ms = int((time.monotonic() - started) * 1000)
            logger.info("tool_executed", tool=step.tool, duration_ms=duration_ms)
            results.append(ToolExecutionResult(tool=step.tool, result=output))
            await self._tool_calls.insert(
                ToolCallRecord(
                    session_id=context.session_id,
                    tool_name=step.tool,
                    input=serialized_input,
                    output=safe_json_dumps(output),
                    duration_ms=duration_ms,
                )
            )

        return results
