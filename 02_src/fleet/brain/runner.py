"""AgentRunner: one think-act cycle for one agent."""

import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import Callable

from ..config import DEFAULT_MODEL_TIMEOUT
from ..errors import ModelCallFailure, ParseFailure, ToolError
from ..llm import ILLMProvider
from ..logging_config import agent_context, get_logger
from ..models import Agent, ParsedAction, ThoughtType
from ..parsing import normalize_action, parse_action
from ..storage import IStorage
from ..tools import ActionDispatcher, IToolRegistry
from .context import IContextProvider, gather_context
from .prompt import SYSTEM_PROMPT, build_prompt
from .sleep import SleepState, WakeState, wake_state

logger = get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CycleOutcome(str, Enum):
    """How a cycle ended."""

    SKIPPED = "skipped"  # agent missing or not running
    SLEEPING = "sleeping"
    NO_ACTION = "no_action"
    REJECTED = "rejected"  # unparsable or disallowed action
    SLEPT = "slept"
    DISPATCHED = "dispatched"
    FAILED = "failed"


class AgentRunner:
    """Runs cycles: wake check, context, prompt, model, parse, act.

    Once an agent is past the wake check, ``run_cycle`` does not raise
    (cancellation aside): failures are written to its thought log as
    ``error`` thoughts.
    """

    def __init__(
        self,
        storage: IStorage,
        llm_provider: ILLMProvider,
        registry: IToolRegistry,
        dispatcher: ActionDispatcher,
        context_providers: list[IContextProvider] | None = None,
        clock: Callable[[], datetime] = utc_now,
        model_timeout: float | None = DEFAULT_MODEL_TIMEOUT,
        sleep_state: SleepState | None = None,
    ):
        self._storage = storage
        self._llm = llm_provider
        self._registry = registry
        self._dispatcher = dispatcher
        self._providers = context_providers or []
        self._clock = clock
        self._model_timeout = model_timeout
        self._sleep = sleep_state or SleepState(storage)

    async def run_cycle(self, agent_id: str) -> CycleOutcome:
        """Run one cycle for the agent."""
        agent = await self._storage.get_agent(agent_id)
        if agent is None or not agent.is_running:
            logger.debug("Agent %s not running, skipping cycle", agent_id)
            return CycleOutcome.SKIPPED

        now = self._clock()
        if wake_state(agent, now) is WakeState.SLEEPING:
            logger.debug(
                "Agent %s asleep until %s",
                agent_id,
                agent.next_wake_time.isoformat(),
                extra=agent_context(agent_id),
            )
            return CycleOutcome.SLEEPING

        try:
            if agent.next_wake_time is not None:
                await self._sleep.wake(agent)
            return await self._think_and_act(agent, now)
        except Exception as e:
            logger.exception("Error in cycle for agent %s", agent_id, extra=agent_context(agent_id))
            await self._record_error(agent, f"Error in agent cycle: {e}")
            return CycleOutcome.FAILED
        finally:
            await self._mark_run(agent_id)

    async def _think_and_act(self, agent: Agent, now: datetime) -> CycleOutcome:
        sections = await gather_context(self._providers, agent)
        tools = self._registry.describe(agent.tools)
        prompt = build_prompt(agent, sections, now, tools)

        await self._storage.append_thought(agent.id, ThoughtType.INPUT, prompt, agent.model_name)
        response = await self._call_model(agent, prompt)
        await self._storage.append_thought(agent.id, ThoughtType.OUTPUT, response, agent.model_name)

        try:
            action = self._interpret(agent, response, now)
        except ParseFailure as e:
            logger.warning("Rejected action from agent %s: %s", agent.id, e, extra=agent_context(agent.id))
            await self._record_error(agent, f"Could not use model response: {e}")
            return CycleOutcome.REJECTED

        if not action.is_actionable:
            logger.info("Agent %s chose no action", agent.id, extra=agent_context(agent.id))
            return CycleOutcome.NO_ACTION

        if self._is_directive(action.tool_name):
            await self._sleep.sleep(agent, action.parameters, self._clock(), reason=action.reason)
            return CycleOutcome.SLEPT

        try:
            await self._dispatcher.dispatch(agent.id, action)
        except ToolError as e:
            await self._record_error(agent, f"Tool {action.tool_name} failed: {e}")
            return CycleOutcome.FAILED

        return CycleOutcome.DISPATCHED

    def _interpret(self, agent: Agent, response: str, now: datetime) -> ParsedAction:
        """Parse, check entitlement and normalize. Raises ParseFailure."""
        action = parse_action(response)
        if not action.is_actionable:
            return action

        if action.tool_name not in agent.tools:
            raise ParseFailure(f"Tool {action.tool_name} is not enabled for this agent")

        if self._is_directive(action.tool_name):
            return action
        return normalize_action(action, self._registry.get(action.tool_name), now)

    def _is_directive(self, tool_name: str) -> bool:
        descriptor = self._registry.get(tool_name)
        return descriptor is not None and descriptor.directive

    async def _call_model(self, agent: Agent, prompt: str) -> str:
        try:
            return await asyncio.wait_for(
                self._llm.complete(prompt, model=agent.model_name, system=SYSTEM_PROMPT),
                timeout=self._model_timeout,
            )
        except asyncio.TimeoutError as e:
            raise ModelCallFailure(f"Model call timed out after {self._model_timeout}s") from e

    async def _record_error(self, agent: Agent, message: str) -> None:
        try:
            await self._storage.append_thought(agent.id, ThoughtType.ERROR, message, agent.model_name)
        except Exception:
            logger.exception("Failed to record error thought", extra=agent_context(agent.id))

    async def _mark_run(self, agent_id: str) -> None:
        try:
            await self._storage.set_last_run(agent_id, self._clock())
        except Exception:
            logger.exception("Failed to update last run", extra=agent_context(agent_id))
