"""Sleep/wake state of an agent."""

from datetime import datetime, timedelta
from enum import Enum

from ..config import DEFAULT_SLEEP_MS
from ..logging_config import agent_context, get_logger
from ..models import ActionKind, ActionStatus, Agent, ThoughtType
from ..storage import IStorage
from ..tools import SLEEP_TOOL

logger = get_logger(__name__)


class WakeState(str, Enum):
    ACTIVE = "active"
    SLEEPING = "sleeping"


def wake_state(agent: Agent, now: datetime) -> WakeState:
    """SLEEPING while a wake time is set and still in the future."""
    if agent.next_wake_time is not None and agent.next_wake_time > now:
        return WakeState.SLEEPING
    return WakeState.ACTIVE


def sleep_duration_ms(parameters: dict, default: int = DEFAULT_SLEEP_MS) -> int:
    """Requested sleep length, or ``default`` if missing or not a positive integer."""
    value = parameters.get("milliseconds")
    if isinstance(value, bool):
        return default
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, int) and value > 0:
        return value
    return default


class SleepState:
    """Persists sleep directives and wake-ups for agents."""

    def __init__(self, storage: IStorage, default_ms: int = DEFAULT_SLEEP_MS):
        self._storage = storage
        self._default_ms = default_ms

    async def sleep(
        self,
        agent: Agent,
        parameters: dict,
        now: datetime,
        reason: str | None = None,
    ) -> datetime:
        """Put the agent to sleep and record the directive. Returns the wake time."""
        duration = sleep_duration_ms(parameters, self._default_ms)
        wake_at = now + timedelta(milliseconds=duration)

        await self._storage.set_wake_at(agent.id, wake_at)

        action_id = await self._storage.create_action(
            agent.id, SLEEP_TOOL, parameters, action_type=ActionKind.SLEEP
        )
        await self._storage.complete_action(
            action_id,
            ActionStatus.COMPLETED,
            {"milliseconds": duration, "wake_at": wake_at.isoformat(), "reason": reason},
        )
        await self._storage.append_thought(
            agent.id,
            ThoughtType.SYSTEM,
            f"Sleeping for {duration} ms until {wake_at.isoformat()}",
            agent.model_name,
        )

        logger.info(
            "Agent %s sleeping until %s",
            agent.id,
            wake_at.isoformat(),
            extra=agent_context(agent.id, milliseconds=duration),
        )
        return wake_at

    async def wake(self, agent: Agent) -> None:
        """Clear an elapsed wake time."""
        await self._storage.set_wake_at(agent.id, None)
        agent.next_wake_time = None
        logger.debug("Agent %s woke up", agent.id, extra=agent_context(agent.id))
