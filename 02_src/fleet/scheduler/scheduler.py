"""AgentScheduler: recurring timers, mutual exclusion and reconciliation."""

import asyncio
from functools import partial
from typing import Protocol

from ..brain import CycleOutcome
from ..config import DEFAULT_RECONCILE_INTERVAL
from ..logging_config import agent_context, get_logger
from ..models import Agent, ThoughtType
from ..storage import IStorage

logger = get_logger(__name__)


class ICycleRunner(Protocol):
    async def run_cycle(self, agent_id: str) -> CycleOutcome:
        """Run one cycle for an agent."""
        ...


class AgentScheduler:
    """Owns one recurring timer per running agent.

    Timers only *trigger* cycles. A trigger that arrives while the agent's
    previous cycle is still in flight is dropped, so cycles of one agent
    never overlap. A reconciliation loop keeps the timer map in line with
    the persisted running flags.
    """

    def __init__(
        self,
        storage: IStorage,
        runner: ICycleRunner,
        reconcile_interval: float = DEFAULT_RECONCILE_INTERVAL,
    ):
        self._storage = storage
        self._runner = runner
        self._reconcile_interval = reconcile_interval

        self._lock = asyncio.Lock()
        self._timers: dict[str, asyncio.Task] = {}  # agent_id -> timer task
        self._intervals: dict[str, float] = {}  # agent_id -> seconds
        self._in_flight: dict[str, asyncio.Task] = {}  # agent_id -> cycle task
        self._reconcile_task: asyncio.Task | None = None

    @property
    def tracked_agents(self) -> frozenset[str]:
        return frozenset(self._timers)

    def is_busy(self, agent_id: str) -> bool:
        return agent_id in self._in_flight

    # Lifecycle
    async def start(self) -> None:
        """Start the reconciliation loop. The first pass runs immediately."""
        if self._reconcile_task is not None:
            return
        logger.info("Starting AgentScheduler")
        self._reconcile_task = asyncio.create_task(self._reconcile_loop(), name="fleet-reconcile")

    async def stop(self) -> None:
        """Cancel all timers and wait for in-flight cycles to finish.

        Running flags are left as they are so the same agents come back
        on the next start.
        """
        logger.info("Stopping AgentScheduler")
        if self._reconcile_task is not None:
            self._reconcile_task.cancel()
            try:
                await self._reconcile_task
            except asyncio.CancelledError:
                pass
            self._reconcile_task = None

        async with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
            self._intervals.clear()

        for timer in timers:
            timer.cancel()
        await asyncio.gather(*timers, return_exceptions=True)

        in_flight = list(self._in_flight.values())
        if in_flight:
            logger.info("Waiting for %s in-flight cycles", len(in_flight))
            await asyncio.gather(*in_flight, return_exceptions=True)

    # Agents
    async def start_agent(self, agent_id: str) -> bool:
        """Mark the agent running, start its timer and trigger a first cycle.

        Returns False if the agent is already tracked or does not exist.
        """
        async with self._lock:
            if agent_id in self._timers:
                logger.debug("Agent %s already running", agent_id)
                return False

            agent = await self._storage.get_agent(agent_id)
            if agent is None:
                logger.warning("Cannot start unknown agent %s", agent_id)
                return False

            await self._storage.set_running(agent_id, True)
            self._schedule(agent)

        logger.info(
            "Started agent %s every %ss",
            agent_id,
            agent.frequency_seconds,
            extra=agent_context(agent_id),
        )
        await self._note(agent, f"Agent started with frequency {agent.frequency_ms} ms")
        self.trigger(agent_id)
        return True

    async def stop_agent(self, agent_id: str) -> bool:
        """Cancel the agent's timer and persist running=false.

        An in-flight cycle is not cancelled. If the write fails the timer is
        kept. Returns whether a timer was tracked.
        """
        async with self._lock:
            await self._storage.set_running(agent_id, False)
            timer = self._unschedule(agent_id)
            if timer is not None:
                timer.cancel()

        logger.info("Stopped agent %s", agent_id, extra=agent_context(agent_id))
        agent = await self._storage.get_agent(agent_id)
        if agent is not None:
            await self._note(agent, "Agent stopped")
        return timer is not None

    def trigger(self, agent_id: str) -> bool:
        """Start a cycle unless one is already in flight. Returns whether it started."""
        if agent_id in self._in_flight:
            logger.debug("Cycle for agent %s still in flight, tick skipped", agent_id)
            return False

        task = asyncio.create_task(self._run_guarded(agent_id), name=f"fleet-cycle-{agent_id}")
        self._in_flight[agent_id] = task
        task.add_done_callback(partial(self._cycle_done, agent_id))
        return True

    async def run_now(self, agent_id: str) -> CycleOutcome | None:
        """Trigger a cycle and wait for it.

        If a cycle is already in flight, waits for that one instead.
        """
        if not self.trigger(agent_id):
            logger.info("Agent %s busy, waiting for current cycle", agent_id)
        task = self._in_flight.get(agent_id)
        if task is None:
            return None
        return await asyncio.shield(task)

    # Reconciliation
    async def reconcile(self) -> None:
        """Align timers with the persisted running flags.

        The listing only picks candidates. Each one is read again under the
        lock before anything changes, so a concurrent start_agent or
        stop_agent is never undone.
        """
        agents = await self._storage.list_agents()

        candidates = list(self._timers)
        candidates += [a.id for a in agents if a.is_running and a.id not in candidates]
        for agent_id in candidates:
            await self._guard(self._reconcile_agent(agent_id), agent_id)

    async def _reconcile_agent(self, agent_id: str) -> None:
        async with self._lock:
            agent = await self._storage.get_agent(agent_id)
            tracked = agent_id in self._timers
            if agent is None:
                if tracked:
                    self._unschedule(agent_id).cancel()
                    logger.info("Agent %s deleted, timer removed", agent_id, extra=agent_context(agent_id))
                return
            if agent.is_running and not tracked:
                self._schedule(agent)
                change = "started"
            elif not agent.is_running and tracked:
                self._unschedule(agent_id).cancel()
                change = "stopped"
            elif tracked and self._intervals.get(agent_id) != agent.frequency_seconds:
                self._unschedule(agent_id).cancel()
                self._schedule(agent)
                change = "rescheduled"
            else:
                return

        if change == "started":
            logger.info("Reconcile started agent %s", agent_id, extra=agent_context(agent_id))
            await self._note(agent, f"Agent started with frequency {agent.frequency_ms} ms")
            self.trigger(agent_id)
        elif change == "stopped":
            logger.info("Reconcile stopped agent %s", agent_id, extra=agent_context(agent_id))
            await self._note(agent, "Agent stopped")
        else:
            logger.info(
                "Agent %s frequency changed to %s ms",
                agent_id,
                agent.frequency_ms,
                extra=agent_context(agent_id),
            )

    async def _reconcile_loop(self) -> None:
        while True:
            try:
                await self.reconcile()
            except Exception:
                logger.exception("Reconciliation failed")
            await asyncio.sleep(self._reconcile_interval)

    async def _guard(self, coro, agent_id: str) -> None:
        try:
            await coro
        except Exception:
            logger.exception("Reconciliation failed for agent %s", agent_id, extra=agent_context(agent_id))

    # Timers and cycles
    def _schedule(self, agent: Agent) -> None:
        """Create the timer task. Caller holds the lock."""
        interval = agent.frequency_seconds
        self._timers[agent.id] = asyncio.create_task(
            self._tick_loop(agent.id, interval), name=f"fleet-timer-{agent.id}"
        )
        self._intervals[agent.id] = interval

    def _unschedule(self, agent_id: str) -> asyncio.Task | None:
        """Remove the timer from the map. Caller holds the lock."""
        self._intervals.pop(agent_id, None)
        return self._timers.pop(agent_id, None)

    async def _tick_loop(self, agent_id: str, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            self.trigger(agent_id)

    async def _run_guarded(self, agent_id: str) -> CycleOutcome | None:
        try:
            outcome = await self._runner.run_cycle(agent_id)
        except Exception:
            logger.exception("Cycle for agent %s raised", agent_id, extra=agent_context(agent_id))
            return None
        logger.debug("Cycle for agent %s ended: %s", agent_id, outcome.value, extra=agent_context(agent_id))
        return outcome

    def _cycle_done(self, agent_id: str, task: asyncio.Task) -> None:
        if self._in_flight.get(agent_id) is task:
            del self._in_flight[agent_id]

    async def _note(self, agent: Agent, message: str) -> None:
        try:
            await self._storage.append_thought(agent.id, ThoughtType.SYSTEM, message, agent.model_name)
        except Exception:
            logger.exception("Failed to record system thought", extra=agent_context(agent.id))
