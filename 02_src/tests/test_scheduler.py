"""Tests for AgentScheduler."""

import asyncio
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from fleet.brain import CycleOutcome
from fleet.models import ThoughtType
from fleet.scheduler import AgentScheduler


class FakeRunner:
    """Records cycles; optionally blocks until released."""

    def __init__(self, gated=False, error=None):
        self.calls: list[str] = []
        self.finished: list[str] = []
        self.gate = asyncio.Event()
        self.error = error
        if not gated:
            self.gate.set()

    async def run_cycle(self, agent_id):
        self.calls.append(agent_id)
        await self.gate.wait()
        if self.error:
            raise self.error
        self.finished.append(agent_id)
        return CycleOutcome.NO_ACTION


async def _settle():
    await asyncio.sleep(0.01)


def _live_timers(agent_id):
    return [
        t for t in asyncio.all_tasks() if t.get_name() == f"fleet-timer-{agent_id}" and not t.done()
    ]


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest_asyncio.fixture
async def scheduler(storage, fake_runner):
    sched = AgentScheduler(storage, fake_runner, reconcile_interval=0.05)
    yield sched
    await sched.stop()


class TestStartStop:
    """Tests for start_agent() and stop_agent()."""

    @pytest.mark.asyncio
    async def test_start_agent(self, scheduler, storage, make_agent, fake_runner):
        """Test running flag, timer, system thought and immediate cycle."""
        agent = await make_agent(is_running=False)

        assert await scheduler.start_agent(agent.id) is True
        await _settle()

        assert (await storage.get_agent(agent.id)).is_running
        assert scheduler.tracked_agents == {agent.id}
        assert fake_runner.calls == [agent.id]
        thoughts = await storage.get_thoughts(agent.id, [ThoughtType.SYSTEM])
        assert len(thoughts) == 1
        assert "started" in thoughts[0].content

    @pytest.mark.asyncio
    async def test_double_start_single_timer(self, scheduler, storage, make_agent):
        """Test that two rapid starts create one timer."""
        agent = await make_agent(is_running=False)

        results = await asyncio.gather(
            scheduler.start_agent(agent.id),
            scheduler.start_agent(agent.id),
        )

        assert sorted(results) == [False, True]
        assert scheduler.tracked_agents == {agent.id}
        assert len(await storage.get_thoughts(agent.id, [ThoughtType.SYSTEM])) == 1

    @pytest.mark.asyncio
    async def test_start_unknown_agent(self, scheduler):
        """Test that unknown ids are ignored."""
        assert await scheduler.start_agent("ghost") is False
        assert scheduler.tracked_agents == frozenset()

    @pytest.mark.asyncio
    async def test_stop_agent(self, scheduler, storage, make_agent):
        """Test timer removal, running flag and system thought."""
        agent = await make_agent(is_running=False)
        await scheduler.start_agent(agent.id)

        assert await scheduler.stop_agent(agent.id) is True

        assert scheduler.tracked_agents == frozenset()
        assert not (await storage.get_agent(agent.id)).is_running
        contents = [t.content for t in await storage.get_thoughts(agent.id, [ThoughtType.SYSTEM])]
        assert "Agent stopped" in contents

    @pytest.mark.asyncio
    async def test_stop_untracked_agent(self, scheduler, storage, make_agent):
        """Test that stopping an idle agent still persists the flag."""
        agent = await make_agent(is_running=True)

        assert await scheduler.stop_agent(agent.id) is False
        assert not (await storage.get_agent(agent.id)).is_running

    @pytest.mark.asyncio
    async def test_stop_does_not_cancel_in_flight_cycle(self, storage, make_agent):
        """Test that a running cycle finishes after stop_agent."""
        runner = FakeRunner(gated=True)
        sched = AgentScheduler(storage, runner)
        agent = await make_agent(is_running=False)

        await sched.start_agent(agent.id)
        await _settle()
        await sched.stop_agent(agent.id)
        assert sched.is_busy(agent.id)

        runner.gate.set()
        await sched.stop()

        assert runner.finished == [agent.id]

    @pytest.mark.asyncio
    async def test_failed_stop_keeps_single_timer(self, scheduler, storage, make_agent, monkeypatch):
        """Test that a failed running-flag write leaves the timer tracked, not orphaned."""
        agent = await make_agent(is_running=False)
        await scheduler.start_agent(agent.id)
        timer = scheduler._timers[agent.id]

        monkeypatch.setattr(storage, "set_running", AsyncMock(side_effect=RuntimeError("disk full")))
        with pytest.raises(RuntimeError):
            await scheduler.stop_agent(agent.id)

        assert scheduler.tracked_agents == {agent.id}
        assert scheduler._timers[agent.id] is timer
        assert not timer.done()

        monkeypatch.undo()
        await scheduler.reconcile()

        assert _live_timers(agent.id) == [timer]


class TestMutualExclusion:
    """Tests for coalescing overlapping ticks."""

    @pytest.mark.asyncio
    async def test_trigger_while_in_flight_is_skipped(self, storage, make_agent):
        """Test that a second trigger is coalesced."""
        runner = FakeRunner(gated=True)
        sched = AgentScheduler(storage, runner)
        agent = await make_agent()

        assert sched.trigger(agent.id) is True
        await _settle()
        assert sched.trigger(agent.id) is False

        runner.gate.set()
        await _settle()
        assert runner.calls == [agent.id]
        assert not sched.is_busy(agent.id)

        assert sched.trigger(agent.id) is True
        await sched.stop()
        assert len(runner.calls) == 2

    @pytest.mark.asyncio
    async def test_fast_timer_never_overlaps(self, storage, make_agent):
        """Test that ticks during a long cycle are dropped."""
        runner = FakeRunner(gated=True)
        sched = AgentScheduler(storage, runner)
        agent = await make_agent(is_running=False, frequency_ms=10)

        await sched.start_agent(agent.id)
        await asyncio.sleep(0.1)

        assert runner.calls == [agent.id]

        runner.gate.set()
        await sched.stop()

    @pytest.mark.asyncio
    async def test_timer_fires_repeatedly(self, scheduler, make_agent, fake_runner):
        """Test the recurring timer."""
        agent = await make_agent(is_running=False, frequency_ms=20)

        await scheduler.start_agent(agent.id)
        await asyncio.sleep(0.15)

        assert len(fake_runner.calls) >= 3


class TestRunNow:
    """Tests for run_now()."""

    @pytest.mark.asyncio
    async def test_run_now_returns_outcome(self, scheduler, make_agent, fake_runner):
        """Test an operator-triggered cycle."""
        agent = await make_agent()

        assert await scheduler.run_now(agent.id) is CycleOutcome.NO_ACTION
        assert fake_runner.calls == [agent.id]

    @pytest.mark.asyncio
    async def test_run_now_joins_in_flight_cycle(self, storage, make_agent):
        """Test that run_now waits for the current cycle instead of starting one."""
        runner = FakeRunner(gated=True)
        sched = AgentScheduler(storage, runner)
        agent = await make_agent()

        sched.trigger(agent.id)
        waiter = asyncio.create_task(sched.run_now(agent.id))
        await _settle()
        runner.gate.set()

        assert await waiter is CycleOutcome.NO_ACTION
        assert runner.calls == [agent.id]
        await sched.stop()

    @pytest.mark.asyncio
    async def test_cycle_error_contained(self, storage, make_agent):
        """Test that a raising runner does not break the scheduler."""
        runner = FakeRunner(error=RuntimeError("boom"))
        sched = AgentScheduler(storage, runner)
        agent = await make_agent()

        assert await sched.run_now(agent.id) is None
        assert not sched.is_busy(agent.id)
        await sched.stop()


class TestReconcile:
    """Tests for reconcile()."""

    @pytest.mark.asyncio
    async def test_starts_persisted_running_agents(self, scheduler, make_agent):
        """Test running but untracked -> started."""
        agent = await make_agent(is_running=True)
        idle = await make_agent(is_running=False)

        await scheduler.reconcile()

        assert scheduler.tracked_agents == {agent.id}
        assert idle.id not in scheduler.tracked_agents

    @pytest.mark.asyncio
    async def test_stops_agents_no_longer_running(self, scheduler, storage, make_agent):
        """Test tracked but persisted not running -> stopped."""
        agent = await make_agent(is_running=False)
        await scheduler.start_agent(agent.id)
        await storage.set_running(agent.id, False)

        await scheduler.reconcile()

        assert scheduler.tracked_agents == frozenset()

    @pytest.mark.asyncio
    async def test_deleted_agent_timer_removed(self, scheduler, storage, make_agent):
        """Test tracked but deleted -> timer torn down."""
        agent = await make_agent(is_running=False)
        await scheduler.start_agent(agent.id)
        await storage.delete_agent(agent.id)

        await scheduler.reconcile()

        assert scheduler.tracked_agents == frozenset()
        assert await storage.get_agent(agent.id) is None

    @pytest.mark.asyncio
    async def test_frequency_change_restarts_timer(self, scheduler, storage, make_agent):
        """Test that a new frequency replaces the timer."""
        agent = await make_agent(is_running=False, frequency_ms=60_000)
        await scheduler.start_agent(agent.id)
        old_timer = scheduler._timers[agent.id]

        agent.frequency_ms = 30_000
        agent.is_running = True
        await storage.save_agent(agent)
        await scheduler.reconcile()
        await _settle()

        assert scheduler._intervals[agent.id] == 30.0
        assert scheduler._timers[agent.id] is not old_timer
        assert old_timer.cancelled()

    @pytest.mark.asyncio
    async def test_start_runs_first_reconcile(self, scheduler, make_agent, fake_runner):
        """Test that agents left running are picked up on boot."""
        agent = await make_agent(is_running=True)

        await scheduler.start()
        await asyncio.sleep(0.1)

        assert agent.id in scheduler.tracked_agents
        assert fake_runner.calls == [agent.id]

    @staticmethod
    def _hold_listing(storage, monkeypatch):
        """Make list_agents pause after reading until ``release`` is set."""
        listed = asyncio.Event()
        release = asyncio.Event()
        list_agents = storage.list_agents

        async def held():
            agents = await list_agents()
            listed.set()
            await release.wait()
            return agents

        monkeypatch.setattr(storage, "list_agents", held)
        return listed, release

    @pytest.mark.asyncio
    async def test_concurrent_start_not_undone(self, scheduler, storage, make_agent, monkeypatch):
        """Test that an agent started during a pass stays started."""
        agent = await make_agent(is_running=False)
        listed, release = self._hold_listing(storage, monkeypatch)

        pass_task = asyncio.create_task(scheduler.reconcile())
        await listed.wait()
        assert await scheduler.start_agent(agent.id) is True
        release.set()
        await pass_task

        assert agent.id in scheduler.tracked_agents
        assert (await storage.get_agent(agent.id)).is_running

    @pytest.mark.asyncio
    async def test_concurrent_stop_not_undone(self, scheduler, storage, make_agent, monkeypatch):
        """Test that an agent stopped during a pass stays stopped."""
        agent = await make_agent(is_running=True)
        listed, release = self._hold_listing(storage, monkeypatch)

        pass_task = asyncio.create_task(scheduler.reconcile())
        await listed.wait()
        await scheduler.stop_agent(agent.id)
        release.set()
        await pass_task

        assert scheduler.tracked_agents == frozenset()
        assert not (await storage.get_agent(agent.id)).is_running
        assert _live_timers(agent.id) == []


class TestShutdown:
    """Tests for AgentScheduler.stop()."""

    @pytest.mark.asyncio
    async def test_stop_keeps_running_flags(self, storage, make_agent):
        """Test that shutdown does not persist running=false."""
        sched = AgentScheduler(storage, FakeRunner())
        agent = await make_agent(is_running=False)
        await sched.start_agent(agent.id)

        await sched.stop()

        assert sched.tracked_agents == frozenset()
        assert (await storage.get_agent(agent.id)).is_running

    @pytest.mark.asyncio
    async def test_stop_waits_for_in_flight(self, storage, make_agent):
        """Test that in-flight cycles complete before stop returns."""
        runner = FakeRunner(gated=True)
        sched = AgentScheduler(storage, runner)
        agent = await make_agent()
        sched.trigger(agent.id)
        await _settle()

        stopping = asyncio.create_task(sched.stop())
        await _settle()
        assert not stopping.done()

        runner.gate.set()
        await stopping

        assert runner.finished == [agent.id]
