"""Pytest configuration and fixtures."""

import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

FIXED_NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def storage():
    """Create in-memory storage for testing."""
    from fleet.storage import Storage

    st = Storage(":memory:")
    await st.init()
    yield st
    await st.close()


@pytest.fixture
def now():
    """Fixed clock value used by runner fixtures."""
    return FIXED_NOW


@pytest.fixture
def mock_llm():
    """Create mock LLM provider."""
    llm = Mock()
    llm.complete = AsyncMock(return_value="Nothing worth doing right now.")
    return llm


@pytest.fixture
def make_agent(storage):
    """Factory that saves an agent to storage and returns it."""
    from fleet.models import Agent
    from fleet.tools import CREATE_BOUNTY_TOOL, SLEEP_TOOL, TWITTER_POST_TOOL

    async def _make(**overrides):
        fields = {
            "id": f"agent-{uuid.uuid4().hex[:8]}",
            "name": "DevRel",
            "personality": "You are a helpful DevRel agent for Base L2.",
            "model_name": "claude-test",
            "frequency_ms": 60_000,
            "tools": [SLEEP_TOOL, CREATE_BOUNTY_TOOL, TWITTER_POST_TOOL],
            "is_running": True,
        }
        fields.update(overrides)
        agent = Agent(**fields)
        await storage.save_agent(agent)
        return agent

    return _make


@pytest.fixture
def registry(storage):
    """Registry with the built-in tools."""
    from fleet.tools import ToolRegistry, register_builtin_tools

    reg = ToolRegistry()
    register_builtin_tools(reg, storage)
    return reg


@pytest.fixture
def dispatcher(registry, storage):
    """Create ActionDispatcher over the built-in registry."""
    from fleet.tools import ActionDispatcher

    return ActionDispatcher(registry, storage, tool_timeout=5)


@pytest.fixture
def runner(storage, mock_llm, registry, dispatcher, now):
    """Create AgentRunner with a fixed clock."""
    from fleet.brain import AgentRunner, default_context_providers

    return AgentRunner(
        storage=storage,
        llm_provider=mock_llm,
        registry=registry,
        dispatcher=dispatcher,
        context_providers=default_context_providers(storage),
        clock=lambda: now,
        model_timeout=5,
    )
