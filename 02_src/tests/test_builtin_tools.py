"""Tests for the built-in tools."""

from datetime import timedelta

import pytest

from fleet.errors import ToolExecutionError
from fleet.tools import (
    CREATE_BOUNTY_TOOL,
    SLEEP_TOOL,
    TWITTER_POST_TOOL,
    ContentTools,
    deadline_from_duration,
)


class TestDeadlineFromDuration:
    """Tests for the CreateBountyTool normalizer."""

    def test_without_duration_unchanged(self, now):
        """Test parameters without duration."""
        params = {"title": "T"}

        assert deadline_from_duration(params, now) == {"title": "T"}

    def test_duration_in_days(self, now):
        """Test conversion to an ISO deadline."""
        result = deadline_from_duration({"duration": 3}, now)

        assert result == {"deadline": (now + timedelta(days=3)).isoformat()}

    def test_duration_as_string(self, now):
        """Test numeric strings are accepted."""
        result = deadline_from_duration({"duration": "1.5"}, now)

        assert result["deadline"] == (now + timedelta(days=1.5)).isoformat()

    def test_explicit_deadline_wins(self, now):
        """Test that an explicit deadline is kept."""
        result = deadline_from_duration({"duration": 3, "deadline": "2030-01-01T00:00:00Z"}, now)

        assert result == {"deadline": "2030-01-01T00:00:00Z"}

    def test_input_not_mutated(self, now):
        """Test that the caller's dict is left alone."""
        params = {"duration": 2}
        deadline_from_duration(params, now)

        assert params == {"duration": 2}

    @pytest.mark.parametrize("duration", [0, -1, True])
    def test_invalid_duration(self, now, duration):
        """Test rejected durations."""
        with pytest.raises(ValueError):
            deadline_from_duration({"duration": duration}, now)


class TestBuiltinRegistration:
    """Tests for register_builtin_tools()."""

    def test_registers_all_builtins(self, registry):
        """Test the registered names."""
        assert set(registry.list_tools()) == {SLEEP_TOOL, CREATE_BOUNTY_TOOL, TWITTER_POST_TOOL}

    def test_sleep_is_a_directive(self, registry):
        """Test that SleepTool has no handler."""
        sleep = registry.get(SLEEP_TOOL)

        assert sleep.directive
        assert sleep.handler is None
        assert "milliseconds" in sleep.parameters

    def test_bounty_rules(self, registry):
        """Test CreateBountyTool descriptor rules."""
        bounty = registry.get(CREATE_BOUNTY_TOOL)

        assert bounty.required == ("title", "description", "reward")
        assert bounty.normalizer is deadline_from_duration


class TestCreateBounty:
    """Tests for the CreateBountyTool handler."""

    @pytest.mark.asyncio
    async def test_creates_active_campaign(self, storage):
        """Test that a campaign is stored."""
        tools = ContentTools(storage)
        result = await tools.create_bounty(
            {
                "title": "Base tutorial",
                "description": "Deploy a contract on Base",
                "reward": "0.1 ETH",
                "deadline": "2030-01-01T00:00:00Z",
            },
            "agent-1",
        )

        campaigns = await storage.get_active_campaigns()
        assert len(campaigns) == 1
        assert campaigns[0].id == result["campaign_id"]
        assert campaigns[0].title == "Base tutorial"
        assert campaigns[0].agent_id == "agent-1"
        assert campaigns[0].deadline == "2030-01-01T00:00:00Z"

    @pytest.mark.asyncio
    async def test_missing_fields_rejected(self, storage):
        """Test that handler validates its own input."""
        with pytest.raises(ToolExecutionError):
            await ContentTools(storage).create_bounty({"title": "T"}, "agent-1")

        assert await storage.get_active_campaigns() == []


class TestTwitterPost:
    """Tests for the TwitterPostTool handler."""

    @pytest.mark.asyncio
    async def test_queues_post(self, storage):
        """Test that a post record is stored."""
        result = await ContentTools(storage).post_update(
            {"content": "Hello Base", "media_urls": ["https://example.com/a.png"]},
            "agent-1",
        )

        posts = await storage.get_recent_posts("agent-1")
        assert result["status"] == "queued"
        assert len(posts) == 1
        assert posts[0].content == "Hello Base"
        assert posts[0].media_urls == ["https://example.com/a.png"]
        assert posts[0].published_at is None

    @pytest.mark.asyncio
    async def test_too_long_rejected(self, storage):
        """Test the 280 character limit."""
        with pytest.raises(ToolExecutionError, match="280"):
            await ContentTools(storage).post_update({"content": "x" * 281}, "agent-1")

        assert await storage.get_recent_posts("agent-1") == []

    @pytest.mark.asyncio
    async def test_exactly_280_accepted(self, storage):
        """Test the boundary."""
        await ContentTools(storage).post_update({"content": "x" * 280}, "agent-1")

        assert len(await storage.get_recent_posts("agent-1")) == 1

    @pytest.mark.asyncio
    async def test_bad_media_urls_rejected(self, storage):
        """Test that media_urls must be a list of strings."""
        with pytest.raises(ToolExecutionError):
            await ContentTools(storage).post_update(
                {"content": "hi", "media_urls": "https://example.com"}, "agent-1"
            )
