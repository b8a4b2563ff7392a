"""Context providers: optional prompt sections gathered each cycle."""

from typing import Protocol

from ..config import RECENT_ACTIONS_LIMIT, RECENT_POSTS_LIMIT
from ..errors import ContextUnavailable
from ..logging_config import agent_context, get_logger
from ..models import Agent
from ..storage import IStorage

logger = get_logger(__name__)


class IContextProvider(Protocol):
    """Produces one prompt section for an agent."""

    name: str

    async def gather(self, agent: Agent) -> str | None:
        """Return a section, or None to contribute nothing.

        Raises ContextUnavailable if the source could not be read.
        """
        ...


class ActiveCampaignsProvider:
    name = "active_campaigns"

    def __init__(self, storage: IStorage):
        self._storage = storage

    async def gather(self, agent: Agent) -> str | None:
        try:
            campaigns = await self._storage.get_active_campaigns()
        except Exception as e:
            raise ContextUnavailable(f"Could not load campaigns: {e}", provider=self.name) from e

        if not campaigns:
            return "Active campaigns: none."

        lines = []
        for c in campaigns:
            line = f"- {c.title}: {c.description} (reward: {c.reward}"
            if c.deadline:
                line += f", deadline: {c.deadline}"
            lines.append(line + ")")
        return "Active campaigns:\n" + "\n".join(lines)


class RecentActionsProvider:
    name = "recent_actions"

    def __init__(self, storage: IStorage, limit: int = RECENT_ACTIONS_LIMIT):
        self._storage = storage
        self._limit = limit

    async def gather(self, agent: Agent) -> str | None:
        try:
            actions = await self._storage.get_recent_actions(agent.id, self._limit)
        except Exception as e:
            raise ContextUnavailable(f"Could not load actions: {e}", provider=self.name) from e

        if not actions:
            return "Your recent actions: none yet."

        lines = [
            f"- {a.created_at.isoformat()} {a.tool_name} [{a.status.value}]"
            for a in actions
        ]
        return "Your recent actions (newest first):\n" + "\n".join(lines)


class RecentPostsProvider:
    name = "recent_posts"

    def __init__(self, storage: IStorage, limit: int = RECENT_POSTS_LIMIT):
        self._storage = storage
        self._limit = limit

    async def gather(self, agent: Agent) -> str | None:
        try:
            posts = await self._storage.get_recent_posts(agent.id, self._limit)
        except Exception as e:
            raise ContextUnavailable(f"Could not load posts: {e}", provider=self.name) from e

        if not posts:
            return "Your recent posts: none."

        return "Your recent posts (newest first):\n" + "\n".join(f"- {p.content}" for p in posts)


def default_context_providers(storage: IStorage) -> list[IContextProvider]:
    return [
        ActiveCampaignsProvider(storage),
        RecentActionsProvider(storage),
        RecentPostsProvider(storage),
    ]


async def gather_context(providers: list[IContextProvider], agent: Agent) -> list[str]:
    """Collect sections in provider order. A failing provider is skipped."""
    sections: list[str] = []
    for provider in providers:
        try:
            section = await provider.gather(agent)
        except ContextUnavailable as e:
            logger.warning(
                "Context provider %s unavailable: %s",
                provider.name,
                e,
                extra=agent_context(agent.id, provider=provider.name),
            )
            continue
        except Exception:
            logger.exception(
                "Context provider %s failed",
                provider.name,
                extra=agent_context(agent.id, provider=provider.name),
            )
            continue

        if section:
            sections.append(section)
    return sections
