"""Content produced and consumed by the built-in tools."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class Campaign:
    """A bounty campaign for content creators."""

    id: str
    title: str
    description: str
    reward: str
    status: str = "active"  # "draft", "active", "closed"
    deadline: str | None = None  # ISO-8601
    agent_id: str | None = None
    created_at: datetime | None = None


@dataclass
class Post:
    """A social post queued by an agent."""

    id: str
    agent_id: str
    content: str
    media_urls: list[str] = field(default_factory=list)
    created_at: datetime | None = None
    published_at: datetime | None = None
