"""Built-in tools shipped with the fleet."""

import uuid
from datetime import datetime, timedelta, timezone

from ..errors import ToolExecutionError
from ..models import Campaign, Post
from ..storage import IStorage
from .registry import ToolDescriptor, ToolRegistry

SLEEP_TOOL = "SleepTool"
CREATE_BOUNTY_TOOL = "CreateBountyTool"
TWITTER_POST_TOOL = "TwitterPostTool"

MAX_POST_LENGTH = 280


def sleep_descriptor() -> ToolDescriptor:
    """The sleep directive. Handled by the runner, so it has no handler."""
    return ToolDescriptor(
        name=SLEEP_TOOL,
        description="Makes the agent sleep for a specified duration before running again",
        parameters={
            "milliseconds": "number - The duration to sleep in milliseconds (e.g., 3600000 for 1 hour)",
        },
        usage_format=(
            "ACTION: SleepTool\n"
            "PARAMETERS: {\n"
            '  "milliseconds": 3600000\n'
            "}\n"
            "REASON: To wait for 1 hour before checking for new content again"
        ),
        directive=True,
    )


def deadline_from_duration(parameters: dict, now: datetime) -> dict:
    """Turn a relative ``duration`` in days into an absolute ``deadline``."""
    if "duration" not in parameters:
        return parameters

    params = dict(parameters)
    duration = params.pop("duration")
    if isinstance(duration, bool):
        raise ValueError("duration must be a number of days")
    days = float(duration)
    if days <= 0:
        raise ValueError("duration must be positive")

    params.setdefault("deadline", (now + timedelta(days=days)).isoformat())
    return params


class ContentTools:
    """Tools that create campaigns and posts in the local store."""

    def __init__(self, storage: IStorage):
        self._storage = storage

    def descriptors(self) -> list[ToolDescriptor]:
        return [
            ToolDescriptor(
                name=CREATE_BOUNTY_TOOL,
                description="Creates a new bounty for content creators",
                parameters={
                    "title": "string - The title of the bounty",
                    "description": "string - Detailed description of what the bounty requires",
                    "reward": "string - The reward amount (e.g., '0.0000001 ETH')",
                    "duration": "number - Optional number of days the bounty stays open",
                    "deadline": "string - Optional deadline in ISO format (e.g., '2023-12-31T23:59:59Z')",
                },
                usage_format=(
                    "ACTION: CreateBountyTool\n"
                    "PARAMETERS: {\n"
                    '  "title": "Create a tutorial about Base L2",\n'
                    '  "description": "Create a 5-minute video explaining how to deploy a smart contract on Base",\n'
                    '  "reward": "0.1 ETH",\n'
                    '  "duration": 7\n'
                    "}\n"
                    "REASON: To incentivize content creation about Base L2 deployment"
                ),
                handler=self.create_bounty,
                required=("title", "description", "reward"),
                normalizer=deadline_from_duration,
            ),
            ToolDescriptor(
                name=TWITTER_POST_TOOL,
                description="Queues a post for the agent's Twitter account",
                parameters={
                    "content": f"string - The content of the tweet (max {MAX_POST_LENGTH} characters)",
                    "media_urls": "array - Optional array of media URLs to attach to the tweet",
                },
                usage_format=(
                    "ACTION: TwitterPostTool\n"
                    "PARAMETERS: {\n"
                    '  "content": "Exciting news from Base L2! Check out our latest update on zero-knowledge proofs.",\n'
                    '  "media_urls": ["https://example.com/image.jpg"]\n'
                    "}\n"
                    "REASON: To share important updates with the developer community"
                ),
                handler=self.post_update,
                required=("content",),
            ),
        ]

    async def create_bounty(self, parameters: dict, agent_id: str) -> dict:
        """Store an active campaign for the bounty."""
        title = str(parameters.get("title", "")).strip()
        description = str(parameters.get("description", "")).strip()
        reward = str(parameters.get("reward", "")).strip()
        if not (title and description and reward):
            raise ToolExecutionError(
                "title, description and reward are required", tool_name=CREATE_BOUNTY_TOOL
            )

        deadline = parameters.get("deadline")
        campaign = Campaign(
            id=str(uuid.uuid4()),
            title=title,
            description=description,
            reward=reward,
            status="active",
            deadline=str(deadline) if deadline else None,
            agent_id=agent_id,
            created_at=datetime.now(timezone.utc),
        )
        await self._storage.save_campaign(campaign)

        return {"campaign_id": campaign.id, "title": title, "deadline": campaign.deadline}

    async def post_update(self, parameters: dict, agent_id: str) -> dict:
        """Queue a post. Publishing to the network happens elsewhere."""
        content = parameters.get("content")
        if not isinstance(content, str) or not content.strip():
            raise ToolExecutionError("content must be a non-empty string", tool_name=TWITTER_POST_TOOL)
        content = content.strip()
        if len(content) > MAX_POST_LENGTH:
            raise ToolExecutionError(
                f"content is {len(content)} characters, limit is {MAX_POST_LENGTH}",
                tool_name=TWITTER_POST_TOOL,
            )

        media_urls = parameters.get("media_urls") or []
        if not isinstance(media_urls, list) or not all(isinstance(u, str) for u in media_urls):
            raise ToolExecutionError("media_urls must be a list of strings", tool_name=TWITTER_POST_TOOL)

        post = Post(
            id=str(uuid.uuid4()),
            agent_id=agent_id,
            content=content,
            media_urls=media_urls,
            created_at=datetime.now(timezone.utc),
        )
        await self._storage.save_post(post)

        return {"post_id": post.id, "status": "queued"}


def register_builtin_tools(registry: ToolRegistry, storage: IStorage) -> None:
    """Register the sleep directive and the content tools."""
    registry.register(sleep_descriptor())
    for descriptor in ContentTools(storage).descriptors():
        registry.register(descriptor)
