"""SQLite storage implementation."""

import json
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

import aiosqlite

from ..config import resolve_db_path
from ..models import (
    ActionKind,
    ActionStatus,
    Agent,
    AgentAction,
    AgentThought,
    Campaign,
    Post,
    ThoughtType,
)


def _to_iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _from_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class IStorage(Protocol):
    """Persistent store for agents and their audit trail.

    Every call may run concurrently with calls made on behalf of other
    agents; no method opens a transaction spanning several agents.
    """

    async def init(self) -> None:
        """Initialize database and create tables."""
        ...

    async def close(self) -> None:
        """Close database connection."""
        ...

    # Agents
    async def save_agent(self, agent: Agent) -> None:
        """Insert or replace an agent."""
        ...

    async def get_agent(self, agent_id: str) -> Agent | None:
        """Get an agent by ID."""
        ...

    async def list_agents(self) -> list[Agent]:
        """Get all agents."""
        ...

    async def delete_agent(self, agent_id: str) -> bool:
        """Delete an agent. Returns True if it existed."""
        ...

    async def set_running(self, agent_id: str, is_running: bool) -> None:
        """Persist the desired running state."""
        ...

    async def set_wake_at(self, agent_id: str, wake_at: datetime | None) -> None:
        """Set or clear the deferred-wake time."""
        ...

    async def set_last_run(self, agent_id: str, timestamp: datetime) -> None:
        """Record the end of a cycle."""
        ...

    # Thoughts
    async def append_thought(
        self,
        agent_id: str,
        thought_type: ThoughtType,
        content: str,
        model_name: str,
    ) -> str:
        """Append a thought. Returns its ID."""
        ...

    async def get_thoughts(
        self,
        agent_id: str,
        thought_types: list[ThoughtType] | None = None,
        limit: int = 50,
    ) -> list[AgentThought]:
        """Get thoughts for an agent (newest first)."""
        ...

    # Actions
    async def create_action(
        self,
        agent_id: str,
        tool_name: str,
        parameters: dict,
        action_type: ActionKind = ActionKind.TOOL_EXECUTION,
    ) -> str:
        """Record a started action. Returns its ID."""
        ...

    async def complete_action(
        self, action_id: str, status: ActionStatus, result: Any
    ) -> None:
        """Move a started action to a terminal status."""
        ...

    async def get_action(self, action_id: str) -> AgentAction | None:
        """Get an action by ID."""
        ...

    async def get_actions(self, agent_id: str, limit: int = 100) -> list[AgentAction]:
        """Get actions for an agent (newest first)."""
        ...

    async def get_recent_actions(self, agent_id: str, limit: int = 7) -> list[AgentAction]:
        """Get an agent's most recent actions."""
        ...

    # Content
    async def save_campaign(self, campaign: Campaign) -> None:
        """Insert or replace a campaign."""
        ...

    async def get_active_campaigns(self) -> list[Campaign]:
        """Get campaigns with status 'active'."""
        ...

    async def save_post(self, post: Post) -> None:
        """Insert or replace a post."""
        ...

    async def get_recent_posts(self, agent_id: str, limit: int = 5) -> list[Post]:
        """Get an agent's posts (newest first)."""
        ...

    # Tool catalog
    async def upsert_tool(
        self, name: str, description: str, parameters: dict, usage_format: str
    ) -> None:
        """Publish a tool descriptor to the catalog."""
        ...

    async def get_tools(self) -> list[dict]:
        """Get the published tool catalog."""
        ...

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        ...


class Storage:
    """SQLite storage implementation."""

    def __init__(self, db_path: str | Path | None = None):
        if db_path is None:
            self._db_path = resolve_db_path()
        else:
            self._db_path = resolve_db_path(db_path)
        self._conn: aiosqlite.Connection | None = None

    async def init(self) -> None:
        """Initialize database and create tables."""
        self._conn = await aiosqlite.connect(self._db_path)

        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path, "r", encoding="utf-8") as f:
            schema_sql = f.read()
        await self._conn.executescript(schema_sql)
        await self._conn.commit()

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    def _require_conn(self) -> aiosqlite.Connection:
        if not self._conn:
            raise RuntimeError("Storage not initialized")
        return self._conn

    # Agents
    async def save_agent(self, agent: Agent) -> None:
        """Insert or replace an agent."""
        conn = self._require_conn()

        await conn.execute(
            """
            INSERT OR REPLACE INTO agents
            (id, name, personality, model_name, frequency_ms, tools,
             is_running, next_wake_time, last_run, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                agent.id,
                agent.name,
                agent.personality,
                agent.model_name,
                agent.frequency_ms,
                json.dumps(agent.tools),
                int(agent.is_running),
                _to_iso(agent.next_wake_time),
                _to_iso(agent.last_run),
                _now_iso(),
            ),
        )
        await conn.commit()

    async def get_agent(self, agent_id: str) -> Agent | None:
        """Get an agent by ID."""
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            SELECT id, name, personality, model_name, frequency_ms, tools,
                   is_running, next_wake_time, last_run
            FROM agents
            WHERE id = ?
            """,
            (agent_id,),
        )
        row = await cursor.fetchone()

        if not row:
            return None

        return self._row_to_agent(row)

    async def list_agents(self) -> list[Agent]:
        """Get all agents."""
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            SELECT id, name, personality, model_name, frequency_ms, tools,
                   is_running, next_wake_time, last_run
            FROM agents
            ORDER BY created_at ASC, id ASC
            """
        )
        rows = await cursor.fetchall()

        return [self._row_to_agent(row) for row in rows]

    async def delete_agent(self, agent_id: str) -> bool:
        """Delete an agent. Thoughts and actions are kept for audit."""
        conn = self._require_conn()

        cursor = await conn.execute("DELETE FROM agents WHERE id = ?", (agent_id,))
        await conn.commit()
        return cursor.rowcount > 0

    async def set_running(self, agent_id: str, is_running: bool) -> None:
        """Persist the desired running state."""
        conn = self._require_conn()

        await conn.execute(
            "UPDATE agents SET is_running = ?, updated_at = ? WHERE id = ?",
            (int(is_running), _now_iso(), agent_id),
        )
        await conn.commit()

    async def set_wake_at(self, agent_id: str, wake_at: datetime | None) -> None:
        """Set or clear the deferred-wake time."""
        conn = self._require_conn()

        await conn.execute(
            "UPDATE agents SET next_wake_time = ?, updated_at = ? WHERE id = ?",
            (_to_iso(wake_at), _now_iso(), agent_id),
        )
        await conn.commit()

    async def set_last_run(self, agent_id: str, timestamp: datetime) -> None:
        """Record the end of a cycle."""
        conn = self._require_conn()

        await conn.execute(
            "UPDATE agents SET last_run = ?, updated_at = ? WHERE id = ?",
            (_to_iso(timestamp), _now_iso(), agent_id),
        )
        await conn.commit()

    @staticmethod
    def _row_to_agent(row) -> Agent:
        return Agent(
            id=row[0],
            name=row[1],
            personality=row[2],
            model_name=row[3],
            frequency_ms=row[4],
            tools=json.loads(row[5]) if row[5] else [],
            is_running=bool(row[6]),
            next_wake_time=_from_iso(row[7]),
            last_run=_from_iso(row[8]),
        )

    # Thoughts
    async def append_thought(
        self,
        agent_id: str,
        thought_type: ThoughtType,
        content: str,
        model_name: str,
    ) -> str:
        """Append a thought. Returns its ID."""
        conn = self._require_conn()

        thought_id = str(uuid.uuid4())
        await conn.execute(
            """
            INSERT INTO agent_thoughts (id, agent_id, type, content, model_name, timestamp)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                thought_id,
                agent_id,
                ThoughtType(thought_type).value,
                content,
                model_name,
                _now_iso(),
            ),
        )
        await conn.commit()
        return thought_id

    async def get_thoughts(
        self,
        agent_id: str,
        thought_types: list[ThoughtType] | None = None,
        limit: int = 50,
    ) -> list[AgentThought]:
        """Get thoughts for an agent (newest first)."""
        conn = self._require_conn()

        conditions = ["agent_id = ?"]
        params: list[Any] = [agent_id]

        if thought_types:
            placeholders = ",".join("?" * len(thought_types))
            conditions.append(f"type IN ({placeholders})")
            params.extend(ThoughtType(t).value for t in thought_types)

        query = f"""
            SELECT id, agent_id, type, content, model_name, timestamp
            FROM agent_thoughts
            WHERE {' AND '.join(conditions)}
            ORDER BY timestamp DESC, rowid DESC
            LIMIT ?
        """
        params.append(limit)

        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()

        return [
            AgentThought(
                id=row[0],
                agent_id=row[1],
                type=ThoughtType(row[2]),
                content=row[3],
                model_name=row[4],
                timestamp=_from_iso(row[5]),
            )
            for row in rows
        ]

    # Actions
    async def create_action(
        self,
        agent_id: str,
        tool_name: str,
        parameters: dict,
        action_type: ActionKind = ActionKind.TOOL_EXECUTION,
    ) -> str:
        """Record a started action. Returns its ID."""
        conn = self._require_conn()

        action_id = str(uuid.uuid4())
        await conn.execute(
            """
            INSERT INTO agent_actions
            (id, agent_id, action_type, tool_name, parameters, status, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                action_id,
                agent_id,
                ActionKind(action_type).value,
                tool_name,
                json.dumps(parameters, default=str),
                ActionStatus.STARTED.value,
                _now_iso(),
            ),
        )
        await conn.commit()
        return action_id

    async def complete_action(
        self, action_id: str, status: ActionStatus, result: Any
    ) -> None:
        """Move a started action to a terminal status.

        Raises ValueError for a non-terminal status or when the action is
        unknown or already terminal.
        """
        conn = self._require_conn()

        status = ActionStatus(status)
        if not status.is_terminal:
            raise ValueError(f"Cannot complete action with status {status.value!r}")

        cursor = await conn.execute(
            """
            UPDATE agent_actions
            SET status = ?, result = ?, completed_at = ?
            WHERE id = ? AND status = ?
            """,
            (
                status.value,
                json.dumps(result, default=str),
                _now_iso(),
                action_id,
                ActionStatus.STARTED.value,
            ),
        )
        await conn.commit()

        if cursor.rowcount == 0:
            raise ValueError(f"Action {action_id} is unknown or already terminal")

    async def get_action(self, action_id: str) -> AgentAction | None:
        """Get an action by ID."""
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            SELECT id, agent_id, action_type, tool_name, parameters, status,
                   result, created_at, completed_at
            FROM agent_actions
            WHERE id = ?
            """,
            (action_id,),
        )
        row = await cursor.fetchone()

        if not row:
            return None

        return self._row_to_action(row)

    async def get_actions(self, agent_id: str, limit: int = 100) -> list[AgentAction]:
        """Get actions for an agent (newest first)."""
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            SELECT id, agent_id, action_type, tool_name, parameters, status,
                   result, created_at, completed_at
            FROM agent_actions
            WHERE agent_id = ?
            ORDER BY created_at DESC, rowid DESC
            LIMIT ?
            """,
            (agent_id, limit),
        )
        rows = await cursor.fetchall()

        return [self._row_to_action(row) for row in rows]

    async def get_recent_actions(self, agent_id: str, limit: int = 7) -> list[AgentAction]:
        """Get an agent's most recent actions."""
        return await self.get_actions(agent_id, limit=limit)

    @staticmethod
    def _row_to_action(row) -> AgentAction:
        return AgentAction(
            id=row[0],
            agent_id=row[1],
            action_type=ActionKind(row[2]),
            tool_name=row[3],
            parameters=json.loads(row[4]) if row[4] else {},
            status=ActionStatus(row[5]),
            result=json.loads(row[6]) if row[6] is not None else None,
            created_at=_from_iso(row[7]),
            completed_at=_from_iso(row[8]),
        )

    # Content
    async def save_campaign(self, campaign: Campaign) -> None:
        """Insert or replace a campaign."""
        conn = self._require_conn()

        await conn.execute(
            """
            INSERT OR REPLACE INTO campaigns
            (id, title, description, reward, status, deadline, agent_id, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                campaign.id or str(uuid.uuid4()),
                campaign.title,
                campaign.description,
                campaign.reward,
                campaign.status,
                campaign.deadline,
                campaign.agent_id,
                _to_iso(campaign.created_at) or _now_iso(),
            ),
        )
        await conn.commit()

    async def get_active_campaigns(self) -> list[Campaign]:
        """Get campaigns with status 'active'."""
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            SELECT id, title, description, reward, status, deadline, agent_id, created_at
            FROM campaigns
            WHERE status = 'active'
            ORDER BY created_at DESC
            """
        )
        rows = await cursor.fetchall()

        return [
            Campaign(
                id=row[0],
                title=row[1],
                description=row[2] or "",
                reward=row[3] or "",
                status=row[4],
                deadline=row[5],
                agent_id=row[6],
                created_at=_from_iso(row[7]),
            )
            for row in rows
        ]

    async def save_post(self, post: Post) -> None:
        """Insert or replace a post."""
        conn = self._require_conn()

        await conn.execute(
            """
            INSERT OR REPLACE INTO posts
            (id, agent_id, content, media_urls, created_at, published_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                post.id or str(uuid.uuid4()),
                post.agent_id,
                post.content,
                json.dumps(post.media_urls),
                _to_iso(post.created_at) or _now_iso(),
                _to_iso(post.published_at),
            ),
        )
        await conn.commit()

    async def get_recent_posts(self, agent_id: str, limit: int = 5) -> list[Post]:
        """Get an agent's posts (newest first)."""
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            SELECT id, agent_id, content, media_urls, created_at, published_at
            FROM posts
            WHERE agent_id = ?
            ORDER BY created_at DESC, rowid DESC
            LIMIT ?
            """,
            (agent_id, limit),
        )
        rows = await cursor.fetchall()

        return [
            Post(
                id=row[0],
                agent_id=row[1],
                content=row[2],
                media_urls=json.loads(row[3]) if row[3] else [],
                created_at=_from_iso(row[4]),
                published_at=_from_iso(row[5]),
            )
            for row in rows
        ]

    # Tool catalog
    async def upsert_tool(
        self, name: str, description: str, parameters: dict, usage_format: str
    ) -> None:
        """Publish a tool descriptor to the catalog."""
        conn = self._require_conn()

        await conn.execute(
            """
            INSERT OR REPLACE INTO agent_tools
            (tool_name, description, parameters, usage_format, updated_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (name, description, json.dumps(parameters), usage_format, _now_iso()),
        )
        await conn.commit()

    async def get_tools(self) -> list[dict]:
        """Get the published tool catalog."""
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            SELECT tool_name, description, parameters, usage_format
            FROM agent_tools
            ORDER BY tool_name ASC
            """
        )
        rows = await cursor.fetchall()

        return [
            {
                "tool_name": row[0],
                "description": row[1],
                "parameters": json.loads(row[2]) if row[2] else {},
                "usage_format": row[3],
            }
            for row in rows
        ]

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        conn = self._require_conn()

        tables = [
            "agent_thoughts",
            "agent_actions",
            "agent_tools",
            "campaigns",
            "posts",
            "agents",
        ]

        for table in tables:
            await conn.execute(f"DELETE FROM {table}")

        await conn.commit()
