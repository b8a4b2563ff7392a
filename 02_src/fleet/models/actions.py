"""Action-related data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class ActionStatus(str, Enum):
    """Lifecycle of an AgentAction. Only STARTED is non-terminal."""

    STARTED = "started"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not ActionStatus.STARTED


class ActionKind(str, Enum):
    """What produced an AgentAction record."""

    TOOL_EXECUTION = "tool_execution"
    SLEEP = "sleep"


@dataclass
class AgentAction:
    """One recorded tool invocation (or sleep directive)."""

    id: str
    agent_id: str
    action_type: ActionKind
    tool_name: str
    parameters: dict
    status: ActionStatus
    created_at: datetime
    result: Any = None
    completed_at: datetime | None = None


@dataclass(frozen=True)
class ParsedAction:
    """Structured interpretation of a model response.

    ``tool_name`` is None when the response holds no actionable instruction.
    """

    tool_name: str | None
    parameters: dict = field(default_factory=dict)
    reason: str | None = None

    @property
    def is_actionable(self) -> bool:
        return self.tool_name is not None


NO_ACTION = ParsedAction(tool_name=None)
