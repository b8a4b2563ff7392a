"""Audit-trail data models."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class ThoughtType(str, Enum):
    """Kinds of entries in an agent's thought log."""

    INPUT = "input"  # prompt sent to the model
    OUTPUT = "output"  # raw model response
    SYSTEM = "system"
    ERROR = "error"


@dataclass
class AgentThought:
    """Append-only log entry for one agent."""

    id: str
    agent_id: str
    type: ThoughtType
    content: str
    model_name: str
    timestamp: datetime
