"""Core data models for the agent fleet."""

from .actions import NO_ACTION, ActionKind, ActionStatus, AgentAction, ParsedAction
from .agents import Agent
from .content import Campaign, Post
from .thoughts import AgentThought, ThoughtType

__all__ = [
    # Agents
    "Agent",
    # Actions
    "ActionKind",
    "ActionStatus",
    "AgentAction",
    "ParsedAction",
    "NO_ACTION",
    # Thoughts
    "AgentThought",
    "ThoughtType",
    # Content
    "Campaign",
    "Post",
]
