"""Tools module."""

from .builtin import (
    CREATE_BOUNTY_TOOL,
    SLEEP_TOOL,
    TWITTER_POST_TOOL,
    ContentTools,
    deadline_from_duration,
    register_builtin_tools,
    sleep_descriptor,
)
from .dispatcher import ActionDispatcher
from .registry import IToolRegistry, ToolDescriptor, ToolHandler, ToolRegistry

__all__ = [
    "ActionDispatcher",
    "ContentTools",
    "CREATE_BOUNTY_TOOL",
    "IToolRegistry",
    "SLEEP_TOOL",
    "ToolDescriptor",
    "ToolHandler",
    "ToolRegistry",
    "TWITTER_POST_TOOL",
    "deadline_from_duration",
    "register_builtin_tools",
    "sleep_descriptor",
]
