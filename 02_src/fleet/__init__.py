"""Agent fleet orchestrator."""

from .app import Application
from .brain import AgentRunner, CycleOutcome
from .errors import (
    ContextUnavailable,
    FleetError,
    ModelCallFailure,
    ParseFailure,
    ToolError,
    ToolExecutionError,
    ToolMisconfigured,
    ToolNotFound,
)
from .scheduler import AgentScheduler

__all__ = [
    "AgentRunner",
    "AgentScheduler",
    "Application",
    "ContextUnavailable",
    "CycleOutcome",
    "FleetError",
    "ModelCallFailure",
    "ParseFailure",
    "ToolError",
    "ToolExecutionError",
    "ToolMisconfigured",
    "ToolNotFound",
]
