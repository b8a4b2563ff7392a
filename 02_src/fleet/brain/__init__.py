"""Brain module: the per-agent execution loop."""

from .context import (
    ActiveCampaignsProvider,
    IContextProvider,
    RecentActionsProvider,
    RecentPostsProvider,
    default_context_providers,
    gather_context,
)
from .prompt import SYSTEM_PROMPT, build_prompt
from .runner import AgentRunner, CycleOutcome, utc_now
from .sleep import SleepState, WakeState, sleep_duration_ms, wake_state

__all__ = [
    "ActiveCampaignsProvider",
    "AgentRunner",
    "CycleOutcome",
    "IContextProvider",
    "RecentActionsProvider",
    "RecentPostsProvider",
    "SleepState",
    "SYSTEM_PROMPT",
    "WakeState",
    "build_prompt",
    "default_context_providers",
    "gather_context",
    "sleep_duration_ms",
    "utc_now",
    "wake_state",
]
