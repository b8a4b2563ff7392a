"""Scheduler module."""

from .scheduler import AgentScheduler, ICycleRunner

__all__ = ["AgentScheduler", "ICycleRunner"]
