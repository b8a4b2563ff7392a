"""Action dispatcher: executes parsed actions with full bookkeeping."""

import asyncio
from typing import Any

from ..errors import ToolExecutionError
from ..logging_config import agent_context, get_logger
from ..models import ActionStatus, ParsedAction
from ..storage import IStorage
from .registry import IToolRegistry

logger = get_logger(__name__)


class ActionDispatcher:
    """Runs a tool for an agent and records the AgentAction lifecycle.

    A ``started`` row is written before the handler runs and is always
    closed as ``completed`` or ``failed``, including on timeout and
    cancellation. Handler errors are re-raised after the row is closed.
    """

    def __init__(
        self,
        registry: IToolRegistry,
        storage: IStorage,
        tool_timeout: float | None = None,
    ):
        self._registry = registry
        self._storage = storage
        self._tool_timeout = tool_timeout

    async def dispatch(self, agent_id: str, action: ParsedAction) -> Any:
        """Execute the action's tool and return its result."""
        if not action.is_actionable:
            raise ValueError("Cannot dispatch an action without a tool name")

        tool_name = action.tool_name
        action_id = await self._storage.create_action(
            agent_id, tool_name, action.parameters
        )
        logger.info(
            "Dispatching %s for agent %s",
            tool_name,
            agent_id,
            extra=agent_context(agent_id, action_id=action_id, tool=tool_name),
        )

        try:
            result = await asyncio.wait_for(
                self._registry.execute(tool_name, action.parameters, agent_id),
                timeout=self._tool_timeout,
            )
        except asyncio.TimeoutError as e:
            message = f"Tool {tool_name} timed out after {self._tool_timeout}s"
            await self._fail(action_id, agent_id, message, "TimeoutError")
            raise ToolExecutionError(message, tool_name=tool_name) from e
        except asyncio.CancelledError:
            await self._fail(action_id, agent_id, "Cancelled", "CancelledError")
            raise
        except Exception as e:
            await self._fail(action_id, agent_id, str(e), type(e).__name__)
            raise

        await self._storage.complete_action(action_id, ActionStatus.COMPLETED, result)
        logger.info(
            "Tool %s completed for agent %s",
            tool_name,
            agent_id,
            extra=agent_context(agent_id, action_id=action_id, tool=tool_name),
        )
        return result

    async def _fail(
        self, action_id: str, agent_id: str, message: str, error_type: str
    ) -> None:
        logger.warning(
            "Action %s failed: %s",
            action_id,
            message,
            extra=agent_context(agent_id, action_id=action_id, error_type=error_type),
        )
        await self._storage.complete_action(
            action_id,
            ActionStatus.FAILED,
            {"error": message, "error_type": error_type},
        )
