"""Tool registry: name -> descriptor with an executable handler."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Awaitable, Callable, Protocol

from ..errors import ToolMisconfigured, ToolNotFound
from ..logging_config import get_logger
from ..storage import IStorage

logger = get_logger(__name__)


ToolHandler = Callable[[dict, str], Awaitable[Any]]
ParameterNormalizer = Callable[[dict, datetime], dict]


@dataclass
class ToolDescriptor:
    """Everything the fleet knows about one tool."""

    name: str
    description: str
    parameters: dict[str, str] = field(default_factory=dict)  # name -> description
    usage_format: str = ""
    handler: ToolHandler | None = None
    required: tuple[str, ...] = ()
    normalizer: ParameterNormalizer | None = None
    directive: bool = False  # sleep directive, applied by the runner instead of dispatched

    def __post_init__(self) -> None:
        if not self.usage_format:
            self.usage_format = (
                f"ACTION: {self.name}\n"
                "PARAMETERS: {}\n"
                "REASON: Explain why you're using this tool"
            )


class IToolRegistry(Protocol):
    """Lookup and execution of tools by name."""

    def register(self, descriptor: ToolDescriptor) -> None:
        """Add or overwrite a tool."""
        ...

    def get(self, name: str) -> ToolDescriptor | None:
        """Get a descriptor by name."""
        ...

    def describe(self, names: list[str]) -> list[ToolDescriptor]:
        """Descriptors for the given names, in order, skipping unknown ones."""
        ...

    async def execute(self, name: str, parameters: dict, agent_id: str) -> Any:
        """Run a tool's handler."""
        ...


class ToolRegistry:
    """In-process registry of tool descriptors."""

    def __init__(self):
        self._tools: dict[str, ToolDescriptor] = {}

    def register(self, descriptor: ToolDescriptor) -> None:
        """Add or overwrite a tool.

        Re-registering a name without a handler keeps the handler that was
        already registered, so descriptions can be reloaded in place.
        """
        existing = self._tools.get(descriptor.name)
        if descriptor.handler is None and existing is not None and existing.handler:
            descriptor = replace(descriptor, handler=existing.handler)
        self._tools[descriptor.name] = descriptor
        logger.debug("Registered tool %s", descriptor.name)

    def get(self, name: str) -> ToolDescriptor | None:
        return self._tools.get(name)

    def describe(self, names: list[str]) -> list[ToolDescriptor]:
        return [self._tools[name] for name in names if name in self._tools]

    def list_tools(self) -> list[str]:
        return list(self._tools.keys())

    async def execute(self, name: str, parameters: dict, agent_id: str) -> Any:
        """Execute a tool by name.

        Raises ToolNotFound or ToolMisconfigured for registry problems; any
        error raised by the handler itself is propagated unchanged.
        """
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFound(f"Tool not found: {name}", tool_name=name)
        if tool.handler is None:
            raise ToolMisconfigured(f"Tool {name} has no handler", tool_name=name)

        return await tool.handler(parameters, agent_id)

    async def publish(self, storage: IStorage) -> None:
        """Write the catalog of registered tools to storage."""
        for tool in self._tools.values():
            await storage.upsert_tool(
                tool.name, tool.description, tool.parameters, tool.usage_format
            )
        logger.info("Published %s tools to catalog", len(self._tools))
