"""Exception hierarchy for the orchestration core."""


class FleetError(Exception):
    """Base class for orchestration errors."""


class ParseFailure(FleetError):
    """Model output named an action but could not be turned into one."""

    def __init__(self, message: str, raw_text: str | None = None):
        super().__init__(message)
        self.raw_text = raw_text


class ToolError(FleetError):
    """Base class for tool lookup and execution errors."""

    def __init__(self, message: str, tool_name: str | None = None):
        super().__init__(message)
        self.tool_name = tool_name


class ToolNotFound(ToolError):
    """No tool is registered under the requested name."""


class ToolMisconfigured(ToolError):
    """The tool is registered but has no executable handler."""


class ToolExecutionError(ToolError):
    """A tool handler rejected its input or failed while running."""


class ContextUnavailable(FleetError):
    """An optional context provider could not produce its section."""

    def __init__(self, message: str, provider: str | None = None):
        super().__init__(message)
        self.provider = provider


class ModelCallFailure(FleetError):
    """The language model call failed or timed out."""
