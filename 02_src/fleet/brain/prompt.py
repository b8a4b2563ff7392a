"""Prompt assembly for one agent cycle.

``build_prompt`` is a pure function of its inputs: the same agent, context
sections, time and tool descriptors always produce the same text.
"""

from datetime import datetime

from ..models import Agent
from ..tools import ToolDescriptor

SYSTEM_PROMPT = (
    "You are an autonomous agent that acts on a schedule. "
    "Each turn, choose exactly one next action from the tools you are given "
    "and answer strictly in the requested format."
)

DEFAULT_PERSONALITY = "You are a helpful DevRel agent."

RESPONSE_FORMAT = (
    "Respond with exactly one action in this format:\n"
    "ACTION: <tool name>\n"
    "PARAMETERS: <JSON object>\n"
    "REASON: <why you chose this action>\n"
    "\n"
    "PARAMETERS must be a valid JSON object. "
    "If no action is appropriate right now, reply without an ACTION line."
)


def format_tool(descriptor: ToolDescriptor) -> str:
    lines = [f"### {descriptor.name}", descriptor.description]

    if descriptor.parameters:
        lines.append("Parameters:")
        lines.extend(f"- {name}: {desc}" for name, desc in descriptor.parameters.items())
    else:
        lines.append("Parameters: none")

    if descriptor.required:
        lines.append(f"Required: {', '.join(descriptor.required)}")

    lines.append("Usage:")
    lines.append(descriptor.usage_format)
    return "\n".join(lines)


def build_prompt(
    agent: Agent,
    context_sections: list[str],
    now: datetime,
    tools: list[ToolDescriptor],
) -> str:
    """Assemble the prompt for one decision."""
    personality = agent.personality.strip() or DEFAULT_PERSONALITY

    if tools:
        tools_block = "Available tools:\n\n" + "\n\n".join(format_tool(t) for t in tools)
    else:
        tools_block = "Available tools: none"

    parts = [
        personality,
        f"Current time: {now.isoformat()}",
        *(context_sections or ["No additional context."]),
        tools_block,
        RESPONSE_FORMAT,
    ]
    return "\n\n".join(parts)
