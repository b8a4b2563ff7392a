"""Action parser: turns free-text model output into a ParsedAction.

Expected shape of a model response::

    ACTION: TwitterPostTool
    PARAMETERS: {
      "content": "Base fees just dropped again"
    }
    REASON: Share the news with developers

Models also emit ``TwitterPostToolPARAMETERS: {...}`` with the label missing,
which is recovered by taking the identifier glued to ``PARAMETERS:``.

``parse_action`` reads no clock and performs no I/O. Tool-specific parameter
rules (required fields, derived values) are applied afterwards by
``normalize_action`` with an explicit ``now``.
"""

import json
import re
from dataclasses import replace
from datetime import datetime

from ..errors import ParseFailure
from ..models import NO_ACTION, ParsedAction
from ..tools.registry import ToolDescriptor

_TYPOGRAPHIC = str.maketrans(
    {
        "‘": "'",
        "’": "'",
        "“": '"',
        "”": '"',
        "–": "-",
    }
)

_ACTION_RE = re.compile(r"\bACTION:[ \t]*([A-Za-z_]\w*?)(?=PARAMETERS:|\W|$)")
_GLUED_ACTION_RE = re.compile(r"([A-Za-z_][A-Za-z0-9_]*)PARAMETERS:")
_PARAMETERS_RE = re.compile(r"PARAMETERS:")
_REASON_RE = re.compile(r"REASON:\s*(.*?)(?=\bACTION:|\Z)", re.DOTALL)
_FENCE_RE = re.compile(r"\s*(?:```(?:json)?\s*)?")

_LABELS = {"ACTION", "PARAMETERS", "REASON"}
_DECODER = json.JSONDecoder()


def normalize_text(raw_text: str) -> str:
    """Replace typographic quotes and dashes with ASCII and trim."""
    return raw_text.translate(_TYPOGRAPHIC).strip()


def parse_action(raw_text: str) -> ParsedAction:
    """Parse a model response.

    Returns NO_ACTION when no tool name can be recovered. Raises
    ParseFailure when a tool is named but its PARAMETERS are not a JSON
    object.
    """
    text = normalize_text(raw_text or "")

    tool_name, search_from = _find_tool_name(text)
    if tool_name is None:
        return NO_ACTION

    parameters = _extract_parameters(text, tool_name, search_from)

    reason_match = _REASON_RE.search(text)
    reason = reason_match.group(1).strip() if reason_match else None

    return ParsedAction(tool_name=tool_name, parameters=parameters, reason=reason or None)


def _find_tool_name(text: str) -> tuple[str | None, int]:
    """Locate the tool name. Returns (name, offset to look for PARAMETERS)."""
    match = _ACTION_RE.search(text)
    if match and match.group(1) not in _LABELS:
        return match.group(1), match.end(1)

    glued = _GLUED_ACTION_RE.search(text)
    if glued and glued.group(1) not in _LABELS:
        return glued.group(1), glued.end(1)

    return None, 0


def _extract_parameters(text: str, tool_name: str, search_from: int) -> dict:
    label = _PARAMETERS_RE.search(text, search_from) or _PARAMETERS_RE.search(text)
    if label is None:
        return {}

    start = _FENCE_RE.match(text, label.end()).end()
    if start >= len(text) or text[start] != "{":
        raise ParseFailure(f"PARAMETERS for {tool_name} is not a JSON object", raw_text=text)

    try:
        parameters, _ = _DECODER.raw_decode(text, start)
    except json.JSONDecodeError as e:
        raise ParseFailure(
            f"Invalid PARAMETERS JSON for {tool_name}: {e.msg} at position {e.pos}",
            raw_text=text,
        ) from e

    if not isinstance(parameters, dict):
        raise ParseFailure(f"PARAMETERS for {tool_name} is not a JSON object", raw_text=text)

    return parameters


def normalize_action(
    action: ParsedAction,
    descriptor: ToolDescriptor | None,
    now: datetime,
) -> ParsedAction:
    """Apply the descriptor's parameter rules to a parsed action.

    Runs the descriptor's normalizer (if any), then checks that every
    required parameter is present and non-empty.
    """
    if not action.is_actionable or descriptor is None:
        return action

    parameters = dict(action.parameters)
    if descriptor.normalizer is not None:
        try:
            parameters = descriptor.normalizer(parameters, now)
        except (TypeError, ValueError) as e:
            raise ParseFailure(f"Invalid parameters for {descriptor.name}: {e}") from e

    missing = [
        name for name in descriptor.required if parameters.get(name) in (None, "")
    ]
    if missing:
        raise ParseFailure(
            f"{descriptor.name} is missing required parameters: {', '.join(missing)}"
        )

    return replace(action, parameters=parameters)
