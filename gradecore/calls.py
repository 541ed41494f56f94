"""Normalise provider function/tool call output into :class:`ExtractedCall` records."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from gradecore.errors import InvalidOutputShapeError

__all__ = [
    "CallMode",
    "ExtractedCall",
    "OutputShape",
    "classify_output",
    "extract_calls",
    "unwrap_output",
]


class CallMode(Enum):
    FUNCTION = "function"
    TOOLS = "tools"


class OutputShape(Enum):
    FUNCTION_CALL = "function_call"
    NESTED_FUNCTION_CALL = "nested_function_call"
    TOOL_CALL_ARRAY = "tool_call_array"
    NESTED_TOOL_CALLS = "nested_tool_calls"


@dataclass(frozen=True, slots=True)
class ExtractedCall:
    name: str
    arguments: str


_MODE_SHAPES: dict[CallMode, frozenset[OutputShape]] = {
    CallMode.FUNCTION: frozenset({OutputShape.FUNCTION_CALL, OutputShape.NESTED_FUNCTION_CALL}),
    CallMode.TOOLS: frozenset({OutputShape.TOOL_CALL_ARRAY, OutputShape.NESTED_TOOL_CALLS}),
}

_MODE_ERRORS: dict[CallMode | None, str] = {
    CallMode.FUNCTION: "Function call mode expects an object with string name and arguments",
    CallMode.TOOLS: "Tools mode expects an array of objects with a function property",
    None: "Output is not a recognised function call or tool call",
}


def _is_call_record(value: Any) -> bool:
    return (
        isinstance(value, Mapping)
        and isinstance(value.get("name"), str)
        and isinstance(value.get("arguments"), str)
    )


def _is_tool_call_list(value: Any) -> bool:
    if not isinstance(value, list):
        return False
    return all(isinstance(item, Mapping) and _is_call_record(item.get("function")) for item in value)


def classify_output(output: Any) -> OutputShape | None:
    """Return the recognised shape of ``output`` or ``None``."""

    if isinstance(output, Mapping):
        if output.get("function_call") is not None:
            if _is_call_record(output["function_call"]):
                return OutputShape.NESTED_FUNCTION_CALL
            return None
        if output.get("tool_calls") is not None:
            if _is_tool_call_list(output["tool_calls"]):
                return OutputShape.NESTED_TOOL_CALLS
            return None
        if _is_call_record(output):
            return OutputShape.FUNCTION_CALL
        return None
    if _is_tool_call_list(output):
        return OutputShape.TOOL_CALL_ARRAY
    return None


def unwrap_output(output: Any) -> Any:
    """Strip the ``function_call`` / ``tool_calls`` envelope if present."""

    if isinstance(output, Mapping):
        if output.get("function_call") is not None:
            return output["function_call"]
        if output.get("tool_calls") is not None:
            return output["tool_calls"]
    return output


def extract_calls(output: Any, mode: CallMode | None = None) -> list[ExtractedCall]:
    """Extract call records from ``output``.

    ``mode`` restricts the accepted shapes: function mode takes a single call
    (bare or under ``function_call``), tools mode takes a list of tool calls
    (bare or under ``tool_calls``). Without a mode every shape is accepted.
    """

    shape = classify_output(output)
    if shape is None or (mode is not None and shape not in _MODE_SHAPES[mode]):
        raise InvalidOutputShapeError(_MODE_ERRORS[mode], mode=mode)

    if shape in (OutputShape.FUNCTION_CALL, OutputShape.NESTED_FUNCTION_CALL):
        record = unwrap_output(output)
        return [ExtractedCall(name=record["name"], arguments=record["arguments"])]

    return [
        ExtractedCall(name=item["function"]["name"], arguments=item["function"]["arguments"])
        for item in unwrap_output(output)
    ]
