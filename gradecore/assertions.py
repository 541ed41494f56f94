"""Function and tool call assertions graded against declared parameter schemas."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from dataclasses import asdict, dataclass, replace
from typing import Any

from gradecore.calls import CallMode, ExtractedCall, extract_calls, unwrap_output
from gradecore.errors import InvalidOutputShapeError, NoDefinitionsError
from gradecore.resolver import ExternalResourceResolver, is_file_reference
from gradecore.schema import validate_instance
from gradecore.templating import render_vars_in_object

__all__ = [
    "FUNCTION_CALL_ASSERTION",
    "TOOLS_CALL_ASSERTION",
    "Assertion",
    "SchemaValidator",
    "Verdict",
    "handle_is_valid_function_call",
    "handle_is_valid_tools_call",
    "run_assertion",
]

LOGGER = logging.getLogger(__name__)

FUNCTION_CALL_ASSERTION = "is-valid-openai-function-call"
TOOLS_CALL_ASSERTION = "is-valid-openai-tools-call"

_INVERSE_PREFIX = "not-"
_PASS_REASON = "Assertion passed"
_TOOLS_REQUIRED = "Tools are expected to be an array of objects with a function property"
_FUNCTIONS_REQUIRED = "Functions are expected to be an array of objects with a name property"

_OUTPUT_NOUNS = {
    CallMode.FUNCTION: "function call",
    CallMode.TOOLS: "tools response",
}

_ASSERTION_MODES = {
    FUNCTION_CALL_ASSERTION: CallMode.FUNCTION,
    TOOLS_CALL_ASSERTION: CallMode.TOOLS,
}


@dataclass(frozen=True, slots=True)
class Assertion:
    """A configured check; a ``not-`` prefix on ``type`` inverts it."""

    type: str
    value: Any = None

    @property
    def inverse(self) -> bool:
        return self.type.startswith(_INVERSE_PREFIX)

    @property
    def base_type(self) -> str:
        if self.inverse:
            return self.type[len(_INVERSE_PREFIX) :]
        return self.type


@dataclass(frozen=True, slots=True)
class Verdict:
    """Outcome of one assertion."""

    passed: bool
    score: float
    reason: str
    assertion: Assertion | None = None

    def inverted(self) -> Verdict:
        passed = not self.passed
        return replace(self, passed=passed, score=1 if passed else 0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "pass": self.passed,
            "score": self.score,
            "reason": self.reason,
            "assertion": asdict(self.assertion) if self.assertion is not None else None,
        }


class SchemaValidator:
    """Validate function/tool call output against declared parameter schemas."""

    def __init__(
        self,
        resolver: ExternalResourceResolver | None = None,
        *,
        provider_label: str = "OpenAI",
        filters: Mapping[str, Callable[..., Any]] | None = None,
    ) -> None:
        self._resolver = resolver or ExternalResourceResolver()
        self.provider_label = provider_label
        self.filters = dict(filters or {})

    async def validate(
        self,
        *,
        kind: CallMode,
        output: Any,
        definitions: Any,
        variables: Mapping[str, Any] | None = None,
        assertion: Assertion | None = None,
        inverse: bool = False,
    ) -> Verdict:
        verdict = await self._evaluate(
            kind=kind,
            output=output,
            definitions=definitions,
            variables=variables or {},
            assertion=assertion,
        )
        if inverse:
            return verdict.inverted()
        return verdict

    async def load_definitions(
        self,
        kind: CallMode,
        definitions: Any,
        variables: Mapping[str, Any] | None = None,
    ) -> dict[str, Mapping[str, Any]]:
        """Resolve, render and index the definition set by function name."""

        variables = variables or {}
        source = render_vars_in_object(definitions, variables, filters=self.filters)
        if kind is CallMode.TOOLS:
            loaded = await self._resolver.resolve_tools(source)
        else:
            loaded = await self._resolver.resolve_functions(source)
        if is_file_reference(source) or _contains_reference(source):
            loaded = render_vars_in_object(loaded, variables, filters=self.filters)

        if loaded is None:
            if kind is CallMode.TOOLS:
                raise NoDefinitionsError(_TOOLS_REQUIRED)
            return {}
        if not isinstance(loaded, list):
            raise NoDefinitionsError(_TOOLS_REQUIRED if kind is CallMode.TOOLS else _FUNCTIONS_REQUIRED)

        entries = _flatten(loaded)
        if kind is CallMode.TOOLS:
            functions = []
            for tool in entries:
                if (
                    isinstance(tool, Mapping)
                    and tool.get("type") == "function"
                    and isinstance(tool.get("function"), Mapping)
                ):
                    functions.append(tool["function"])
                else:
                    LOGGER.warning("Skipping tool definition without a function property: %r", tool)
        else:
            functions = [entry for entry in entries if isinstance(entry, Mapping)]

        indexed: dict[str, Mapping[str, Any]] = {}
        for function in functions:
            name = function.get("name")
            if not isinstance(name, str):
                LOGGER.warning("Skipping definition without a string name: %r", function)
                continue
            indexed.setdefault(name, function)
        return indexed

    async def _evaluate(
        self,
        *,
        kind: CallMode,
        output: Any,
        definitions: Any,
        variables: Mapping[str, Any],
        assertion: Assertion | None,
    ) -> Verdict:
        schemas = await self.load_definitions(kind, definitions, variables)
        try:
            calls = extract_calls(output, kind)
        except InvalidOutputShapeError:
            reason = (
                f"{self.provider_label} did not return a valid-looking {_OUTPUT_NOUNS[kind]}: "
                f"{_dump(unwrap_output(output))}"
            )
            return Verdict(passed=False, score=0, reason=reason, assertion=assertion)

        for call in calls:
            reason = _check_call(call, schemas, kind)
            if reason is not None:
                LOGGER.debug("Call to %s failed validation: %s", call.name, reason)
                return Verdict(passed=False, score=0, reason=reason, assertion=assertion)
        return Verdict(passed=True, score=1, reason=_PASS_REASON, assertion=assertion)


def _check_call(
    call: ExtractedCall,
    schemas: Mapping[str, Mapping[str, Any]],
    kind: CallMode,
) -> str | None:
    definition = schemas.get(call.name)
    if definition is None:
        reason = f'Called "{call.name}", but there is no function with that name'
        if not schemas:
            noun = "tools" if kind is CallMode.TOOLS else "functions"
            reason = f"{reason} (no {noun} are defined)"
        return reason

    try:
        arguments = json.loads(call.arguments)
    except json.JSONDecodeError as exc:
        return f'Call to "{call.name}" has invalid JSON arguments: {exc}'

    parameters = definition.get("parameters")
    if parameters is None:
        parameters = {}
    errors = validate_instance(parameters, arguments)
    if errors:
        return f'Call to "{call.name}" does not match schema: {", ".join(errors)}'
    return None


def _flatten(entries: list[Any]) -> list[Any]:
    flattened: list[Any] = []
    for entry in entries:
        if isinstance(entry, list):
            flattened.extend(entry)
        else:
            flattened.append(entry)
    return flattened


def _contains_reference(source: Any) -> bool:
    return isinstance(source, list) and any(is_file_reference(item) for item in source)


def _dump(value: Any) -> str:
    return json.dumps(value, default=str)


async def handle_is_valid_function_call(
    *,
    assertion: Assertion,
    output: Any,
    provider_config: Mapping[str, Any] | None = None,
    test_vars: Mapping[str, Any] | None = None,
    inverse: bool = False,
    validator: SchemaValidator | None = None,
) -> Verdict:
    config = provider_config or {}
    definitions = assertion.value if assertion.value is not None else config.get("functions")
    return await (validator or SchemaValidator()).validate(
        kind=CallMode.FUNCTION,
        output=output,
        definitions=definitions,
        variables=test_vars,
        assertion=assertion,
        inverse=inverse,
    )


async def handle_is_valid_tools_call(
    *,
    assertion: Assertion,
    output: Any,
    provider_config: Mapping[str, Any] | None = None,
    test_vars: Mapping[str, Any] | None = None,
    inverse: bool = False,
    validator: SchemaValidator | None = None,
) -> Verdict:
    config = provider_config or {}
    definitions = assertion.value if assertion.value is not None else config.get("tools")
    return await (validator or SchemaValidator()).validate(
        kind=CallMode.TOOLS,
        output=output,
        definitions=definitions,
        variables=test_vars,
        assertion=assertion,
        inverse=inverse,
    )


async def run_assertion(
    assertion: Assertion,
    output: Any,
    provider_config: Mapping[str, Any] | None = None,
    test_vars: Mapping[str, Any] | None = None,
    *,
    validator: SchemaValidator | None = None,
) -> Verdict:
    """Dispatch ``assertion`` by type, honouring the ``not-`` prefix."""

    mode = _ASSERTION_MODES.get(assertion.base_type)
    if mode is None:
        raise ValueError(f"Unknown assertion type: {assertion.type}")
    handler = handle_is_valid_tools_call if mode is CallMode.TOOLS else handle_is_valid_function_call
    return await handler(
        assertion=assertion,
        output=output,
        provider_config=provider_config,
        test_vars=test_vars,
        inverse=assertion.inverse,
        validator=validator,
    )
