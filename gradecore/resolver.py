"""Resolve ``file://`` references into in-memory values."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from collections.abc import Mapping
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from gradecore.config import Settings
from gradecore.errors import (
    MissingFunctionNameError,
    ResourceNotFoundError,
    ResourceParseError,
)
from gradecore.loaders import NodeModuleRunner, PythonScriptRunner, ScriptLoader
from gradecore.paths import FILE_PREFIX, parse_path_or_glob
from gradecore.templating import render_env_template

__all__ = [
    "DEFAULT_FUNCTIONS_ENTRYPOINT",
    "DEFAULT_TOOLS_ENTRYPOINT",
    "ExternalResourceResolver",
    "ResourceKind",
    "is_file_reference",
    "maybe_load_from_external_file",
    "maybe_load_tools_from_external_file",
]

LOGGER = logging.getLogger(__name__)

DEFAULT_TOOLS_ENTRYPOINT = "get_tools"
DEFAULT_FUNCTIONS_ENTRYPOINT = "get_functions"


class ResourceKind(Enum):
    JSON = "json"
    YAML = "yaml"
    JS_MODULE = "js_module"
    PY_SCRIPT = "py_script"
    RAW_TEXT = "raw_text"

    @classmethod
    def from_extension(cls, extension: str | None) -> ResourceKind:
        normalised = (extension or "").strip().lower()
        return _EXTENSION_KINDS.get(normalised, cls.RAW_TEXT)


_EXTENSION_KINDS: dict[str, ResourceKind] = {
    ".json": ResourceKind.JSON,
    ".yaml": ResourceKind.YAML,
    ".yml": ResourceKind.YAML,
    ".js": ResourceKind.JS_MODULE,
    ".cjs": ResourceKind.JS_MODULE,
    ".mjs": ResourceKind.JS_MODULE,
    ".ts": ResourceKind.JS_MODULE,
    ".cts": ResourceKind.JS_MODULE,
    ".mts": ResourceKind.JS_MODULE,
    ".py": ResourceKind.PY_SCRIPT,
}


def is_file_reference(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(FILE_PREFIX)


class ExternalResourceResolver:
    """Turn reference strings into concrete values.

    Values that are not ``file://`` strings are returned unchanged. Lists are
    resolved element-wise and concurrently, preserving input order. Scripts are
    executed through :class:`~gradecore.loaders.ScriptLoader` implementations
    keyed by :class:`ResourceKind`, so callers can substitute their own.
    """

    def __init__(
        self,
        base_path: str | None = None,
        *,
        loaders: Mapping[ResourceKind, ScriptLoader] | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._settings = settings or Settings.from_env()
        self.base_path = self._settings.base_path if base_path is None else base_path
        self._loaders: dict[ResourceKind, ScriptLoader] = {
            ResourceKind.PY_SCRIPT: PythonScriptRunner(self._settings.python_executable),
            ResourceKind.JS_MODULE: NodeModuleRunner(self._settings.node_executable),
        }
        if loaders:
            for kind, loader in loaders.items():
                if kind not in (ResourceKind.PY_SCRIPT, ResourceKind.JS_MODULE):
                    raise ValueError(f"Resource kind {kind.name} does not use a script loader")
                if not isinstance(loader, ScriptLoader):
                    raise TypeError(f"Loader for {kind.name} does not implement ScriptLoader")
                self._loaders[kind] = loader

    async def resolve(self, value: Any, *, default_function_name: str | None = None) -> Any:
        if isinstance(value, list):
            return list(
                await asyncio.gather(
                    *(
                        self.resolve(item, default_function_name=default_function_name)
                        for item in value
                    )
                )
            )
        if not is_file_reference(value):
            return value

        rendered = render_env_template(value)
        descriptor = parse_path_or_glob(self.base_path, rendered, strict=False)
        if not descriptor.file_path:
            raise ValueError(f"Expected a reference to a single file, got an empty path: {value!r}")
        resolved_path = os.path.abspath(descriptor.file_path)
        if descriptor.is_path_pattern:
            raise ValueError(
                f"Expected a reference to a single file, got a directory or pattern: {resolved_path}"
            )
        if not os.path.exists(resolved_path):
            raise ResourceNotFoundError(resolved_path)

        kind = ResourceKind.from_extension(descriptor.extension)
        LOGGER.debug("Resolving %s as %s", resolved_path, kind.name)
        return await self._load(
            kind,
            resolved_path,
            function_name=descriptor.function_name,
            default_function_name=default_function_name,
        )

    async def resolve_tools(self, value: Any) -> Any:
        return await self.resolve(value, default_function_name=DEFAULT_TOOLS_ENTRYPOINT)

    async def resolve_functions(self, value: Any) -> Any:
        return await self.resolve(value, default_function_name=DEFAULT_FUNCTIONS_ENTRYPOINT)

    async def _load(
        self,
        kind: ResourceKind,
        path: str,
        *,
        function_name: str | None,
        default_function_name: str | None,
    ) -> Any:
        if kind is ResourceKind.JSON:
            return _parse_json(path)
        if kind is ResourceKind.YAML:
            return _parse_yaml(path)
        if kind is ResourceKind.JS_MODULE:
            return await self._loaders[kind].load(path, function_name, [])
        if kind is ResourceKind.PY_SCRIPT:
            entrypoint = function_name or default_function_name
            if not entrypoint:
                raise MissingFunctionNameError(path)
            return await self._loaders[kind].load(path, entrypoint, [])
        if kind is ResourceKind.RAW_TEXT:
            return _read_text(path)
        raise AssertionError(f"Unhandled resource kind: {kind!r}")


def _read_text(path: str) -> str:
    return Path(path).read_text(encoding="utf-8")


def _parse_json(path: str) -> Any:
    try:
        return json.loads(_read_text(path))
    except json.JSONDecodeError as exc:
        raise ResourceParseError(f"Failed to parse JSON file {path}: {exc}") from exc


def _parse_yaml(path: str) -> Any:
    try:
        return yaml.safe_load(_read_text(path))
    except yaml.YAMLError as exc:
        raise ResourceParseError(f"Failed to parse YAML file {path}: {exc}") from exc


async def maybe_load_from_external_file(
    value: Any,
    *,
    base_path: str | None = None,
    default_function_name: str | None = None,
) -> Any:
    resolver = ExternalResourceResolver(base_path)
    return await resolver.resolve(value, default_function_name=default_function_name)


async def maybe_load_tools_from_external_file(value: Any, *, base_path: str | None = None) -> Any:
    return await ExternalResourceResolver(base_path).resolve_tools(value)
