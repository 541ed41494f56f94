"""Script loaders used to execute code referenced by ``file://`` paths."""

from __future__ import annotations

import asyncio
import hashlib
import importlib.util
import inspect
import json
import logging
import os
import sys
import tempfile
from abc import ABC, abstractmethod
from collections.abc import Sequence
from pathlib import Path
from types import ModuleType
from typing import Any, Protocol, runtime_checkable

from gradecore.errors import MissingFunctionNameError, ScriptExecutionError

__all__ = [
    "InProcessModuleLoader",
    "NodeModuleRunner",
    "PythonScriptRunner",
    "ScriptLoader",
]

LOGGER = logging.getLogger(__name__)

_STDERR_SNIPPET_BYTES = 4096

# Executed in a child interpreter: argv = script, function, input json, output json.
_PYTHON_BOOTSTRAP = """
import asyncio
import importlib.util
import inspect
import json
import os
import sys
import traceback


async def _await(value):
    return await value


def _main(script_path, function_name, input_path, output_path):
    try:
        with open(input_path, encoding="utf-8") as handle:
            args = json.load(handle)
        sys.path.insert(0, os.path.dirname(os.path.abspath(script_path)))
        spec = importlib.util.spec_from_file_location("__gradecore_script__", script_path)
        if spec is None or spec.loader is None:
            raise ImportError(f"Cannot import {script_path}")
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
        func = getattr(module, function_name)
        result = func(*args)
        if inspect.isawaitable(result):
            result = asyncio.run(_await(result))
        payload = json.dumps({"type": "final_result", "data": result})
    except BaseException as exc:
        payload = json.dumps(
            {
                "type": "error",
                "error": f"{type(exc).__name__}: {exc}",
                "traceback": traceback.format_exc(),
            }
        )
    with open(output_path, "w", encoding="utf-8") as handle:
        handle.write(payload)


_main(*sys.argv[1:5])
"""

# Executed by node as an ES module: argv = script, function, input json, output json.
_NODE_BOOTSTRAP = """
import { readFileSync, writeFileSync } from 'node:fs';
import { pathToFileURL } from 'node:url';

const [scriptPath, functionName, inputPath, outputPath] = process.argv.slice(1);
let envelope;
try {
  const args = JSON.parse(readFileSync(inputPath, 'utf8'));
  const mod = await import(pathToFileURL(scriptPath).href);
  let target;
  if (functionName) {
    target = mod[functionName] ?? mod.default?.[functionName];
    if (target === undefined) {
      throw new Error(`Export "${functionName}" not found in ${scriptPath}`);
    }
  } else {
    target = mod.default !== undefined ? mod.default : { ...mod };
  }
  const result = typeof target === 'function' ? await target(...args) : await target;
  envelope = { type: 'final_result', data: result === undefined ? null : result };
} catch (err) {
  envelope = {
    type: 'error',
    error: String((err && err.message) || err),
    traceback: err && err.stack ? String(err.stack) : null,
  };
}
writeFileSync(outputPath, JSON.stringify(envelope));
"""


@runtime_checkable
class ScriptLoader(Protocol):
    """Load a script by path and return the value of its entry point."""

    async def load(
        self,
        path: str,
        function_name: str | None,
        args: Sequence[Any] = (),
    ) -> Any:
        """Return the value produced by ``function_name`` (or the default entry)."""


class _SubprocessRunner(ABC):
    """Run a bootstrap program in a child process and read its JSON envelope."""

    label = "script"

    def __init__(self, executable: str) -> None:
        self.executable = executable

    @abstractmethod
    def _command(self, path: str, function_name: str, input_path: str, output_path: str) -> list[str]:
        """Return the argv that runs the bootstrap for ``path``."""

    async def _invoke(self, path: str, function_name: str, args: Sequence[Any]) -> Any:
        with tempfile.TemporaryDirectory(prefix="gradecore-") as workdir:
            input_path = os.path.join(workdir, "input.json")
            output_path = os.path.join(workdir, "output.json")
            try:
                serialised_args = json.dumps(list(args))
            except TypeError as exc:
                raise ScriptExecutionError(
                    f"Arguments for {path} are not JSON serialisable: {exc}"
                ) from exc
            Path(input_path).write_text(serialised_args, encoding="utf-8")

            command = self._command(path, function_name, input_path, output_path)
            LOGGER.debug("Running %s %s:%s", self.label, path, function_name)
            try:
                process = await asyncio.create_subprocess_exec(
                    *command,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except OSError as exc:
                raise ScriptExecutionError(
                    f"Failed to start {self.label} interpreter '{self.executable}': {exc}"
                ) from exc
            stdout, stderr = await process.communicate()
            stderr_text = stderr.decode("utf-8", errors="replace")
            if stdout:
                LOGGER.debug(
                    "%s %s wrote to stdout: %s",
                    self.label,
                    path,
                    stdout.decode("utf-8", errors="replace")[:_STDERR_SNIPPET_BYTES],
                )
            return _read_envelope(
                output_path,
                label=self.label,
                path=path,
                function_name=function_name,
                exit_code=process.returncode,
                stderr=stderr_text,
            )


class PythonScriptRunner(_SubprocessRunner):
    """Invoke a function from a Python script in a separate interpreter."""

    label = "Python"

    def __init__(self, python_executable: str | None = None) -> None:
        super().__init__(python_executable or sys.executable)

    def _command(self, path: str, function_name: str, input_path: str, output_path: str) -> list[str]:
        return [self.executable, "-c", _PYTHON_BOOTSTRAP, path, function_name, input_path, output_path]

    async def load(
        self,
        path: str,
        function_name: str | None,
        args: Sequence[Any] = (),
    ) -> Any:
        if not function_name:
            raise MissingFunctionNameError(path)
        return await self._invoke(path, function_name, args)


class NodeModuleRunner(_SubprocessRunner):
    """Import a JavaScript module with Node.js and evaluate its export."""

    label = "Node.js"

    def __init__(self, node_executable: str | None = None) -> None:
        super().__init__(node_executable or "node")

    def _command(self, path: str, function_name: str, input_path: str, output_path: str) -> list[str]:
        return [
            self.executable,
            "--input-type=module",
            "-e",
            _NODE_BOOTSTRAP,
            path,
            function_name,
            input_path,
            output_path,
        ]

    async def load(
        self,
        path: str,
        function_name: str | None,
        args: Sequence[Any] = (),
    ) -> Any:
        return await self._invoke(path, function_name or "", args)


class InProcessModuleLoader:
    """Import Python files into the current interpreter."""

    def import_module(self, path: str) -> ModuleType:
        resolved = os.path.abspath(path)
        digest = hashlib.sha256(resolved.encode("utf-8")).hexdigest()[:12]
        module_name = f"gradecore_dynamic_{Path(resolved).stem}_{digest}"
        cached = sys.modules.get(module_name)
        if cached is not None:
            return cached

        spec = importlib.util.spec_from_file_location(module_name, resolved)
        if spec is None or spec.loader is None:
            raise ImportError(f"Cannot import module from {resolved}")
        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except BaseException:
            sys.modules.pop(module_name, None)
            raise
        return module

    def import_attribute(self, path: str, name: str) -> Any:
        module = self.import_module(path)
        try:
            return getattr(module, name)
        except AttributeError as exc:
            raise AttributeError(f"Module '{path}' has no attribute '{name}'") from exc

    async def load(
        self,
        path: str,
        function_name: str | None,
        args: Sequence[Any] = (),
    ) -> Any:
        if not function_name:
            raise MissingFunctionNameError(path)
        target = self.import_attribute(path, function_name)
        if not callable(target):
            return target
        result = target(*args)
        if inspect.isawaitable(result):
            result = await result
        return result


def _read_envelope(
    output_path: str,
    *,
    label: str,
    path: str,
    function_name: str,
    exit_code: int | None,
    stderr: str,
) -> Any:
    entry = f"{path}:{function_name}" if function_name else path
    try:
        raw = Path(output_path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ScriptExecutionError(
            f"{label} script {entry} exited with code {exit_code} without reporting a result",
            exit_code=exit_code,
            stderr=stderr[-_STDERR_SNIPPET_BYTES:],
        ) from exc

    try:
        envelope = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ScriptExecutionError(
            f"{label} script {entry} produced an unreadable result: {exc}",
            exit_code=exit_code,
            stderr=stderr[-_STDERR_SNIPPET_BYTES:],
        ) from exc

    if envelope.get("type") == "final_result":
        return envelope.get("data")

    raise ScriptExecutionError(
        f"{label} script {entry} failed: {envelope.get('error', 'unknown error')}",
        exit_code=exit_code,
        stderr=stderr[-_STDERR_SNIPPET_BYTES:],
        traceback=envelope.get("traceback"),
    )
