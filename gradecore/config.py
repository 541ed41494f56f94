"""Environment-driven settings for resolution and validation."""

from __future__ import annotations

import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass

__all__ = ["Settings", "env_flag"]

_TRUE_VALUES = {"1", "true", "yes", "on"}


def env_flag(name: str, environ: Mapping[str, str] | None = None) -> bool:
    source = os.environ if environ is None else environ
    return source.get(name, "").strip().lower() in _TRUE_VALUES


@dataclass(frozen=True, slots=True)
class Settings:
    """Runtime configuration read from ``GRADECORE_*`` environment variables."""

    base_path: str = ""
    strict_files: bool = False
    disable_templating: bool = False
    python_executable: str = sys.executable
    node_executable: str = "node"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        source = os.environ if environ is None else environ
        return cls(
            base_path=source.get("GRADECORE_BASE_PATH", ""),
            strict_files=env_flag("GRADECORE_STRICT_FILES", source),
            disable_templating=env_flag("GRADECORE_DISABLE_TEMPLATING", source),
            python_executable=source.get("GRADECORE_PYTHON") or sys.executable,
            node_executable=source.get("GRADECORE_NODE") or "node",
            log_level=source.get("GRADECORE_LOG_LEVEL", "INFO").upper(),
        )
