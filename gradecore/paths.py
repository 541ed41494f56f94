"""Parse ``file://`` style references into filesystem descriptors."""

from __future__ import annotations

import logging
import os
import re
import stat
from dataclasses import dataclass

from gradecore.config import env_flag
from gradecore.errors import ResourceNotFoundError

__all__ = [
    "FILE_PREFIX",
    "PathDescriptor",
    "is_absolute_path",
    "parse_path_or_glob",
    "split_function_name",
    "strip_file_prefix",
]

FILE_PREFIX = "file://"

LOGGER = logging.getLogger(__name__)

_GLOB_PATTERN = re.compile(r"[*?{}\[\]]")
_DRIVE_PATTERN = re.compile(r"^[A-Za-z]:[\\/]")
_FUNCTION_NAME_PATTERN = re.compile(r"^[A-Za-z_$][\w$.]*$")


@dataclass(frozen=True, slots=True)
class PathDescriptor:
    """Structured view of a path reference."""

    file_path: str
    extension: str | None
    function_name: str | None
    is_path_pattern: bool


def strip_file_prefix(value: str) -> str:
    if value.startswith(FILE_PREFIX):
        return value[len(FILE_PREFIX) :]
    return value


def is_absolute_path(path: str) -> bool:
    return path.startswith(("/", "\\")) or bool(_DRIVE_PATTERN.match(path))


def split_function_name(path: str) -> tuple[str, str | None]:
    """Split ``script.py:func`` into ``("script.py", "func")``.

    The colon of a Windows drive designator is never treated as a separator,
    and the part before the colon must carry a file extension.
    """

    drive = ""
    remainder = path
    if _DRIVE_PATTERN.match(path):
        drive, remainder = path[:2], path[2:]

    if remainder.count(":") != 1:
        return path, None

    candidate, function_name = remainder.split(":", 1)
    _, extension = os.path.splitext(os.path.basename(candidate.replace("\\", "/")))
    if not extension or not _FUNCTION_NAME_PATTERN.fullmatch(function_name):
        return path, None
    return drive + candidate, function_name


def parse_path_or_glob(
    base_path: str,
    raw_path: str,
    *,
    strict: bool | None = None,
) -> PathDescriptor:
    """Describe ``raw_path`` relative to ``base_path``.

    ``strict`` defaults to the ``GRADECORE_STRICT_FILES`` environment flag. When
    strict, a path that cannot be stat'ed raises :class:`ResourceNotFoundError`;
    otherwise a best-effort descriptor is returned.
    """

    if strict is None:
        strict = env_flag("GRADECORE_STRICT_FILES")

    path = strip_file_prefix(raw_path)
    path, function_name = split_function_name(path)

    if base_path and not is_absolute_path(path):
        file_path = os.path.normpath(os.path.join(base_path, path))
    else:
        file_path = os.path.normpath(path) if path else path

    is_glob = bool(_GLOB_PATTERN.search(file_path))
    is_directory = False
    if not is_glob:
        try:
            is_directory = stat.S_ISDIR(os.stat(file_path).st_mode)
        except OSError as exc:
            if strict:
                raise ResourceNotFoundError(file_path) from exc
            LOGGER.debug("Path %s could not be stat'ed; continuing without it", file_path)

    if is_glob or is_directory:
        return PathDescriptor(
            file_path=file_path,
            extension=None,
            function_name=None,
            is_path_pattern=True,
        )

    _, extension = os.path.splitext(os.path.basename(file_path))
    return PathDescriptor(
        file_path=file_path,
        extension=extension,
        function_name=function_name,
        is_path_pattern=False,
    )
