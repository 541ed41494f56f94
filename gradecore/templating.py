"""jinja2 rendering of ``{{ var }}`` placeholders in paths and definitions."""

from __future__ import annotations

import glob
import logging
import os
from collections.abc import Callable, Mapping
from typing import Any

import jinja2

from gradecore.config import env_flag
from gradecore.errors import ResourceNotFoundError
from gradecore.loaders import InProcessModuleLoader
from gradecore.paths import parse_path_or_glob

__all__ = ["read_filters", "render_env_template", "render_vars_in_object"]

LOGGER = logging.getLogger(__name__)

_TEMPLATE_MARKERS = ("{{", "{%")


def _build_environment(filters: Mapping[str, Callable[..., Any]] | None = None) -> jinja2.Environment:
    environment = jinja2.Environment(autoescape=False, keep_trailing_newline=True)
    if filters:
        environment.filters.update(filters)
    return environment


def _has_template(text: str) -> bool:
    return any(marker in text for marker in _TEMPLATE_MARKERS)


def render_env_template(text: str) -> str:
    """Render ``text`` with a context that only exposes ``env``."""

    if not _has_template(text):
        return text
    template = _build_environment().from_string(text)
    return template.render(env=dict(os.environ))


def render_vars_in_object(
    obj: Any,
    variables: Mapping[str, Any] | None,
    *,
    filters: Mapping[str, Callable[..., Any]] | None = None,
) -> Any:
    """Render every string nested in ``obj`` using ``variables``.

    Returns ``obj`` untouched when there are no variables or when templating is
    disabled through ``GRADECORE_DISABLE_TEMPLATING``.
    """

    if not variables or env_flag("GRADECORE_DISABLE_TEMPLATING"):
        return obj
    environment = _build_environment(filters)
    context = {"env": dict(os.environ), **variables}
    return _render(obj, environment, context)


def _render(node: Any, environment: jinja2.Environment, context: Mapping[str, Any]) -> Any:
    if isinstance(node, str):
        if not _has_template(node):
            return node
        return environment.from_string(node).render(context)
    if isinstance(node, Mapping):
        return {key: _render(value, environment, context) for key, value in node.items()}
    if isinstance(node, list):
        return [_render(item, environment, context) for item in node]
    return node


def read_filters(
    filters: Mapping[str, str],
    base_path: str | None = None,
    *,
    loader: InProcessModuleLoader | None = None,
) -> dict[str, Callable[..., Any]]:
    """Load custom template filters from Python files.

    Each value is a path reference such as ``filters/text.py:shout``. Without an
    explicit function name the attribute named after the filter is used. Glob
    patterns and directories load every matching ``.py`` file; later matches win.
    """

    module_loader = loader or InProcessModuleLoader()
    loaded: dict[str, Callable[..., Any]] = {}
    for name, reference in filters.items():
        descriptor = parse_path_or_glob(base_path or "", reference, strict=False)
        if descriptor.is_path_pattern:
            pattern = descriptor.file_path
            if os.path.isdir(pattern):
                pattern = os.path.join(pattern, "*.py")
            file_paths = sorted(glob.glob(pattern))
        else:
            if not os.path.exists(descriptor.file_path):
                raise ResourceNotFoundError(os.path.abspath(descriptor.file_path))
            file_paths = [descriptor.file_path]

        attribute = descriptor.function_name or name
        for file_path in file_paths:
            candidate = module_loader.import_attribute(os.path.abspath(file_path), attribute)
            if not callable(candidate):
                raise TypeError(f"Filter '{name}' in {file_path} is not callable")
            loaded[name] = candidate
            LOGGER.debug("Loaded template filter %s from %s", name, file_path)
    return loaded
