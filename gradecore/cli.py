from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

from gradecore.assertions import (
    FUNCTION_CALL_ASSERTION,
    TOOLS_CALL_ASSERTION,
    Assertion,
    SchemaValidator,
    run_assertion,
)
from gradecore.config import Settings
from gradecore.errors import GradecoreError
from gradecore.resolver import ExternalResourceResolver, is_file_reference

LOGGER = logging.getLogger(__name__)

_LOG_LEVELS = ["DEBUG", "INFO", "WARN", "ERROR"]
_CHECK_TYPES = {
    "function": FUNCTION_CALL_ASSERTION,
    "tools": TOOLS_CALL_ASSERTION,
}


def _build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gradecore")
    parser.add_argument(
        "--log-level",
        choices=_LOG_LEVELS,
        default=settings.log_level if settings.log_level in _LOG_LEVELS else "INFO",
        help="Logging level",
    )
    parser.add_argument(
        "--base-path",
        default=settings.base_path,
        help="Directory that relative file:// references are resolved against.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    resolve = subparsers.add_parser(
        "resolve",
        help="Resolve a reference string and print the value as JSON.",
    )
    resolve.add_argument("reference", help="Literal value or file:// reference.")
    resolve.add_argument(
        "--tools",
        action="store_true",
        help="Default Python entry points to get_tools.",
    )
    resolve.set_defaults(func=_cmd_resolve)

    check = subparsers.add_parser(
        "check",
        help="Validate a function or tools call output against its definitions.",
    )
    check.add_argument("mode", choices=sorted(_CHECK_TYPES), help="Call mode to validate.")
    check.add_argument(
        "--output",
        required=True,
        help="Model output as JSON text or a file:// reference.",
    )
    check.add_argument(
        "--definitions",
        required=True,
        help="Function/tool definitions as JSON text or a file:// reference.",
    )
    check.add_argument(
        "--vars",
        default=None,
        help="Test variables as JSON text or a file:// reference.",
    )
    check.add_argument(
        "--provider-label",
        default="OpenAI",
        help="Provider name used in failure reasons.",
    )
    check.add_argument("--inverse", action="store_true", help="Negate the assertion.")
    check.set_defaults(func=_cmd_check)
    return parser


def _cmd_resolve(args: argparse.Namespace) -> int:
    resolver = ExternalResourceResolver(args.base_path)
    if args.tools:
        value = asyncio.run(resolver.resolve_tools(args.reference))
    else:
        value = asyncio.run(resolver.resolve(args.reference))
    print(json.dumps(value, indent=2, default=str))
    return 0


def _load_argument(resolver: ExternalResourceResolver, raw: str | None) -> Any:
    if raw is None:
        return None
    if is_file_reference(raw):
        return asyncio.run(resolver.resolve(raw))
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def _cmd_check(args: argparse.Namespace) -> int:
    resolver = ExternalResourceResolver(args.base_path)
    output = _load_argument(resolver, args.output)
    variables = _load_argument(resolver, args.vars) or {}
    definitions = args.definitions
    if not is_file_reference(definitions):
        definitions = _load_argument(resolver, definitions)

    base_type = _CHECK_TYPES[args.mode]
    assertion = Assertion(type=f"not-{base_type}" if args.inverse else base_type)
    provider_key = "tools" if args.mode == "tools" else "functions"
    validator = SchemaValidator(resolver, provider_label=args.provider_label)
    verdict = asyncio.run(
        run_assertion(
            assertion,
            output,
            {provider_key: definitions},
            variables,
            validator=validator,
        )
    )
    print(json.dumps(verdict.to_dict(), indent=2, default=str))
    return 0 if verdict.passed else 1


def main(argv: list[str] | None = None) -> int:
    settings = Settings.from_env()
    args = _build_parser(settings).parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level.upper()))
    try:
        return args.func(args)
    except GradecoreError as exc:
        LOGGER.debug("Command failed", exc_info=True)
        print(f"error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
