"""Reference resolution and function/tool call validation for LLM grading."""

from gradecore.assertions import (
    Assertion,
    SchemaValidator,
    Verdict,
    handle_is_valid_function_call,
    handle_is_valid_tools_call,
    run_assertion,
)
from gradecore.calls import CallMode, ExtractedCall, OutputShape, classify_output, extract_calls
from gradecore.paths import PathDescriptor, parse_path_or_glob
from gradecore.resolver import (
    ExternalResourceResolver,
    ResourceKind,
    maybe_load_from_external_file,
    maybe_load_tools_from_external_file,
)

__all__ = [
    "Assertion",
    "CallMode",
    "ExternalResourceResolver",
    "ExtractedCall",
    "OutputShape",
    "PathDescriptor",
    "ResourceKind",
    "SchemaValidator",
    "Verdict",
    "classify_output",
    "extract_calls",
    "handle_is_valid_function_call",
    "handle_is_valid_tools_call",
    "maybe_load_from_external_file",
    "maybe_load_tools_from_external_file",
    "parse_path_or_glob",
    "run_assertion",
]
