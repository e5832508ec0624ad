"""
prompt-refinery: refinement pipeline

Normalize -> compose -> call provider -> parse -> sanitize -> validate ->
(single repair round) -> finalize.
"""

from prompt_refinery.refinement.composer import (
    ComposedPrompt,
    PromptComposer,
    PromptTemplateError,
    PromptTemplateNotFoundError,
    PromptTemplateVariableError,
    append_repair_guidance,
    build_repair_instruction,
    default_lens_weights,
    render_schema_outline,
)
from prompt_refinery.refinement.errors import (
    MalformedResponseError,
    ProviderRateLimitedError,
    ProviderTimeoutError,
    RefinementError,
    RefinementErrorKind,
    SchemaInvalidError,
    is_retryable_error,
)
from prompt_refinery.refinement.fingerprint import canonicalize, fingerprint
from prompt_refinery.refinement.normalizer import normalize_request
from prompt_refinery.refinement.orchestrator import (
    AttemptOutcome,
    RefinementFlags,
    RefinementOrchestrator,
    RefinementState,
    ValidationVerdict,
)
from prompt_refinery.refinement.parsing import Malformed, Parsed, ParseResult, parse_document
from prompt_refinery.refinement.sanitizer import (
    ResponseSanitizer,
    SanitizeResult,
    sanitize_response,
)

__all__ = [
    "AttemptOutcome",
    "ComposedPrompt",
    "Malformed",
    "MalformedResponseError",
    "ParseResult",
    "Parsed",
    "PromptComposer",
    "PromptTemplateError",
    "PromptTemplateNotFoundError",
    "PromptTemplateVariableError",
    "ProviderRateLimitedError",
    "ProviderTimeoutError",
    "RefinementError",
    "RefinementErrorKind",
    "RefinementFlags",
    "RefinementOrchestrator",
    "RefinementState",
    "ResponseSanitizer",
    "SanitizeResult",
    "SchemaInvalidError",
    "ValidationVerdict",
    "append_repair_guidance",
    "build_repair_instruction",
    "canonicalize",
    "default_lens_weights",
    "fingerprint",
    "is_retryable_error",
    "normalize_request",
    "parse_document",
    "render_schema_outline",
    "sanitize_response",
]
