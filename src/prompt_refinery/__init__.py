"""
prompt-refinery: contract-enforcing LLM refinement pipeline

File: src/prompt_refinery/__init__.py
Last updated: 2026-10-17

Purpose
- Package root. Turns a loosely specified learning goal into a validated
  refined prompt plus a hierarchical study plan, using a completion provider
  that is assumed to be unreliable.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).
"""

from prompt_refinery.config import RefinementSettings, load_settings
from prompt_refinery.contracts import RefinementRequest, RefinementResult, SchemaValidator
from prompt_refinery.providers import CompletionProvider, CompletionResult, CompletionStatus
from prompt_refinery.refinement import (
    RefinementError,
    RefinementErrorKind,
    RefinementFlags,
    RefinementOrchestrator,
)

__version__ = "0.1.0"

__all__ = [
    "CompletionProvider",
    "CompletionResult",
    "CompletionStatus",
    "RefinementError",
    "RefinementErrorKind",
    "RefinementFlags",
    "RefinementOrchestrator",
    "RefinementRequest",
    "RefinementResult",
    "RefinementSettings",
    "SchemaValidator",
    "__version__",
    "load_settings",
]
