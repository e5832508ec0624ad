"""Stable constants shared across the refinement pipeline."""

from __future__ import annotations

from typing import Final

# Document contract versions.
DOCUMENT_VERSION: Final[int] = 1
DEFAULT_TEMPLATE_VERSION: Final[str] = "curriculum-architect-v1"

# Input normalization bounds.
MAX_CONTEXT_REFS: Final[int] = 8
MIN_GOAL_LENGTH: Final[int] = 8
LENS_NAMES: Final[tuple[str, ...]] = ("tutor", "publisher", "student")

# Provider attempt budget (milliseconds).
DEFAULT_TIMEOUT_MS: Final[int] = 8000
MIN_TIMEOUT_MS: Final[int] = 1000
MAX_TIMEOUT_MS: Final[int] = 16000
RETRY_TIMEOUT_MS: Final[int] = 8000
MAX_ATTEMPTS: Final[int] = 2
DEFAULT_MAX_RETRIES_429: Final[int] = 1

# Rate-limit backoff: base * 2**attempt plus uniform jitter.
BACKOFF_BASE_MS: Final[float] = 300.0
BACKOFF_JITTER_MS: Final[float] = 100.0

# Truncation for raw provider text carried in error details.
MALFORMED_SAMPLE_CHARS: Final[int] = 200

# Envelope keys of a provider response.
REFINED_PROMPT_KEY: Final[str] = "refinedPrompt"
STUDY_PLAN_KEY: Final[str] = "studyPlan"

__all__ = [
    "BACKOFF_BASE_MS",
    "BACKOFF_JITTER_MS",
    "DEFAULT_MAX_RETRIES_429",
    "DEFAULT_TEMPLATE_VERSION",
    "DEFAULT_TIMEOUT_MS",
    "DOCUMENT_VERSION",
    "LENS_NAMES",
    "MALFORMED_SAMPLE_CHARS",
    "MAX_ATTEMPTS",
    "MAX_CONTEXT_REFS",
    "MAX_TIMEOUT_MS",
    "MIN_GOAL_LENGTH",
    "MIN_TIMEOUT_MS",
    "REFINED_PROMPT_KEY",
    "RETRY_TIMEOUT_MS",
    "STUDY_PLAN_KEY",
]
