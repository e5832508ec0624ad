"""
prompt-refinery: completion provider interface

Concrete providers (deterministic stubs, live API clients) live with the
composition layer; the pipeline depends only on ``CompletionProvider``.
"""

from prompt_refinery.providers.base import (
    BackoffPolicy,
    CompletionProvider,
    CompletionResult,
    CompletionStatus,
    RandomFn,
    SleepFn,
    default_sleep,
)

__all__ = [
    "BackoffPolicy",
    "CompletionProvider",
    "CompletionResult",
    "CompletionStatus",
    "RandomFn",
    "SleepFn",
    "default_sleep",
]
