"""
prompt-refinery: completion provider capability

File: src/prompt_refinery/providers/base.py
Last updated: 2026-10-17

Purpose
- The single capability the refinement pipeline consumes from a generative
  text collaborator, plus the backoff policy used between attempts.

What should be included in this file
- Status taxonomy (ok, rate_limited, timeout, error) and the normalized result.
- A runtime-checkable protocol concrete providers satisfy.
- Jittered exponential backoff with injectable randomness and sleep.

Functional requirements
- Only ``status`` and ``text`` may drive pipeline control flow.

Non-functional requirements
- Must make it easy to plug in new providers without touching the pipeline.
"""

from __future__ import annotations

import asyncio
import enum
import random as random_module
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol, TypeAlias, runtime_checkable

from prompt_refinery.constants import BACKOFF_BASE_MS, BACKOFF_JITTER_MS

SleepFn: TypeAlias = Callable[[float], Awaitable[None]]
RandomFn: TypeAlias = Callable[[], float]


class CompletionStatus(str, enum.Enum):
    """Provider-reported outcome of one completion call."""

    OK = "ok"
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class CompletionResult:
    """Normalized provider response."""

    text: str
    provider_name: str
    status: CompletionStatus
    status_code: int | None = None
    latency_ms: int | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.text, str):
            raise TypeError("CompletionResult.text must be a string")
        object.__setattr__(self, "status", CompletionStatus(self.status))
        if self.latency_ms is not None and self.latency_ms < 0:
            raise ValueError("latency_ms must be >= 0")

    @property
    def ok(self) -> bool:
        return self.status is CompletionStatus.OK


@runtime_checkable
class CompletionProvider(Protocol):
    """Capability implemented by concrete generative-text collaborators."""

    async def complete(
        self,
        prompt: str,
        *,
        timeout_ms: int,
        correlation_id: str,
        attempt: int,
    ) -> CompletionResult:
        """Return the provider's raw text and status for one attempt."""


@dataclass(frozen=True, slots=True)
class BackoffPolicy:
    """Exponential backoff ``base_ms * 2**attempt`` plus uniform jitter."""

    base_ms: float = BACKOFF_BASE_MS
    jitter_ms: float = BACKOFF_JITTER_MS

    def __post_init__(self) -> None:
        if self.base_ms < 0:
            raise ValueError("base_ms must be >= 0")
        if self.jitter_ms < 0:
            raise ValueError("jitter_ms must be >= 0")

    def delay_ms(self, attempt: int, *, random_fn: RandomFn = random_module.random) -> float:
        """Return the delay before retrying after ``attempt`` (1-based)."""

        if attempt <= 0:
            raise ValueError("attempt must be > 0")
        random_value = random_fn()
        if not (0.0 <= random_value <= 1.0):
            raise ValueError("random_fn must return values in [0.0, 1.0]")
        return self.base_ms * (2**attempt) + random_value * self.jitter_ms


async def default_sleep(seconds: float) -> None:
    await asyncio.sleep(seconds)


__all__ = [
    "BackoffPolicy",
    "CompletionProvider",
    "CompletionResult",
    "CompletionStatus",
    "RandomFn",
    "SleepFn",
    "default_sleep",
]
