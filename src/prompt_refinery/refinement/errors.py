"""
prompt-refinery: refinement error taxonomy

File: src/prompt_refinery/refinement/errors.py
Last updated: 2026-10-17

Purpose
- A single structured error type for every refinement failure, with a
  machine-readable kind and a retryability hint for the caller.

Functional requirements
- Kinds: SCHEMA_INVALID, LLM_TIMEOUT, LLM_429, LLM_MALFORMED.
- Details carry validator pointers and, for malformed output, a truncated sample.
"""

from __future__ import annotations

import enum
from collections.abc import Mapping

from prompt_refinery.constants import MALFORMED_SAMPLE_CHARS


class RefinementErrorKind(str, enum.Enum):
    """Wire names of the refinement failure kinds."""

    SCHEMA_INVALID = "SCHEMA_INVALID"
    LLM_TIMEOUT = "LLM_TIMEOUT"
    LLM_429 = "LLM_429"
    LLM_MALFORMED = "LLM_MALFORMED"


class RefinementError(RuntimeError):
    """Base structured refinement failure."""

    def __init__(
        self,
        *,
        kind: RefinementErrorKind,
        message: str,
        retryable: bool,
        details: Mapping[str, object] | None = None,
    ) -> None:
        self.kind = RefinementErrorKind(kind)
        self.message = _normalize_message(message)
        self.retryable = bool(retryable)
        self.details: dict[str, object] = dict(details or {})
        super().__init__(
            f"kind={self.kind.value} retryable={str(self.retryable).lower()} "
            f"detail={self.message}"
        )

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "kind": self.kind.value,
            "message": self.message,
            "retryable": self.retryable,
        }
        if self.details:
            payload["details"] = dict(self.details)
        return payload


class SchemaInvalidError(RefinementError):
    """Caller input invalid, or output still invalid after the repair round."""

    def __init__(self, message: str, *, details: Mapping[str, object] | None = None) -> None:
        super().__init__(
            kind=RefinementErrorKind.SCHEMA_INVALID,
            message=message,
            retryable=False,
            details=details,
        )


class ProviderTimeoutError(RefinementError):
    """The completion provider did not answer within the attempt budget."""

    def __init__(self, message: str, *, details: Mapping[str, object] | None = None) -> None:
        super().__init__(
            kind=RefinementErrorKind.LLM_TIMEOUT,
            message=message,
            retryable=True,
            details=details,
        )


class ProviderRateLimitedError(RefinementError):
    """The provider rate-limited the call and the retry budget is spent."""

    def __init__(self, message: str, *, details: Mapping[str, object] | None = None) -> None:
        super().__init__(
            kind=RefinementErrorKind.LLM_429,
            message=message,
            retryable=True,
            details=details,
        )


class MalformedResponseError(RefinementError):
    """The provider answered ``ok`` with unusable text and no repair was possible."""

    def __init__(
        self,
        message: str,
        *,
        raw_text: str | None = None,
        details: Mapping[str, object] | None = None,
    ) -> None:
        payload = dict(details or {})
        if raw_text is not None:
            payload["sample"] = truncate_sample(raw_text)
        super().__init__(
            kind=RefinementErrorKind.LLM_MALFORMED,
            message=message,
            retryable=True,
            details=payload,
        )


def truncate_sample(text: str, *, limit: int = MALFORMED_SAMPLE_CHARS) -> str:
    """Return at most ``limit`` characters of raw provider text."""

    return text[:limit]


def is_retryable_error(error: BaseException) -> bool:
    """Return the caller-facing retryability hint for refinement errors."""

    return isinstance(error, RefinementError) and error.retryable


def _normalize_message(value: object) -> str:
    text = str(value).strip()
    if not text:
        return "unknown error"
    return " ".join(text.split())


__all__ = [
    "MalformedResponseError",
    "ProviderRateLimitedError",
    "ProviderTimeoutError",
    "RefinementError",
    "RefinementErrorKind",
    "SchemaInvalidError",
    "is_retryable_error",
    "truncate_sample",
]
