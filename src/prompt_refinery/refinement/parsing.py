"""
prompt-refinery: provider text parsing

File: src/prompt_refinery/refinement/parsing.py
Last updated: 2026-10-17

Purpose
- Turn raw provider text into an explicit ``ParseResult`` instead of letting
  JSON decode errors unwind through the repair logic.

Functional requirements
- Strict JSON is tried first; a single fenced ``json`` block is accepted as a
  fallback because providers sometimes ignore the "no fences" instruction.
- Malformed results carry a truncated sample for error details.
- The non-JSON constants ``NaN``, ``Infinity`` and ``-Infinity`` are rejected,
  and so is nesting too deep for the decoder; both end up ``Malformed``.
"""

from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass
from typing import TypeAlias

from prompt_refinery.contracts.models import JSONValue
from prompt_refinery.refinement.errors import truncate_sample

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*(.*?)```", flags=re.DOTALL | re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class Parsed:
    """Successfully decoded JSON value (shape not yet trusted)."""

    value: JSONValue


@dataclass(frozen=True, slots=True)
class Malformed:
    """Text that could not be decoded as JSON."""

    reason: str
    sample: str


ParseResult: TypeAlias = Parsed | Malformed


def parse_document(text: str | None) -> ParseResult:
    """Decode provider text into a ``ParseResult``."""

    if text is None or not text.strip():
        return Malformed(reason="empty response", sample="")

    decoded = _try_decode(text)
    if decoded is not None:
        return decoded

    for block in _FENCED_BLOCK.findall(text):
        decoded = _try_decode(block)
        if decoded is not None:
            return decoded

    return Malformed(reason="response is not valid JSON", sample=truncate_sample(text.strip()))


def _try_decode(candidate: str) -> Parsed | None:
    try:
        value = json.loads(
            candidate,
            parse_constant=_reject_constant,
            parse_float=_parse_finite_float,
        )
    except (ValueError, RecursionError):
        # JSONDecodeError is a ValueError.
        return None
    return Parsed(value=value)


def _reject_constant(token: str) -> float:
    raise ValueError(f"non-finite number {token!r} is not valid JSON")


def _parse_finite_float(token: str) -> float:
    value = float(token)
    if not math.isfinite(value):
        raise ValueError(f"number {token!r} overflows a finite float")
    return value


__all__ = ["Malformed", "ParseResult", "Parsed", "parse_document"]
