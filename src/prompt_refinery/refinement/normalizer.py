"""Input normalization: clean and bound a raw refinement request."""

from __future__ import annotations

import math
import re
from collections.abc import Mapping, Sequence
from typing import Final

from prompt_refinery.constants import MAX_CONTEXT_REFS
from prompt_refinery.contracts.models import RefinementRequest

# Current name first; ``weights`` is the legacy client field.
WEIGHT_FIELD_NAMES: Final[tuple[str, ...]] = ("lensWeights", "weights")

_WHITESPACE_RUN = re.compile(r"\s+")


def normalize_request(raw: object) -> RefinementRequest:
    """Return the canonical form of ``raw``; never raises.

    - ``goal`` is trimmed and internal whitespace runs collapse to one space.
    - ``contextRefs`` entries are trimmed, empties dropped, deduplicated in
      first-seen order and capped at ``MAX_CONTEXT_REFS``.
    - Each lens weight is clamped into ``[0, 1]`` independently; values that
      are not finite numbers are dropped. Lens names are trimmed and
      lowercased.
    """

    payload: Mapping[str, object] = raw if isinstance(raw, Mapping) else {}
    return RefinementRequest(
        goal=normalize_goal(payload.get("goal")),
        context_refs=normalize_context_refs(payload.get("contextRefs")),
        lens_weights=normalize_lens_weights(_first_present(payload, WEIGHT_FIELD_NAMES)),
    )


def normalize_goal(value: object) -> str:
    if not isinstance(value, str):
        return ""
    return _WHITESPACE_RUN.sub(" ", value.strip())


def normalize_context_refs(value: object, *, limit: int = MAX_CONTEXT_REFS) -> tuple[str, ...]:
    if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
        return ()
    seen: dict[str, None] = {}
    for item in value:
        if not isinstance(item, str):
            continue
        cleaned = item.strip()
        if cleaned and cleaned not in seen:
            seen[cleaned] = None
    return tuple(seen)[:limit]


def normalize_lens_weights(value: object) -> dict[str, float] | None:
    if not isinstance(value, Mapping):
        return None
    weights: dict[str, float] = {}
    for key, raw_weight in value.items():
        if not isinstance(key, str) or not key.strip():
            continue
        weight = _coerce_weight(raw_weight)
        if weight is not None:
            # Lens names are case-insensitive; the first spelling seen wins.
            weights.setdefault(key.strip().lower(), clamp(weight, 0.0, 1.0))
    return weights or None


def clamp(value: float, lower: float, upper: float) -> float:
    return min(upper, max(lower, value))


def _coerce_weight(value: object) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(number):
        return None
    return number


def _first_present(payload: Mapping[str, object], keys: Sequence[str]) -> object:
    for key in keys:
        if payload.get(key) is not None:
            return payload[key]
    return None


__all__ = [
    "WEIGHT_FIELD_NAMES",
    "clamp",
    "normalize_context_refs",
    "normalize_goal",
    "normalize_lens_weights",
    "normalize_request",
]
