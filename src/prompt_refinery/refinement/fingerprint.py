"""Canonical serialization and content fingerprints for normalized requests."""

from __future__ import annotations

from prompt_refinery.contracts.models import RefinementRequest
from prompt_refinery.utils.hashing import canonical_json, sha256_text


def canonicalize(value: object) -> str:
    """Serialize ``value`` so that key insertion order never changes the output.

    Object keys are sorted lexicographically; arrays keep their order and
    primitives serialize as plain JSON.
    """

    return canonical_json(value)


def fingerprint(request: RefinementRequest, *, template_version: str) -> str:
    """Return the SHA-256 hex digest of the request inputs plus template version."""

    weights = dict(request.lens_weights) if request.lens_weights is not None else {}
    canonical = canonicalize(
        {
            "goal": request.goal,
            "contextRefs": list(request.context_refs),
            "weights": weights,
            "templateVersion": template_version,
        }
    )
    return sha256_text(canonical)


__all__ = ["canonicalize", "fingerprint"]
