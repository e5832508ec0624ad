"""
prompt-refinery: core data model

File: src/prompt_refinery/contracts/models.py
Last updated: 2026-10-17

Purpose
- Typed request/result containers that travel between pipeline stages.

What should be included in this file
- JSON tree aliases for untrusted and validated documents.
- The canonical (normalized) refinement request and its wire rendering.
- Validation issues and the final refinement result.

Functional requirements
- Documents are created fresh per call and never mutated after validation.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TypeAlias

JSONScalar: TypeAlias = str | int | float | bool | None
JSONValue: TypeAlias = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]
JSONObject: TypeAlias = dict[str, JSONValue]


@dataclass(frozen=True, slots=True)
class RefinementRequest:
    """Normalized refinement request (see ``refinement.normalizer``)."""

    goal: str
    context_refs: tuple[str, ...] = ()
    lens_weights: Mapping[str, float] | None = None

    def to_document(self) -> JSONObject:
        """Render the wire form checked by the request schema."""

        payload: JSONObject = {
            "goal": self.goal,
            "contextRefs": list(self.context_refs),
        }
        if self.lens_weights is not None:
            payload["lensWeights"] = dict(self.lens_weights)
        return payload


@dataclass(frozen=True, slots=True)
class ValidationIssue:
    """One schema violation rendered as a JSON pointer plus message."""

    path: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"path": self.path, "message": self.message}


@dataclass(frozen=True, slots=True)
class ValidationReport:
    """Outcome of validating a single document against one schema."""

    schema: str
    issues: tuple[ValidationIssue, ...] = ()

    @property
    def valid(self) -> bool:
        return not self.issues


@dataclass(frozen=True, slots=True)
class RefinementResult:
    """Both certified documents plus the number of provider calls consumed."""

    refined_prompt: JSONObject
    study_plan: JSONObject
    attempts_used: int
    fingerprint: str | None = field(default=None, compare=False)

    def to_dict(self) -> JSONObject:
        payload: JSONObject = {
            "refinedPrompt": self.refined_prompt,
            "studyPlan": self.study_plan,
            "attemptsUsed": self.attempts_used,
        }
        if self.fingerprint is not None:
            payload["fingerprint"] = self.fingerprint
        return payload


__all__ = [
    "JSONObject",
    "JSONScalar",
    "JSONValue",
    "RefinementRequest",
    "RefinementResult",
    "ValidationIssue",
    "ValidationReport",
]
