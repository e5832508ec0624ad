"""
prompt-refinery: response sanitizer

File: src/prompt_refinery/refinement/sanitizer.py
Last updated: 2026-10-17

Purpose
- Project a parsed-but-untrusted provider document onto the allowed shape of
  the refined-prompt and study-plan contracts, recording every dropped key.

What should be included in this file
- A declarative allow-list table per nesting level.
- A recursive walk over the generic JSON tree driven by that table.

Functional requirements
- Keys outside a level's allow-list are dropped and reported as JSON pointers.
- Array elements are visited positionally; the index extends the pointer.
- A branch of the wrong container type is omitted, never raised on; the
  validator is responsible for reporting what is missing.
- Sanitizing an already sanitized document is a no-op with no rejections.

Non-functional requirements
- Stateless: one instance may be shared across concurrent refinements.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Final, TypeAlias

from prompt_refinery.constants import REFINED_PROMPT_KEY, STUDY_PLAN_KEY
from prompt_refinery.contracts.models import JSONObject, JSONValue
from prompt_refinery.contracts.validation import escape_pointer_token


@dataclass(frozen=True, slots=True)
class Leaf:
    """Scalar slot; the value is kept as-is for the validator to judge."""


@dataclass(frozen=True, slots=True)
class StringList:
    """List of strings; non-string entries are filtered out."""


@dataclass(frozen=True, slots=True)
class ObjectShape:
    """Object level with a fixed allow-list of keys."""

    fields: Mapping[str, Shape] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ArrayOf:
    """Ordered list of objects sharing one shape."""

    item: ObjectShape


Shape: TypeAlias = Leaf | StringList | ObjectShape | ArrayOf

LEAF: Final[Leaf] = Leaf()
STRING_LIST: Final[StringList] = StringList()

FLAGS_SHAPE: Final[ObjectShape] = ObjectShape({"foundational": LEAF})

ROUTING_SUGGESTION_SHAPE: Final[ObjectShape] = ObjectShape(
    {
        "topic": LEAF,
        "folder": LEAF,
        "filename_slug": LEAF,
        "tags": STRING_LIST,
    }
)

MODULE_SHAPE: Final[ObjectShape] = ObjectShape(
    {
        "title": LEAF,
        "outcomes": STRING_LIST,
        "routing_suggestions": ArrayOf(ROUTING_SUGGESTION_SHAPE),
        "cross_links": STRING_LIST,
        "prereqs": STRING_LIST,
        "flags": FLAGS_SHAPE,
    }
)

CHAPTER_SHAPE: Final[ObjectShape] = ObjectShape(
    {
        "title": LEAF,
        "modules": ArrayOf(MODULE_SHAPE),
        "cross_links": STRING_LIST,
        "prereqs": STRING_LIST,
        "flags": FLAGS_SHAPE,
    }
)

META_SHAPE: Final[ObjectShape] = ObjectShape({"reflection": STRING_LIST, "synthesis": STRING_LIST})

PART_SHAPE: Final[ObjectShape] = ObjectShape(
    {
        "title": LEAF,
        "chapters": ArrayOf(CHAPTER_SHAPE),
        "meta": META_SHAPE,
    }
)

STUDY_PLAN_SHAPE: Final[ObjectShape] = ObjectShape(
    {
        "version": LEAF,
        "id": LEAF,
        "overview": LEAF,
        "parts": ArrayOf(PART_SHAPE),
    }
)

LENSES_SHAPE: Final[ObjectShape] = ObjectShape({"tutor": LEAF, "publisher": LEAF, "student": LEAF})

REFINED_PROMPT_SHAPE: Final[ObjectShape] = ObjectShape(
    {
        "version": LEAF,
        "id": LEAF,
        "refined_text": LEAF,
        "rationale": LEAF,
        "lenses": LENSES_SHAPE,
        "constraints": STRING_LIST,
    }
)

_ABSENT: Final = object()


@dataclass(frozen=True, slots=True)
class SanitizeResult:
    """Sanitized envelope plus the pointers of every dropped key."""

    document: JSONObject
    rejected_paths: tuple[str, ...] = ()

    @property
    def refined_prompt(self) -> JSONValue:
        return self.document.get(REFINED_PROMPT_KEY)

    @property
    def study_plan(self) -> JSONValue:
        return self.document.get(STUDY_PLAN_KEY)


class ResponseSanitizer:
    """Allow-list projection of provider envelopes ``{refinedPrompt, studyPlan}``."""

    def __init__(
        self,
        *,
        refined_prompt_shape: ObjectShape = REFINED_PROMPT_SHAPE,
        study_plan_shape: ObjectShape = STUDY_PLAN_SHAPE,
    ) -> None:
        self._sections: tuple[tuple[str, ObjectShape], ...] = (
            (REFINED_PROMPT_KEY, refined_prompt_shape),
            (STUDY_PLAN_KEY, study_plan_shape),
        )

    def sanitize(self, parsed: object) -> SanitizeResult:
        """Sanitize a decoded response; ``None`` or non-objects yield an empty envelope."""

        if not isinstance(parsed, Mapping):
            return SanitizeResult(document={})

        rejected: list[str] = []
        allowed = {key for key, _ in self._sections}
        for key in parsed:
            if key not in allowed:
                rejected.append(f"/{escape_pointer_token(str(key))}")

        document: JSONObject = {}
        for key, shape in self._sections:
            if key not in parsed:
                continue
            projected = _project(parsed[key], shape, f"/{key}", rejected)
            if projected is not _ABSENT:
                document[key] = projected
        return SanitizeResult(document=document, rejected_paths=tuple(rejected))

    def sanitize_section(
        self,
        value: object,
        shape: ObjectShape,
        *,
        base_path: str,
    ) -> tuple[JSONValue, tuple[str, ...]]:
        """Sanitize one sub-document independently of the envelope."""

        rejected: list[str] = []
        projected = _project(value, shape, base_path, rejected)
        return (None if projected is _ABSENT else projected), tuple(rejected)


def sanitize_response(parsed: object) -> SanitizeResult:
    """Module-level convenience using the default contract shapes."""

    return _DEFAULT_SANITIZER.sanitize(parsed)


def _project(value: object, shape: Shape, path: str, rejected: list[str]) -> object:
    if isinstance(shape, Leaf):
        return copy.deepcopy(value)

    if isinstance(shape, StringList):
        if not isinstance(value, list):
            return _ABSENT
        return [item for item in value if isinstance(item, str)]

    if isinstance(shape, ArrayOf):
        if not isinstance(value, list):
            return _ABSENT
        items: list[JSONValue] = []
        for index, element in enumerate(value):
            projected = _project(element, shape.item, f"{path}/{index}", rejected)
            items.append({} if projected is _ABSENT else projected)  # type: ignore[arg-type]
        return items

    if not isinstance(value, Mapping):
        return _ABSENT

    for key in value:
        if key not in shape.fields:
            rejected.append(f"{path}/{escape_pointer_token(str(key))}")

    out: JSONObject = {}
    for key, child_shape in shape.fields.items():
        if key not in value:
            continue
        projected = _project(value[key], child_shape, f"{path}/{escape_pointer_token(key)}", rejected)
        if projected is not _ABSENT:
            out[key] = projected  # type: ignore[assignment]
    return out


_DEFAULT_SANITIZER: Final[ResponseSanitizer] = ResponseSanitizer()


__all__ = [
    "CHAPTER_SHAPE",
    "FLAGS_SHAPE",
    "LENSES_SHAPE",
    "META_SHAPE",
    "MODULE_SHAPE",
    "PART_SHAPE",
    "REFINED_PROMPT_SHAPE",
    "ROUTING_SUGGESTION_SHAPE",
    "STUDY_PLAN_SHAPE",
    "ArrayOf",
    "Leaf",
    "ObjectShape",
    "ResponseSanitizer",
    "STRING_LIST",
    "SanitizeResult",
    "Shape",
    "StringList",
    "sanitize_response",
]
