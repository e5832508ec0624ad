"""Unit tests for request normalization."""

from __future__ import annotations

import math

import pytest

from prompt_refinery.contracts.models import RefinementRequest
from prompt_refinery.contracts.validation import SchemaValidator
from prompt_refinery.refinement.normalizer import (
    normalize_context_refs,
    normalize_lens_weights,
    normalize_request,
)


@pytest.mark.unit
def test_goal_trimmed_and_whitespace_collapsed() -> None:
    request = normalize_request({"goal": "  learn \t\n  linear   algebra  "})

    assert request.goal == "learn linear algebra"


@pytest.mark.unit
def test_weights_clamped_independently() -> None:
    request = normalize_request(
        {"goal": "goal text", "lensWeights": {"tutor": 1.2, "publisher": -0.2, "student": 0.5}}
    )

    assert request.lens_weights == {"tutor": 1.0, "publisher": 0.0, "student": 0.5}


@pytest.mark.unit
def test_context_refs_capped_at_eight_in_first_seen_order() -> None:
    refs = [f"ref-{index}" for index in range(12)]

    request = normalize_request({"goal": "goal text", "contextRefs": refs})

    assert request.context_refs == tuple(refs[:8])


@pytest.mark.unit
def test_context_refs_trimmed_deduplicated_and_empties_dropped() -> None:
    refs = [" a ", "b", "", "   ", "a", 3, None, "c"]

    assert normalize_context_refs(refs) == ("a", "b", "c")


@pytest.mark.unit
def test_legacy_weight_field_is_accepted() -> None:
    request = normalize_request({"goal": "goal text", "weights": {"tutor": 0.7}})

    assert request.lens_weights == {"tutor": 0.7}


@pytest.mark.unit
def test_current_weight_field_wins_over_legacy() -> None:
    request = normalize_request(
        {"goal": "goal text", "lensWeights": {"tutor": 0.1}, "weights": {"tutor": 0.9}}
    )

    assert request.lens_weights == {"tutor": 0.1}


@pytest.mark.unit
@pytest.mark.parametrize(
    "raw_weights",
    [
        {"tutor": "abc"},
        {"tutor": True},
        {"tutor": math.nan},
        {"tutor": math.inf},
        {"tutor": None},
        {},
    ],
)
def test_unusable_weights_are_dropped(raw_weights: dict[str, object]) -> None:
    assert normalize_lens_weights(raw_weights) is None


@pytest.mark.unit
def test_numeric_string_weight_is_coerced() -> None:
    assert normalize_lens_weights({"student": " 0.25 "}) == {"student": 0.25}


@pytest.mark.unit
def test_lens_names_are_lowercased_and_first_spelling_wins() -> None:
    weights = normalize_lens_weights({" Tutor ": 0.2, "tutor": 0.9, "STUDENT": 0.4, "  ": 0.5})

    assert weights == {"tutor": 0.2, "student": 0.4}


@pytest.mark.unit
def test_mixed_case_lens_names_pass_request_validation() -> None:
    request = normalize_request({"goal": "goal text", "lensWeights": {"Tutor": 0.5}})

    assert SchemaValidator().validate_request(request.to_document()) is True


@pytest.mark.unit
@pytest.mark.parametrize("raw", [None, "goal", 42, ["goal"], {"goal": 12}])
def test_normalization_never_raises(raw: object) -> None:
    request = normalize_request(raw)

    assert isinstance(request, RefinementRequest)
    assert request.goal == ""
    assert request.context_refs == ()
    assert request.lens_weights is None


@pytest.mark.unit
def test_string_context_refs_are_not_split_into_characters() -> None:
    request = normalize_request({"goal": "goal text", "contextRefs": "notes.md"})

    assert request.context_refs == ()


@pytest.mark.unit
def test_to_document_renders_wire_names() -> None:
    request = normalize_request(
        {"goal": "goal text", "contextRefs": ["a"], "lensWeights": {"tutor": 0.5}}
    )

    assert request.to_document() == {
        "goal": "goal text",
        "contextRefs": ["a"],
        "lensWeights": {"tutor": 0.5},
    }
    assert "lensWeights" not in normalize_request({"goal": "goal text"}).to_document()
