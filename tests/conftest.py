"""Shared document fixtures for refinement tests."""

from __future__ import annotations

import copy
import json
from typing import Any

import pytest

VALID_REFINED_PROMPT: dict[str, Any] = {
    "version": 1,
    "id": "refined-0001",
    "refined_text": "Learn linear algebra through small projects",
    "rationale": "Balanced lenses favour hands-on practice",
    "lenses": {"tutor": 0.4, "publisher": 0.3, "student": 0.3},
    "constraints": ["no calculus prerequisites"],
}

VALID_STUDY_PLAN: dict[str, Any] = {
    "version": 1,
    "id": "plan-0001",
    "overview": "Vectors first, then matrices",
    "parts": [
        {
            "title": "Foundations",
            "chapters": [
                {
                    "title": "Vectors",
                    "modules": [
                        {
                            "title": "Vector basics",
                            "outcomes": ["add and scale vectors"],
                            "routing_suggestions": [
                                {
                                    "topic": "vectors",
                                    "folder": "math/linear",
                                    "filename_slug": "vector-basics",
                                    "tags": ["intro"],
                                }
                            ],
                            "cross_links": ["matrices"],
                            "prereqs": [],
                            "flags": {"foundational": True},
                        }
                    ],
                    "cross_links": [],
                    "prereqs": [],
                    "flags": {"foundational": True},
                }
            ],
            "meta": {"reflection": ["why vectors"], "synthesis": ["combine ideas"]},
        }
    ],
}


@pytest.fixture
def refined_prompt_doc() -> dict[str, Any]:
    return copy.deepcopy(VALID_REFINED_PROMPT)


@pytest.fixture
def study_plan_doc() -> dict[str, Any]:
    return copy.deepcopy(VALID_STUDY_PLAN)


@pytest.fixture
def valid_response_text() -> str:
    return json.dumps({"refinedPrompt": VALID_REFINED_PROMPT, "studyPlan": VALID_STUDY_PLAN})


@pytest.fixture
def valid_request() -> dict[str, Any]:
    return {
        "goal": "  Learn   linear algebra for ML  ",
        "contextRefs": ["notes/vectors.md", "notes/matrices.md"],
        "lensWeights": {"tutor": 0.5, "publisher": 0.2, "student": 0.3},
    }
