"""
prompt-refinery: schema validation

File: src/prompt_refinery/contracts/validation.py
Last updated: 2026-10-17

Purpose
- Validate request, refined-prompt and study-plan documents against the
  packaged JSON Schemas and report precise field pointers.

What should be included in this file
- Schema loading from package data.
- Three independent predicates plus ``last_errors`` for the most recent one.
- Report-returning variants for callers that need the issues directly.

Functional requirements
- Additional properties are rejected here regardless of sanitization.
- Issues are emitted in deterministic order.

Non-functional requirements
- Validator instances hold no per-call state; the "last errors" slot is scoped
  to the current execution context so concurrent refinements never observe
  each other's errors.
"""

from __future__ import annotations

import contextvars
import copy
import json
from collections.abc import Iterable, Mapping
from functools import lru_cache
from pathlib import Path
from typing import Any, Final

from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError

from prompt_refinery.contracts.models import ValidationIssue, ValidationReport

REQUEST_SCHEMA: Final[str] = "request"
REFINED_PROMPT_SCHEMA: Final[str] = "refined_prompt"
STUDY_PLAN_SCHEMA: Final[str] = "study_plan"

_SCHEMA_FILES: Final[dict[str, str]] = {
    REQUEST_SCHEMA: "request.schema.json",
    REFINED_PROMPT_SCHEMA: "refined_prompt.schema.json",
    STUDY_PLAN_SCHEMA: "study_plan.schema.json",
}
_SCHEMA_DIR: Final[Path] = Path(__file__).resolve().parent

_LAST_ERRORS: contextvars.ContextVar[tuple[ValidationIssue, ...]] = contextvars.ContextVar(
    "prompt_refinery_last_validation_errors", default=()
)


class SchemaLoadError(RuntimeError):
    """Raised when a packaged schema is missing or not a valid JSON Schema."""


def load_schema(name: str) -> dict[str, Any]:
    """Return a private copy of the named packaged schema."""

    return copy.deepcopy(_load_schema_cached(name))


def raw_schemas() -> dict[str, dict[str, Any]]:
    """Return copies of all packaged schemas keyed by schema name."""

    return {name: load_schema(name) for name in _SCHEMA_FILES}


@lru_cache(maxsize=None)
def _load_schema_cached(name: str) -> dict[str, Any]:
    file_name = _SCHEMA_FILES.get(name)
    if file_name is None:
        raise SchemaLoadError(f"unknown schema: {name!r}")
    path = _SCHEMA_DIR / file_name
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise SchemaLoadError(f"schema file not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise SchemaLoadError(f"schema file is not valid JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise SchemaLoadError(f"schema root must be an object: {path}")
    return payload


class SchemaValidator:
    """Structural conformance checker for the three wire document shapes."""

    def __init__(self, schemas: Mapping[str, Mapping[str, Any]] | None = None) -> None:
        resolved = dict(schemas) if schemas is not None else raw_schemas()
        missing = sorted(set(_SCHEMA_FILES) - set(resolved))
        if missing:
            raise SchemaLoadError("missing schema(s): " + ", ".join(missing))

        self._validators: dict[str, Draft202012Validator] = {}
        for name in sorted(_SCHEMA_FILES):
            schema = dict(resolved[name])
            try:
                Draft202012Validator.check_schema(schema)
            except Exception as exc:  # noqa: BLE001
                raise SchemaLoadError(f"invalid JSON Schema for {name!r}: {exc}") from exc
            self._validators[name] = Draft202012Validator(schema)

    def check(self, schema_name: str, document: object) -> ValidationReport:
        """Validate ``document`` and return every issue without touching ``last_errors``."""

        validator = self._validators.get(schema_name)
        if validator is None:
            raise KeyError(f"unknown schema: {schema_name!r}")
        issues = sorted(
            (_issue_from_error(error) for error in validator.iter_errors(document)),
            key=lambda issue: (issue.path, issue.message),
        )
        return ValidationReport(schema=schema_name, issues=tuple(issues))

    def check_request(self, document: object) -> ValidationReport:
        return self.check(REQUEST_SCHEMA, document)

    def check_refined_prompt(self, document: object) -> ValidationReport:
        return self.check(REFINED_PROMPT_SCHEMA, document)

    def check_study_plan(self, document: object) -> ValidationReport:
        return self.check(STUDY_PLAN_SCHEMA, document)

    def validate_request(self, document: object) -> bool:
        return self._record(self.check_request(document))

    def validate_refined_prompt(self, document: object) -> bool:
        return self._record(self.check_refined_prompt(document))

    def validate_study_plan(self, document: object) -> bool:
        return self._record(self.check_study_plan(document))

    def last_errors(self) -> list[dict[str, str]]:
        """Return ``{path, message}`` pointers from the most recent predicate call."""

        return [issue.to_dict() for issue in _LAST_ERRORS.get()]

    @staticmethod
    def _record(report: ValidationReport) -> bool:
        _LAST_ERRORS.set(report.issues)
        return report.valid


def json_pointer(parts: Iterable[object]) -> str:
    """Render path components as an RFC 6901 JSON pointer."""

    rendered = [escape_pointer_token(str(part)) for part in parts]
    return "".join(f"/{token}" for token in rendered)


def escape_pointer_token(token: str) -> str:
    return token.replace("~", "~0").replace("/", "~1")


def _issue_from_error(error: ValidationError) -> ValidationIssue:
    path = json_pointer(error.absolute_path)
    if not path:
        schema_path = json_pointer(error.absolute_schema_path)
        path = f"#{schema_path}" if schema_path else "#"
    return ValidationIssue(path=path, message=error.message)


__all__ = [
    "REFINED_PROMPT_SCHEMA",
    "REQUEST_SCHEMA",
    "STUDY_PLAN_SCHEMA",
    "SchemaLoadError",
    "SchemaValidator",
    "escape_pointer_token",
    "json_pointer",
    "load_schema",
    "raw_schemas",
]
