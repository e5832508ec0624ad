"""
prompt-refinery: prompt composer

File: src/prompt_refinery/refinement/composer.py
Last updated: 2026-10-17

Purpose
- Build the outbound instruction text for the completion provider from a
  versioned Jinja2 template, embedding a machine-readable outline of both
  target schemas.
- Build the single repair instruction appended on the second attempt.

What should be included in this file
- Template loading with a strict variable whitelist.
- Template version extraction (read once at construction).
- Schema outline rendering (shape, types, patterns, bounds, constants).

Functional requirements
- Must render prompts deterministically for the same inputs.
- Missing weights default to an equal tutor/publisher/student split.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final

from jinja2 import Environment, StrictUndefined, TemplateSyntaxError, meta

from prompt_refinery.constants import DEFAULT_TEMPLATE_VERSION, LENS_NAMES
from prompt_refinery.contracts.models import RefinementRequest, ValidationIssue
from prompt_refinery.contracts.validation import (
    REFINED_PROMPT_SCHEMA,
    STUDY_PLAN_SCHEMA,
    load_schema,
)
from prompt_refinery.utils.hashing import sha256_text

DEFAULT_TEMPLATE_NAME: Final[str] = "curriculum_architect.md.j2"
REPAIR_GUIDANCE_LABEL: Final[str] = "REPAIR_GUIDANCE"

TEMPLATE_VARIABLES: Final[frozenset[str]] = frozenset(
    {
        "template_version",
        "goal",
        "context_refs",
        "weights",
        "refined_prompt_schema",
        "study_plan_schema",
    }
)

_TEMPLATE_VERSION_RE = re.compile(r"(?im)^\s*\{#\s*Template-Version:\s*(\S+?)\s*#\}\s*$")
_OUTLINE_INDENT: Final[str] = "    "

_REPAIR_DIRECTIVE: Final[str] = (
    "Your previous response did not validate. Return ONLY strict JSON that satisfies "
    "both schemas: RefinedPromptV1 and StudyPlanV1. Do not include code fences or commentary."
)


class PromptTemplateError(RuntimeError):
    """Base error for prompt template loading and rendering."""


class PromptTemplateNotFoundError(PromptTemplateError, FileNotFoundError):
    """Raised when the template file does not exist."""


class PromptTemplateVariableError(PromptTemplateError, ValueError):
    """Raised when the template references variables outside the whitelist."""


@dataclass(frozen=True, slots=True)
class ComposedPrompt:
    """Rendered prompt plus the weights actually sent to the provider."""

    text: str
    effective_weights: dict[str, float]
    template_version: str
    prompt_hash: str


def default_lens_weights() -> dict[str, float]:
    share = 1 / len(LENS_NAMES)
    return {name: share for name in LENS_NAMES}


class PromptComposer:
    """Deterministic prompt renderer bound to one template version."""

    def __init__(
        self,
        *,
        template_path: Path | str | None = None,
        schemas: Mapping[str, Mapping[str, Any]] | None = None,
    ) -> None:
        path = Path(template_path) if template_path is not None else _default_template_path()
        resolved = path.resolve()
        if not resolved.is_file():
            raise PromptTemplateNotFoundError(f"template not found: {resolved}")

        source = _normalize_newlines(resolved.read_text(encoding="utf-8"))
        self._environment = Environment(
            undefined=StrictUndefined,
            autoescape=False,
            keep_trailing_newline=False,
            newline_sequence="\n",
        )
        try:
            parsed = self._environment.parse(source)
        except TemplateSyntaxError as exc:
            raise PromptTemplateError(f"template syntax error in {resolved}: {exc}") from exc

        declared = meta.find_undeclared_variables(parsed)
        unexpected = sorted(declared - TEMPLATE_VARIABLES)
        if unexpected:
            raise PromptTemplateVariableError(
                "template uses variables not allowed by whitelist: " + ", ".join(unexpected)
            )

        self._template = self._environment.from_string(source)
        self._template_path = resolved
        self._template_version = extract_template_version(source)
        self._template_hash = sha256_text(source)

        schema_source = dict(schemas) if schemas is not None else {}
        refined_schema = schema_source.get(REFINED_PROMPT_SCHEMA) or load_schema(REFINED_PROMPT_SCHEMA)
        plan_schema = schema_source.get(STUDY_PLAN_SCHEMA) or load_schema(STUDY_PLAN_SCHEMA)
        self._refined_outline = render_schema_outline(refined_schema)
        self._plan_outline = render_schema_outline(plan_schema)

    @property
    def template_version(self) -> str:
        return self._template_version

    @property
    def template_hash(self) -> str:
        return self._template_hash

    @property
    def template_path(self) -> Path:
        return self._template_path

    def compose(self, request: RefinementRequest) -> ComposedPrompt:
        weights = (
            dict(request.lens_weights) if request.lens_weights else default_lens_weights()
        )
        text = self._template.render(
            template_version=self._template_version,
            goal=_json(request.goal),
            context_refs=_json(list(request.context_refs)),
            weights=_json(weights),
            refined_prompt_schema=self._refined_outline,
            study_plan_schema=self._plan_outline,
        )
        text = _normalize_newlines(text).strip()
        return ComposedPrompt(
            text=text,
            effective_weights=weights,
            template_version=self._template_version,
            prompt_hash=sha256_text(text),
        )


def build_repair_instruction(
    errors: Sequence[ValidationIssue],
    rejected_paths: Sequence[str],
) -> dict[str, object]:
    """Combine schema errors and extra-field pointers into one repair request."""

    directive = _REPAIR_DIRECTIVE
    if rejected_paths:
        directive += " Also remove these additional properties: " + ", ".join(rejected_paths)
    return {
        "instruction": directive,
        "errors": [issue.to_dict() for issue in errors],
        "additional_properties_to_remove": list(rejected_paths),
    }


def append_repair_guidance(base_prompt: str, instruction: Mapping[str, object]) -> str:
    return f"{base_prompt}\n\n{REPAIR_GUIDANCE_LABEL}: {_json(instruction)}"


def extract_template_version(source: str) -> str:
    match = _TEMPLATE_VERSION_RE.search(source)
    if match is None:
        return DEFAULT_TEMPLATE_VERSION
    return match.group(1)


def render_schema_outline(schema: Mapping[str, Any], *, indent: str = _OUTLINE_INDENT) -> str:
    """Render a JSON Schema as an indented outline of keys, types and constraints."""

    return _OutlineRenderer(schema, indent).render()


class _OutlineRenderer:
    def __init__(self, root: Mapping[str, Any], indent: str) -> None:
        self._root = root
        self._indent = indent

    def render(self) -> str:
        return self._indent + self._render_object(self._resolve(self._root), depth=0)

    def _resolve(self, node: Mapping[str, Any]) -> Mapping[str, Any]:
        seen: set[str] = set()
        while isinstance(node.get("$ref"), str):
            ref = node["$ref"]
            if not ref.startswith("#/") or ref in seen:
                raise PromptTemplateError(f"unsupported schema reference: {ref!r}")
            seen.add(ref)
            target: Any = self._root
            for token in ref[2:].split("/"):
                target = target[token.replace("~1", "/").replace("~0", "~")]
            node = target
        return node

    def _describe(self, node: Mapping[str, Any], depth: int) -> str:
        node = self._resolve(node)
        if "const" in node:
            return f"const {_json(node['const'])}"
        node_type = node.get("type", "any")
        if node_type == "object" and isinstance(node.get("properties"), Mapping):
            return "object " + self._render_object(node, depth=depth + 1)
        if node_type == "array":
            items = node.get("items")
            inner = self._describe(items, depth) if isinstance(items, Mapping) else "any"
            return f"array [ {inner} ]"

        details: list[str] = []
        if "pattern" in node:
            details.append(f"pattern {node['pattern']}")
        if "minLength" in node:
            details.append(f"minLength {node['minLength']}")
        if "minimum" in node or "maximum" in node:
            details.append(f"range [{node.get('minimum', '-inf')}, {node.get('maximum', 'inf')}]")
        suffix = f" ({', '.join(details)})" if details else ""
        return f"{node_type}{suffix}"

    def _render_object(self, node: Mapping[str, Any], *, depth: int) -> str:
        pad = self._indent + "  " * (depth + 1)
        required = set(node.get("required", ()))
        lines = ["{"]
        for key, prop in node.get("properties", {}).items():
            marker = "" if key in required else "?"
            lines.append(f'{pad}"{key}"{marker}: {self._describe(prop, depth)}')
        lines.append(self._indent + "  " * depth + "}")
        return "\n".join(lines)


def _default_template_path() -> Path:
    return Path(__file__).resolve().parents[1] / "templates" / DEFAULT_TEMPLATE_NAME


def _json(value: object) -> str:
    return json.dumps(value, ensure_ascii=False)


def _normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


__all__ = [
    "DEFAULT_TEMPLATE_NAME",
    "REPAIR_GUIDANCE_LABEL",
    "TEMPLATE_VARIABLES",
    "ComposedPrompt",
    "PromptComposer",
    "PromptTemplateError",
    "PromptTemplateNotFoundError",
    "PromptTemplateVariableError",
    "append_repair_guidance",
    "build_repair_instruction",
    "default_lens_weights",
    "extract_template_version",
    "render_schema_outline",
]
