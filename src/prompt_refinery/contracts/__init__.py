"""Wire contracts: data model, packaged JSON Schemas and the schema validator."""

from prompt_refinery.contracts.models import (
    JSONObject,
    JSONScalar,
    JSONValue,
    RefinementRequest,
    RefinementResult,
    ValidationIssue,
    ValidationReport,
)
from prompt_refinery.contracts.validation import (
    REFINED_PROMPT_SCHEMA,
    REQUEST_SCHEMA,
    STUDY_PLAN_SCHEMA,
    SchemaLoadError,
    SchemaValidator,
    escape_pointer_token,
    json_pointer,
    load_schema,
    raw_schemas,
)

__all__ = [
    "JSONObject",
    "JSONScalar",
    "JSONValue",
    "REFINED_PROMPT_SCHEMA",
    "REQUEST_SCHEMA",
    "STUDY_PLAN_SCHEMA",
    "RefinementRequest",
    "RefinementResult",
    "SchemaLoadError",
    "SchemaValidator",
    "ValidationIssue",
    "ValidationReport",
    "escape_pointer_token",
    "json_pointer",
    "load_schema",
    "raw_schemas",
]
