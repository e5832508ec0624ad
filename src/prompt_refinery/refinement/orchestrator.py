"""
prompt-refinery: repair orchestrator

File: src/prompt_refinery/refinement/orchestrator.py
Last updated: 2026-10-17

Purpose
- Drive one refinement from raw caller input to a pair of certified documents
  (refined prompt + study plan) using at most two completion-provider calls.

What should be included in this file
- The explicit attempt state machine:
  COMPOSED -> ATTEMPT_1_SENT -> ATTEMPT_1_RESULT
           -> {SUCCESS | RATE_LIMITED_RETRY | REPAIR_SENT}
           -> ATTEMPT_2_RESULT -> {SUCCESS | TERMINAL_FAILURE}
- Per-attempt timeout enforcement and caller cancellation.
- Jittered exponential backoff for the single rate-limit retry.
- A single repair round combining schema errors and rejected extra fields.
- Finalization (``version = 1`` then re-validation) before returning.

Functional requirements
- Never returns partial documents: both documents validate or the call fails
  with exactly one ``RefinementError``.
- Only provider ``status`` and ``text`` drive control flow.

Non-functional requirements
- No global process state is read; settings, provider, sink, sleep and
  randomness are all injected.
- Instances are safe to share across concurrent refinements.
"""

from __future__ import annotations

import asyncio
import copy
import enum
import logging
import random as random_module
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Final, NoReturn

from prompt_refinery.config.settings import RefinementSettings, parse_bool
from prompt_refinery.constants import DOCUMENT_VERSION, MAX_ATTEMPTS, RETRY_TIMEOUT_MS
from prompt_refinery.contracts.models import (
    JSONObject,
    RefinementRequest,
    RefinementResult,
    ValidationIssue,
)
from prompt_refinery.contracts.validation import SchemaValidator
from prompt_refinery.observability.logging import NullEventSink, RefinementEventSink
from prompt_refinery.providers.base import (
    BackoffPolicy,
    CompletionProvider,
    CompletionResult,
    CompletionStatus,
    RandomFn,
    SleepFn,
    default_sleep,
)
from prompt_refinery.refinement.composer import (
    PromptComposer,
    append_repair_guidance,
    build_repair_instruction,
)
from prompt_refinery.refinement.errors import (
    MalformedResponseError,
    ProviderRateLimitedError,
    ProviderTimeoutError,
    SchemaInvalidError,
    truncate_sample,
)
from prompt_refinery.refinement.fingerprint import fingerprint as compute_fingerprint
from prompt_refinery.refinement.normalizer import normalize_request
from prompt_refinery.refinement.parsing import Malformed, Parsed, parse_document
from prompt_refinery.refinement.sanitizer import ResponseSanitizer, SanitizeResult
from prompt_refinery.utils.concurrency import CancellationToken, run_with_timeout

logger = logging.getLogger(__name__)

_UNKNOWN_PROVIDER: Final[str] = "unknown"


class RefinementState(str, enum.Enum):
    """Named states of a single refinement run."""

    COMPOSED = "COMPOSED"
    ATTEMPT_1_SENT = "ATTEMPT_1_SENT"
    ATTEMPT_1_RESULT = "ATTEMPT_1_RESULT"
    RATE_LIMITED_RETRY = "RATE_LIMITED_RETRY"
    REPAIR_SENT = "REPAIR_SENT"
    ATTEMPT_2_RESULT = "ATTEMPT_2_RESULT"
    SUCCESS = "SUCCESS"
    TERMINAL_FAILURE = "TERMINAL_FAILURE"


class ValidationVerdict(str, enum.Enum):
    VALID = "valid"
    INVALID_REPAIRABLE = "invalid-repairable"
    INVALID_TERMINAL = "invalid-terminal"


@dataclass(frozen=True, slots=True)
class RefinementFlags:
    """Per-call switches; ``None`` defers to the orchestrator settings."""

    auto_strip_additional_props: bool | None = None

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object] | None) -> RefinementFlags:
        """Accept the wire form ``{"autoStripAdditionalProps": bool}``.

        Strings such as ``"false"`` are read as booleans; any other value
        raises ``ConfigLoadError``.
        """

        if not payload:
            return cls()
        value = payload.get("autoStripAdditionalProps", payload.get("auto_strip_additional_props"))
        if value is None:
            return cls()
        return cls(auto_strip_additional_props=parse_bool(value, "autoStripAdditionalProps"))


@dataclass(frozen=True, slots=True)
class AttemptOutcome:
    """What one provider attempt produced after parse, sanitize and validate."""

    attempt: int
    status: CompletionStatus
    verdict: ValidationVerdict | None = None
    rejected_paths: tuple[str, ...] = ()
    errors: tuple[ValidationIssue, ...] = ()
    sanitized: SanitizeResult | None = field(default=None, repr=False)
    sample: str = field(default="", repr=False)

    @property
    def valid(self) -> bool:
        return self.verdict is ValidationVerdict.VALID


class RefinementOrchestrator:
    """Contract-enforcing refinement pipeline around one completion provider."""

    def __init__(
        self,
        provider: CompletionProvider,
        *,
        settings: RefinementSettings | None = None,
        validator: SchemaValidator | None = None,
        sanitizer: ResponseSanitizer | None = None,
        composer: PromptComposer | None = None,
        event_sink: RefinementEventSink | None = None,
        sleep: SleepFn = default_sleep,
        random_fn: RandomFn = random_module.random,
        backoff: BackoffPolicy | None = None,
    ) -> None:
        if not isinstance(provider, CompletionProvider):
            raise TypeError("provider must implement CompletionProvider.complete()")
        self._provider = provider
        self._settings = settings or RefinementSettings()
        self._validator = validator or SchemaValidator()
        self._sanitizer = sanitizer or ResponseSanitizer()
        self._composer = composer or PromptComposer(
            template_path=self._settings.template_path,
        )
        self._events: RefinementEventSink = event_sink or NullEventSink()
        self._sleep = sleep
        self._random = random_fn
        self._backoff = backoff or BackoffPolicy()

    @property
    def settings(self) -> RefinementSettings:
        return self._settings

    @property
    def template_version(self) -> str:
        return self._composer.template_version

    def normalize(self, raw: object) -> RefinementRequest:
        return normalize_request(raw)

    def fingerprint(self, raw: object) -> str:
        """Digest of the normalized request plus the bound template version."""

        return compute_fingerprint(
            normalize_request(raw), template_version=self._composer.template_version
        )

    async def refine(
        self,
        raw: object,
        correlation_id: str,
        flags: RefinementFlags | None = None,
        *,
        cancel_token: CancellationToken | None = None,
    ) -> RefinementResult:
        """Run the full pipeline; raise ``RefinementError`` on any terminal failure."""

        run = _RefinementRun(self, correlation_id, cancel_token)
        try:
            return await run.execute(raw, flags or RefinementFlags())
        except asyncio.CancelledError:
            run.emit("refine_cancelled", state=run.state.value)
            raise


class _RefinementRun:
    """Per-call state; never shared between refinements."""

    def __init__(
        self,
        owner: RefinementOrchestrator,
        correlation_id: str,
        cancel_token: CancellationToken | None,
    ) -> None:
        self._owner = owner
        self._correlation_id = correlation_id
        self._cancel_token = cancel_token
        self.state = RefinementState.COMPOSED

    def emit(self, event: str, **fields: object) -> None:
        self._owner._events.emit(event, correlation_id=self._correlation_id, **fields)

    def transition(self, state: RefinementState) -> None:
        previous = self.state
        self.state = state
        self.emit("state_transition", from_state=previous.value, to_state=state.value)

    async def execute(self, raw: object, flags: RefinementFlags) -> RefinementResult:
        owner = self._owner
        settings = owner._settings

        request = normalize_request(raw)
        request_report = owner._validator.check_request(request.to_document())
        if not request_report.valid:
            errors = [issue.to_dict() for issue in request_report.issues]
            self.emit("input_invalid", errors=errors)
            raise SchemaInvalidError("Invalid input", details={"errors": errors})

        self.emit(
            "input_normalized",
            goal_length=len(request.goal),
            context_refs=len(request.context_refs),
            weights_supplied=request.lens_weights is not None,
        )

        composed = owner._composer.compose(request)
        digest = compute_fingerprint(request, template_version=composed.template_version)
        self.emit(
            "prompt_composed",
            template_version=composed.template_version,
            prompt_hash=composed.prompt_hash,
            prompt_chars=len(composed.text),
            fingerprint=digest,
        )

        auto_strip = (
            settings.auto_strip_additional_props
            if flags.auto_strip_additional_props is None
            else flags.auto_strip_additional_props
        )

        self.transition(RefinementState.ATTEMPT_1_SENT)
        first = await self._send(composed.text, timeout_ms=settings.timeout_ms, attempt=1)
        self.transition(RefinementState.ATTEMPT_1_RESULT)

        if first.status is CompletionStatus.TIMEOUT:
            self._fail_timeout(attempt=1, timeout_ms=settings.timeout_ms)

        if first.status is CompletionStatus.RATE_LIMITED:
            if settings.max_retries_429 < 1:
                self._fail_rate_limited(first, attempt=1)
            delay_ms = owner._backoff.delay_ms(1, random_fn=owner._random)
            self.transition(RefinementState.RATE_LIMITED_RETRY)
            self.emit("backoff_sleep", attempt=1, delay_ms=round(delay_ms, 3))
            await owner._sleep(delay_ms / 1000.0)
            self._check_cancelled()

            second = await self._send(composed.text, timeout_ms=RETRY_TIMEOUT_MS, attempt=2)
            self.transition(RefinementState.ATTEMPT_2_RESULT)
            self._raise_for_transport(second, attempt=2)
            outcome = self._evaluate(second, attempt=2)
            if outcome.valid:
                return self._succeed(outcome, digest)
            if auto_strip and self._auto_strip(outcome):
                return self._succeed(outcome, digest)
            self._fail_malformed(outcome)

        outcome = self._evaluate(first, attempt=1)
        if outcome.valid:
            return self._succeed(outcome, digest)

        instruction = build_repair_instruction(outcome.errors, outcome.rejected_paths)
        repair_prompt = append_repair_guidance(composed.text, instruction)
        self.emit(
            "repair_requested",
            attempt=2,
            error_count=len(outcome.errors),
            rejected_count=len(outcome.rejected_paths),
        )
        self.transition(RefinementState.REPAIR_SENT)
        second = await self._send(repair_prompt, timeout_ms=RETRY_TIMEOUT_MS, attempt=2)
        self.transition(RefinementState.ATTEMPT_2_RESULT)
        self._raise_for_transport(second, attempt=2)

        repaired = self._evaluate(second, attempt=2)
        if repaired.valid:
            return self._succeed(repaired, digest)
        if auto_strip and self._auto_strip(repaired):
            return self._succeed(repaired, digest)

        self._terminal()
        errors = [issue.to_dict() for issue in repaired.errors]
        self.emit("refine_failed", kind="SCHEMA_INVALID", attempt=2, error_count=len(errors))
        raise SchemaInvalidError(
            "Schema validation failed after repair",
            details={
                "errors": errors,
                "additional_properties": list(repaired.rejected_paths),
            },
        )

    async def _send(self, prompt: str, *, timeout_ms: int, attempt: int) -> CompletionResult:
        owner = self._owner
        self._check_cancelled()
        try:
            call = owner._provider.complete(
                prompt,
                timeout_ms=timeout_ms,
                correlation_id=self._correlation_id,
                attempt=attempt,
            )
            result = await run_with_timeout(call, timeout_ms / 1000.0, self._cancel_token)
        except TimeoutError:
            result = CompletionResult(
                text="",
                provider_name=_provider_name(owner._provider),
                status=CompletionStatus.TIMEOUT,
            )
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "completion provider raised during attempt %d: %s",
                attempt,
                type(exc).__name__,
                extra={"correlation_id": self._correlation_id},
            )
            result = CompletionResult(
                text="",
                provider_name=_provider_name(owner._provider),
                status=CompletionStatus.ERROR,
            )

        self.emit(
            "llm_response",
            attempt=attempt,
            status=result.status.value,
            status_code=result.status_code,
            latency_ms=result.latency_ms,
            text_bytes=len(result.text.encode("utf-8")),
        )
        return result

    def _evaluate(self, result: CompletionResult, *, attempt: int) -> AttemptOutcome:
        owner = self._owner
        can_repair = attempt < MAX_ATTEMPTS
        failure_verdict = (
            ValidationVerdict.INVALID_REPAIRABLE if can_repair else ValidationVerdict.INVALID_TERMINAL
        )

        if result.ok:
            parsed = parse_document(result.text)
        else:
            parsed = Malformed(
                reason=f"provider status {result.status.value}",
                sample=truncate_sample(result.text),
            )
        if isinstance(parsed, Malformed):
            self.emit("llm_malformed", attempt=attempt, reason=parsed.reason)
            sanitized = owner._sanitizer.sanitize(None)
            sample = parsed.sample
        else:
            assert isinstance(parsed, Parsed)
            sanitized = owner._sanitizer.sanitize(parsed.value)
            sample = truncate_sample(result.text)

        if sanitized.rejected_paths:
            self.emit(
                "additional_properties_detected",
                attempt=attempt,
                count=len(sanitized.rejected_paths),
                paths=list(sanitized.rejected_paths),
            )

        # Non-ok results get no verdict; their issues still feed repair guidance.
        issues = self._validate_documents(sanitized)
        verdict: ValidationVerdict | None = None
        if result.ok:
            verdict = ValidationVerdict.VALID if not issues else failure_verdict
            self.emit(
                "validation_checked",
                attempt=attempt,
                verdict=verdict.value,
                error_count=len(issues),
            )
        return AttemptOutcome(
            attempt=attempt,
            status=result.status,
            verdict=verdict,
            rejected_paths=sanitized.rejected_paths,
            errors=issues,
            sanitized=sanitized,
            sample=sample,
        )

    def _validate_documents(self, sanitized: SanitizeResult) -> tuple[ValidationIssue, ...]:
        validator = self._owner._validator
        refined_report = validator.check_refined_prompt(sanitized.refined_prompt)
        plan_report = validator.check_study_plan(sanitized.study_plan)
        return (
            _prefixed(refined_report.issues, "/refinedPrompt")
            + _prefixed(plan_report.issues, "/studyPlan")
        )

    def _auto_strip(self, outcome: AttemptOutcome) -> bool:
        # Sanitized output is accepted only when it validates on its own.
        assert outcome.sanitized is not None
        accepted = not self._validate_documents(outcome.sanitized)
        self.emit(
            "auto_strip_applied" if accepted else "auto_strip_failed",
            attempt=outcome.attempt,
            rejected_count=len(outcome.rejected_paths),
        )
        return accepted

    def _succeed(self, outcome: AttemptOutcome, digest: str) -> RefinementResult:
        assert outcome.sanitized is not None
        refined_prompt = self._finalize(outcome.sanitized.refined_prompt, "refined")
        study_plan = self._finalize(outcome.sanitized.study_plan, "study plan")
        self.transition(RefinementState.SUCCESS)
        self.emit("refine_success", attempts=outcome.attempt)
        return RefinementResult(
            refined_prompt=refined_prompt,
            study_plan=study_plan,
            attempts_used=outcome.attempt,
            fingerprint=digest,
        )

    def _finalize(self, document: object, label: str) -> JSONObject:
        if not isinstance(document, Mapping):
            self._terminal()
            raise SchemaInvalidError(f"Finalization schema invalid ({label})")
        finalized: JSONObject = copy.deepcopy(dict(document))
        finalized["version"] = DOCUMENT_VERSION

        validator = self._owner._validator
        report = (
            validator.check_refined_prompt(finalized)
            if label == "refined"
            else validator.check_study_plan(finalized)
        )
        if not report.valid:
            self._terminal()
            raise SchemaInvalidError(
                f"Finalization schema invalid ({label})",
                details={"errors": [issue.to_dict() for issue in report.issues]},
            )
        return finalized

    def _raise_for_transport(self, result: CompletionResult, *, attempt: int) -> None:
        if result.status is CompletionStatus.TIMEOUT:
            self._fail_timeout(attempt=attempt, timeout_ms=RETRY_TIMEOUT_MS)
        if result.status is CompletionStatus.RATE_LIMITED:
            self._fail_rate_limited(result, attempt=attempt)

    def _fail_timeout(self, *, attempt: int, timeout_ms: int) -> NoReturn:
        self._terminal()
        self.emit("refine_failed", kind="LLM_TIMEOUT", attempt=attempt)
        raise ProviderTimeoutError(
            "Provider timeout", details={"attempt": attempt, "timeoutMs": timeout_ms}
        )

    def _fail_rate_limited(self, result: CompletionResult, *, attempt: int) -> NoReturn:
        self._terminal()
        self.emit("refine_failed", kind="LLM_429", attempt=attempt)
        details: dict[str, object] = {"attempt": attempt}
        if result.status_code is not None:
            details["statusCode"] = result.status_code
        raise ProviderRateLimitedError("Provider rate limited", details=details)

    def _fail_malformed(self, outcome: AttemptOutcome) -> NoReturn:
        self._terminal()
        self.emit("refine_failed", kind="LLM_MALFORMED", attempt=outcome.attempt)
        raise MalformedResponseError(
            "LLM produced malformed output",
            raw_text=outcome.sample,
            details={
                "attempt": outcome.attempt,
                "errors": [issue.to_dict() for issue in outcome.errors],
            },
        )

    def _terminal(self) -> None:
        if self.state is not RefinementState.TERMINAL_FAILURE:
            self.transition(RefinementState.TERMINAL_FAILURE)

    def _check_cancelled(self) -> None:
        if self._cancel_token is not None:
            self._cancel_token.raise_if_cancelled()


def _prefixed(issues: tuple[ValidationIssue, ...], prefix: str) -> tuple[ValidationIssue, ...]:
    return tuple(
        ValidationIssue(
            path=prefix if issue.path.startswith("#") else f"{prefix}{issue.path}",
            message=issue.message,
        )
        for issue in issues
    )


def _provider_name(provider: object) -> str:
    name = getattr(provider, "name", None)
    if isinstance(name, str) and name:
        return name
    return type(provider).__name__ or _UNKNOWN_PROVIDER


__all__ = [
    "AttemptOutcome",
    "RefinementFlags",
    "RefinementOrchestrator",
    "RefinementState",
    "ValidationVerdict",
]
