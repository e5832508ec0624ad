"""Shared deterministic helpers (hashing, timeouts, cancellation)."""

from prompt_refinery.utils.concurrency import CancellationToken, run_with_timeout
from prompt_refinery.utils.hashing import canonical_json, sha256_bytes, sha256_text

__all__ = [
    "CancellationToken",
    "canonical_json",
    "run_with_timeout",
    "sha256_bytes",
    "sha256_text",
]
