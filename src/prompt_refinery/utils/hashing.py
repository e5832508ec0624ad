"""
prompt-refinery: hashing utilities

File: src/prompt_refinery/utils/hashing.py
Last updated: 2026-10-17

Purpose
- Provide deterministic SHA-256 helpers and canonical JSON rendering for
  fingerprints and prompt audit hashes.

Functional requirements
- Canonical JSON output is independent of mapping insertion order.

Non-functional requirements
- Standard library only; behavior is cross-platform deterministic.
"""

from __future__ import annotations

import hashlib
import json

__all__ = [
    "canonical_json",
    "sha256_bytes",
    "sha256_text",
]


def sha256_bytes(data: bytes) -> str:
    """Return SHA-256 hex digest for raw bytes."""

    return hashlib.sha256(data).hexdigest()


def sha256_text(text: str, *, encoding: str = "utf-8") -> str:
    """Return SHA-256 hex digest for text encoded with ``encoding``."""

    return sha256_bytes(text.encode(encoding))


def canonical_json(value: object) -> str:
    """Render ``value`` as compact JSON with lexicographically sorted object keys."""

    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
