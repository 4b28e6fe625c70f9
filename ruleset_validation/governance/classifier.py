"""Schema-agnostic pass/fail classification of analysis payloads.

Definition-level results and analyzer-execution feeds do not share a payload
shape, so classification works on the serialized JSON text instead of a typed
model. Any one marker is enough to report violations:
- `severity` / `level` equal to `error` or `critical`
- `result` / `state` equal to `failed`, `fail` or `error`
- `totalErrors` / `errors` set to a positive integer

Unrelated fields that happen to use these names produce false positives.
"""

import json
import re
from typing import Any

VIOLATION_PATTERNS = (
    re.compile(r'"(?:severity|level)"\s*:\s*"(?:error|critical)"'),
    re.compile(r'"(?:result|state)"\s*:\s*"(?:failed|fail|error)"'),
    re.compile(r'"(?:totalerrors|errors)"\s*:\s*[1-9]\d*'),
)


def canonical_json(payload: Any) -> str:
    """Serialize a payload deterministically."""
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)


def has_violations(payload: Any) -> bool:
    """Return True if the payload carries any violation marker."""
    if payload is None:
        return False

    text = canonical_json(payload).lower()
    return any(pattern.search(text) for pattern in VIOLATION_PATTERNS)
