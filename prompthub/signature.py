"""Execution fingerprints.

The "signature" attached to a successful execution is a deterministic SHA-256
fingerprint binding the execution id, prompt id/version, the hashed input, the
hashed output, the caller and the timestamp. It involves no private key and
proves nothing about who produced it; it only lets a holder of the same data
detect that any of those values changed.
"""

from __future__ import annotations

import hashlib
import hmac
import json
from typing import Any


def canonical_json(value: Any) -> str:
    """Stable serialization: sorted keys, no whitespace."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def hash_value(value: Any) -> str:
    return hashlib.sha256(canonical_json(value).encode("utf-8")).hexdigest()


def sign_execution(
    execution_id: str,
    prompt_id: str,
    version: str,
    inputs: Any,
    output: Any,
    caller: str,
    timestamp: int | float,
) -> str:
    """Fingerprint one execution. Identical arguments always yield the same string."""
    payload = {
        "executionId": execution_id,
        "promptId": prompt_id,
        "version": version,
        "inputHash": hash_value(inputs),
        "outputHash": hash_value(output),
        "caller": caller,
        "timestamp": timestamp,
    }
    return hash_value(payload)


def verify_signature(
    signature: str,
    execution_id: str,
    prompt_id: str,
    version: str,
    inputs: Any,
    output: Any,
    caller: str,
    timestamp: int | float,
) -> bool:
    expected = sign_execution(execution_id, prompt_id, version, inputs, output, caller, timestamp)
    return hmac.compare_digest(expected, signature or "")
