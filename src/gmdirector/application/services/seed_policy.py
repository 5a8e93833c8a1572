from __future__ import annotations

import hashlib
import json
import math
from typing import Any, Mapping


def _normalize(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {str(key): _normalize(val) for key, val in sorted(value.items(), key=lambda item: str(item[0]))}
    if isinstance(value, (list, tuple, set)):
        normalized = [_normalize(item) for item in value]
        if isinstance(value, set):
            return sorted(normalized, key=lambda item: json.dumps(item, sort_keys=True, separators=(",", ":")))
        return normalized
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError("Seed context values must be finite")
    return value


def derive_seed(namespace: str, context: Mapping[str, Any]) -> int:
    normalized = _normalize(context)
    payload = {"namespace": namespace, "context": normalized}
    serialized = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    digest = hashlib.sha256(serialized.encode("utf-8")).hexdigest()
    return int(digest, 16) % (2**32)


def derive_run_seed(run_id: Any) -> int:
    """Numeric run ids are used as-is (truncated to 32 bits); anything else is hashed."""

    if isinstance(run_id, bool):
        run_id = int(run_id)
    if isinstance(run_id, int):
        return run_id & 0xFFFFFFFF
    text = str(run_id if run_id is not None else "").strip()
    if text.lstrip("-").isdigit():
        return int(text) & 0xFFFFFFFF
    return derive_seed("gm.run", {"run_id": text})
