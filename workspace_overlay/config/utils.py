from __future__ import annotations

import json
import time
import uuid
from copy import deepcopy
from typing import Any, Dict


def _deep_merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    result = deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _deep_merge(result[key], value)  # type: ignore[arg-type]
        else:
            result[key] = deepcopy(value)
    return result


def _canonical(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def now_millis() -> int:
    return int(time.time() * 1000)


def generate_workspace_id() -> str:
    return f"ws_{now_millis()}_{uuid.uuid4().hex[:9]}"


__all__ = ["_deep_merge", "_canonical", "now_millis", "generate_workspace_id"]
