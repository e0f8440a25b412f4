"""
Lenient JSON extraction for generative responses.

The service is not guaranteed to return strict JSON, so the first {...}
object is extracted from the raw text. Fields are then normalized against
a per-analyzer schema; anything missing or mistyped is reported back so
the caller can mark its result degraded instead of silently zero-filling.
"""
from __future__ import annotations
from typing import Any, Dict, List, Tuple
import json
import math
import re

from essay_workshop.errors import ParseError

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")
_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")

# field name -> (kind, default); kind is num|int|bool|str|list|dict
Schema = Dict[str, Tuple[str, Any]]


def extract_json(raw: str) -> Dict[str, Any]:
    """Extract and decode the first JSON object in raw; raise ParseError otherwise."""
    if not raw or not raw.strip():
        raise ParseError("Empty response", raw=raw or "")
    candidates = []
    fenced = _FENCE.search(raw)
    if fenced:
        candidates.append(fenced.group(1))
    m = _JSON_OBJECT.search(raw)
    if m:
        candidates.append(m.group(0))
    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data
    raise ParseError("No JSON object found in response", raw=raw)


def _coerce(kind: str, value: Any) -> Tuple[bool, Any]:
    if kind in ("num", "int"):
        if isinstance(value, bool):
            return False, None
        if isinstance(value, (int, float)):
            number = float(value)
        elif isinstance(value, str):
            try:
                number = float(value.strip())
            except ValueError:
                return False, None
        else:
            return False, None
        # NaN and infinities count as missing
        if not math.isfinite(number):
            return False, None
        return True, int(number) if kind == "int" else number
    if kind == "bool":
        if isinstance(value, bool):
            return True, value
        if isinstance(value, str) and value.lower() in ("true", "false", "yes", "no"):
            return True, value.lower() in ("true", "yes")
        return False, None
    if kind == "str":
        return (True, value) if isinstance(value, str) else (False, None)
    if kind == "list":
        return (True, list(value)) if isinstance(value, list) else (False, None)
    if kind == "dict":
        return (True, dict(value)) if isinstance(value, dict) else (False, None)
    raise ValueError(f"Unknown schema kind: {kind}")


def normalize(data: Dict[str, Any], schema: Schema) -> Tuple[Dict[str, Any], List[str]]:
    """
    Normalize data against schema.

    Returns (values, missing_fields). Missing or mistyped fields receive the
    schema default and are listed in missing_fields. Unknown keys pass through.
    """
    values: Dict[str, Any] = dict(data)
    missing: List[str] = []
    for name, (kind, default) in schema.items():
        if name not in data or data[name] is None:
            ok, coerced = False, None
        else:
            ok, coerced = _coerce(kind, data[name])
        if ok:
            values[name] = coerced
        else:
            missing.append(name)
            values[name] = list(default) if isinstance(default, list) else (
                dict(default) if isinstance(default, dict) else default
            )
    return values, missing
