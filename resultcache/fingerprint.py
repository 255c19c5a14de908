"""Query fingerprints: normalized cache keys for result sets.

Two queries with the same type and the same filters produce the same
fingerprint regardless of the order their parameters were given in. The
order of values inside a list is kept, since it can be significant
(``_sort`` for example).
"""

import hashlib
import json
from typing import Any


def _canonical(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            str(k): _canonical(v)
            for k, v in value.items()
            if v is not None and v != [] and v != ""
        }
    if isinstance(value, (set, frozenset)):
        items = [_canonical(v) for v in value]
        return sorted(items, key=lambda v: json.dumps(v, sort_keys=True, ensure_ascii=False))
    if isinstance(value, (list, tuple)):
        return [_canonical(v) for v in value]
    return value


def canonical_query(query_type: str, params: dict[str, Any]) -> str:
    """Stable JSON text for a query; this is what gets hashed."""
    normalized = _canonical(params or {})
    body = json.dumps(normalized, sort_keys=True, ensure_ascii=False, separators=(",", ":"))
    return f"{query_type.strip().lower()}:{body}"


def make_fingerprint(query_type: str, params: dict[str, Any]) -> str:
    """Generate a deterministic fingerprint from query type and filters."""
    content = canonical_query(query_type, params)
    return f"rc:{hashlib.sha256(content.encode()).hexdigest()}"
