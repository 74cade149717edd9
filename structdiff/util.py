"""
structdiff.util — Helpers shared across the algorithms.
"""

import hashlib
import json
from typing import Any

from .discover import own_names
from .kinds import Kind, classify


def _canonical(value: Any) -> Any:
    """Reduce a value to JSON-encodable data with a deterministic layout."""
    kind = classify(value)
    if kind in (Kind.NULL, Kind.BOOLEAN, Kind.STRING):
        return value
    if kind is Kind.NUMBER:
        if isinstance(value, (int, float)):
            return value
        return {"@num": str(value)}
    if kind is Kind.SEQUENCE or isinstance(value, tuple):
        return [_canonical(v) for v in value]
    if kind is Kind.SET or isinstance(value, frozenset):
        members = [json.dumps(_canonical(v), sort_keys=True) for v in value]
        return {"@set": sorted(members)}
    if kind is Kind.MAPPING:
        items = [[json.dumps(_canonical(k), sort_keys=True), _canonical(v)] for k, v in value.items()]
        return {"@map": sorted(items, key=lambda kv: kv[0])}
    if kind in (Kind.BUFFER, Kind.VIEW):
        return {"@bytes": memoryview(value).tobytes().hex()}
    if kind is Kind.PATTERN:
        return {"@re": [_canonical(value.pattern), value.flags]}
    if kind is Kind.TIMESTAMP:
        return {"@ts": value.isoformat()}
    if kind is Kind.RECORD:
        fields = [[name, _canonical(getattr(value, name))] for name in sorted(own_names(value))]
        return {"@record": type(value).__qualname__, "fields": fields}
    return {"@repr": f"{type(value).__qualname__}:{value!r}"}


def content_hash(value: Any) -> str:
    """
    Stable content hash of a value.

    Used as the path key of set members, which have no natural key.
    Equal content gives the same hash in every process (unlike hash(),
    which is salted for str).  Records hash by class name and fields;
    other opaque values hash by repr(), so a repr that embeds an address
    is only stable within one process.
    """
    text = json.dumps(_canonical(value), sort_keys=True, separators=(",", ":"))
    return hashlib.sha1(text.encode("utf-8")).hexdigest()[:16]
