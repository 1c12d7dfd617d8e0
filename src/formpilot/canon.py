"""
Canonical JSON for FormPilot

Deterministic serialization used for two keys:
- dependency signatures, which memoize visibility passes
- form pack hashes, which identify the rules a form was loaded with

Keys are sorted and whitespace is dropped. Form values that JSON cannot
carry natively (Decimal, dates, sets) are wrapped in a one-key tagged
object, so Decimal("5") and the string "5" never share a signature.
Mapping keys that start with "$" get one more "$", so a plain dict can
never read as a tagged value.
"""
from __future__ import annotations

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping


def _escape_key(key: Any) -> Any:
    if isinstance(key, str) and key.startswith("$"):
        return "$" + key
    return key


def _encode_value(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        return {"$decimal": str(obj)}
    if isinstance(obj, datetime):
        return {"$datetime": obj.isoformat()}
    if isinstance(obj, date):
        return {"$date": obj.isoformat()}
    if isinstance(obj, (set, frozenset)):
        return {"$set": sorted(canonical_json(v) for v in obj)}
    if isinstance(obj, bytes):
        return {"$bytes": obj.hex()}
    # ABSENT and custom objects
    return {"$repr": repr(obj)}


def _to_canonical(obj: Any) -> Any:
    """Rewrite a value into plain JSON types with escaped keys and tags."""
    if isinstance(obj, Enum):
        return _to_canonical(obj.value)
    if obj is None or isinstance(obj, (str, bool, int, float)):
        return obj
    if isinstance(obj, Mapping):
        # dicts, MappingProxyType and other mappings
        return {_escape_key(k): _to_canonical(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_to_canonical(v) for v in obj]
    return _encode_value(obj)


def canonical_json(obj: Any) -> str:
    """
    Serialize a value map, snapshot or pack section.

    Example:
        >>> canonical_json({"loanAmount": Decimal("250000"), "joint": True})
        '{"joint":true,"loanAmount":{"$decimal":"250000"}}'
        >>> canonical_json({"$decimal": "250000"})
        '{"$$decimal":"250000"}'
    """
    return json.dumps(
        _to_canonical(obj),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


def content_hash(obj: Any) -> str:
    """SHA-256 hex digest of the canonical JSON."""
    return hashlib.sha256(canonical_json(obj).encode("utf-8")).hexdigest()


# Pack sections that change engine behaviour
_RULE_SECTIONS = (
    ("steps", "steps", list),
    ("arrayTemplates", "array_templates", dict),
    ("transformations", "transformations", dict),
)


def compute_form_pack_hash(raw_pack: Mapping[str, Any]) -> str:
    """
    Hash of a parsed form pack document.

    The form id, its version and the rule-bearing sections are hashed.
    Description and title edits leave the hash unchanged. Both spellings
    of the array template key hash the same way.
    """
    metadata = raw_pack.get("metadata") or {}
    hashed: dict[str, Any] = {
        "id": metadata.get("id"),
        "version": metadata.get("version"),
    }
    for key, alias, empty in _RULE_SECTIONS:
        hashed[key] = raw_pack.get(key) or raw_pack.get(alias) or empty()
    return content_hash(hashed)
