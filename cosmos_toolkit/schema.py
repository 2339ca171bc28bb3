"""Approximate schema inference over a small document sample."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterable, List, Optional, Set

from cosmos_toolkit.config import SCHEMA_SAMPLE_SIZE

logger = logging.getLogger(__name__)

NO_DOCUMENTS_MESSAGE = "No documents found to infer schema."


def type_tag(value: Any) -> str:
    """JSON type name of a decoded value."""
    if value is None:
        return "null"
    # bool before int: True is an int in Python
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, dict):
        return "object"
    if isinstance(value, (list, tuple)):
        return "array"
    return "unknown"


def _as_object(document: Any) -> Optional[Dict[str, Any]]:
    if isinstance(document, dict):
        return document
    if isinstance(document, (str, bytes)):
        if not document.strip():
            return None
        try:
            parsed = json.loads(document)
        except ValueError:
            logger.debug("Skipping malformed document in schema sample")
            return None
        return parsed if isinstance(parsed, dict) else None
    return None


def infer_schema(
    documents: Iterable[Any], sample_size: int = SCHEMA_SAMPLE_SIZE
) -> Dict[str, Any]:
    """Fold up to *sample_size* JSON objects into per-property type statistics.

    Rows that are not JSON objects are skipped and do not count towards the
    sample.  Property names are merged case-insensitively, keeping the first
    spelling seen.

    Returns either ``{"sampleSize": n, "properties": [...]}`` or, when no
    object could be sampled, ``{"message": NO_DOCUMENTS_MESSAGE}``.
    """
    names: Dict[str, str] = {}
    types: Dict[str, Set[str]] = {}
    counts: Dict[str, int] = {}
    sampled = 0

    if sample_size <= 0:
        return {"message": NO_DOCUMENTS_MESSAGE}

    for document in documents:
        obj = _as_object(document)
        if obj is None:
            continue
        sampled += 1
        for name, value in obj.items():
            key = name.lower()
            names.setdefault(key, name)
            types.setdefault(key, set()).add(type_tag(value))
            counts[key] = counts.get(key, 0) + 1
        # stop before the cursor is asked for another row
        if sampled >= sample_size:
            break

    if sampled == 0:
        return {"message": NO_DOCUMENTS_MESSAGE}

    properties: List[Dict[str, str]] = []
    for key in sorted(names):
        properties.append(
            {
                "name": names[key],
                "type": " | ".join(sorted(types[key])),
                "description": f"Appears in {counts[key]}/{sampled} sampled documents.",
            }
        )
    return {"sampleSize": sampled, "properties": properties}
