"""Draining paged query results up to a target count."""

from __future__ import annotations

import json
from typing import Any, Iterable, Iterator, TypeVar

T = TypeVar("T")


def take(pages: Iterable[Iterable[T]], limit: int) -> Iterator[T]:
    """Yield items from successive pages until *limit* items were produced.

    Stops mid-page once the limit is reached and never asks the cursor for
    another page afterwards.  The result is a one-shot generator.
    """
    if limit <= 0:
        return
    produced = 0
    for page in pages:
        for item in page:
            yield item
            produced += 1
            if produced >= limit:
                return


def document_json(document: Any) -> str:
    """Render one document as JSON text, ``{}`` for an empty row."""
    if document is None:
        return "{}"
    if isinstance(document, (str, bytes)):
        return document.decode("utf-8") if isinstance(document, bytes) else document
    return json.dumps(document)


def to_json_array(documents: Iterable[Any]) -> str:
    """Join documents into a JSON array without re-parsing them."""
    return "[" + ",".join(document_json(doc) for doc in documents) + "]"
