"""Query text construction for the Cosmos DB NoSQL API.

Literal values always travel as bound parameters.  Property paths cannot be
bound, so they are checked against the identifier pattern again here right
before concatenation, even though the tools validate them first.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

from cosmos_toolkit.config import SCHEMA_SAMPLE_SIZE
from cosmos_toolkit.errors import ValidationError
from cosmos_toolkit.validation import is_identifier


@dataclass(frozen=True)
class QuerySpec:
    """Query text plus the parameters and page size to run it with."""

    text: str
    parameters: List[Dict[str, Any]] = field(default_factory=list)
    max_item_count: int = 100


def _path(prop: str) -> str:
    if not is_identifier(prop):
        raise ValidationError(f"Invalid property name '{prop}'.")
    return f"c.{prop}"


def _count(n: int) -> int:
    if isinstance(n, bool) or not isinstance(n, int) or n < 1:
        raise ValidationError("Result count must be a positive whole number.")
    return n


def recent_documents(n: int) -> QuerySpec:
    n = _count(n)
    return QuerySpec(
        text=f"SELECT TOP {n} * FROM c ORDER BY c._ts DESC",
        max_item_count=n,
    )


def text_search(prop: str, search_phrase: str, n: int) -> QuerySpec:
    n = _count(n)
    return QuerySpec(
        text=f"SELECT TOP {n} * FROM c WHERE FullTextContains({_path(prop)}, @searchPhrase)",
        parameters=[{"name": "@searchPhrase", "value": search_phrase}],
        max_item_count=n,
    )


def document_by_id(document_id: str) -> QuerySpec:
    return QuerySpec(
        text="SELECT * FROM c WHERE c.id = @id",
        parameters=[{"name": "@id", "value": document_id}],
        max_item_count=1,
    )


def schema_sample() -> QuerySpec:
    return QuerySpec(
        text=f"SELECT TOP {SCHEMA_SAMPLE_SIZE} * FROM c",
        max_item_count=SCHEMA_SAMPLE_SIZE,
    )


def vector_search(
    vector_property: str,
    select_properties: Sequence[str],
    embedding: Sequence[float],
    top_n: int,
) -> QuerySpec:
    top_n = _count(top_n)
    if not select_properties:
        raise ValidationError("At least one property must be selected.")
    projection = ", ".join(_path(prop) for prop in select_properties)
    distance = f"VectorDistance({_path(vector_property)}, @embedding)"
    return QuerySpec(
        text=(
            f"SELECT TOP @topN {projection}, {distance} AS _score "
            f"FROM c ORDER BY {distance}"
        ),
        parameters=[
            {"name": "@topN", "value": top_n},
            {"name": "@embedding", "value": list(embedding)},
        ],
        max_item_count=top_n,
    )
