"""Read-only Cosmos DB tools.

Every tool follows the same path::

    check configuration  →  validate parameters  →  build query
        →  drain pages up to the requested count  →  JSON text

and is wrapped by :func:`tool_boundary`, which turns any failure into the
uniform ``{"error": ..., "statusCode": ...}`` object so a caller always gets
JSON back.  Tools are synchronous; the MCP server runs each call in a
worker thread.
"""

from __future__ import annotations

import functools
import itertools
import json
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional

from azure.cosmos.exceptions import CosmosHttpResponseError

from cosmos_toolkit import queries
from cosmos_toolkit.clients import CosmosClientProvider, EmbeddingClientProvider
from cosmos_toolkit.config import (
    MAX_DOCUMENTS,
    MAX_VECTOR_RESULTS,
    MIN_DOCUMENTS,
    MIN_VECTOR_RESULTS,
    Settings,
    get_settings,
)
from cosmos_toolkit.errors import (
    EmbeddingError,
    ValidationError,
    error_json,
    message_json,
)
from cosmos_toolkit.pagination import document_json, take, to_json_array
from cosmos_toolkit.schema import infer_schema
from cosmos_toolkit.validation import (
    parse_select_properties,
    require_count,
    require_identifier,
    require_location,
    require_text,
)

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "No document found with the specified id."


# ---------------------------------------------------------------------------
# Call context
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ToolContext:
    """Shared, read-only dependencies handed to every tool call."""

    settings: Settings
    cosmos: CosmosClientProvider
    embeddings: EmbeddingClientProvider

    @classmethod
    def from_settings(cls, settings: Settings) -> "ToolContext":
        return cls(
            settings=settings,
            cosmos=CosmosClientProvider(settings),
            embeddings=EmbeddingClientProvider(settings),
        )


_context: Optional[ToolContext] = None
_context_lock = threading.Lock()


def get_tool_context() -> ToolContext:
    """Return the process-wide context, built from :func:`get_settings` once."""
    global _context
    if _context is not None:
        return _context
    with _context_lock:
        if _context is None:
            _context = ToolContext.from_settings(get_settings())
        return _context


def set_tool_context(context: Optional[ToolContext]) -> None:
    """Replace (or with ``None``, reset) the process-wide context."""
    global _context
    with _context_lock:
        _context = context


# ---------------------------------------------------------------------------
# Error boundary
# ---------------------------------------------------------------------------


def tool_boundary(func: Callable[..., str]) -> Callable[..., str]:
    """Convert every exception raised by a tool into the JSON error shape."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> str:
        try:
            return func(*args, **kwargs)
        except EmbeddingError as exc:
            return error_json(str(exc))
        except ValidationError as exc:
            logger.info("%s rejected: %s", func.__name__, exc)
            return error_json(str(exc))
        except CosmosHttpResponseError as exc:
            logger.warning(
                "%s failed with Cosmos DB status %s: %s",
                func.__name__,
                exc.status_code,
                exc.message,
            )
            return error_json(exc.message or str(exc), exc.status_code)
        except Exception as exc:
            logger.exception("%s failed", func.__name__)
            return error_json(str(exc))

    return wrapper


def _query_pages(container: Any, spec: queries.QuerySpec) -> Any:
    return container.query_items(
        query=spec.text,
        parameters=spec.parameters or None,
        enable_cross_partition_query=True,
        max_item_count=spec.max_item_count,
    ).by_page()


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


@tool_boundary
def list_databases(*, context: Optional[ToolContext] = None) -> str:
    """Lists databases available in the Cosmos DB account."""
    ctx = context or get_tool_context()
    ctx.cosmos.ensure_configured()
    logger.info("list_databases")
    client = ctx.cosmos.get_client()
    return json.dumps([db["id"] for db in client.list_databases()])


@tool_boundary
def list_collections(database_id: Any, *, context: Optional[ToolContext] = None) -> str:
    """Lists containers (collections) for the specified database."""
    ctx = context or get_tool_context()
    ctx.cosmos.ensure_configured()
    require_text("databaseId", database_id)
    logger.info("list_collections: database=%r", database_id)
    database = ctx.cosmos.get_client().get_database_client(database_id)
    return json.dumps([c["id"] for c in database.list_containers()])


@tool_boundary
def get_recent_documents(
    database_id: Any,
    container_id: Any,
    n: Any,
    *,
    context: Optional[ToolContext] = None,
) -> str:
    """Gets the most recent N documents ordered by ``_ts`` descending (1-20)."""
    ctx = context or get_tool_context()
    ctx.cosmos.ensure_configured()
    require_location(database_id, container_id)
    n = require_count("n", n, MIN_DOCUMENTS, MAX_DOCUMENTS)
    logger.info(
        "get_recent_documents: database=%r container=%r n=%d",
        database_id,
        container_id,
        n,
    )
    spec = queries.recent_documents(n)
    container = ctx.cosmos.get_container(database_id, container_id)
    return to_json_array(take(_query_pages(container, spec), n))


@tool_boundary
def text_search(
    database_id: Any,
    container_id: Any,
    prop: Any,
    search_phrase: Any,
    n: Any,
    *,
    context: Optional[ToolContext] = None,
) -> str:
    """Select TOP N documents whose *prop* full-text-contains *search_phrase*."""
    ctx = context or get_tool_context()
    ctx.cosmos.ensure_configured()
    require_location(database_id, container_id)
    require_text("property", prop)
    n = require_count("n", n, MIN_DOCUMENTS, MAX_DOCUMENTS)
    require_identifier("property", prop)
    require_text("searchPhrase", search_phrase)
    logger.info(
        "text_search: database=%r container=%r property=%s n=%d",
        database_id,
        container_id,
        prop,
        n,
    )
    spec = queries.text_search(prop, search_phrase, n)
    container = ctx.cosmos.get_container(database_id, container_id)
    return to_json_array(take(_query_pages(container, spec), n))


@tool_boundary
def find_document_by_id(
    database_id: Any,
    container_id: Any,
    document_id: Any,
    *,
    context: Optional[ToolContext] = None,
) -> str:
    """Find a document by its id; a miss is a message, not an error."""
    ctx = context or get_tool_context()
    ctx.cosmos.ensure_configured()
    require_location(database_id, container_id)
    require_text("id", document_id)
    logger.info(
        "find_document_by_id: database=%r container=%r", database_id, container_id
    )
    spec = queries.document_by_id(document_id)
    container = ctx.cosmos.get_container(database_id, container_id)
    for document in take(_query_pages(container, spec), 1):
        return document_json(document)
    return message_json(NOT_FOUND_MESSAGE)


@tool_boundary
def get_approximate_schema(
    database_id: Any,
    container_id: Any,
    *,
    context: Optional[ToolContext] = None,
) -> str:
    """Approximates a container schema from a sample of up to 10 documents."""
    ctx = context or get_tool_context()
    ctx.cosmos.ensure_configured()
    require_location(database_id, container_id)
    logger.info(
        "get_approximate_schema: database=%r container=%r", database_id, container_id
    )
    spec = queries.schema_sample()
    container = ctx.cosmos.get_container(database_id, container_id)
    documents = itertools.chain.from_iterable(_query_pages(container, spec))
    return json.dumps(infer_schema(documents))


@tool_boundary
def vector_search(
    database_id: Any,
    container_id: Any,
    search_text: Any,
    vector_property: Any,
    select_properties: Any,
    top_n: Any,
    *,
    context: Optional[ToolContext] = None,
) -> str:
    """Embed *search_text* and return the closest documents by vector distance.

    Validation happens in full before the embedding call, and the embedding
    call completes before the query is built.  An embedding failure is
    reported as ``Failed to generate embedding: ...`` and no query is issued.
    """
    ctx = context or get_tool_context()
    ctx.cosmos.ensure_configured()
    ctx.embeddings.ensure_configured()

    require_location(database_id, container_id)
    require_text("searchText", search_text)
    require_text("vectorProperty", vector_property)
    require_text("selectProperties", select_properties)
    top_n = require_count("topN", top_n, MIN_VECTOR_RESULTS, MAX_VECTOR_RESULTS)
    require_identifier("vectorProperty", vector_property, "'vector' or 'embeddings'")
    properties = parse_select_properties(select_properties)

    logger.info(
        "vector_search: database=%r container=%r vector=%s select=%s topN=%d",
        database_id,
        container_id,
        vector_property,
        ",".join(properties),
        top_n,
    )
    embedding = ctx.embeddings.embed(search_text)

    spec = queries.vector_search(vector_property, properties, embedding, top_n)
    container = ctx.cosmos.get_container(database_id, container_id)
    return to_json_array(take(_query_pages(container, spec), top_n))

