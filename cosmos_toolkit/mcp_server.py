"""FastMCP server exposing the Cosmos DB tools.

The functions below keep the camelCase parameter names clients see on the
wire and delegate to :mod:`cosmos_toolkit.tools`, which owns validation,
querying and error shaping.  Each call runs in a worker thread so a slow
query never blocks the event loop.

Two ways to serve it:

- ``stdio`` (default): a local subprocess for desktop MCP clients.  There is
  no network listener, so no token check applies.
- ``streamable-http``: delegated to :mod:`cosmos_toolkit.app`, which mounts
  :data:`mcp` at ``/mcp`` behind the Entra ID token and role middleware.
  This module never opens an HTTP listener of its own.

Usage (local development)::

    python -m cosmos_toolkit.mcp_server                                  # stdio
    MCP_TRANSPORT=streamable-http python -m cosmos_toolkit.mcp_server    # same as cosmos_toolkit.app
"""

from __future__ import annotations

import logging

from fastmcp import FastMCP
from starlette.concurrency import run_in_threadpool

from cosmos_toolkit import tools
from cosmos_toolkit.config import configure_logging, get_settings

configure_logging()
logger = logging.getLogger(__name__)

HTTP_TRANSPORTS = ("http", "streamable-http")

mcp = FastMCP(
    "Azure Cosmos DB MCP Toolkit",
    instructions=(
        "Read-only tools for exploring Azure Cosmos DB: list databases and "
        "containers, fetch recent documents, look documents up by id, run "
        "full-text and vector searches, and approximate a container schema."
    ),
)


async def list_databases() -> str:
    """Lists databases available in the Cosmos DB account."""
    return await run_in_threadpool(tools.list_databases)


async def list_collections(databaseId: str) -> str:  # noqa: N803
    """Lists containers (collections) for the specified database.

    Args:
        databaseId: Database id to list containers from.
    """
    return await run_in_threadpool(tools.list_collections, databaseId)


async def get_recent_documents(databaseId: str, containerId: str, n: int) -> str:  # noqa: N803
    """Gets the most recent N documents ordered by timestamp (_ts DESC).

    Args:
        databaseId: Database id containing the container.
        containerId: Container id to query.
        n: Number of documents to return (1-20).
    """
    return await run_in_threadpool(tools.get_recent_documents, databaseId, containerId, n)


async def text_search(
    databaseId: str,  # noqa: N803
    containerId: str,  # noqa: N803
    property: str,
    searchPhrase: str,  # noqa: N803
    n: int,
) -> str:
    """Select TOP N documents where a given property contains the search string.

    Args:
        databaseId: Database id containing the container.
        containerId: Container id to query.
        property: Document property to search, e.g. name or profile.name.
        searchPhrase: Search term to look for within the property.
        n: Number of documents to return (1-20).
    """
    return await run_in_threadpool(
        tools.text_search, databaseId, containerId, property, searchPhrase, n
    )


async def find_document_by_id(databaseId: str, containerId: str, id: str) -> str:  # noqa: N803
    """Find a document by its id in the specified database/container.

    Args:
        databaseId: Database id containing the container.
        containerId: Container id to query.
        id: The id of the document to find.
    """
    return await run_in_threadpool(tools.find_document_by_id, databaseId, containerId, id)


async def get_approximate_schema(databaseId: str, containerId: str) -> str:  # noqa: N803
    """Approximates a container schema by sampling up to 10 documents.

    Returns a union of top-level properties with inferred types and how
    many sampled documents each one appears in.

    Args:
        databaseId: Database id containing the container.
        containerId: Container id to inspect.
    """
    return await run_in_threadpool(tools.get_approximate_schema, databaseId, containerId)


async def vector_search(
    databaseId: str,  # noqa: N803
    containerId: str,  # noqa: N803
    searchText: str,  # noqa: N803
    vectorProperty: str,  # noqa: N803
    selectProperties: str,  # noqa: N803
    topN: int,  # noqa: N803
) -> str:
    """Performs vector search using Azure OpenAI embeddings.

    Args:
        databaseId: Database id containing the container.
        containerId: Container id to query.
        searchText: Text to search for semantically similar content.
        vectorProperty: Property where vector embeddings are stored, e.g. 'vector'.
        selectProperties: Comma-separated properties to project, e.g. 'id,title'.
            The '*' wildcard is not allowed.
        topN: Number of documents to return (1-50).
    """
    return await run_in_threadpool(
        tools.vector_search,
        databaseId,
        containerId,
        searchText,
        vectorProperty,
        selectProperties,
        topN,
    )


REGISTERED_TOOLS = (
    list_databases,
    list_collections,
    get_recent_documents,
    text_search,
    find_document_by_id,
    get_approximate_schema,
    vector_search,
)

for _fn in REGISTERED_TOOLS:
    mcp.tool()(_fn)


def main() -> None:
    settings = get_settings()
    transport = settings.mcp_transport
    if transport == "stdio":
        logger.info("Starting Cosmos DB MCP server on stdio")
        mcp.run(transport="stdio")
        return
    if transport in HTTP_TRANSPORTS:
        # HTTP is only ever served through the authenticated FastAPI app
        from cosmos_toolkit.app import main as serve_http

        serve_http()
        return
    raise SystemExit(
        f"Unsupported MCP_TRANSPORT {transport!r}; use 'stdio' or 'streamable-http'"
    )


if __name__ == "__main__":
    main()
