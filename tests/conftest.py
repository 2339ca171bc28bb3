"""
Shared fixtures for the Cosmos DB toolkit test suite

The fakes below mirror the slice of the azure-cosmos SDK the tools touch:
``CosmosClient.list_databases()``, ``DatabaseProxy.list_containers()`` and
``ContainerProxy.query_items(...).by_page()``.  Nothing here ever reaches Azure
"""

import json
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest

from cosmos_toolkit import tools
from cosmos_toolkit.clients import CosmosClientProvider, EmbeddingClientProvider
from cosmos_toolkit.config import Settings, get_settings


# Environment variables

@pytest.fixture(autouse=True)
def env_vars(monkeypatch):
    """Pin every environment variable the service reads

    autouse=True ensures no test accidentally picks up real endpoints or
    tenant settings from the developer's shell
    """
    env = {
        "COSMOS_ENDPOINT": "https://test-account.documents.azure.com:443/",
        "OPENAI_ENDPOINT": "https://test-openai.openai.azure.com/",
        "OPENAI_EMBEDDING_DEPLOYMENT": "text-embedding-3-small",
        "AZURE_TENANT_ID": "11111111-1111-1111-1111-111111111111",
        "AZURE_CLIENT_ID": "22222222-2222-2222-2222-222222222222",
        "PORT": "8080",
    }
    for key in (
        "AZURE_AUDIENCE",
        "AzureAd__Audience",
        "DEV_BYPASS_AUTH",
        "MCP_REQUIRED_ROLE",
        "MCP_TRANSPORT",
        "MCP_STATELESS_HTTP",
    ):
        monkeypatch.delenv(key, raising=False)
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    get_settings.cache_clear()
    tools.set_tool_context(None)
    yield env
    get_settings.cache_clear()
    tools.set_tool_context(None)


@pytest.fixture()
def settings(env_vars):
    return Settings.from_env()


# Cosmos DB SDK fakes

class FakeItemPaged:
    """Stands in for azure.core.paging.ItemPaged

    ``pages_served`` counts how many pages the caller actually pulled, which
    lets tests assert that pagination stops early
    """

    def __init__(self, pages: List[List[Any]]):
        self._pages = pages
        self.pages_served = 0

    def by_page(self):
        for page in self._pages:
            self.pages_served += 1
            yield iter(page)

    def __iter__(self):
        for page in self.by_page():
            yield from page


class FakeContainer:
    def __init__(self, pages: Optional[List[List[Any]]] = None, error: Optional[Exception] = None):
        self.pages = pages or []
        self.error = error
        self.queries: List[Dict[str, Any]] = []
        self.last_paged: Optional[FakeItemPaged] = None

    def query_items(self, query, parameters=None, **kwargs):
        self.queries.append({"query": query, "parameters": parameters, **kwargs})
        if self.error is not None:
            raise self.error
        self.last_paged = FakeItemPaged(self.pages)
        return self.last_paged


class FakeDatabase:
    def __init__(self, container_ids: List[str], containers: Dict[str, FakeContainer]):
        self.container_ids = container_ids
        self.containers = containers

    def list_containers(self):
        return FakeItemPaged([[{"id": cid} for cid in self.container_ids]])

    def get_container_client(self, container_id):
        return self.containers.setdefault(container_id, FakeContainer())


class FakeCosmosClient:
    def __init__(self):
        self.databases: Dict[str, FakeDatabase] = {}
        self.database_requests: List[str] = []

    def add_container(self, database_id: str, container_id: str, pages=None, error=None) -> FakeContainer:
        database = self.databases.setdefault(database_id, FakeDatabase([], {}))
        if container_id not in database.container_ids:
            database.container_ids.append(container_id)
        container = FakeContainer(pages, error)
        database.containers[container_id] = container
        return container

    def list_databases(self):
        return FakeItemPaged([[{"id": db_id} for db_id in self.databases]])

    def get_database_client(self, database_id):
        self.database_requests.append(database_id)
        return self.databases.setdefault(database_id, FakeDatabase([], {}))

    @property
    def query_count(self) -> int:
        return sum(
            len(container.queries)
            for database in self.databases.values()
            for container in database.containers.values()
        )


@pytest.fixture()
def cosmos_client():
    return FakeCosmosClient()


@pytest.fixture()
def embedding_client():
    """A fake AzureOpenAI client whose embeddings.create returns a 4-dim vector"""
    client = MagicMock()
    response = MagicMock()
    response.data = [MagicMock(embedding=[0.1, 0.2, 0.3, 0.4])]
    client.embeddings.create.return_value = response
    return client


@pytest.fixture()
def context(settings, cosmos_client, embedding_client):
    """A ToolContext wired to the fakes, also installed as the process-wide one"""
    ctx = tools.ToolContext(
        settings=settings,
        cosmos=CosmosClientProvider(settings, client=cosmos_client),
        embeddings=EmbeddingClientProvider(settings, client=embedding_client),
    )
    tools.set_tool_context(ctx)
    return ctx


def make_pages(documents: List[Dict[str, Any]], page_size: int) -> List[List[Dict[str, Any]]]:
    return [documents[i:i + page_size] for i in range(0, len(documents), page_size)]


# FastAPI test client

@pytest.fixture()
def authenticator(settings, signing_key_pair):
    """An Authenticator whose JWKS lookup returns the test signing key"""
    from types import SimpleNamespace

    from cosmos_toolkit.auth import Authenticator, TokenValidator

    class _Jwks:
        def get_signing_key_from_jwt(self, token):
            return SimpleNamespace(key=signing_key_pair.public_key())

    return Authenticator(settings, validator=TokenValidator(settings, jwks_client=_Jwks()))


@pytest.fixture(scope="session")
def signing_key_pair():
    from cryptography.hazmat.primitives.asymmetric import rsa

    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture()
def http_app(authenticator, context):
    """A fresh FastAPI app (with its own FastMCP session manager) using the test authenticator"""
    from cosmos_toolkit import app as app_module

    app_module.set_authenticator(authenticator)
    yield app_module.create_app()
    app_module.set_authenticator(None)


@pytest.fixture()
def client(http_app):
    """HTTPX AsyncClient wired to the FastAPI app, without starting FastMCP

    Enough for public routes and for requests the auth middleware rejects
    """
    from httpx import ASGITransport, AsyncClient

    transport = ASGITransport(app=http_app)
    return AsyncClient(transport=transport, base_url="http://testserver")


@asynccontextmanager
async def serve(application):
    """Run the app's lifespan (FastMCP session manager) around an HTTPX client"""
    from httpx import ASGITransport, AsyncClient

    async with application.router.lifespan_context(application):
        transport = ASGITransport(app=application)
        async with AsyncClient(
            transport=transport, base_url="http://testserver", follow_redirects=True
        ) as client:
            yield client


MCP_HEADERS = {
    "Accept": "application/json, text/event-stream",
    "Content-Type": "application/json",
}


def rpc_body(method: str, params: Optional[Dict[str, Any]] = None, request_id: Any = 1) -> Dict[str, Any]:
    body: Dict[str, Any] = {"jsonrpc": "2.0", "id": request_id, "method": method}
    if params is not None:
        body["params"] = params
    return body


def rpc_result(response) -> Dict[str, Any]:
    """Decode a streamable-HTTP reply, either plain JSON or a one-message SSE stream"""
    if response.headers.get("content-type", "").startswith("application/json"):
        return response.json()
    for line in response.text.splitlines():
        if line.startswith("data:"):
            return json.loads(line[len("data:"):].strip())
    raise AssertionError(f"no JSON-RPC message in response: {response.text!r}")
