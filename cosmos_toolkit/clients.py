"""Process-wide Azure clients shared by every tool call.

One ``DefaultAzureCredential``, one ``CosmosClient`` and one Azure OpenAI
client are built lazily on first use and reused for the lifetime of the
process.  Each provider guards construction with a lock using the
double-checked pattern, so concurrent first requests build only one client.
Per-call resources (query cursors) are created by the tools and dropped when
the call returns.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, List, Optional

from azure.cosmos import CosmosClient
from azure.identity import DefaultAzureCredential, get_bearer_token_provider
from openai import AzureOpenAI

from cosmos_toolkit.config import APPLICATION_NAME, Settings
from cosmos_toolkit.errors import ConfigurationError, EmbeddingError

logger = logging.getLogger(__name__)

COGNITIVE_SERVICES_SCOPE = "https://cognitiveservices.azure.com/.default"

_credential: Optional[DefaultAzureCredential] = None
_credential_lock = threading.Lock()


def get_credential() -> DefaultAzureCredential:
    """Return the shared workload-identity credential (thread-safe)."""
    global _credential
    if _credential is not None:
        return _credential
    with _credential_lock:
        if _credential is None:
            logger.info("Creating DefaultAzureCredential")
            _credential = DefaultAzureCredential()
        return _credential


class CosmosClientProvider:
    """Lazily builds and shares a single :class:`CosmosClient`.

    Usage::

        provider = CosmosClientProvider(settings)
        container = provider.get_client().get_database_client(db).get_container_client(c)

    A pre-built client may be injected (tests do this with a fake).
    """

    def __init__(
        self,
        settings: Settings,
        client: Optional[Any] = None,
        credential: Optional[Any] = None,
    ) -> None:
        self._settings = settings
        self._client = client
        self._credential = credential
        self._lock = threading.Lock()

    def ensure_configured(self) -> None:
        if not self._settings.cosmos_endpoint:
            raise ConfigurationError("COSMOS_ENDPOINT")

    def get_client(self) -> Any:
        """Return the shared client, creating it on first call."""
        if self._client is not None:
            return self._client
        self.ensure_configured()
        with self._lock:
            if self._client is None:
                logger.info(
                    "Connecting to Cosmos DB at %s", self._settings.cosmos_endpoint
                )
                self._client = CosmosClient(
                    self._settings.cosmos_endpoint,
                    credential=self._credential or get_credential(),
                    connection_timeout=self._settings.cosmos_request_timeout,
                    user_agent=APPLICATION_NAME,
                )
            return self._client

    def get_container(self, database_id: str, container_id: str) -> Any:
        return (
            self.get_client()
            .get_database_client(database_id)
            .get_container_client(container_id)
        )


class EmbeddingClientProvider:
    """Turns search text into a vector through an Azure OpenAI deployment."""

    def __init__(
        self,
        settings: Settings,
        client: Optional[Any] = None,
        credential: Optional[Any] = None,
    ) -> None:
        self._settings = settings
        self._client = client
        self._credential = credential
        self._lock = threading.Lock()

    def ensure_configured(self) -> None:
        if not self._settings.openai_endpoint:
            raise ConfigurationError("OPENAI_ENDPOINT")
        if not self._settings.openai_embedding_deployment:
            raise ConfigurationError("OPENAI_EMBEDDING_DEPLOYMENT")

    def get_client(self) -> Any:
        if self._client is not None:
            return self._client
        self.ensure_configured()
        with self._lock:
            if self._client is None:
                logger.info(
                    "Creating Azure OpenAI client for %s (deployment=%s)",
                    self._settings.openai_endpoint,
                    self._settings.openai_embedding_deployment,
                )
                token_provider = get_bearer_token_provider(
                    self._credential or get_credential(), COGNITIVE_SERVICES_SCOPE
                )
                self._client = AzureOpenAI(
                    azure_endpoint=self._settings.openai_endpoint,
                    azure_ad_token_provider=token_provider,
                    api_version=self._settings.openai_api_version,
                    timeout=self._settings.openai_timeout,
                )
            return self._client

    def embed(self, text: str) -> List[float]:
        """Return the embedding of *text*; any failure becomes :class:`EmbeddingError`."""
        self.ensure_configured()
        try:
            response = self.get_client().embeddings.create(
                model=self._settings.openai_embedding_deployment,
                input=text,
            )
            vector = [float(x) for x in response.data[0].embedding]
        except Exception as exc:
            logger.warning("Embedding request failed: %s", exc)
            raise EmbeddingError(str(exc)) from exc
        if not vector:
            raise EmbeddingError("embedding service returned an empty vector")
        return vector
