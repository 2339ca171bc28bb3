"""
Tests for cosmos_toolkit.clients

SDK constructors are patched so nothing authenticates against Azure.
"""

import dataclasses
import threading
import unittest
from unittest.mock import MagicMock, patch

import pytest

from cosmos_toolkit.clients import CosmosClientProvider, EmbeddingClientProvider
from cosmos_toolkit.config import Settings
from cosmos_toolkit.errors import ConfigurationError, EmbeddingError

SETTINGS = Settings(
    cosmos_endpoint="https://acct.documents.azure.com:443/",
    openai_endpoint="https://aoai.openai.azure.com/",
    openai_embedding_deployment="embed",
)


class TestCosmosClientProvider(unittest.TestCase):

    @patch("cosmos_toolkit.clients.CosmosClient")
    def test_client_built_once(self, mock_cosmos):
        provider = CosmosClientProvider(SETTINGS, credential=MagicMock())

        first = provider.get_client()
        second = provider.get_client()

        self.assertIs(first, second)
        mock_cosmos.assert_called_once()
        self.assertEqual(mock_cosmos.call_args.args[0], SETTINGS.cosmos_endpoint)
        self.assertEqual(mock_cosmos.call_args.kwargs["connection_timeout"], 60)

    @patch("cosmos_toolkit.clients.CosmosClient")
    def test_concurrent_first_use(self, mock_cosmos):
        """Threads racing on first use still build exactly one client"""
        provider = CosmosClientProvider(SETTINGS, credential=MagicMock())
        results = []

        def worker():
            results.append(provider.get_client())

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        mock_cosmos.assert_called_once()
        self.assertTrue(all(r is results[0] for r in results))

    def test_missing_endpoint(self):
        provider = CosmosClientProvider(dataclasses.replace(SETTINGS, cosmos_endpoint=""))
        with self.assertRaises(ConfigurationError) as ctx:
            provider.get_client()
        self.assertEqual(ctx.exception.variable, "COSMOS_ENDPOINT")

    def test_get_container(self):
        client = MagicMock()
        provider = CosmosClientProvider(SETTINGS, client=client)

        provider.get_container("db", "c")

        client.get_database_client.assert_called_once_with("db")
        client.get_database_client.return_value.get_container_client.assert_called_once_with("c")


class TestEmbeddingClientProvider:

    @patch("cosmos_toolkit.clients.get_bearer_token_provider")
    @patch("cosmos_toolkit.clients.AzureOpenAI")
    def test_client_uses_entra_token(self, mock_openai, mock_token_provider):
        provider = EmbeddingClientProvider(SETTINGS, credential=MagicMock())

        provider.get_client()

        mock_token_provider.assert_called_once()
        assert mock_token_provider.call_args.args[1] == "https://cognitiveservices.azure.com/.default"
        kwargs = mock_openai.call_args.kwargs
        assert kwargs["azure_endpoint"] == SETTINGS.openai_endpoint
        assert kwargs["azure_ad_token_provider"] is mock_token_provider.return_value

    def test_embed(self, embedding_client):
        provider = EmbeddingClientProvider(SETTINGS, client=embedding_client)
        assert provider.embed("hello") == [0.1, 0.2, 0.3, 0.4]
        embedding_client.embeddings.create.assert_called_once_with(model="embed", input="hello")

    def test_embed_failure_wrapped(self, embedding_client):
        embedding_client.embeddings.create.side_effect = TimeoutError("timed out")
        provider = EmbeddingClientProvider(SETTINGS, client=embedding_client)

        with pytest.raises(EmbeddingError) as exc_info:
            provider.embed("hello")

        assert str(exc_info.value) == "Failed to generate embedding: timed out"

    def test_missing_deployment(self):
        provider = EmbeddingClientProvider(
            dataclasses.replace(SETTINGS, openai_embedding_deployment="")
        )
        with pytest.raises(ConfigurationError, match="OPENAI_EMBEDDING_DEPLOYMENT"):
            provider.embed("hello")
