"""Configuration for the Cosmos DB MCP toolkit.

Everything the service needs from the environment is read once into a
frozen :class:`Settings` instance (see :func:`get_settings`) and handed to
the tools through their call context, so a tool never consults
``os.environ`` on its own.  Values mirror the environment variable names
used by the container deployment (``COSMOS_ENDPOINT``, ``OPENAI_ENDPOINT``,
``AzureAd__TenantId`` ...).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Optional, Tuple


# ---------------------------------------------------------------------------
# Tool limits
# ---------------------------------------------------------------------------

#: Closed range for ``n`` on the recent-documents and text-search tools.
MIN_DOCUMENTS: int = 1
MAX_DOCUMENTS: int = 20

#: Closed range for ``topN`` on vector search.
MIN_VECTOR_RESULTS: int = 1
MAX_VECTOR_RESULTS: int = 50

#: Number of documents sampled by the approximate-schema tool.
SCHEMA_SAMPLE_SIZE: int = 10

#: Application name reported to Cosmos DB in the user agent.
APPLICATION_NAME: str = "AzureCosmosDBMCP"

#: Role claim value required to execute tools.
DEFAULT_REQUIRED_ROLE: str = "Mcp.Tool.Executor"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _env(*names: str, default: str = "") -> str:
    """Return the first non-empty environment variable among *names*."""
    for name in names:
        value = os.getenv(name)
        if value is not None and value.strip():
            return value.strip()
    return default


def _env_flag(*names: str, default: bool = False) -> bool:
    return _env(*names, default="true" if default else "false").lower() in ("1", "true", "yes", "on")


def _split_csv(value: str) -> Tuple[str, ...]:
    return tuple(part.strip() for part in value.split(",") if part.strip())


@dataclass(frozen=True)
class Settings:
    """Immutable process-wide configuration."""

    cosmos_endpoint: str = ""
    cosmos_request_timeout: int = 60

    openai_endpoint: str = ""
    openai_embedding_deployment: str = ""
    openai_api_version: str = "2024-06-01"
    openai_timeout: float = 30.0

    tenant_id: str = ""
    client_id: str = ""
    extra_audiences: Tuple[str, ...] = field(default_factory=tuple)
    required_role: str = DEFAULT_REQUIRED_ROLE
    dev_bypass_auth: bool = False

    port: int = 8080
    log_level: str = "INFO"
    azure_log_level: str = "WARNING"
    mcp_transport: str = "stdio"
    mcp_stateless_http: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            cosmos_endpoint=_env("COSMOS_ENDPOINT"),
            cosmos_request_timeout=int(_env("COSMOS_REQUEST_TIMEOUT", default="60")),
            openai_endpoint=_env("OPENAI_ENDPOINT"),
            openai_embedding_deployment=_env("OPENAI_EMBEDDING_DEPLOYMENT"),
            openai_api_version=_env("OPENAI_API_VERSION", default="2024-06-01"),
            openai_timeout=float(_env("OPENAI_TIMEOUT", default="30")),
            tenant_id=_env("AZURE_TENANT_ID", "AzureAd__TenantId"),
            client_id=_env("AZURE_CLIENT_ID", "AzureAd__ClientId"),
            extra_audiences=_split_csv(_env("AZURE_AUDIENCE", "AzureAd__Audience")),
            required_role=_env("MCP_REQUIRED_ROLE", default=DEFAULT_REQUIRED_ROLE),
            dev_bypass_auth=_env_flag(
                "DEV_BYPASS_AUTH", "DevelopmentMode__BypassAuthentication"
            ),
            port=int(_env("PORT", default="8080")),
            log_level=_env("LOG_LEVEL", default="INFO").upper(),
            azure_log_level=_env("AZURE_LOG_LEVEL", default="WARNING").upper(),
            mcp_transport=_env("MCP_TRANSPORT", default="stdio").lower(),
            mcp_stateless_http=_env_flag("MCP_STATELESS_HTTP", default=True),
        )

    @property
    def auth_configured(self) -> bool:
        return bool(self.tenant_id and self.client_id)

    def valid_audiences(self) -> List[str]:
        """Client id, its ``api://`` URI and any configured extras, deduplicated."""
        audiences: List[str] = []
        candidates: List[Optional[str]] = [
            self.client_id,
            f"api://{self.client_id}" if self.client_id else None,
            *self.extra_audiences,
        ]
        for audience in candidates:
            if audience and audience not in audiences:
                audiences.append(audience)
        return audiences


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load the settings on first use and return the same instance afterwards."""
    return Settings.from_env()


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Install the root handler and quiet the Azure SDK HTTP policy logs."""
    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format=LOG_FORMAT,
    )
    azure_level = getattr(logging, settings.azure_log_level, logging.WARNING)
    logging.getLogger("azure").setLevel(azure_level)
    http_logger = logging.getLogger(
        "azure.core.pipeline.policies.http_logging_policy"
    )
    http_logger.setLevel(azure_level)
    http_logger.propagate = False
