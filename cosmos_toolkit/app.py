"""HTTP front end for the Cosmos DB tools.

The FastMCP server from :mod:`cosmos_toolkit.mcp_server` is mounted as a
streamable-HTTP app at ``/mcp``.  Every ``/mcp`` request passes the Entra ID
bearer-token and role check in middleware before FastMCP sees it, so no tool
runs for an unauthenticated or unauthorized caller.  ``/`` and ``/health``
stay public for container probes.

Usage (local development)::

    DEV_BYPASS_AUTH=true COSMOS_ENDPOINT=https://... python -m cosmos_toolkit.app
"""

from __future__ import annotations

import logging
from typing import Optional

import uvicorn
from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cosmos_toolkit import __version__
from cosmos_toolkit.auth import Authenticator, AuthenticationError, AuthorizationError
from cosmos_toolkit.config import configure_logging, get_settings
from cosmos_toolkit.mcp_server import mcp

configure_logging()
logger = logging.getLogger(__name__)

SERVICE_NAME = "azure-cosmosdb-mcp-toolkit"
MCP_PATH = "/mcp"

_authenticator: Optional[Authenticator] = None


def get_authenticator() -> Authenticator:
    global _authenticator
    if _authenticator is None:
        settings = get_settings()
        _authenticator = Authenticator(settings)
        if settings.dev_bypass_auth:
            logger.warning(
                "DEV_BYPASS_AUTH is enabled: /mcp requests are NOT authenticated"
            )
    return _authenticator


def set_authenticator(authenticator: Optional[Authenticator]) -> None:
    """Replace (or with ``None``, reset) the authenticator."""
    global _authenticator
    _authenticator = authenticator


# ---------------------------------------------------------------------------
# Middleware (last added runs first)
# ---------------------------------------------------------------------------


async def require_tool_executor(request: Request, call_next):
    """Authenticate and authorize ``/mcp`` requests before any tool logic."""
    if request.method == "OPTIONS" or not request.url.path.startswith(MCP_PATH):
        return await call_next(request)

    try:
        principal = get_authenticator().authenticate(
            request.headers, request.query_params
        )
    except AuthenticationError as exc:
        logger.warning(
            "Rejected unauthenticated request to %s from %s: %s",
            request.url.path,
            request.client.host if request.client else "unknown",
            exc,
        )
        return JSONResponse(
            status_code=401,
            content={"detail": str(exc)},
            headers={"WWW-Authenticate": "Bearer"},
        )
    except AuthorizationError as exc:
        logger.warning("Forbidden request to %s: %s", request.url.path, exc)
        return JSONResponse(status_code=403, content={"detail": str(exc)})

    request.state.principal = principal
    return await call_next(request)


async def log_requests(request: Request, call_next):
    user_agent = request.headers.get("user-agent") or "Not-Specified"
    client_ip = request.client.host if request.client else "unknown"
    logger.info(
        "Request: %s %s | User-Agent: %s | Client-IP: %s",
        request.method,
        request.url.path,
        user_agent,
        client_ip,
    )
    if request.url.path.startswith(MCP_PATH):
        logger.debug(
            "MCP request content-type=%s accept=%s",
            request.headers.get("content-type"),
            request.headers.get("accept"),
        )
    return await call_next(request)


async def cross_origin_headers(request: Request, call_next):
    """Relax COOP/COEP so browser MSAL popups can talk to the service."""
    response = await call_next(request)
    response.headers["Cross-Origin-Opener-Policy"] = "unsafe-none"
    response.headers["Cross-Origin-Embedder-Policy"] = "unsafe-none"
    return response


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

router = APIRouter()


@router.get("/")
async def root():
    return {"service": SERVICE_NAME, "version": __version__, "mcp": MCP_PATH}


@router.get("/health")
async def health_check():
    """Health check endpoint for container probes."""
    return {"status": "healthy", "service": SERVICE_NAME}


def create_app() -> FastAPI:
    """Build the service around a fresh FastMCP HTTP app.

    FastMCP's session manager can be started only once, so each app (and
    each test) gets its own.
    """
    settings = get_settings()
    mcp_app = mcp.http_app(
        path=MCP_PATH,
        stateless_http=settings.mcp_stateless_http,
        transport="streamable-http",
    )

    application = FastAPI(
        title="Azure Cosmos DB MCP Toolkit",
        version=__version__,
        lifespan=mcp_app.lifespan,
    )
    application.include_router(router)

    application.middleware("http")(require_tool_executor)
    application.middleware("http")(log_requests)
    application.middleware("http")(cross_origin_headers)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            "Cross-Origin-Opener-Policy",
            "Cross-Origin-Embedder-Policy",
            "Mcp-Session-Id",
        ],
    )

    # Mounted last so / and /health above take precedence
    application.mount("/", mcp_app)
    return application


app = create_app()


def main() -> None:
    settings = get_settings()
    logger.info("Starting %s on port %d (MCP at %s)", SERVICE_NAME, settings.port, MCP_PATH)
    if settings.dev_bypass_auth:
        logger.warning("Running in development mode with authentication bypass")
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=settings.port,
        proxy_headers=True,
        forwarded_allow_ips="*",
    )


if __name__ == "__main__":
    main()
