"""Microsoft Entra ID bearer-token authentication and role authorization.

Tokens are RS256 JWTs signed with the tenant's published keys.  The service
accepts tokens from any tenant (multi-tenant app registration) as long as
the issuer has one of the two Entra shapes::

    https://login.microsoftonline.com/{tenant}/v2.0     (v2.0 tokens)
    https://sts.windows.net/{tenant}/                   (v1.0 tokens)

and the audience is the app's client id, its ``api://`` URI, or one of the
extra audiences configured in ``AZURE_AUDIENCE``.  Tool execution further
requires the ``Mcp.Tool.Executor`` app role in the ``roles`` claim.

Container Apps ingress may strip the ``Authorization`` header, so the token
is also looked for in the ``access_token`` query parameter and a few custom
headers (see :func:`extract_token`).
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

import jwt
from jwt import PyJWKClient

from cosmos_toolkit.config import Settings

logger = logging.getLogger(__name__)

ISSUER_V2 = re.compile(r"https://login\.microsoftonline\.com/[^/]+/v2\.0")
ISSUER_V1 = re.compile(r"https://sts\.windows\.net/[^/]+/")

#: Allowed clock skew when checking ``exp`` / ``nbf``, seconds.
CLOCK_SKEW_SECONDS = 120

ROLE_CLAIM = "roles"

#: Fallback headers, checked in order after ``Authorization`` and the query string.
TOKEN_HEADERS = ("X-MS-TOKEN-AAD-ACCESS-TOKEN", "X-Access-Token", "X-Auth-Token")


class AuthenticationError(Exception):
    """The request carries no usable bearer token."""


class AuthorizationError(Exception):
    """The caller is authenticated but lacks the required role."""


@dataclass(frozen=True)
class Principal:
    """The caller, as described by a validated token."""

    subject: str
    name: str = "Unknown"
    roles: Tuple[str, ...] = ()
    claims: Dict[str, Any] = field(default_factory=dict, compare=False)

    def has_role(self, role: str) -> bool:
        return role in self.roles

    @classmethod
    def from_claims(cls, claims: Mapping[str, Any]) -> "Principal":
        roles = claims.get(ROLE_CLAIM) or ()
        if isinstance(roles, str):
            roles = (roles,)
        name = (
            claims.get("name")
            or claims.get("preferred_username")
            or claims.get("appid")
            or claims.get("azp")
            or "Unknown"
        )
        return cls(
            subject=str(claims.get("oid") or claims.get("sub") or ""),
            name=str(name),
            roles=tuple(str(r) for r in roles),
            claims=dict(claims),
        )


def development_principal(role: str) -> Principal:
    return Principal(subject="development", name="development", roles=(role,))


def extract_token(
    headers: Mapping[str, str], query_params: Mapping[str, str]
) -> Tuple[Optional[str], str]:
    """Return ``(token, source)`` from the request, ``(None, "none")`` if absent.

    Header lookup must be case-insensitive (Starlette's ``Headers`` is).
    """
    authorization = headers.get("authorization", "")
    if authorization[:7].lower() == "bearer " and authorization[7:].strip():
        return authorization[7:].strip(), "authorization"
    query_token = query_params.get("access_token", "")
    if query_token:
        return query_token, "query"
    for header in TOKEN_HEADERS:
        value = headers.get(header, "")
        if value:
            return value.strip(), header
    return None, "none"


def is_valid_issuer(issuer: Any) -> bool:
    return isinstance(issuer, str) and bool(
        ISSUER_V2.fullmatch(issuer) or ISSUER_V1.fullmatch(issuer)
    )


class TokenValidator:
    """Validates Entra ID access tokens and checks the tool-executor role.

    The JWKS client caches signing keys and refetches them when a token
    names an unknown ``kid`` (key rollover).
    """

    def __init__(self, settings: Settings, jwks_client: Optional[PyJWKClient] = None) -> None:
        self._settings = settings
        self._audiences = settings.valid_audiences()
        self._jwks_client = jwks_client

    @property
    def jwks_uri(self) -> str:
        return (
            f"https://login.microsoftonline.com/{self._settings.tenant_id}"
            "/discovery/v2.0/keys"
        )

    def _get_jwks_client(self) -> PyJWKClient:
        if self._jwks_client is None:
            self._jwks_client = PyJWKClient(self.jwks_uri)
        return self._jwks_client

    def validate(self, token: str) -> Principal:
        """Decode and verify *token*, raising :class:`AuthenticationError`."""
        try:
            signing_key = self._get_jwks_client().get_signing_key_from_jwt(token)
            claims = jwt.decode(
                token,
                signing_key.key,
                algorithms=["RS256"],
                audience=self._audiences,
                leeway=CLOCK_SKEW_SECONDS,
                options={"require": ["exp", "iss", "aud"], "verify_iss": False},
            )
        except jwt.ExpiredSignatureError as exc:
            raise AuthenticationError("Token has expired") from exc
        except jwt.InvalidAudienceError as exc:
            raise AuthenticationError("Invalid audience") from exc
        except (jwt.PyJWKClientError, jwt.InvalidTokenError) as exc:
            raise AuthenticationError(f"Invalid token: {exc}") from exc

        issuer = claims.get("iss")
        if not is_valid_issuer(issuer):
            raise AuthenticationError(f"Invalid issuer: {issuer}")

        principal = Principal.from_claims(claims)
        logger.info("Token validated successfully for user: %s", principal.name)
        return principal

    def authorize(self, principal: Principal) -> Principal:
        if not principal.has_role(self._settings.required_role):
            raise AuthorizationError(
                f"Caller lacks the '{self._settings.required_role}' role"
            )
        return principal


class Authenticator:
    """Request-level entry point combining token lookup, validation and role check.

    ``DEV_BYPASS_AUTH=true`` turns every request into a development principal
    holding the required role.  Without the bypass and without tenant/client
    configuration, every request is refused.
    """

    def __init__(self, settings: Settings, validator: Optional[TokenValidator] = None) -> None:
        self._settings = settings
        self._validator = validator
        if validator is None and settings.auth_configured:
            self._validator = TokenValidator(settings)

    @property
    def bypass(self) -> bool:
        return self._settings.dev_bypass_auth

    def authenticate(
        self, headers: Mapping[str, str], query_params: Mapping[str, str]
    ) -> Principal:
        if self.bypass:
            logger.debug("Authentication bypassed (DEV_BYPASS_AUTH)")
            return development_principal(self._settings.required_role)
        if self._validator is None:
            logger.error(
                "Rejecting request: AZURE_TENANT_ID/AZURE_CLIENT_ID are not set "
                "and DEV_BYPASS_AUTH is off"
            )
            raise AuthenticationError("Authentication is not configured")

        token, source = extract_token(headers, query_params)
        logger.info(
            "Message received. Token source: %s, Has Authorization header: %s",
            source,
            "authorization" in headers,
        )
        if token is None:
            raise AuthenticationError("Missing bearer token")
        try:
            principal = self._validator.validate(token)
        except AuthenticationError as exc:
            logger.error("Authentication failed: %s", exc)
            raise
        return self._validator.authorize(principal)
