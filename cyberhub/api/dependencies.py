"""
API Dependencies

FastAPI dependency injection for authentication, entitlements and the
clients built at startup.

Security: JWT tokens are verified cryptographically using Supabase JWKS (ES256)
with HS256 fallback via the JWT secret. Never decode without verification.
"""

import logging
from typing import Annotated, Optional

import jwt
from jwt import PyJWKClient
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from cyberhub.config.settings import Settings, get_settings
from cyberhub.domain.entitlements import EntitlementSet, has_capability
from cyberhub.domain.services import EntitlementService
from cyberhub.infrastructure.db.dependencies import ProfileRepoDep
from cyberhub.infrastructure.exceptions import AccessDeniedError, ConfigurationError
from cyberhub.infrastructure.payments.stripe_service import StripeService


logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def build_jwks_client(settings: Settings) -> PyJWKClient:
    """PyJWKClient for the Supabase JWKS endpoint; keys are cached internally."""
    jwks_url = f"{settings.supabase_url}/auth/v1/.well-known/jwks.json"
    return PyJWKClient(jwks_url, cache_keys=True)


def _decode_with_jwks(client: PyJWKClient, token: str, issuer: str) -> dict:
    """Verify JWT using Supabase JWKS endpoint (ES256 asymmetric keys)."""
    signing_key = client.get_signing_key_from_jwt(token)
    return jwt.decode(
        token,
        signing_key.key,
        algorithms=["ES256"],
        issuer=issuer,
        audience="authenticated",
        options={"require": ["exp", "sub", "iss"]},
    )


def _decode_with_secret(token: str, secret: str, issuer: str) -> dict:
    """Verify JWT using HS256 symmetric secret (legacy Supabase signing)."""
    return jwt.decode(
        token,
        secret,
        algorithms=["HS256"],
        issuer=issuer,
        audience="authenticated",
        options={"require": ["exp", "sub", "iss"]},
    )


async def get_current_claims(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> dict:
    """
    Verify a Supabase JWT and return its claims.

    Verification strategy (in order):
      1. JWKS (ES256), when the app built a JWKS client at startup.
      2. HS256 with ``SUPABASE_JWT_SECRET``, fallback for legacy signing.

    Raises:
        HTTPException 401: token missing, expired, or invalid.
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = credentials.credentials
    settings = get_settings()
    issuer = f"{settings.supabase_url}/auth/v1"

    payload: Optional[dict] = None

    # --- Strategy 1: JWKS (ES256) ---
    jwks_client = getattr(request.app.state, "jwks_client", None)
    if jwks_client is not None:
        try:
            payload = _decode_with_jwks(jwks_client, token, issuer)
        except (jwt.exceptions.PyJWKClientError, jwt.InvalidTokenError) as jwks_err:
            logger.debug("JWKS verification failed, trying HS256 fallback: %s", jwks_err)

    # --- Strategy 2: HS256 fallback ---
    if payload is None and settings.supabase_jwt_secret:
        try:
            payload = _decode_with_secret(
                token, settings.supabase_jwt_secret, issuer
            )
        except jwt.ExpiredSignatureError:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has expired",
            )
        except jwt.InvalidTokenError as e:
            logger.warning("HS256 JWT verification also failed: %s", e)

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or unverifiable token",
        )

    if not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token: missing user ID",
        )

    return payload


async def get_current_user_id(claims: dict = Depends(get_current_claims)) -> str:
    """Authenticated user ID (``sub`` claim)."""
    return claims["sub"]


async def get_optional_user_id(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[str]:
    """
    Optionally extract user ID from JWT token.

    Returns ``None`` if no token is provided (for public endpoints).
    """
    if not credentials:
        return None

    try:
        claims = await get_current_claims(request, credentials)
    except HTTPException:
        return None
    return claims["sub"]


CurrentClaimsDep = Annotated[dict, Depends(get_current_claims)]
CurrentUserDep = Annotated[str, Depends(get_current_user_id)]
OptionalUserDep = Annotated[Optional[str], Depends(get_optional_user_id)]


# =============================================================================
# Services
# =============================================================================

def get_stripe_service(request: Request) -> StripeService:
    """Return the StripeService built at startup."""
    service = getattr(request.app.state, "stripe", None)
    if service is None:
        raise ConfigurationError(
            "Payment service is not configured",
            missing_keys=["STRIPE_SECRET_KEY"],
        )
    return service


async def get_entitlement_service(profile_repo: ProfileRepoDep) -> EntitlementService:
    return EntitlementService(profile_repo)


StripeServiceDep = Annotated[StripeService, Depends(get_stripe_service)]
EntitlementServiceDep = Annotated[EntitlementService, Depends(get_entitlement_service)]


async def get_current_entitlements(
    user_id: CurrentUserDep,
    service: EntitlementServiceDep,
) -> EntitlementSet:
    """Entitlements of the authenticated caller, recomputed per request."""
    return await service.get_entitlements(user_id)


CurrentEntitlementsDep = Annotated[EntitlementSet, Depends(get_current_entitlements)]


def require_capability(capability: str):
    """
    Build a dependency that rejects callers lacking ``capability`` with 403.

    Usage:
        @router.get("/x", dependencies=[Depends(require_capability("canAccessAI"))])
    """

    async def _require(entitlements: CurrentEntitlementsDep) -> EntitlementSet:
        if not has_capability(entitlements, capability):
            raise AccessDeniedError(capability=capability)
        return entitlements

    return _require


# =============================================================================
# Re-export DB dependencies for a single import source
# Routers should import from api.dependencies, not db.dependencies directly.
# =============================================================================
from cyberhub.infrastructure.db.dependencies import (  # noqa: E402, F401
    SessionDep,
    ResourceRepoDep,
    BookmarkRepoDep,
    WebhookEventRepoDep,
)
