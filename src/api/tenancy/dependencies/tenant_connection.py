"""Tenant connection FastAPI dependency.

Resolves the tenant of a request from, in order of precedence, the tenant
id (bearer token claim or X-Tenant-ID header), the tenant slug (token
claim or X-Tenant-Slug header) and the subdomain of the Host header, then
hands out the tenant's pooled database client.

Usage in FastAPI routes:
    @router.get("/example")
    async def example(
        tenant: Annotated[RoutedTenant, Depends(get_tenant_connection)],
    ):
        async with tenant.client.connect() as conn:
            ...
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from infrastructure.settings import get_auth_settings
from shared_kernel.auth import InvalidTokenError, JWTValidator, TokenClaims
from shared_kernel.auth.observability import DefaultJWTValidatorProbe
from shared_kernel.middleware.observability import (
    DefaultTenantContextProbe,
    TenantContextProbe,
)
from shared_kernel.middleware.tenant_context import TenantContext
from tenancy.application.services import TenantConnectionRouter
from tenancy.application.value_objects import RoutedTenant, TenantIdentity
from tenancy.dependencies.pool import get_tenant_directory, get_tenant_pool
from tenancy.ports.exceptions import (
    TenantConnectionFailedError,
    TenantInactiveError,
    TenantNotFoundError,
    TenantNotReadyError,
    TenantRoutingError,
)

RETRY_AFTER_SECONDS = 5


@lru_cache
def get_jwt_validator() -> JWTValidator | None:
    """Get cached JWT validator, or None when no signing secret is configured."""
    settings = get_auth_settings()
    secret = settings.jwt_secret.get_secret_value()
    if not secret:
        return None
    return JWTValidator(
        secret=secret,
        probe=DefaultJWTValidatorProbe(),
        algorithm=settings.jwt_algorithm,
    )


def get_tenant_context_probe() -> TenantContextProbe:
    """Get TenantContextProbe instance."""
    return DefaultTenantContextProbe()


def get_connection_router() -> TenantConnectionRouter:
    """Get the router over the tenant directory and the process-wide pool."""
    return TenantConnectionRouter(
        directory=get_tenant_directory(),
        pool=get_tenant_pool(),
    )


def build_identity(
    claims: TokenClaims | None,
    x_tenant_id: str | None,
    x_tenant_slug: str | None,
    host: str | None,
) -> TenantIdentity:
    """Combine token claims and headers into one set of identifying signals.

    Token claims win over headers of the same kind, since they are signed.
    An X-Tenant-ID header still outranks a token that only names a slug,
    but the router then rejects any tenant other than the token's own, so
    the token's role and dbName never reach another tenant.
    """
    token_id = claims.tenant_id if claims else None
    token_slug = claims.tenant_slug if claims else None

    if token_id or (token_slug and not x_tenant_id):
        source = "token"
    elif x_tenant_id or x_tenant_slug:
        source = "header"
    else:
        source = "host"

    return TenantIdentity(
        tenant_id=token_id or x_tenant_id or None,
        tenant_slug=token_slug or x_tenant_slug or None,
        host=host,
        db_name=claims.db_name if claims else None,
        role=claims.role if claims else None,
        source=source,
        token_tenant_slug=token_slug,
    )


def routing_http_error(error: TenantRoutingError) -> HTTPException:
    """Map a routing failure to its HTTP error.

    Retry-After is only sent when retrying can help.
    """
    if isinstance(error, TenantNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, TenantNotReadyError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error))
    if isinstance(error, TenantInactiveError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(error))
    if isinstance(error, TenantConnectionFailedError) and error.retryable:
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(error),
            headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
        )
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(error)
    )


def _bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def get_tenant_connection(
    request: Request,
    router: Annotated[TenantConnectionRouter, Depends(get_connection_router)],
    validator: Annotated[JWTValidator | None, Depends(get_jwt_validator)],
    probe: Annotated[TenantContextProbe, Depends(get_tenant_context_probe)],
    authorization: Annotated[str | None, Header()] = None,
    x_tenant_id: Annotated[str | None, Header()] = None,
    x_tenant_slug: Annotated[str | None, Header()] = None,
    host: Annotated[str | None, Header()] = None,
) -> RoutedTenant:
    """Route the request to its tenant database.

    Attaches a TenantContext to ``request.state.tenant``.

    Raises:
        HTTPException 401: If a bearer token is present but invalid
        HTTPException 404: If no tenant matches the request
        HTTPException 409: If the tenant is still being provisioned
        HTTPException 403: If the tenant is not active
        HTTPException 503: If the tenant database cannot be reached
    """
    claims: TokenClaims | None = None
    token = _bearer_token(authorization)
    if token is not None:
        if validator is None:
            probe.invalid_token(reason="token authentication is not configured")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token authentication is not configured",
                headers={"WWW-Authenticate": "Bearer"},
            )
        try:
            claims = validator.validate_token(token)
        except InvalidTokenError as e:
            probe.invalid_token(reason=str(e))
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=str(e),
                headers={"WWW-Authenticate": "Bearer"},
            ) from e

    identity = build_identity(claims, x_tenant_id, x_tenant_slug, host)
    try:
        routed = await router.route(identity)
    except TenantRoutingError as e:
        http_error = routing_http_error(e)
        probe.tenant_context_rejected(
            reason=type(e).__name__,
            status_code=http_error.status_code,
            tenant_ref=e.tenant_ref,
        )
        raise http_error from e

    request.state.tenant = TenantContext(
        tenant_id=routed.tenant_id,
        db_name=routed.db_name,
        role=routed.role,
        source=routed.source,
    )
    probe.tenant_context_attached(tenant_id=routed.tenant_id, source=routed.source)
    return routed


async def get_tenant_session(
    tenant: Annotated[RoutedTenant, Depends(get_tenant_connection)],
) -> AsyncGenerator[AsyncSession, None]:
    """Provide a session on the routed tenant's database.

    The session is configured to NOT auto-commit. Callers must explicitly
    manage transactions using `async with session.begin()`.
    """
    factory = async_sessionmaker(tenant.client, expire_on_commit=False)
    async with factory() as session:
        yield session
