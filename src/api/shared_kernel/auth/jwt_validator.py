"""JWT validation for tenant-scoped bearer tokens.

Tokens are issued by the business application with a shared HS256 secret
and carry the tenant the caller belongs to.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from jose import JWTError, jwt
from jose.exceptions import ExpiredSignatureError, JWTClaimsError

if TYPE_CHECKING:
    from shared_kernel.auth.observability import JWTValidatorProbe


@dataclass(frozen=True)
class TokenClaims:
    """Validated tenant claims of a bearer token."""

    sub: str | None
    tenant_id: str | None
    tenant_slug: str | None
    db_name: str | None
    role: str | None


class InvalidTokenError(Exception):
    """Raised when JWT validation fails."""

    pass


class JWTValidator:
    """Validates HS256 bearer tokens and extracts tenant claims.

    Signature and expiry are always verified. A token must name its tenant
    through tenantId or tenantSlug.
    """

    def __init__(
        self,
        secret: str,
        probe: JWTValidatorProbe,
        algorithm: str = "HS256",
    ):
        """Initialize the JWT validator.

        Args:
            secret: Shared signing secret.
            probe: Observability probe for logging events.
            algorithm: Accepted signing algorithm (default: HS256).
        """
        self._secret = secret
        self._probe = probe
        self._algorithm = algorithm

    def validate_token(self, token: str) -> TokenClaims:
        """Validate JWT and return claims.

        Args:
            token: The JWT token string.

        Returns:
            TokenClaims containing the tenant claims.

        Raises:
            InvalidTokenError: If token is invalid, expired, or verification fails.
        """
        try:
            claims = jwt.decode(
                token=token,
                key=self._secret,
                algorithms=[self._algorithm],
                options={
                    "verify_signature": True,
                    "verify_exp": True,
                    "verify_aud": False,
                },
            )
        except ExpiredSignatureError as e:
            self._probe.token_validation_failed(reason="Token expired")
            raise InvalidTokenError("Token has expired") from e
        except JWTClaimsError as e:
            self._probe.token_validation_failed(reason=f"Claims error: {e}")
            raise InvalidTokenError(f"Invalid token claims: {e}") from e
        except JWTError as e:
            error_msg = str(e).lower()
            if "signature" in error_msg:
                self._probe.token_validation_failed(reason="Invalid signature")
                raise InvalidTokenError("Invalid token signature") from e
            self._probe.token_validation_failed(reason=f"JWT error: {e}")
            raise InvalidTokenError(f"Invalid token: {e}") from e

        tenant_id = _optional_str(claims.get("tenantId"))
        tenant_slug = _optional_str(claims.get("tenantSlug"))
        if tenant_id is None and tenant_slug is None:
            self._probe.token_validation_failed(reason="Missing tenant claim")
            raise InvalidTokenError("Missing required claim: tenantId or tenantSlug")

        self._probe.token_validated(tenant_ref=tenant_id or tenant_slug or "")

        return TokenClaims(
            sub=_optional_str(claims.get("sub")),
            tenant_id=tenant_id,
            tenant_slug=tenant_slug,
            db_name=_optional_str(claims.get("dbName")),
            role=_optional_str(claims.get("role")),
        )


def _optional_str(value: object) -> str | None:
    if value is None or value == "":
        return None
    return str(value)
