"""Exceptions for the tenancy bounded context.

Routing errors are the typed, user-facing failures of resolving a request
to a tenant database. Only TenantConnectionFailedError may be retried by
the caller, and not when it was caused by unusable stored credentials.
"""

from __future__ import annotations


class DuplicateTenantSlugError(Exception):
    """Raised when registering a tenant with a slug that is already taken.

    Slugs are globally unique and are also reserved by deprovisioned tenants.
    """

    pass


class TenantNotProvisionableError(Exception):
    """Raised when provisioning is requested for a tenant that cannot take it.

    Covers deprovisioned tenants and retries of tenants that have not failed.
    """

    pass


class CredentialDecryptionError(Exception):
    """Raised when a stored credential cannot be decrypted.

    Callers must fail closed: never connect with an empty or default
    password instead.
    """

    pass


class ProvisioningStepError(Exception):
    """Raised when a provisioning run stops on a failed step.

    Surfaced to the job queue so that its retry policy applies.

    Attributes:
        step: Name of the step that failed
        reason: Underlying failure message
        fatal: True when the step identified a server-level problem that
            retrying the step within the same run would not fix
    """

    def __init__(self, step: str, reason: str, fatal: bool = False):
        super().__init__(f"Provisioning step '{step}' failed: {reason}")
        self.step = step
        self.reason = reason
        self.fatal = fatal


class TenantRoutingError(Exception):
    """Base class for failures resolving a request to a tenant database."""

    retryable: bool = False

    def __init__(self, message: str, tenant_ref: str | None = None):
        super().__init__(message)
        self.tenant_ref = tenant_ref


class TenantNotFoundError(TenantRoutingError):
    """Raised when no tenant matches the request's identifying signals."""

    pass


class TenantInactiveError(TenantRoutingError):
    """Raised when the tenant exists but is not open for routing."""

    pass


class TenantNotReadyError(TenantInactiveError):
    """Raised when the tenant is still being provisioned.

    The router does not wait for provisioning; the caller is told the
    tenant is not yet available.
    """

    def __init__(self, message: str, tenant_ref: str | None = None, status: str = ""):
        super().__init__(message, tenant_ref)
        self.status = status


class TenantConnectionFailedError(TenantRoutingError):
    """Raised when a client for the tenant database cannot be obtained."""

    def __init__(
        self, message: str, tenant_ref: str | None = None, retryable: bool = True
    ):
        super().__init__(message, tenant_ref)
        self.retryable = retryable
