"""Process-wide tenancy components.

The credential vault and the tenant connection pool live for the whole
process. The pool is created on first use and closed on shutdown.
"""

from __future__ import annotations

import threading
from functools import lru_cache

from infrastructure.database.dependencies import get_admin_sessionmaker
from infrastructure.settings import get_tenant_pool_settings, get_vault_settings
from tenancy.infrastructure.credential_vault import CredentialVault
from tenancy.infrastructure.tenant_directory import TenantDirectory
from tenancy.infrastructure.tenant_pool import TenantConnectionPool

# Module-level pool instance (created on first use)
_tenant_pool: TenantConnectionPool | None = None

# Thread lock for safe pool initialization
_pool_lock = threading.Lock()


@lru_cache
def get_credential_vault() -> CredentialVault:
    """Get the credential vault (singleton).

    Deriving the key is deliberately slow, so it happens once per process.
    """
    return CredentialVault.from_settings(get_vault_settings())


def get_tenant_pool() -> TenantConnectionPool:
    """Get the tenant connection pool (singleton).

    Uses double-check locking for thread-safe initialization.
    """
    global _tenant_pool
    if _tenant_pool is None:
        with _pool_lock:
            if _tenant_pool is None:
                _tenant_pool = TenantConnectionPool(
                    vault=get_credential_vault(),
                    settings=get_tenant_pool_settings(),
                )
    return _tenant_pool


def get_tenant_directory() -> TenantDirectory:
    """Get a self-committing tenant directory on the administrative database."""
    return TenantDirectory(session_factory=get_admin_sessionmaker())


async def close_tenant_pool() -> None:
    """Dispose every cached tenant engine and reset the singleton."""
    global _tenant_pool
    if _tenant_pool is not None:
        await _tenant_pool.close_all()
        _tenant_pool = None
