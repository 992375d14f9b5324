"""Ports used by the provisioning engine and the connection pool.

Server administration runs with administrative credentials taken from the
single administrative connection URL. The seeder runs with the tenant's own
credentials.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from tenancy.domain.value_objects import AdminAccount


@runtime_checkable
class DatabaseServerAdmin(Protocol):
    """Server-level administration of tenant roles and databases.

    Every statement commits on its own; nothing here runs in a shared
    transaction.
    """

    @property
    def host(self) -> str:
        """Host of the administered server."""
        ...

    @property
    def port(self) -> int:
        """Port of the administered server."""
        ...

    async def role_exists(self, username: str) -> bool:
        ...

    async def create_role(self, username: str, password: str) -> None:
        """Create a LOGIN role with the given password."""
        ...

    async def set_role_password(self, username: str, password: str) -> None:
        ...

    async def database_exists(self, database: str) -> bool:
        ...

    async def create_database(self, database: str, owner: str) -> None:
        ...

    async def grant_database_privileges(self, database: str, username: str) -> None:
        """Grant all privileges on the database to the role."""
        ...

    async def grant_schema_privileges(self, database: str, username: str) -> None:
        """Inside the database, grant the public schema and default privileges
        on future tables and sequences to the role."""
        ...

    async def apply_schema(self, database: str) -> None:
        """Create the tenant business schema inside the database."""
        ...

    async def drop_database(self, database: str) -> bool:
        """Drop the database; returns False if it did not exist."""
        ...

    async def drop_role(self, username: str) -> bool:
        """Drop the role; returns False if it did not exist."""
        ...

    async def database_size(self, database: str) -> int | None:
        """Size of the database in bytes, or None if it does not exist."""
        ...


@runtime_checkable
class TenantSeeder(Protocol):
    """Writes initial business records using the tenant's own credentials."""

    async def create_admin_user(
        self, connection_string: str, account: AdminAccount
    ) -> bool:
        """Insert the first administrative user.

        Returns:
            True if inserted, False if a user with that email already existed
        """
        ...


@runtime_checkable
class ICredentialVault(Protocol):
    """Symmetric encryption of tenant database passwords at rest."""

    def encrypt(self, plaintext: str) -> str:
        """Encrypt to the nonce_hex:ciphertext_hex format."""
        ...

    def decrypt(self, value: str) -> str:
        """Decrypt a stored value.

        Raises:
            CredentialDecryptionError: If the value is malformed
        """
        ...
