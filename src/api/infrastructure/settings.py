"""Application settings using pydantic-settings.

Settings are loaded from environment variables once at startup and passed
by reference into the provisioning engine, the connection pool and the
router. The administrative database URL is the single source of truth for
the server every tenant database is provisioned on.
"""

from functools import lru_cache
from typing import Any

from pydantic import (
    Field,
    PrivateAttr,
    SecretStr,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError

_SUPPORTED_SCHEMES = frozenset({"postgres", "postgresql", "postgresql+asyncpg"})


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid.

    Configuration errors are fatal at startup and are never retried.
    """

    pass


class AdminDatabaseSettings(BaseSettings):
    """Administrative database connection settings.

    Environment variables:
        SILO_ADMIN_DATABASE_URL: Administrative connection URL (required)
        SILO_ADMIN_DATABASE_POOL_SIZE: Connections in the admin pool (default: 10)
        SILO_ADMIN_DATABASE_ENVIRONMENT: Suffix for tenant database names (default: prod)
    """

    model_config = SettingsConfigDict(
        env_prefix="SILO_ADMIN_DATABASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    url: SecretStr = Field(description="Administrative connection URL")
    pool_size: int = Field(
        default=10,
        description="Connections in the administrative pool",
        ge=1,
        le=100,
    )
    environment: str = Field(
        default="prod",
        description="Environment suffix used in tenant database names",
        pattern=r"^[a-z0-9]+$",
    )
    _parsed_url: URL = PrivateAttr()

    @field_validator("url")
    @classmethod
    def validate_url(cls, value: SecretStr) -> SecretStr:
        """Validate the URL parses and names a PostgreSQL server and database."""
        try:
            parsed = make_url(value.get_secret_value())
        except ArgumentError as e:
            raise ValueError(f"Administrative URL is not parseable: {e}") from e

        if parsed.drivername not in _SUPPORTED_SCHEMES:
            raise ValueError(
                f"Unsupported database scheme '{parsed.drivername}' "
                f"(expected one of: {', '.join(sorted(_SUPPORTED_SCHEMES))})"
            )
        if not parsed.host:
            raise ValueError("Administrative URL must include a host")
        if not parsed.database:
            raise ValueError("Administrative URL must include a database")
        return value

    def model_post_init(self, __context: Any) -> None:
        """Parse the validated URL once; host, port and engines read the result."""
        self._parsed_url = make_url(self.url.get_secret_value())

    @property
    def parsed_url(self) -> URL:
        """Administrative URL parsed into its components."""
        return self._parsed_url

    @property
    def host(self) -> str:
        """Host every tenant database is provisioned on."""
        return self.parsed_url.host or ""

    @property
    def port(self) -> int:
        """Port every tenant database is provisioned on."""
        return self.parsed_url.port or 5432

    @property
    def server(self) -> str:
        """Server coordinates as host:port, safe for logging."""
        return f"{self.host}:{self.port}"


class VaultSettings(BaseSettings):
    """Credential vault settings.

    Environment variables:
        SILO_VAULT_PASSPHRASE: Passphrase the encryption key is derived from (required)
    """

    model_config = SettingsConfigDict(
        env_prefix="SILO_VAULT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    passphrase: SecretStr = Field(description="Encryption key passphrase")

    @field_validator("passphrase")
    @classmethod
    def validate_passphrase(cls, value: SecretStr) -> SecretStr:
        """Reject passphrases too short to be a server-side secret."""
        if len(value.get_secret_value()) < 16:
            raise ValueError("Vault passphrase must be at least 16 characters")
        return value


class TenantPoolSettings(BaseSettings):
    """Per-tenant connection pool settings.

    Environment variables:
        SILO_TENANT_POOL_POOL_SIZE: Connections per tenant engine (default: 5)
        SILO_TENANT_POOL_MAX_OVERFLOW: Overflow connections per tenant engine (default: 0)
        SILO_TENANT_POOL_IDLE_TIMEOUT_SECONDS: Evict engines idle this long (default: 600)
        SILO_TENANT_POOL_REAP_INTERVAL_SECONDS: Idle eviction interval (default: 60)
        SILO_TENANT_POOL_CONNECT_TIMEOUT_SECONDS: Max wait for a tenant client (default: 10)
    """

    model_config = SettingsConfigDict(
        env_prefix="SILO_TENANT_POOL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    pool_size: int = Field(default=5, ge=1, le=100)
    max_overflow: int = Field(default=0, ge=0, le=100)
    idle_timeout_seconds: float = Field(default=600.0, gt=0)
    reap_interval_seconds: float = Field(default=60.0, gt=0)
    connect_timeout_seconds: float = Field(default=10.0, gt=0)


class ProvisioningSettings(BaseSettings):
    """Provisioning job queue settings.

    Environment variables:
        SILO_PROVISIONING_MAX_ATTEMPTS: Attempts per job including the first (default: 3)
        SILO_PROVISIONING_BACKOFF_SECONDS: Delay after the first failure (default: 5)
        SILO_PROVISIONING_JOB_TIMEOUT_SECONDS: Timeout per attempt (default: 300)
        SILO_PROVISIONING_POLL_INTERVAL_SECONDS: Queue poll interval (default: 1)
        SILO_PROVISIONING_CONCURRENCY: Jobs executed in parallel (default: 4)
        SILO_PROVISIONING_LEASE_SECONDS: Claim lease before a job is reclaimable (default: 600)
        SILO_PROVISIONING_WORKER_ENABLED: Run the worker in this process (default: true)
    """

    model_config = SettingsConfigDict(
        env_prefix="SILO_PROVISIONING_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    max_attempts: int = Field(default=3, ge=1, le=20)
    backoff_seconds: float = Field(default=5.0, ge=0)
    job_timeout_seconds: float = Field(default=300.0, gt=0)
    poll_interval_seconds: float = Field(default=1.0, gt=0)
    concurrency: int = Field(default=4, ge=1, le=64)
    lease_seconds: float = Field(default=600.0, gt=0)
    worker_enabled: bool = Field(default=True)

    @model_validator(mode="after")
    def validate_lease(self) -> "ProvisioningSettings":
        """A lease shorter than the job timeout would let two workers run one job."""
        if self.lease_seconds <= self.job_timeout_seconds:
            raise ValueError(
                f"lease_seconds ({self.lease_seconds}) must be > "
                f"job_timeout_seconds ({self.job_timeout_seconds})"
            )
        return self


class AuthSettings(BaseSettings):
    """Request authentication settings.

    Environment variables:
        SILO_AUTH_JWT_SECRET: HMAC secret for tenant bearer tokens
        SILO_AUTH_JWT_ALGORITHM: Token signing algorithm (default: HS256)
        SILO_AUTH_ADMIN_TOKEN: Token required on administrative routes
    """

    model_config = SettingsConfigDict(
        env_prefix="SILO_AUTH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    jwt_secret: SecretStr = Field(default=SecretStr(""))
    jwt_algorithm: str = Field(default="HS256")
    admin_token: SecretStr = Field(default=SecretStr(""))


class Settings(BaseSettings):
    """Main application settings aggregating all configuration sections."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application metadata
    app_name: str = Field(default="Silo API", description="Application name")
    debug: bool = Field(default=False, description="Debug mode")

    @property
    def admin_database(self) -> AdminDatabaseSettings:
        """Get administrative database settings."""
        return get_admin_database_settings()

    @property
    def vault(self) -> VaultSettings:
        """Get credential vault settings."""
        return get_vault_settings()

    @property
    def tenant_pool(self) -> TenantPoolSettings:
        """Get tenant connection pool settings."""
        return get_tenant_pool_settings()

    @property
    def provisioning(self) -> ProvisioningSettings:
        """Get provisioning queue settings."""
        return get_provisioning_settings()

    @property
    def auth(self) -> AuthSettings:
        """Get authentication settings."""
        return get_auth_settings()


def _load(settings_class: type[BaseSettings]) -> BaseSettings:
    try:
        return settings_class()
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid {settings_class.__name__} configuration: {e}"
        ) from e


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()


@lru_cache
def get_admin_database_settings() -> AdminDatabaseSettings:
    """Get cached administrative database settings.

    Raises:
        ConfigurationError: If the administrative URL is missing or invalid
    """
    return _load(AdminDatabaseSettings)  # type: ignore[return-value]


@lru_cache
def get_vault_settings() -> VaultSettings:
    """Get cached vault settings.

    Raises:
        ConfigurationError: If the passphrase is missing or too short
    """
    return _load(VaultSettings)  # type: ignore[return-value]


@lru_cache
def get_tenant_pool_settings() -> TenantPoolSettings:
    """Get cached tenant pool settings."""
    return _load(TenantPoolSettings)  # type: ignore[return-value]


@lru_cache
def get_provisioning_settings() -> ProvisioningSettings:
    """Get cached provisioning settings."""
    return _load(ProvisioningSettings)  # type: ignore[return-value]


@lru_cache
def get_auth_settings() -> AuthSettings:
    """Get cached authentication settings."""
    return _load(AuthSettings)  # type: ignore[return-value]
