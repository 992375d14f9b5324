"""Provisioning engine for tenant databases.

Drives a tenant from pending to active through a fixed sequence of
idempotent steps. Every step re-checks the server after it writes, so a
run that is retried after a crash or a race picks up where the last one
stopped. The tenant status is written before each step starts, so the
record always shows how far a run got.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from shared_kernel.observability_context import ObservationContext
from tenancy.application.observability import (
    DefaultProvisioningProbe,
    ProvisioningProbe,
)
from tenancy.application.security import generate_database_password
from tenancy.application.value_objects import ProvisioningReport, StepResult
from tenancy.domain.aggregates import Tenant
from tenancy.domain.value_objects import AdminAccount, ProvisioningStatus, TenantId
from tenancy.ports.provisioning import (
    DatabaseServerAdmin,
    ICredentialVault,
    TenantSeeder,
)
from tenancy.ports.repositories import ITenantDirectory

Step = Callable[[Tenant, AdminAccount], Awaitable[StepResult]]


class ProvisioningEngine:
    """Creates the role, database, schema and admin user of a tenant."""

    def __init__(
        self,
        directory: ITenantDirectory,
        server: DatabaseServerAdmin,
        seeder: TenantSeeder,
        vault: ICredentialVault,
        probe: ProvisioningProbe | None = None,
        password_generator: Callable[[], str] = generate_database_password,
    ):
        """Initialize the engine.

        Args:
            directory: Self-committing tenant store for status writes
            server: Administration of the server all tenants live on
            seeder: Writes the admin user with the tenant's own credentials
            vault: Encrypts the generated database password
            probe: Optional domain probe for observability
            password_generator: Source of new database passwords
        """
        self._directory = directory
        self._server = server
        self._seeder = seeder
        self._vault = vault
        self._probe = probe or DefaultProvisioningProbe()
        self._generate_password = password_generator
        # Password issued by the create_user step of the current run
        self._passwords: dict[str, str] = {}

    async def provision(
        self, tenant_id: TenantId, account: AdminAccount
    ) -> ProvisioningReport:
        """Run every provisioning step for a tenant.

        Stops at the first failed step; the tenant keeps the status of that
        step and records the failure. The caller decides whether to retry.

        Args:
            tenant_id: Tenant to provision
            account: The first administrative user of the tenant

        Returns:
            Report of the step results, in order
        """
        tenant = await self._directory.get(tenant_id)
        if tenant is None or tenant.is_deprovisioned:
            reason = "tenant not found" if tenant is None else "tenant deprovisioned"
            self._probe.with_context(
                ObservationContext(tenant_id=tenant_id.value)
            ).run_short_circuited(reason)
            return ProvisioningReport(
                tenant_id=tenant_id.value,
                db_name="",
                server="",
                results=(StepResult.failed("load_tenant", reason, fatal=True),),
            )

        probe = self._probe.with_context(
            ObservationContext(
                tenant_id=tenant.id.value,
                db_name=tenant.db_name.value,
                server=f"{self._server.host}:{self._server.port}",
            )
        )

        if tenant.is_routable:
            probe.run_short_circuited("tenant already active")
            return self._report(
                tenant, [StepResult.already_done("activate", "tenant already active")]
            )

        previous = tenant.server
        tenant.begin_provisioning()
        if tenant.assign_server(self._server.host, self._server.port):
            probe.server_coordinates_corrected(previous, tenant.server)
        await self._directory.save(tenant)
        probe.run_started(tenant.provisioning_attempts)

        steps: list[tuple[ProvisioningStatus, Step]] = [
            (ProvisioningStatus.CREATING_USER, self._create_user),
            (ProvisioningStatus.CREATING_DATABASE, self._create_database),
            (ProvisioningStatus.GRANTING_PRIVILEGES, self._grant_privileges),
            (ProvisioningStatus.APPLYING_SCHEMA, self._apply_schema),
            (ProvisioningStatus.CREATING_ADMIN_RECORD, self._create_admin_record),
        ]

        results: list[StepResult] = []
        try:
            for status, step in steps:
                tenant.enter_step(status)
                await self._directory.save(tenant)
                probe.step_started(status.value)

                try:
                    result = await step(tenant, account)
                except Exception as e:
                    result = StepResult.failed(status.value, str(e) or type(e).__name__)
                results.append(result)

                if not result.succeeded:
                    probe.step_failed(result.step, result.detail, result.fatal)
                    tenant.record_step_failure(result.step, result.detail)
                    await self._directory.save(tenant)
                    return self._report(tenant, results)
                probe.step_finished(result.step, result.outcome.value, result.detail)

            tenant.activate()
            await self._directory.save(tenant)
        finally:
            self._passwords.pop(tenant.id.value, None)

        results.append(StepResult.completed("activate"))
        probe.run_completed()
        return self._report(tenant, results)

    async def _create_user(self, tenant: Tenant, account: AdminAccount) -> StepResult:
        step = ProvisioningStatus.CREATING_USER.value
        username = tenant.db_username.value
        password = self._generate_password()

        existed = await self._server.role_exists(username)
        if existed:
            await self._server.set_role_password(username, password)
        else:
            await self._server.create_role(username, password)

        if not await self._server.role_exists(username):
            return StepResult.failed(
                step,
                f"role {username} missing after creation; check the administrative "
                "connection points at the server tenants are provisioned on",
                fatal=True,
            )

        tenant.store_credentials(self._vault.encrypt(password))
        await self._directory.save(tenant)
        self._passwords[tenant.id.value] = password

        if existed:
            return StepResult.already_done(step, "role existed; password reset")
        return StepResult.completed(step, "role created")

    async def _create_database(
        self, tenant: Tenant, account: AdminAccount
    ) -> StepResult:
        step = ProvisioningStatus.CREATING_DATABASE.value
        database = tenant.db_name.value

        if await self._server.database_exists(database):
            return StepResult.already_done(step, "database existed")

        await self._server.create_database(database, owner=tenant.db_username.value)

        if not await self._server.database_exists(database):
            return StepResult.failed(
                step,
                f"database {database} missing after creation on {tenant.server}",
                fatal=True,
            )
        return StepResult.completed(step, "database created")

    async def _grant_privileges(
        self, tenant: Tenant, account: AdminAccount
    ) -> StepResult:
        database = tenant.db_name.value
        username = tenant.db_username.value
        await self._server.grant_database_privileges(database, username)
        await self._server.grant_schema_privileges(database, username)
        return StepResult.completed(ProvisioningStatus.GRANTING_PRIVILEGES.value)

    async def _apply_schema(self, tenant: Tenant, account: AdminAccount) -> StepResult:
        await self._server.apply_schema(tenant.db_name.value)
        return StepResult.completed(ProvisioningStatus.APPLYING_SCHEMA.value)

    async def _create_admin_record(
        self, tenant: Tenant, account: AdminAccount
    ) -> StepResult:
        step = ProvisioningStatus.CREATING_ADMIN_RECORD.value
        password = self._passwords.get(tenant.id.value)
        if password is None:
            return StepResult.failed(step, "database password was not issued")

        inserted = await self._seeder.create_admin_user(
            tenant.connection_string(password), account
        )
        if not inserted:
            return StepResult.already_done(step, "admin user existed")
        return StepResult.completed(step, "admin user created")

    @staticmethod
    def _report(tenant: Tenant, results: list[StepResult]) -> ProvisioningReport:
        return ProvisioningReport(
            tenant_id=tenant.id.value,
            db_name=tenant.db_name.value,
            server=tenant.server,
            results=tuple(results),
        )
