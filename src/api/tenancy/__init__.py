"""Tenancy bounded context.

Owns the tenant directory, database provisioning for new tenants and the
routing of requests to each tenant's isolated database.
"""
