"""Tenancy domain layer: the Tenant aggregate and its value objects."""
