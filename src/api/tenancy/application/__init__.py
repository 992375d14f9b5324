"""Tenancy application layer: registration, provisioning and routing services."""
