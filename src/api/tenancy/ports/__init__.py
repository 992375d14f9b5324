"""Ports for the tenancy bounded context."""
