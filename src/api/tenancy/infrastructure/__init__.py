"""Tenancy infrastructure: persistence, vault, server admin and tenant pools."""
