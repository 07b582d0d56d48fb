"""Adapters for the Numista catalog, the persistent API cache and record storage."""
