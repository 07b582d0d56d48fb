"""Reconciliation domain: matching, merging and enrichment metadata."""
