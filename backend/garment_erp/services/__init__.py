"""Reconciliation services."""
