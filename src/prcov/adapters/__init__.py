"""Adapters for external report formats."""
