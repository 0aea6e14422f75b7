"""Operational entry points (administrative triggers)."""
