"""Shared helpers, exceptions and logging."""
