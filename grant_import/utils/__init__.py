"""Shared helpers: EIN handling and logging setup."""
