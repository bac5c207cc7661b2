"""Reconcile donor-advised-fund grant exports with a foundation's organizations and grants."""

__version__ = "0.1.0"
