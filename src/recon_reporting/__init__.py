"""Reconciliation result model, dashboard analytics and report exports."""

__version__ = "0.1.0"
