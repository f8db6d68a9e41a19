"""Webhook delivery core for the fitness center back office."""

__version__ = "1.0.0"
