"""Converge: declarative resources reconciled against external APIs."""

__version__ = "0.1.0"
