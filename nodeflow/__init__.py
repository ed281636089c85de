"""Nodeflow: a low-code workflow execution engine."""

__version__ = "1.0.0"
