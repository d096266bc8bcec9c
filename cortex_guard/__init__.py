"""Cortex Guard — access control, approval and audit plane."""

__version__ = "0.1.0"
