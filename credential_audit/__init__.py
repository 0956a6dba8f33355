"""Entra ID application credential expiry audit."""

__version__ = "1.0.0"
