"""Chronos Vault - seal memories until a moment in the future."""

__version__ = "0.1.0"
