"""Workspace profiles layered over a shared global configuration."""

__version__ = "1.0.0"
