"""Commit-reveal seeds, deterministic random expansion and score replay validation."""

__version__ = "1.0.0"
