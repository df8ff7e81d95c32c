"""Banb AI tool-orchestration layer."""

__version__ = "1.0.0"
