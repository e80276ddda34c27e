"""Loom Editor: timeline editing and export planning for screen recordings."""

__version__ = "0.1.0"
