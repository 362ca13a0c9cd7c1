"""Argus Tripwire - burst detection for smart-contract event streams."""

__version__ = "0.1.0"
