"""Intellifoam: spray-foam quoting, building physics and installer scheduling."""

__version__ = "1.0.0"
