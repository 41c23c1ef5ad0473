"""Territory claiming engine for a location-based survival game."""

__version__ = "0.1.0"
