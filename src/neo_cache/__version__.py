"""Version information for neo-cache."""

__version__ = "0.1.0"
