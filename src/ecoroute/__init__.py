"""EcoRoute real-time presence, messaging and notification delivery."""

__version__ = "1.0.0"
