"""Captive portal session lifecycle core."""

__version__ = "0.1.0"
