"""Relay Pushover Open Client notifications to the Linux desktop."""

__version__ = "0.1.0"
