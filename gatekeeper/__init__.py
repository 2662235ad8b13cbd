"""Gatekeeper - API key permission service over a request/reply message bus."""

__version__ = "0.3.0"
