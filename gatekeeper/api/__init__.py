"""HTTP API for the permissions service."""
