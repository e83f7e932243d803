"""Outbound integrations with third-party services."""
