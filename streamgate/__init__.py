"""streamgate: entitlement and payment reconciliation engine for a streaming service."""

__version__ = "0.1.0"
