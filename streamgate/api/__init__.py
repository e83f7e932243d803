"""FastAPI surface over the entitlement and payment engine."""
