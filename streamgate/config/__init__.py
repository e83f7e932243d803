"""Configuration module for the streamgate engine."""

from streamgate.config.plans import (
    AD_FREE_PLAN_KINDS,
    DEFAULT_PLAN_CATALOG,
    PREMIUM_PLAN_KINDS,
    PlanCatalog,
    PlanDefinition,
    PlanKind,
    load_default_catalog,
)

__all__ = [
    "AD_FREE_PLAN_KINDS",
    "DEFAULT_PLAN_CATALOG",
    "PREMIUM_PLAN_KINDS",
    "PlanCatalog",
    "PlanDefinition",
    "PlanKind",
    "load_default_catalog",
]
