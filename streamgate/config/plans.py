"""
Subscription plan catalog.

The catalog is read-only configuration: the engine looks up price and
duration by plan key and never writes back. Prices are in the payment
currency (XOF has no minor unit).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional


class PlanKind(str, Enum):
    """Recognized plan keys."""
    YEARLY = "yearly"
    DAILY = "daily"
    PREMIUM_YEARLY = "premium_yearly"


# Plans whose active window removes ads.
AD_FREE_PLAN_KINDS = frozenset({PlanKind.DAILY, PlanKind.PREMIUM_YEARLY})
# Plans that grant premium status. The daily ad-free plan is not premium.
PREMIUM_PLAN_KINDS = frozenset({PlanKind.PREMIUM_YEARLY})


@dataclass(frozen=True)
class PlanDefinition:
    """Price and duration for one plan key."""

    plan_kind: PlanKind
    price: int
    duration_days: int
    description: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "plan_kind", PlanKind(self.plan_kind))
        if int(self.price) < 0:
            raise ValueError(f"plan '{self.plan_kind.value}' price must be non-negative")
        if int(self.duration_days) <= 0:
            raise ValueError(f"plan '{self.plan_kind.value}' duration_days must be positive")
        object.__setattr__(self, "price", int(self.price))
        object.__setattr__(self, "duration_days", int(self.duration_days))

    def to_dict(self) -> dict:
        return {
            "plan_kind": self.plan_kind.value,
            "price": self.price,
            "duration_days": self.duration_days,
            "description": self.description,
        }


class PlanCatalog:
    """Lookup of plan definitions by key."""

    def __init__(self, plans: Iterable[PlanDefinition]) -> None:
        by_kind: Dict[str, PlanDefinition] = {}
        for plan in plans:
            by_kind[plan.plan_kind.value] = plan
        if not by_kind:
            raise ValueError("plan catalog must define at least one plan")
        self._plans: Mapping[str, PlanDefinition] = MappingProxyType(by_kind)

    def lookup(self, plan_kind: str) -> Optional[PlanDefinition]:
        """Return the plan for a key, or None when the key is not recognized."""
        if plan_kind is None:
            return None
        key = plan_kind.value if isinstance(plan_kind, PlanKind) else str(plan_kind).strip()
        return self._plans.get(key)

    def all(self) -> list[PlanDefinition]:
        return list(self._plans.values())


def load_default_catalog() -> PlanCatalog:
    """Build the catalog from environment-overridable defaults."""
    return PlanCatalog([
        PlanDefinition(
            plan_kind=PlanKind.YEARLY,
            price=int(os.getenv("YEARLY_SUBSCRIPTION_PRICE", "10000")),
            duration_days=365,
            description="Full channel access for one year",
        ),
        PlanDefinition(
            plan_kind=PlanKind.DAILY,
            price=int(os.getenv("DAILY_SUBSCRIPTION_PRICE", "200")),
            duration_days=1,
            description="Ad-free access for one day",
        ),
        PlanDefinition(
            plan_kind=PlanKind.PREMIUM_YEARLY,
            price=int(os.getenv("PREMIUM_YEARLY_PRICE", "15000")),
            duration_days=365,
            description="Premium yearly subscription with no ads",
        ),
    ])


DEFAULT_PLAN_CATALOG = load_default_catalog()
