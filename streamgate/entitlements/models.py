from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class Entitlement:
    """Derived access decision for one account at one instant. Never stored."""

    account_id: str
    can_stream: bool
    is_premium: bool
    shows_ads: bool
    active_until: Optional[datetime]
    is_in_trial: bool
    evaluated_at: datetime

    def __post_init__(self) -> None:
        if not str(self.account_id).strip():
            raise ValueError("account_id is required")
        if self.evaluated_at.tzinfo is None:
            raise ValueError("evaluated_at must be timezone-aware")

    def to_dict(self) -> dict:
        return {
            "account_id": self.account_id,
            "can_stream": self.can_stream,
            "is_premium": self.is_premium,
            "shows_ads": self.shows_ads,
            "active_until": self.active_until.isoformat() if self.active_until else None,
            "is_in_trial": self.is_in_trial,
            "evaluated_at": self.evaluated_at.isoformat(),
        }
