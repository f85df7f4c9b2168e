from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ..utils import parse_iso, to_iso


@dataclass(frozen=True)
class CreditBalance:
    user_id: str
    credits_remaining: int
    credits_used_this_period: int
    monthly_allocation: int
    period_start: datetime
    period_end: datetime

    def days_until_reset(self, now: datetime) -> int:
        remaining = self.period_end - now
        return max(0, remaining.days + (1 if remaining.seconds else 0))

    def to_row(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "credits_remaining": self.credits_remaining,
            "credits_used_this_period": self.credits_used_this_period,
            "monthly_allocation": self.monthly_allocation,
            "period_start": to_iso(self.period_start),
            "period_end": to_iso(self.period_end),
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "CreditBalance":
        return cls(
            user_id=row["user_id"],
            credits_remaining=int(row["credits_remaining"]),
            credits_used_this_period=int(row.get("credits_used_this_period") or 0),
            monthly_allocation=int(row["monthly_allocation"]),
            period_start=parse_iso(row["period_start"]),
            period_end=parse_iso(row["period_end"]),
        )


@dataclass(frozen=True)
class CreditCheck:
    """Result of asking whether a user can afford a feature."""
    has_credits: bool
    credits_remaining: int
    credits_required: int
    days_until_reset: int = 0

    def to_wire(self) -> dict[str, Any]:
        return {
            "hasCredits": self.has_credits,
            "creditsRemaining": self.credits_remaining,
            "creditsRequired": self.credits_required,
            "daysUntilReset": self.days_until_reset,
        }
