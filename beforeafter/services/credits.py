"""Credit accounting for AI features."""

import logging
from collections.abc import Callable
from datetime import datetime

from ..config import FEATURE_COSTS
from ..errors import ValidationError
from ..models.credits import CreditBalance, CreditCheck
from ..stores.credits import CreditStore
from ..utils import utc_now

logger = logging.getLogger(__name__)


class CreditService:
    """Balance reads and mutations. Serialization per user is the store's job."""

    def __init__(
        self,
        store: CreditStore,
        feature_costs: dict[str, int] | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.feature_costs = feature_costs if feature_costs is not None else FEATURE_COSTS
        self.clock = clock

    def cost_of(self, feature_key: str) -> int:
        if feature_key not in self.feature_costs:
            raise ValidationError(f"Unknown feature: {feature_key}")
        return self.feature_costs[feature_key]

    def get_balance(self, user_id: str) -> CreditBalance:
        """Current balance, reset first if the period has ended."""
        return self.store.get_or_create(user_id, self.clock())

    def check(self, user_id: str, feature_key: str) -> CreditCheck:
        required = self.cost_of(feature_key)
        now = self.clock()
        balance = self.store.get_or_create(user_id, now)
        return CreditCheck(
            has_credits=balance.credits_remaining >= required,
            credits_remaining=balance.credits_remaining,
            credits_required=required,
            days_until_reset=balance.days_until_reset(now),
        )

    def deduct(self, user_id: str, amount: int) -> bool:
        """Returns False (and changes nothing) when the balance is too low."""
        deducted = self.store.deduct(user_id, amount, self.clock())
        if not deducted:
            logger.warning(f"Could not deduct {amount} credits from user {user_id}")
        return deducted

    def refund(self, user_id: str, amount: int) -> None:
        self.store.refund(user_id, amount, self.clock())
        logger.info(f"Refunded {amount} credits to user {user_id}")

    def add(self, user_id: str, amount: int) -> None:
        if amount <= 0:
            raise ValidationError("Credit amount must be positive")
        self.store.add(user_id, amount, self.clock())
