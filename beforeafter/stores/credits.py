"""Persistence for per-user AI credit balances (ai_credits)."""

import threading
from collections import defaultdict
from dataclasses import replace
from datetime import datetime
from typing import Protocol

from ..clients.supabase import SupabaseClient
from ..config import DEFAULT_MONTHLY_ALLOCATION
from ..models.credits import CreditBalance
from ..utils import month_period


class CreditStore(Protocol):
    def get_or_create(self, user_id: str, now: datetime) -> CreditBalance: ...
    def deduct(self, user_id: str, amount: int, now: datetime) -> bool: ...
    def refund(self, user_id: str, amount: int, now: datetime) -> None: ...
    def add(self, user_id: str, amount: int, now: datetime) -> None: ...


class InMemoryCreditStore:
    """Balances in a dict. Every mutation for a user runs under that user's lock."""

    def __init__(self, monthly_allocation: int = DEFAULT_MONTHLY_ALLOCATION) -> None:
        self.monthly_allocation = monthly_allocation
        self._items: dict[str, CreditBalance] = {}
        self._locks: dict[str, threading.Lock] = defaultdict(threading.Lock)
        self._locks_guard = threading.Lock()

    def _lock_for(self, user_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks[user_id]

    def _current(self, user_id: str, now: datetime) -> CreditBalance:
        """Create the balance on first use and reset it once the period has ended."""
        balance = self._items.get(user_id)
        if balance is None or balance.period_end <= now:
            start, end = month_period(now)
            allocation = balance.monthly_allocation if balance else self.monthly_allocation
            balance = CreditBalance(
                user_id=user_id,
                credits_remaining=allocation,
                credits_used_this_period=0,
                monthly_allocation=allocation,
                period_start=start,
                period_end=end,
            )
            self._items[user_id] = balance
        return balance

    def get_or_create(self, user_id: str, now: datetime) -> CreditBalance:
        with self._lock_for(user_id):
            return self._current(user_id, now)

    def deduct(self, user_id: str, amount: int, now: datetime) -> bool:
        with self._lock_for(user_id):
            balance = self._current(user_id, now)
            if balance.credits_remaining < amount:
                return False
            self._items[user_id] = replace(
                balance,
                credits_remaining=balance.credits_remaining - amount,
                credits_used_this_period=balance.credits_used_this_period + amount,
            )
            return True

    def refund(self, user_id: str, amount: int, now: datetime) -> None:
        with self._lock_for(user_id):
            balance = self._current(user_id, now)
            self._items[user_id] = replace(
                balance,
                credits_remaining=balance.credits_remaining + amount,
                credits_used_this_period=max(0, balance.credits_used_this_period - amount),
            )

    def add(self, user_id: str, amount: int, now: datetime) -> None:
        with self._lock_for(user_id):
            balance = self._current(user_id, now)
            self._items[user_id] = replace(balance, credits_remaining=balance.credits_remaining + amount)


class SupabaseCreditStore:
    """Balances behind database functions, which serialize per user row."""

    def __init__(self, client: SupabaseClient):
        self.client = client

    def get_or_create(self, user_id: str, now: datetime) -> CreditBalance:
        row = self.client.rpc("check_and_reset_ai_credits", {"p_user_id": user_id})
        return CreditBalance.from_row(row[0] if isinstance(row, list) else row)

    def deduct(self, user_id: str, amount: int, now: datetime) -> bool:
        return bool(self.client.rpc("deduct_ai_credits", {"p_user_id": user_id, "p_amount": amount}))

    def refund(self, user_id: str, amount: int, now: datetime) -> None:
        self.client.rpc("refund_ai_credits", {"p_user_id": user_id, "p_amount": amount})

    def add(self, user_id: str, amount: int, now: datetime) -> None:
        self.client.rpc("add_ai_credits", {"p_user_id": user_id, "p_amount": amount})
