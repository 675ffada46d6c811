"""
Credit ledger contract used at the HTTP boundary.

Charges are idempotent per request id: a retried request with the same id is
never billed twice. Hard failures are refunded so the caller can retry.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional, Protocol

from config import config


class InsufficientCredits(Exception):
    def __init__(self, user_id: str, required: int, balance: int):
        super().__init__(f"User {user_id} needs {required} credits but has {balance}")
        self.user_id = user_id
        self.required = required
        self.balance = balance


@dataclass
class ChargeRecord:
    request_id: str
    user_id: str
    amount: int
    refunded: bool = False
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


@dataclass(frozen=True)
class ChargeOutcome:
    record: ChargeRecord
    newly_charged: bool


class CreditLedger(Protocol):
    async def charge(self, request_id: str, user_id: str, amount: int) -> ChargeOutcome:
        ...

    async def refund(self, request_id: str) -> bool:
        ...


class InMemoryCreditLedger:
    """Process-local ledger; balances start at ``default_balance`` for unseen users."""

    def __init__(self, default_balance: Optional[int] = None, balances: Optional[Dict[str, int]] = None):
        self.default_balance = config.DEFAULT_CREDIT_BALANCE if default_balance is None else default_balance
        self._balances: Dict[str, int] = dict(balances or {})
        self._charges: Dict[str, ChargeRecord] = {}
        self._lock = asyncio.Lock()

    def balance(self, user_id: str) -> int:
        return self._balances.get(user_id, self.default_balance)

    def get_charge(self, request_id: str) -> Optional[ChargeRecord]:
        return self._charges.get(request_id)

    async def charge(self, request_id: str, user_id: str, amount: int) -> ChargeOutcome:
        async with self._lock:
            existing = self._charges.get(request_id)
            if existing is not None and not existing.refunded:
                return ChargeOutcome(record=existing, newly_charged=False)

            balance = self.balance(user_id)
            if balance < amount:
                raise InsufficientCredits(user_id, amount, balance)

            self._balances[user_id] = balance - amount
            record = ChargeRecord(request_id=request_id, user_id=user_id, amount=amount)
            self._charges[request_id] = record
            return ChargeOutcome(record=record, newly_charged=True)

    async def refund(self, request_id: str) -> bool:
        async with self._lock:
            record = self._charges.get(request_id)
            if record is None or record.refunded:
                return False
            record.refunded = True
            self._balances[record.user_id] = self.balance(record.user_id) + record.amount
            return True
