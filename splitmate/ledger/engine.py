"""
Ledger Engine

Maintains every user's global running Balance incrementally.

CRITICAL: The Balance table is a VIEW of the expense and settlement
records. Every write path that creates a record applies its effect here,
and every path that deletes one reverses it with the same snapshot.

Two error policies live in this module:
- Writes (apply/reverse) propagate storage errors unchanged.
- Reads (get_all, get_user_balance, get_current_user_balance) log the
  error and return an empty result so a balance widget never crashes.
"""

from collections import defaultdict
from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

import structlog

from splitmate.models.ledger import Balance, ExpenseSplit, Settlement
from splitmate.services.storage import LedgerStorageInterface


logger = structlog.get_logger()


def expense_balance_deltas(
    splits: Iterable[ExpenseSplit],
    payer_id: UUID,
) -> dict[UUID, Decimal]:
    """
    Balance changes caused by one expense.

    For every split row:
    - the payer's own row credits the payer ONCE with the total of all
      unpaid shares owed by others
    - an unpaid row owned by someone else debits its owner

    Zero deltas are dropped.
    """
    splits = list(splits)
    owed_to_payer = sum(
        (s.amount for s in splits if s.user_id != payer_id and not s.paid),
        Decimal("0"),
    )

    deltas: dict[UUID, Decimal] = defaultdict(lambda: Decimal("0"))
    for split in splits:
        if split.user_id == payer_id:
            if owed_to_payer > 0:
                deltas[payer_id] += owed_to_payer
        elif not split.paid:
            deltas[split.user_id] -= split.amount

    return {user_id: delta for user_id, delta in deltas.items() if delta != 0}


def settlement_balance_deltas(settlement: Settlement) -> dict[UUID, Decimal]:
    """The payer moves toward being owed; the receiver gives up that credit."""
    return {
        settlement.payer_id: settlement.amount,
        settlement.received_by_user_id: -settlement.amount,
    }


class LedgerEngine:
    """Applies and reverses balance effects against storage."""

    def __init__(self, storage: LedgerStorageInterface):
        self._storage = storage

    async def _apply(self, deltas: dict[UUID, Decimal], sign: int) -> None:
        for user_id, delta in deltas.items():
            await self._storage.apply_balance_delta(user_id, delta * sign)

    async def apply_expense_splits(
        self,
        splits: list[ExpenseSplit],
        payer_id: UUID,
    ) -> None:
        """Apply a new expense to the global balances."""
        await self._apply(expense_balance_deltas(splits, payer_id), 1)

    async def reverse_expense_splits(
        self,
        splits: list[ExpenseSplit],
        payer_id: UUID,
    ) -> None:
        """
        Exact negation of apply_expense_splits().

        Must be called with the splits and payer of the stored expense,
        BEFORE the expense is deleted.
        """
        await self._apply(expense_balance_deltas(splits, payer_id), -1)

    async def apply_settlement(self, settlement: Settlement) -> None:
        await self._apply(settlement_balance_deltas(settlement), 1)

    async def reverse_settlement(self, settlement: Settlement) -> None:
        await self._apply(settlement_balance_deltas(settlement), -1)

    # -------------------------------------------------------------------------
    # Read side (errors are logged and swallowed)
    # -------------------------------------------------------------------------

    async def get_all(self) -> list[Balance]:
        try:
            return await self._storage.list_balances()
        except Exception as e:
            logger.error("Failed to list balances", error=str(e))
            return []

    async def get_user_balance(self, user_id: UUID) -> Optional[Balance]:
        try:
            return await self._storage.get_balance(user_id)
        except Exception as e:
            logger.error(
                "Failed to get balance",
                user_id=str(user_id),
                error=str(e),
            )
            return None

    async def get_current_user_balance(
        self,
        current_user_id: Optional[UUID],
    ) -> Optional[Balance]:
        """Balance of the signed-in user; None when nobody is signed in."""
        if current_user_id is None:
            return None
        return await self.get_user_balance(current_user_id)
