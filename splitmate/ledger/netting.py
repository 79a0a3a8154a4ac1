"""
Pairwise Ledger Netting

Pure functions over expense and settlement records. Nothing here touches
storage, so the group view can always be recomputed from scratch.

ledger[a][b] is the amount a owes b. After net_ledger() at most one of
ledger[a][b] and ledger[b][a] is non-zero, and neither is negative.
"""

from decimal import Decimal
from typing import Iterable
from uuid import UUID

import structlog

from splitmate.models.ledger import CreditEntry, DebtEntry, Expense, Settlement


logger = structlog.get_logger()

ZERO = Decimal("0.00")

Ledger = dict[UUID, dict[UUID, Decimal]]


def empty_ledger(member_ids: Iterable[UUID]) -> Ledger:
    ids = list(member_ids)
    return {a: {b: ZERO for b in ids if b != a} for a in ids}


def build_raw_ledger(
    member_ids: list[UUID],
    expenses: Iterable[Expense],
    settlements: Iterable[Settlement],
) -> tuple[dict[UUID, Decimal], Ledger]:
    """
    Accumulate group totals and the un-netted pairwise ledger.

    - Each unpaid split owned by someone other than the payer moves
      its amount from the owner to the payer.
    - Each settlement credits the payer and debits the receiver, and
      reduces what the payer owes the receiver.

    Transactions touching users outside member_ids are skipped.

    Returns:
        (totals, ledger)
    """
    members = set(member_ids)
    totals = {user_id: ZERO for user_id in member_ids}
    ledger = empty_ledger(member_ids)

    for expense in expenses:
        payer = expense.payer_id
        for split in expense.splits:
            if split.user_id == payer or split.paid:
                continue
            if payer not in members or split.user_id not in members:
                logger.warning(
                    "Skipping split involving a non-member",
                    expense_id=str(expense.id),
                    user_id=str(split.user_id),
                    payer_id=str(payer),
                )
                continue
            totals[payer] += split.amount
            totals[split.user_id] -= split.amount
            ledger[split.user_id][payer] += split.amount

    for settlement in settlements:
        payer = settlement.payer_id
        receiver = settlement.received_by_user_id
        if payer not in members or receiver not in members:
            logger.warning(
                "Skipping settlement involving a non-member",
                settlement_id=str(settlement.id),
            )
            continue
        totals[payer] += settlement.amount
        totals[receiver] -= settlement.amount
        ledger[payer][receiver] -= settlement.amount

    return totals, ledger


def net_ledger(ledger: Ledger) -> Ledger:
    """
    Collapse each pair of opposite debts into a single direction.

    Pairs are visited once, a < b by the string form of the id.
    Returns a new ledger; the input is not modified.
    """
    netted = {a: dict(row) for a, row in ledger.items()}
    ids = sorted(netted, key=str)

    for i, a in enumerate(ids):
        for b in ids[i + 1:]:
            diff = netted[a].get(b, ZERO) - netted[b].get(a, ZERO)
            if diff > 0:
                netted[a][b], netted[b][a] = diff, ZERO
            elif diff < 0:
                netted[a][b], netted[b][a] = ZERO, -diff
            else:
                netted[a][b] = netted[b][a] = ZERO

    return netted


def debts_of(ledger: Ledger, user_id: UUID) -> list[DebtEntry]:
    """Strictly positive amounts user_id owes, in member order."""
    return [
        DebtEntry(to=other, amount=amount)
        for other, amount in ledger.get(user_id, {}).items()
        if amount > 0
    ]


def credits_of(ledger: Ledger, user_id: UUID) -> list[CreditEntry]:
    """Strictly positive amounts owed to user_id, in member order."""
    return [
        CreditEntry(from_=other, amount=row[user_id])
        for other, row in ledger.items()
        if other != user_id and row.get(user_id, ZERO) > 0
    ]
