"""
Split Computation

Turns an amount and a list of participants into ExpenseSplit rows.
Every helper returns rows that add up to the amount exactly; the
validator still checks the sum before anything is saved.
"""

from decimal import Decimal
from uuid import UUID

from splitmate.errors import ValidationError
from splitmate.models.ledger import ExpenseSplit, SplitParticipant, SplitType, to_money
from splitmate.validation import parse_amount


HUNDRED = Decimal("100")


def equal_share(amount: Decimal, people: int) -> Decimal:
    """amount / people, rounded half-up to cents."""
    if people < 1:
        raise ValidationError("At least one participant is required")
    return to_money(Decimal(amount) / people)


def _equal(amount: Decimal, participants: list[SplitParticipant]) -> list[Decimal]:
    share = equal_share(amount, len(participants))
    amounts = [share] * len(participants)
    amounts[-1] = amount - share * (len(participants) - 1)
    return amounts


def _percentage(amount: Decimal, participants: list[SplitParticipant]) -> list[Decimal]:
    if any(p.percentage is None or p.percentage < 0 for p in participants):
        raise ValidationError("Every participant needs a non-negative percentage")
    if sum(p.percentage for p in participants) != HUNDRED:
        raise ValidationError("Percentages must sum to 100")

    amounts = [to_money(amount * p.percentage / HUNDRED) for p in participants]
    amounts[-1] = amount - sum(amounts[:-1], Decimal("0"))
    return amounts


def _exact(amount: Decimal, participants: list[SplitParticipant]) -> list[Decimal]:
    if any(p.amount is None or p.amount < 0 for p in participants):
        raise ValidationError("Every participant needs a non-negative amount")
    if sum(p.amount for p in participants) != amount:
        raise ValidationError("Exact amounts must sum to the total amount")
    return [p.amount for p in participants]


_BUILDERS = {
    SplitType.EQUAL: _equal,
    SplitType.PERCENTAGE: _percentage,
    SplitType.EXACT: _exact,
}


def build_splits(
    amount: Decimal,
    split_type: SplitType,
    participants: list[SplitParticipant],
    payer_id: UUID,
) -> list[ExpenseSplit]:
    """
    Compute split rows for a structured expense form.

    - equal: the rounding remainder goes to the last participant
    - percentage: percentages must sum to 100; remainder to the last participant
    - exact: amounts must sum to the total

    The payer's own row is marked paid.

    Raises:
        ValidationError: On missing participants or inconsistent inputs
    """
    if not participants:
        raise ValidationError("At least one participant is required")

    amount = parse_amount(amount)
    amounts = _BUILDERS[SplitType(split_type)](amount, participants)

    return [
        ExpenseSplit(
            user_id=p.user_id,
            amount=share,
            paid=p.user_id == payer_id,
        )
        for p, share in zip(participants, amounts)
    ]


def command_splits(
    amount: Decimal,
    payer_id: UUID,
    member_ids: list[UUID],
    redistribute_remainder: bool = True,
) -> tuple[Decimal, list[ExpenseSplit]]:
    """
    Equal split between the payer and the named members.

    Every participant gets round_half_up(amount / people). With
    redistribute_remainder the payer's row absorbs the difference so the
    rows add up exactly; without it they may be off by the rounding
    (e.g. 3 x 166.67 = 500.01 for 500.00).

    Returns:
        (per_person, splits) with the payer's row first
    """
    amount = parse_amount(amount)
    people = len(member_ids) + 1
    per_person = equal_share(amount, people)

    payer_share = per_person
    if redistribute_remainder:
        payer_share = amount - per_person * (people - 1)

    splits = [ExpenseSplit(user_id=payer_id, amount=payer_share, paid=True)]
    splits.extend(
        ExpenseSplit(user_id=member_id, amount=per_person, paid=False)
        for member_id in member_ids
    )
    return per_person, splits
