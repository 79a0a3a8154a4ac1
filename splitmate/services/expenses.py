"""
Expense Service

The write path for expenses: validate, persist, update balances.

DESIGN DECISION: An expense and its balance effect are one unit of work.
create and delete both run inside storage.transaction(), so a reader
never sees an expense whose balances were not applied (or the reverse).

Authorization:
- Group expenses need the acting user to be a group member
- Only the creator or the payer may delete an expense
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from splitmate.audit import AuditLogger
from splitmate.config import AppSettings, get_settings
from splitmate.directory import GroupDirectory, UserDirectory
from splitmate.errors import ForbiddenError, NotFoundError, ValidationError
from splitmate.ledger.engine import LedgerEngine
from splitmate.models.ledger import (
    Expense,
    ExpenseSplit,
    PairwiseSummary,
    SplitType,
    User,
    utcnow,
)
from splitmate.services.splits import command_splits
from splitmate.services.storage import LedgerStorageInterface
from splitmate.validation import ExpenseValidator, parse_amount


logger = structlog.get_logger()


class ExpenseService:
    """Creates, reads and deletes expenses."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        users: UserDirectory,
        groups: GroupDirectory,
        ledger: Optional[LedgerEngine] = None,
        validator: Optional[ExpenseValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._storage = storage
        self._users = users
        self._groups = groups
        self._ledger = ledger or LedgerEngine(storage)
        self._settings = settings or get_settings().app
        self._validator = validator or ExpenseValidator(self._settings)
        self._audit = audit_logger or AuditLogger()

    # -------------------------------------------------------------------------
    # Create
    # -------------------------------------------------------------------------

    async def create_expense(
        self,
        acting_user_id: UUID,
        description: str,
        amount: Decimal,
        payer_id: UUID,
        splits: list[ExpenseSplit],
        category: Optional[str] = None,
        date: Optional[datetime] = None,
        split_type: SplitType = SplitType.EQUAL,
        group_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> UUID:
        """
        Validate and persist an expense, then apply it to balances.

        Raises:
            NotFoundError: Unknown acting user, payer, split user or group
            ForbiddenError: Acting user is not a member of the group
            ValidationError: Splits don't add up, bad amount, etc.

        Returns:
            The new expense id
        """
        await self._users.require_user(acting_user_id)

        group = None
        if group_id is not None:
            group = await self._groups.require_membership(group_id, acting_user_id)

        amount = parse_amount(amount)
        self._validator.validate_expense(description, amount, splits)

        participants = [payer_id] + [s.user_id for s in splits]
        for user_id in dict.fromkeys(participants):
            await self._users.require_user(user_id)
            if group is not None and not group.is_member(user_id):
                raise ValidationError(
                    f"User {user_id} is not a member of this group"
                )

        expense = Expense(
            description=description,
            amount=amount,
            category=category or self._settings.default_category,
            date=date or utcnow(),
            payer_id=payer_id,
            split_type=split_type,
            splits=splits,
            group_id=group_id,
            created_by=acting_user_id,
        )

        async with self._storage.transaction():
            await self._storage.save_expense(expense)
            await self._ledger.apply_expense_splits(expense.splits, expense.payer_id)

        logger.info(
            "Expense created",
            expense_id=str(expense.id),
            amount=str(expense.amount),
            group_id=str(group_id) if group_id else None,
        )
        await self._audit.log_expense_created(
            expense_id=expense.id,
            description=expense.description,
            amount=expense.amount,
            split_count=len(expense.splits),
            actor_id=acting_user_id,
            correlation_id=correlation_id,
        )
        return expense.id

    async def create_expense_from_ai(
        self,
        acting_user_id: UUID,
        amount: Decimal,
        reason: str,
        members: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> UUID:
        """
        Record an equal one-on-one split paid by the acting user.

        Member names are resolved through the user directory. Names that
        refer to the payer ("me", or the payer's own name) and repeats
        are dropped, so each person appears once.

        Raises:
            ValidationError: No other person to split with
            UnresolvedMembersError: Some names matched no user
        """
        payer = await self._users.require_user(acting_user_id)

        names = [m for m in members if m.strip() and m.strip().lower() != "me"]
        if not names:
            raise ValidationError("At least one other person must be included")

        resolved = await self._users.resolve_member_names(names)
        member_ids = [
            user_id
            for user_id in dict.fromkeys(u.id for u in resolved)
            if user_id != payer.id
        ]
        if not member_ids:
            raise ValidationError("At least one other person must be included")

        per_person, splits = command_splits(
            amount,
            payer.id,
            member_ids,
            redistribute_remainder=self._settings.redistribute_rounding_remainder,
        )
        logger.info(
            "Split command resolved",
            total_people=len(splits),
            per_person=str(per_person),
        )

        return await self.create_expense(
            acting_user_id=acting_user_id,
            description=reason,
            amount=amount,
            payer_id=payer.id,
            splits=splits,
            category=self._settings.default_category,
            split_type=SplitType.EQUAL,
            group_id=None,
            correlation_id=correlation_id,
        )

    # -------------------------------------------------------------------------
    # Delete
    # -------------------------------------------------------------------------

    async def delete_expense(self, acting_user_id: UUID, expense_id: UUID) -> bool:
        """
        Reverse an expense's balance effect and delete it.

        Settlements that reference the expense lose the reference; a
        settlement left with no references is deleted and its own
        balance effect reversed.

        Raises:
            NotFoundError: If the expense doesn't exist
            ForbiddenError: Unless the acting user created or paid it
        """
        pruned = []
        deleted = []

        async with self._storage.transaction():
            expense = await self._storage.get_expense(expense_id)
            if expense is None:
                raise NotFoundError("Expense not found")
            if acting_user_id not in (expense.created_by, expense.payer_id):
                raise ForbiddenError("You don't have permission to delete this expense")

            await self._ledger.reverse_expense_splits(expense.splits, expense.payer_id)

            for settlement in await self._storage.list_settlements_by_expense(expense_id):
                remaining = [i for i in settlement.related_expense_ids if i != expense_id]
                if remaining:
                    settlement.related_expense_ids = remaining
                    await self._storage.update_settlement(settlement)
                    pruned.append(settlement.id)
                else:
                    await self._ledger.reverse_settlement(settlement)
                    await self._storage.delete_settlement(settlement.id)
                    deleted.append(settlement.id)

            await self._storage.delete_expense(expense_id)

        await self._audit.log_expense_deleted(
            expense_id=expense_id,
            amount=expense.amount,
            pruned_settlements=len(pruned),
            deleted_settlements=len(deleted),
            actor_id=acting_user_id,
        )
        for settlement_id in pruned:
            await self._audit.log_settlement_pruned(
                settlement_id, expense_id, deleted=False, actor_id=acting_user_id
            )
        for settlement_id in deleted:
            await self._audit.log_settlement_pruned(
                settlement_id, expense_id, deleted=True, actor_id=acting_user_id
            )
        return True

    # -------------------------------------------------------------------------
    # Read
    # -------------------------------------------------------------------------

    async def get_expense(self, acting_user_id: UUID, expense_id: UUID) -> Expense:
        """
        An expense the acting user may see.

        Group expenses are visible to group members; one-on-one expenses
        to the people involved and the creator.
        """
        expense = await self._storage.get_expense(expense_id)
        if expense is None:
            raise NotFoundError("Expense not found")

        if expense.group_id is not None:
            await self._groups.require_membership(expense.group_id, acting_user_id)
        elif not (expense.involves(acting_user_id) or expense.created_by == acting_user_id):
            raise ForbiddenError("You are not part of this expense")
        return expense

    async def list_user_expenses(self, user_id: UUID) -> list[Expense]:
        """Expenses the user paid for or created, newest first."""
        expenses = await self._storage.list_expenses_for_user(user_id)
        expenses.sort(key=lambda e: e.date, reverse=True)
        return expenses

    async def get_expenses_between_users(
        self,
        me: UUID,
        other_user_id: UUID,
    ) -> PairwiseSummary:
        """
        One-on-one history between two users.

        Balance is from me's point of view: positive means the other
        user owes me.

        Raises:
            ValidationError: If both ids are the same user
            NotFoundError: If the other user doesn't exist
        """
        if me == other_user_id:
            raise ValidationError("Cannot query yourself")
        other: User = await self._users.require_user(other_user_id)

        pair = {me, other_user_id}
        expenses = [
            e for e in await self._storage.list_expenses_by_group(None)
            if e.payer_id in pair and e.involves(me) and e.involves(other_user_id)
        ]
        expenses.sort(key=lambda e: e.date, reverse=True)

        settlements = [
            s for s in await self._storage.list_settlements_by_group(None)
            if {s.payer_id, s.received_by_user_id} == pair
        ]
        settlements.sort(key=lambda s: s.date, reverse=True)

        balance = Decimal("0")
        for expense in expenses:
            debtor = other_user_id if expense.payer_id == me else me
            share = next(
                (s.amount for s in expense.splits if s.user_id == debtor and not s.paid),
                Decimal("0"),
            )
            balance += share if debtor == other_user_id else -share

        for settlement in settlements:
            if settlement.payer_id == me:
                balance += settlement.amount
            else:
                balance -= settlement.amount

        return PairwiseSummary(
            other_user=other,
            expenses=expenses,
            settlements=settlements,
            balance=balance,
        )
