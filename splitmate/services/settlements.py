"""
Settlement Service

Records real-world payments between two users.

A settlement moves the global balances the same way the group view
counts it: the payer is credited, the receiver debited. Deleting a
settlement (through expense or group deletion) reverses that.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from splitmate.audit import AuditLogger
from splitmate.directory import GroupDirectory, UserDirectory
from splitmate.errors import ForbiddenError, NotFoundError, ValidationError
from splitmate.ledger.engine import LedgerEngine
from splitmate.models.ledger import Settlement, utcnow
from splitmate.services.storage import LedgerStorageInterface
from splitmate.validation import parse_amount


class SettlementService:
    """Records and lists settlements."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        users: UserDirectory,
        groups: GroupDirectory,
        ledger: Optional[LedgerEngine] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._users = users
        self._groups = groups
        self._ledger = ledger or LedgerEngine(storage)
        self._audit = audit_logger or AuditLogger()

    async def record_settlement(
        self,
        acting_user_id: UUID,
        amount: Decimal,
        payer_id: UUID,
        received_by_user_id: UUID,
        note: Optional[str] = None,
        date: Optional[datetime] = None,
        group_id: Optional[UUID] = None,
        related_expense_ids: Optional[list[UUID]] = None,
    ) -> Settlement:
        """
        Persist a settlement and apply it to balances.

        Raises:
            ValidationError: Non-positive amount, same payer and receiver,
                or a party outside the group
            NotFoundError: Unknown user, group or related expense
            ForbiddenError: Acting user is neither payer nor receiver
        """
        amount = parse_amount(amount)
        if amount <= 0:
            raise ValidationError("Settlement amount must be greater than zero")
        if payer_id == received_by_user_id:
            raise ValidationError("Payer and receiver must be different users")

        await self._users.require_user(payer_id)
        await self._users.require_user(received_by_user_id)
        if acting_user_id not in (payer_id, received_by_user_id):
            raise ForbiddenError("You can only record settlements you are part of")

        if group_id is not None:
            group = await self._groups.require_membership(group_id, acting_user_id)
            if not (group.is_member(payer_id) and group.is_member(received_by_user_id)):
                raise ValidationError("Both parties must be members of the group")

        related = list(dict.fromkeys(related_expense_ids or []))
        for expense_id in related:
            if await self._storage.get_expense(expense_id) is None:
                raise NotFoundError(f"Expense not found: {expense_id}")

        settlement = Settlement(
            amount=amount,
            note=note,
            date=date or utcnow(),
            payer_id=payer_id,
            received_by_user_id=received_by_user_id,
            group_id=group_id,
            related_expense_ids=related,
            created_by=acting_user_id,
        )

        async with self._storage.transaction():
            await self._storage.save_settlement(settlement)
            await self._ledger.apply_settlement(settlement)

        await self._audit.log_settlement_recorded(
            settlement_id=settlement.id,
            amount=settlement.amount,
            payer_id=payer_id,
            receiver_id=received_by_user_id,
            actor_id=acting_user_id,
        )
        return settlement

    async def list_group_settlements(
        self,
        acting_user_id: UUID,
        group_id: UUID,
    ) -> list[Settlement]:
        """Settlements of a group, newest first. Members only."""
        await self._groups.require_membership(group_id, acting_user_id)
        settlements = await self._storage.list_settlements_by_group(group_id)
        settlements.sort(key=lambda s: s.date, reverse=True)
        return settlements
