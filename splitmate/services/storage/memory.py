"""
In-Memory Storage Implementation

Used for tests and for local runs without Google credentials.

GUARANTEES:
- Runs on a single event loop. apply_balance_delta() reads and writes
  without awaiting in between, so no other coroutine can interleave.
- transaction() holds a lock for the whole unit of work and restores
  the previous state if the body raises.

Records are copied on the way in and on the way out; callers can never
mutate stored state by accident.
"""

import asyncio
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import AsyncIterator, Optional
from uuid import UUID

from splitmate.models.audit import AuditEvent
from splitmate.models.ledger import (
    Balance,
    Expense,
    Group,
    Settlement,
    User,
    to_money,
    utcnow,
)
from splitmate.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    LedgerStorageInterface,
    RecordNotFoundError,
)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Dictionary-backed ledger storage."""

    def __init__(self):
        self._users: dict[UUID, User] = {}
        self._groups: dict[UUID, Group] = {}
        self._expenses: dict[UUID, Expense] = {}
        self._settlements: dict[UUID, Settlement] = {}
        self._balances: dict[UUID, Balance] = {}
        self._lock = asyncio.Lock()

    def _tables(self) -> tuple[dict, ...]:
        return (
            self._users,
            self._groups,
            self._expenses,
            self._settlements,
            self._balances,
        )

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        async with self._lock:
            # Stored models are never mutated in place, so shallow copies
            # of the tables are a complete snapshot.
            snapshot = [dict(table) for table in self._tables()]
            try:
                yield
            except BaseException:
                for table, saved in zip(self._tables(), snapshot):
                    table.clear()
                    table.update(saved)
                raise

    # Users

    async def save_user(self, user: User) -> bool:
        if user.id in self._users:
            raise DuplicateError(f"User already exists: {user.id}")
        self._users[user.id] = user.model_copy(deep=True)
        return True

    async def get_user(self, user_id: UUID) -> Optional[User]:
        user = self._users.get(user_id)
        return user.model_copy(deep=True) if user else None

    async def list_users(self) -> list[User]:
        return [u.model_copy(deep=True) for u in self._users.values()]

    # Groups

    async def save_group(self, group: Group) -> bool:
        if group.id in self._groups:
            raise DuplicateError(f"Group already exists: {group.id}")
        self._groups[group.id] = group.model_copy(deep=True)
        return True

    async def get_group(self, group_id: UUID) -> Optional[Group]:
        group = self._groups.get(group_id)
        return group.model_copy(deep=True) if group else None

    async def update_group(self, group: Group) -> bool:
        if group.id not in self._groups:
            raise RecordNotFoundError(f"Group not found: {group.id}")
        self._groups[group.id] = group.model_copy(deep=True)
        return True

    async def delete_group(self, group_id: UUID) -> bool:
        return self._groups.pop(group_id, None) is not None

    async def list_groups(self) -> list[Group]:
        return [g.model_copy(deep=True) for g in self._groups.values()]

    # Expenses

    async def save_expense(self, expense: Expense) -> bool:
        if expense.id in self._expenses:
            raise DuplicateError(f"Expense already exists: {expense.id}")
        self._expenses[expense.id] = expense.model_copy(deep=True)
        return True

    async def get_expense(self, expense_id: UUID) -> Optional[Expense]:
        expense = self._expenses.get(expense_id)
        return expense.model_copy(deep=True) if expense else None

    async def delete_expense(self, expense_id: UUID) -> bool:
        return self._expenses.pop(expense_id, None) is not None

    async def list_expenses_by_group(
        self,
        group_id: Optional[UUID],
    ) -> list[Expense]:
        return [
            e.model_copy(deep=True)
            for e in self._expenses.values()
            if e.group_id == group_id
        ]

    async def list_expenses_for_user(self, user_id: UUID) -> list[Expense]:
        return [
            e.model_copy(deep=True)
            for e in self._expenses.values()
            if e.payer_id == user_id or e.created_by == user_id
        ]

    # Settlements

    async def save_settlement(self, settlement: Settlement) -> bool:
        if settlement.id in self._settlements:
            raise DuplicateError(f"Settlement already exists: {settlement.id}")
        self._settlements[settlement.id] = settlement.model_copy(deep=True)
        return True

    async def get_settlement(self, settlement_id: UUID) -> Optional[Settlement]:
        settlement = self._settlements.get(settlement_id)
        return settlement.model_copy(deep=True) if settlement else None

    async def update_settlement(self, settlement: Settlement) -> bool:
        if settlement.id not in self._settlements:
            raise RecordNotFoundError(f"Settlement not found: {settlement.id}")
        self._settlements[settlement.id] = settlement.model_copy(deep=True)
        return True

    async def delete_settlement(self, settlement_id: UUID) -> bool:
        return self._settlements.pop(settlement_id, None) is not None

    async def list_settlements_by_group(
        self,
        group_id: Optional[UUID],
    ) -> list[Settlement]:
        return [
            s.model_copy(deep=True)
            for s in self._settlements.values()
            if s.group_id == group_id
        ]

    async def list_settlements_by_expense(
        self,
        expense_id: UUID,
    ) -> list[Settlement]:
        return [
            s.model_copy(deep=True)
            for s in self._settlements.values()
            if expense_id in s.related_expense_ids
        ]

    # Balances

    async def get_balance(self, user_id: UUID) -> Optional[Balance]:
        balance = self._balances.get(user_id)
        return balance.model_copy() if balance else None

    async def list_balances(self) -> list[Balance]:
        return [b.model_copy() for b in self._balances.values()]

    async def apply_balance_delta(
        self,
        user_id: UUID,
        delta: Decimal,
    ) -> Balance:
        # No await between read and write: atomic on the event loop.
        existing = self._balances.get(user_id)
        if existing is None:
            updated = Balance(user_id=user_id, amount=to_money(delta))
        else:
            updated = Balance(
                user_id=user_id,
                amount=existing.amount + to_money(delta),
                last_updated=utcnow(),
            )
        self._balances[user_id] = updated
        return updated.model_copy()


class InMemoryAuditStorage(AuditStorageInterface):
    """List-backed, append-only audit log."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event.model_copy(deep=True))
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return sorted(self._events, key=lambda e: e.timestamp, reverse=True)[:limit]
