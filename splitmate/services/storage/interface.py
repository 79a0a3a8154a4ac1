"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep ledger logic decoupled from storage implementation

The interface is intentionally simple - we're not building a full ORM.
Just point lookups, the few foreign-key lookups the ledger needs, and an
atomic balance upsert.

CONCURRENCY CONTRACT:
- apply_balance_delta() is atomic per call. Two concurrent deltas on the
  same user must both land.
- transaction() serializes multi-step mutations (persist expense, then
  update balances) so they are observed as one unit.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from decimal import Decimal
from typing import Optional
from uuid import UUID

from splitmate.errors import SplitMateError
from splitmate.models.audit import AuditEvent
from splitmate.models.ledger import (
    Balance,
    Expense,
    Group,
    Settlement,
    User,
)


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger record storage.

    Any storage implementation (Google Sheets, PostgreSQL, memory)
    must implement these methods.
    """

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[None]:
        """
        Open a write transaction.

        Usage:
            async with storage.transaction():
                await storage.save_expense(expense)
                await storage.apply_balance_delta(user_id, delta)

        Transactions do not nest.
        """
        pass

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    @abstractmethod
    async def save_user(self, user: User) -> bool:
        """
        Save a new user.

        Raises:
            DuplicateError: If a user with the same id exists
        """
        pass

    @abstractmethod
    async def get_user(self, user_id: UUID) -> Optional[User]:
        """Return the user or None."""
        pass

    @abstractmethod
    async def list_users(self) -> list[User]:
        """
        List all users in directory order (insertion order).

        Name resolution depends on this order being stable.
        """
        pass

    # -------------------------------------------------------------------------
    # Groups
    # -------------------------------------------------------------------------

    @abstractmethod
    async def save_group(self, group: Group) -> bool:
        """Insert a new group."""
        pass

    @abstractmethod
    async def get_group(self, group_id: UUID) -> Optional[Group]:
        """Return the group or None."""
        pass

    @abstractmethod
    async def update_group(self, group: Group) -> bool:
        """
        Replace a stored group.

        Raises:
            RecordNotFoundError: If the group doesn't exist
        """
        pass

    @abstractmethod
    async def delete_group(self, group_id: UUID) -> bool:
        """Delete a group. Returns False if it did not exist."""
        pass

    @abstractmethod
    async def list_groups(self) -> list[Group]:
        """List all groups."""
        pass

    # -------------------------------------------------------------------------
    # Expenses
    # -------------------------------------------------------------------------

    @abstractmethod
    async def save_expense(self, expense: Expense) -> bool:
        """Insert a new expense."""
        pass

    @abstractmethod
    async def get_expense(self, expense_id: UUID) -> Optional[Expense]:
        """Return the expense or None."""
        pass

    @abstractmethod
    async def delete_expense(self, expense_id: UUID) -> bool:
        """Delete an expense. Returns False if it did not exist."""
        pass

    @abstractmethod
    async def list_expenses_by_group(
        self,
        group_id: Optional[UUID],
    ) -> list[Expense]:
        """
        All expenses of a group.

        group_id=None returns one-on-one (ungrouped) expenses.
        """
        pass

    @abstractmethod
    async def list_expenses_for_user(self, user_id: UUID) -> list[Expense]:
        """All expenses the user paid for or created."""
        pass

    # -------------------------------------------------------------------------
    # Settlements
    # -------------------------------------------------------------------------

    @abstractmethod
    async def save_settlement(self, settlement: Settlement) -> bool:
        """Insert a new settlement."""
        pass

    @abstractmethod
    async def get_settlement(self, settlement_id: UUID) -> Optional[Settlement]:
        """Return the settlement or None."""
        pass

    @abstractmethod
    async def update_settlement(self, settlement: Settlement) -> bool:
        """
        Replace a stored settlement.

        Raises:
            RecordNotFoundError: If the settlement doesn't exist
        """
        pass

    @abstractmethod
    async def delete_settlement(self, settlement_id: UUID) -> bool:
        """Delete a settlement. Returns False if it did not exist."""
        pass

    @abstractmethod
    async def list_settlements_by_group(
        self,
        group_id: Optional[UUID],
    ) -> list[Settlement]:
        """
        All settlements of a group.

        group_id=None returns one-on-one (ungrouped) settlements.
        """
        pass

    @abstractmethod
    async def list_settlements_by_expense(
        self,
        expense_id: UUID,
    ) -> list[Settlement]:
        """Settlements whose related_expense_ids include this expense."""
        pass

    # -------------------------------------------------------------------------
    # Balances
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_balance(self, user_id: UUID) -> Optional[Balance]:
        """Return the user's balance row or None if never touched."""
        pass

    @abstractmethod
    async def list_balances(self) -> list[Balance]:
        """All balance rows."""
        pass

    @abstractmethod
    async def apply_balance_delta(
        self,
        user_id: UUID,
        delta: Decimal,
    ) -> Balance:
        """
        Atomically add delta to the user's balance.

        Inserts a row with amount=delta if none exists, otherwise adds
        delta to the stored amount and stamps last_updated.

        Returns:
            The balance row after the update
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event to the log."""
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """All events for a correlation ID, in chronological order."""
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """All events for a specific entity, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """The most recent audit events (newest first)."""
        pass


class StorageError(SplitMateError):
    """Base exception for storage operations."""
    pass


class RecordNotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class StorageConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
