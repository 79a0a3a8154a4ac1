"""Tests for the Google Sheets backend against in-process fake worksheets."""

import asyncio
from decimal import Decimal

import pytest
from tenacity import wait_none

from splitmate.audit import AuditLogger
from splitmate.directory import GroupDirectory, UserDirectory
from splitmate.ledger.engine import LedgerEngine
from splitmate.models.ledger import SplitParticipant, SplitType
from splitmate.services.expenses import ExpenseService
from splitmate.services.settlements import SettlementService
from splitmate.services.splits import build_splits
from splitmate.services.storage import (
    GoogleSheetsLedgerStorage,
    InMemoryAuditStorage,
    StorageError,
)
from splitmate.services.storage.google_sheets import (
    BALANCE_COLUMNS,
    EXPENSE_COLUMNS,
    GROUP_COLUMNS,
    SETTLEMENT_COLUMNS,
    USER_COLUMNS,
)


class FakeWorksheet:
    """
    Keeps rows in a list and mimics the gspread calls the backend makes.

    Set `failing` to a method name to make that call raise once
    `fail_after` successful calls have been used up.
    """

    def __init__(self, title, columns):
        self.title = title
        self.rows = [list(columns)]
        self.failing = None
        self.fail_after = 0

    def _maybe_fail(self, method):
        if self.failing != method:
            return
        if self.fail_after <= 0:
            raise ConnectionError(f"{self.title}.{method}: backend error")
        self.fail_after -= 1

    def get_all_values(self):
        width = max(len(row) for row in self.rows)
        return [list(row) + [""] * (width - len(row)) for row in self.rows]

    def append_row(self, values, value_input_option=None):
        self._maybe_fail("append_row")
        self.rows.append(list(values))

    def update(self, range_name, values, value_input_option=None):
        self._maybe_fail("update")
        self.rows[int(range_name[1:]) - 1] = list(values[0])

    def delete_rows(self, index):
        self._maybe_fail("delete_rows")
        del self.rows[index - 1]


class FakeSheetsClient:
    def __init__(self):
        self.users = FakeWorksheet("Users", USER_COLUMNS)
        self.groups = FakeWorksheet("Groups", GROUP_COLUMNS)
        self.expenses = FakeWorksheet("Expenses", EXPENSE_COLUMNS)
        self.settlements = FakeWorksheet("Settlements", SETTLEMENT_COLUMNS)
        self.balances = FakeWorksheet("Balances", BALANCE_COLUMNS)

    def users_sheet(self):
        return self.users

    def groups_sheet(self):
        return self.groups

    def expenses_sheet(self):
        return self.expenses

    def settlements_sheet(self):
        return self.settlements

    def balances_sheet(self):
        return self.balances


@pytest.fixture(autouse=True)
def immediate_retries(monkeypatch):
    """Keep tenacity's backoff out of the test run."""
    for attr in vars(GoogleSheetsLedgerStorage).values():
        if hasattr(attr, "retry"):
            monkeypatch.setattr(attr.retry, "wait", wait_none())


@pytest.fixture
def sheets():
    return FakeSheetsClient()


@pytest.fixture
def storage(sheets):
    return GoogleSheetsLedgerStorage(sheets)


@pytest.fixture
def services(storage, settings):
    audit_logger = AuditLogger(InMemoryAuditStorage())
    ledger = LedgerEngine(storage)
    users = UserDirectory(storage, audit_logger)
    groups = GroupDirectory(storage, users, ledger, audit_logger)
    expenses = ExpenseService(
        storage,
        users,
        groups,
        ledger=ledger,
        audit_logger=audit_logger,
        settings=settings,
    )
    settlements = SettlementService(storage, users, groups, ledger, audit_logger)
    return users, expenses, settlements


def _amounts(storage, *user_ids):
    async def lookup():
        amounts = []
        for user_id in user_ids:
            row = await storage.get_balance(user_id)
            amounts.append(row.amount if row else Decimal("0"))
        return amounts

    return asyncio.run(lookup())


class TestGoogleSheetsTransactions:
    """A failed unit of work leaves the sheets as they were before it."""

    def _dinner(self, services):
        users, expenses, settlements = services

        async def scenario():
            john = await users.register_user("John Doe", "john@example.com")
            alice = await users.register_user("Alice Smith", "alice@example.com")
            splits = build_splits(
                Decimal("300"),
                SplitType.EQUAL,
                [SplitParticipant(user_id=john.id), SplitParticipant(user_id=alice.id)],
                john.id,
            )
            expense_id = await expenses.create_expense(
                acting_user_id=john.id,
                description="Dinner",
                amount=Decimal("300"),
                payer_id=john.id,
                splits=splits,
            )
            settlement = await settlements.record_settlement(
                acting_user_id=alice.id,
                amount=Decimal("100"),
                payer_id=alice.id,
                received_by_user_id=john.id,
                related_expense_ids=[expense_id],
            )
            return john, alice, expense_id, settlement

        return asyncio.run(scenario())

    def test_round_trip(self, services, storage):
        """Test that records written through the services read back intact."""
        john, alice, expense_id, settlement = self._dinner(services)

        expense = asyncio.run(storage.get_expense(expense_id))
        stored = asyncio.run(storage.get_settlement(settlement.id))

        assert expense.amount == Decimal("300.00")
        assert [s.amount for s in expense.splits] == [Decimal("150.00"), Decimal("150.00")]
        assert stored.related_expense_ids == [expense_id]
        assert _amounts(storage, john.id, alice.id) == [Decimal("50.00"), Decimal("-50.00")]

    def test_failed_delete_restores_balances(self, services, storage, sheets):
        """Test that a delete failing after the balance reversal undoes the reversal."""
        _, expenses, _ = services
        john, alice, expense_id, settlement = self._dinner(services)
        sheets.settlements.failing = "delete_rows"

        with pytest.raises(StorageError):
            asyncio.run(expenses.delete_expense(john.id, expense_id))

        assert _amounts(storage, john.id, alice.id) == [Decimal("50.00"), Decimal("-50.00")]
        assert asyncio.run(storage.get_expense(expense_id)) is not None
        assert asyncio.run(storage.get_settlement(settlement.id)) is not None

        sheets.settlements.failing = None
        assert asyncio.run(expenses.delete_expense(john.id, expense_id)) is True
        assert _amounts(storage, john.id, alice.id) == [Decimal("0.00"), Decimal("0.00")]
        assert asyncio.run(storage.get_settlement(settlement.id)) is None

    def test_failed_create_removes_rows(self, services, storage, sheets):
        """Test that a create failing on the second balance row removes everything it wrote."""
        users, expenses, _ = services

        async def register():
            return (
                await users.register_user("John Doe", "john@example.com"),
                await users.register_user("Alice Smith", "alice@example.com"),
            )

        john, alice = asyncio.run(register())
        sheets.balances.failing = "append_row"
        sheets.balances.fail_after = 1
        splits = build_splits(
            Decimal("300"),
            SplitType.EQUAL,
            [SplitParticipant(user_id=john.id), SplitParticipant(user_id=alice.id)],
            john.id,
        )

        with pytest.raises(StorageError):
            asyncio.run(expenses.create_expense(
                acting_user_id=john.id,
                description="Dinner",
                amount=Decimal("300"),
                payer_id=john.id,
                splits=splits,
            ))

        assert sheets.expenses.rows == [EXPENSE_COLUMNS]
        assert sheets.balances.rows == [BALANCE_COLUMNS]
