"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is kept as a storage backend because:
1. A group can open the spreadsheet and read its own ledger
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Every lookup reads the whole worksheet and filters in Python
- No native transactions. transaction() serializes writers with an
  asyncio.Lock, which is a PROCESS-LOCAL guarantee only. Run a single
  writer process against one spreadsheet.
- A failure halfway through a transaction is undone from a journal of
  the writes already applied (previous rows restored, new rows removed).
  If an undo step itself fails it is logged and the sheet needs a manual
  fix.

Nested data (group members, expense splits, related expense ids) is
stored as JSON in a single cell.
"""

import asyncio
import json
from contextlib import asynccontextmanager
from datetime import datetime
from decimal import Decimal
from typing import AsyncIterator, Callable, Optional, TypeVar
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from splitmate.config import get_settings
from splitmate.models.audit import AuditEvent, AuditEventType, AuditSeverity
from splitmate.models.ledger import (
    Balance,
    Expense,
    ExpenseSplit,
    Group,
    GroupMember,
    Settlement,
    SplitType,
    User,
    to_money,
    utcnow,
)
from splitmate.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    LedgerStorageInterface,
    RecordNotFoundError,
    StorageConnectionError,
    StorageError,
)


logger = structlog.get_logger()

T = TypeVar("T")


USER_COLUMNS = ["id", "name", "email", "image_url", "created_at"]

GROUP_COLUMNS = [
    "id",
    "name",
    "description",
    "created_by",
    "members_json",
    "created_at",
]

EXPENSE_COLUMNS = [
    "id",
    "description",
    "amount",
    "category",
    "date",
    "payer_id",
    "split_type",
    "splits_json",
    "group_id",
    "created_by",
    "created_at",
]

SETTLEMENT_COLUMNS = [
    "id",
    "amount",
    "note",
    "date",
    "payer_id",
    "received_by_user_id",
    "group_id",
    "related_expense_ids_json",
    "created_by",
    "created_at",
]

BALANCE_COLUMNS = ["user_id", "amount", "last_updated"]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "actor_id",
    "description",
    "details_json",
    "error_message",
]


sheets_retry = retry(
    retry=retry_if_not_exception_type((DuplicateError, RecordNotFoundError)),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


def _cell(row: list, index: int, default: str = "") -> str:
    """Read a cell, tolerating short rows and blanks."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


def _optional_uuid(value: str) -> Optional[UUID]:
    return UUID(value) if value else None


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and creates missing worksheets with headers.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @sheets_retry
    def connect(self) -> gspread.Client:
        """Authenticate with a service account."""
        if self._client is None:
            try:
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=[
                        "https://www.googleapis.com/auth/spreadsheets",
                        "https://www.googleapis.com/auth/drive",
                    ],
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError as e:
                raise StorageConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                ) from e
            except Exception as e:
                raise StorageConnectionError(
                    f"Failed to connect to Google Sheets: {e}"
                ) from e
        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        if self._spreadsheet is None:
            try:
                self._spreadsheet = self.connect().open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound as e:
                raise StorageConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                ) from e
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str]) -> gspread.Worksheet:
        """Get a worksheet by title, creating it with a header row if missing."""
        spreadsheet = self.get_spreadsheet()
        try:
            return spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=1000,
                cols=len(columns),
            )
            sheet.append_row(columns)
            return sheet

    def users_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.users_sheet_name, USER_COLUMNS)

    def groups_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.groups_sheet_name, GROUP_COLUMNS)

    def expenses_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.expenses_sheet_name, EXPENSE_COLUMNS)

    def settlements_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(
            self._settings.settlements_sheet_name, SETTLEMENT_COLUMNS
        )

    def balances_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.balances_sheet_name, BALANCE_COLUMNS)

    def audit_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.audit_sheet_name, AUDIT_COLUMNS)


# =============================================================================
# ROW CONVERSION
# =============================================================================

def user_to_row(user: User) -> list:
    return [
        str(user.id),
        user.name,
        user.email,
        user.image_url or "",
        user.created_at.isoformat(),
    ]


def row_to_user(row: list) -> User:
    return User(
        id=UUID(_cell(row, 0)),
        name=_cell(row, 1),
        email=_cell(row, 2),
        image_url=_cell(row, 3) or None,
        created_at=datetime.fromisoformat(_cell(row, 4)),
    )


def group_to_row(group: Group) -> list:
    return [
        str(group.id),
        group.name,
        group.description,
        str(group.created_by),
        json.dumps([m.model_dump(mode="json") for m in group.members]),
        group.created_at.isoformat(),
    ]


def row_to_group(row: list) -> Group:
    return Group(
        id=UUID(_cell(row, 0)),
        name=_cell(row, 1),
        description=_cell(row, 2),
        created_by=UUID(_cell(row, 3)),
        members=[GroupMember(**m) for m in json.loads(_cell(row, 4, "[]"))],
        created_at=datetime.fromisoformat(_cell(row, 5)),
    )


def expense_to_row(expense: Expense) -> list:
    return [
        str(expense.id),
        expense.description,
        str(expense.amount),
        expense.category,
        expense.date.isoformat(),
        str(expense.payer_id),
        expense.split_type.value,
        json.dumps([s.model_dump(mode="json") for s in expense.splits]),
        str(expense.group_id) if expense.group_id else "",
        str(expense.created_by),
        expense.created_at.isoformat(),
    ]


def row_to_expense(row: list) -> Expense:
    return Expense(
        id=UUID(_cell(row, 0)),
        description=_cell(row, 1),
        amount=Decimal(_cell(row, 2)),
        category=_cell(row, 3, "Other"),
        date=datetime.fromisoformat(_cell(row, 4)),
        payer_id=UUID(_cell(row, 5)),
        split_type=SplitType(_cell(row, 6, SplitType.EQUAL.value)),
        splits=[ExpenseSplit(**s) for s in json.loads(_cell(row, 7, "[]"))],
        group_id=_optional_uuid(_cell(row, 8)),
        created_by=UUID(_cell(row, 9)),
        created_at=datetime.fromisoformat(_cell(row, 10)),
    )


def settlement_to_row(settlement: Settlement) -> list:
    return [
        str(settlement.id),
        str(settlement.amount),
        settlement.note or "",
        settlement.date.isoformat(),
        str(settlement.payer_id),
        str(settlement.received_by_user_id),
        str(settlement.group_id) if settlement.group_id else "",
        json.dumps([str(i) for i in settlement.related_expense_ids]),
        str(settlement.created_by),
        settlement.created_at.isoformat(),
    ]


def row_to_settlement(row: list) -> Settlement:
    return Settlement(
        id=UUID(_cell(row, 0)),
        amount=Decimal(_cell(row, 1)),
        note=_cell(row, 2) or None,
        date=datetime.fromisoformat(_cell(row, 3)),
        payer_id=UUID(_cell(row, 4)),
        received_by_user_id=UUID(_cell(row, 5)),
        group_id=_optional_uuid(_cell(row, 6)),
        related_expense_ids=[UUID(i) for i in json.loads(_cell(row, 7, "[]"))],
        created_by=UUID(_cell(row, 8)),
        created_at=datetime.fromisoformat(_cell(row, 9)),
    )


def balance_to_row(balance: Balance) -> list:
    return [
        str(balance.user_id),
        str(balance.amount),
        balance.last_updated.isoformat(),
    ]


def row_to_balance(row: list) -> Balance:
    return Balance(
        user_id=UUID(_cell(row, 0)),
        amount=Decimal(_cell(row, 1, "0")),
        last_updated=datetime.fromisoformat(_cell(row, 2)),
    )


def row_to_event(row: list) -> AuditEvent:
    return AuditEvent(
        event_id=UUID(_cell(row, 0)),
        timestamp=datetime.fromisoformat(_cell(row, 1)),
        event_type=AuditEventType(_cell(row, 2)),
        severity=AuditSeverity(_cell(row, 3)),
        entity_type=_cell(row, 4) or None,
        entity_id=_optional_uuid(_cell(row, 5)),
        correlation_id=_optional_uuid(_cell(row, 6)),
        actor_id=_optional_uuid(_cell(row, 7)),
        description=_cell(row, 8),
        details=json.loads(_cell(row, 9)) if _cell(row, 9) else {},
        error_message=_cell(row, 10) or None,
    )


# =============================================================================
# LEDGER STORAGE
# =============================================================================

class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of ledger storage.

    One worksheet per record type, one record per row, the id in column A.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._transaction_lock = asyncio.Lock()
        self._balance_lock = asyncio.Lock()
        self._journal: Optional[list[tuple[str, Callable[[], object]]]] = None

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """
        Serialize writers and undo the block's writes if it raises.

        Every row write and balance delta made inside the block records
        its inverse in a journal. On failure the inverses run newest
        first, then the original error propagates.
        """
        async with self._transaction_lock:
            self._journal = []
            try:
                yield
            except BaseException:
                await self._rollback()
                raise
            finally:
                self._journal = None

    async def _rollback(self) -> None:
        journal, self._journal = self._journal or [], None
        if not journal:
            return

        logger.warning("Rolling back Google Sheets transaction", steps=len(journal))
        async with self._balance_lock:
            for step, undo in reversed(journal):
                try:
                    sheets_retry(undo)()
                except Exception as e:
                    # Keep undoing the rest; the caller still gets the original error.
                    logger.error("Rollback step failed", step=step, error=str(e))

    def _journal_undo(self, step: str, undo: Callable[[], object]) -> None:
        if self._journal is not None:
            self._journal.append((step, undo))

    # -------------------------------------------------------------------------
    # Generic row helpers
    # -------------------------------------------------------------------------

    def _records(
        self,
        sheet: gspread.Worksheet,
        parse: Callable[[list], T],
    ) -> list[T]:
        """Parse every data row, skipping blank and malformed rows."""
        records = []
        for row in sheet.get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                records.append(parse(row))
            except (ValueError, TypeError, KeyError) as e:
                logger.warning(
                    "Skipping malformed row",
                    worksheet=sheet.title,
                    row_id=row[0],
                    error=str(e),
                )
        return records

    def _locate(
        self,
        sheet: gspread.Worksheet,
        record_id: UUID,
    ) -> tuple[Optional[int], Optional[list]]:
        """1-based sheet row and current values of a record, or (None, None)."""
        for idx, row in enumerate(sheet.get_all_values()[1:], start=2):
            if row and row[0] == str(record_id):
                return idx, row
        return None, None

    def _write_row(self, sheet: gspread.Worksheet, record_id: UUID, row: list) -> Optional[list]:
        """Overwrite a record in place; returns its previous values."""
        idx, previous = self._locate(sheet, record_id)
        if idx is None:
            return None
        sheet.update(
            range_name=f"A{idx}",
            values=[row],
            value_input_option="RAW",
        )
        return previous

    def _delete_row(self, sheet: gspread.Worksheet, record_id: UUID) -> Optional[list]:
        """Delete a record's row; returns its previous values."""
        idx, previous = self._locate(sheet, record_id)
        if idx is None:
            return None
        sheet.delete_rows(idx)
        return previous

    def _append(self, sheet: gspread.Worksheet, record_id: UUID, row: list, kind: str) -> bool:
        if self._locate(sheet, record_id)[0] is not None:
            raise DuplicateError(f"{kind} already exists: {record_id}")
        sheet.append_row(row, value_input_option="RAW")
        self._journal_undo(
            f"remove {kind} {record_id}",
            lambda: self._delete_row(sheet, record_id),
        )
        return True

    def _replace(self, sheet: gspread.Worksheet, record_id: UUID, row: list, kind: str) -> bool:
        previous = self._write_row(sheet, record_id, row)
        if previous is None:
            raise RecordNotFoundError(f"{kind} not found: {record_id}")
        self._journal_undo(
            f"restore {kind} {record_id}",
            lambda: self._write_row(sheet, record_id, previous),
        )
        return True

    def _remove(self, sheet: gspread.Worksheet, record_id: UUID, kind: str) -> bool:
        previous = self._delete_row(sheet, record_id)
        if previous is None:
            return False
        self._journal_undo(
            f"re-add {kind} {record_id}",
            lambda: sheet.append_row(previous, value_input_option="RAW"),
        )
        return True

    def _get(
        self,
        sheet: gspread.Worksheet,
        record_id: UUID,
        parse: Callable[[list], T],
    ) -> Optional[T]:
        _, row = self._locate(sheet, record_id)
        return parse(row) if row else None

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    @sheets_retry
    async def save_user(self, user: User) -> bool:
        try:
            return self._append(self._client.users_sheet(), user.id, user_to_row(user), "User")
        except (DuplicateError, StorageConnectionError):
            raise
        except Exception as e:
            raise StorageError(f"Failed to save user: {e}") from e

    @sheets_retry
    async def get_user(self, user_id: UUID) -> Optional[User]:
        try:
            return self._get(self._client.users_sheet(), user_id, row_to_user)
        except StorageConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get user: {e}") from e

    @sheets_retry
    async def list_users(self) -> list[User]:
        try:
            return self._records(self._client.users_sheet(), row_to_user)
        except StorageConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list users: {e}") from e

    # -------------------------------------------------------------------------
    # Groups
    # -------------------------------------------------------------------------

    @sheets_retry
    async def save_group(self, group: Group) -> bool:
        try:
            return self._append(
                self._client.groups_sheet(), group.id, group_to_row(group), "Group"
            )
        except (DuplicateError, StorageConnectionError):
            raise
        except Exception as e:
            raise StorageError(f"Failed to save group: {e}") from e

    @sheets_retry
    async def get_group(self, group_id: UUID) -> Optional[Group]:
        try:
            return self._get(self._client.groups_sheet(), group_id, row_to_group)
        except StorageConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get group: {e}") from e

    @sheets_retry
    async def update_group(self, group: Group) -> bool:
        try:
            return self._replace(
                self._client.groups_sheet(), group.id, group_to_row(group), "Group"
            )
        except (RecordNotFoundError, StorageConnectionError):
            raise
        except Exception as e:
            raise StorageError(f"Failed to update group: {e}") from e

    @sheets_retry
    async def delete_group(self, group_id: UUID) -> bool:
        try:
            return self._remove(self._client.groups_sheet(), group_id, "Group")
        except StorageConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete group: {e}") from e

    @sheets_retry
    async def list_groups(self) -> list[Group]:
        try:
            return self._records(self._client.groups_sheet(), row_to_group)
        except StorageConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list groups: {e}") from e

    # -------------------------------------------------------------------------
    # Expenses
    # -------------------------------------------------------------------------

    @sheets_retry
    async def save_expense(self, expense: Expense) -> bool:
        try:
            return self._append(
                self._client.expenses_sheet(),
                expense.id,
                expense_to_row(expense),
                "Expense",
            )
        except (DuplicateError, StorageConnectionError):
            raise
        except Exception as e:
            raise StorageError(f"Failed to save expense: {e}") from e

    @sheets_retry
    async def get_expense(self, expense_id: UUID) -> Optional[Expense]:
        try:
            return self._get(self._client.expenses_sheet(), expense_id, row_to_expense)
        except StorageConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get expense: {e}") from e

    @sheets_retry
    async def delete_expense(self, expense_id: UUID) -> bool:
        try:
            return self._remove(self._client.expenses_sheet(), expense_id, "Expense")
        except StorageConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete expense: {e}") from e

    @sheets_retry
    async def list_expenses_by_group(
        self,
        group_id: Optional[UUID],
    ) -> list[Expense]:
        try:
            expenses = self._records(self._client.expenses_sheet(), row_to_expense)
        except StorageConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list expenses: {e}") from e
        return [e for e in expenses if e.group_id == group_id]

    @sheets_retry
    async def list_expenses_for_user(self, user_id: UUID) -> list[Expense]:
        try:
            expenses = self._records(self._client.expenses_sheet(), row_to_expense)
        except StorageConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list expenses: {e}") from e
        return [
            e for e in expenses
            if e.payer_id == user_id or e.created_by == user_id
        ]

    # -------------------------------------------------------------------------
    # Settlements
    # -------------------------------------------------------------------------

    @sheets_retry
    async def save_settlement(self, settlement: Settlement) -> bool:
        try:
            return self._append(
                self._client.settlements_sheet(),
                settlement.id,
                settlement_to_row(settlement),
                "Settlement",
            )
        except (DuplicateError, StorageConnectionError):
            raise
        except Exception as e:
            raise StorageError(f"Failed to save settlement: {e}") from e

    @sheets_retry
    async def get_settlement(self, settlement_id: UUID) -> Optional[Settlement]:
        try:
            return self._get(
                self._client.settlements_sheet(), settlement_id, row_to_settlement
            )
        except StorageConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get settlement: {e}") from e

    @sheets_retry
    async def update_settlement(self, settlement: Settlement) -> bool:
        try:
            return self._replace(
                self._client.settlements_sheet(),
                settlement.id,
                settlement_to_row(settlement),
                "Settlement",
            )
        except (RecordNotFoundError, StorageConnectionError):
            raise
        except Exception as e:
            raise StorageError(f"Failed to update settlement: {e}") from e

    @sheets_retry
    async def delete_settlement(self, settlement_id: UUID) -> bool:
        try:
            return self._remove(self._client.settlements_sheet(), settlement_id, "Settlement")
        except StorageConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete settlement: {e}") from e

    async def _all_settlements(self) -> list[Settlement]:
        try:
            return self._records(self._client.settlements_sheet(), row_to_settlement)
        except StorageConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list settlements: {e}") from e

    @sheets_retry
    async def list_settlements_by_group(
        self,
        group_id: Optional[UUID],
    ) -> list[Settlement]:
        return [s for s in await self._all_settlements() if s.group_id == group_id]

    @sheets_retry
    async def list_settlements_by_expense(
        self,
        expense_id: UUID,
    ) -> list[Settlement]:
        return [
            s for s in await self._all_settlements()
            if expense_id in s.related_expense_ids
        ]

    # -------------------------------------------------------------------------
    # Balances
    # -------------------------------------------------------------------------

    @sheets_retry
    async def get_balance(self, user_id: UUID) -> Optional[Balance]:
        try:
            return self._get(self._client.balances_sheet(), user_id, row_to_balance)
        except StorageConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get balance: {e}") from e

    @sheets_retry
    async def list_balances(self) -> list[Balance]:
        try:
            return self._records(self._client.balances_sheet(), row_to_balance)
        except StorageConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list balances: {e}") from e

    async def apply_balance_delta(
        self,
        user_id: UUID,
        delta: Decimal,
    ) -> Balance:
        """
        Upsert the balance row under a lock.

        CRITICAL: Not retried as a whole. A retry after a write that
        actually landed would apply the delta twice. The journaled undo
        restores the previous row instead of applying -delta, so it is
        safe to retry.
        """
        async with self._balance_lock:
            try:
                sheet = self._client.balances_sheet()
                idx, previous = self._locate(sheet, user_id)
                if idx is None:
                    balance = Balance(user_id=user_id, amount=to_money(delta))
                    sheet.append_row(balance_to_row(balance), value_input_option="RAW")
                    self._journal_undo(
                        f"remove balance {user_id}",
                        lambda: self._delete_row(sheet, user_id),
                    )
                    return balance

                current = row_to_balance(previous)
                balance = Balance(
                    user_id=user_id,
                    amount=current.amount + to_money(delta),
                    last_updated=utcnow(),
                )
                sheet.update(
                    range_name=f"A{idx}",
                    values=[balance_to_row(balance)],
                    value_input_option="RAW",
                )
                self._journal_undo(
                    f"restore balance {user_id}",
                    lambda: self._write_row(sheet, user_id, previous),
                )
                return balance
            except StorageConnectionError:
                raise
            except Exception as e:
                raise StorageError(f"Failed to update balance: {e}") from e


# =============================================================================
# AUDIT STORAGE
# =============================================================================

class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @sheets_retry
    async def append_event(self, event: AuditEvent) -> bool:
        try:
            self._client.audit_sheet().append_row(
                event.to_sheets_row(),
                value_input_option="RAW",
            )
            return True
        except StorageConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}") from e

    async def _all_events(self) -> list[AuditEvent]:
        try:
            rows = self._client.audit_sheet().get_all_values()[1:]
        except StorageConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read audit events: {e}") from e

        events = []
        for row in rows:
            if not row or not row[0]:
                continue
            try:
                events.append(row_to_event(row))
            except (ValueError, KeyError) as e:
                logger.warning("Skipping malformed audit row", row_id=row[0], error=str(e))
        return events

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            e for e in await self._all_events()
            if e.correlation_id == correlation_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            e for e in await self._all_events()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = await self._all_events()
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
