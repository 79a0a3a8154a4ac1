"""
Main Orchestrator for SplitMate

Ties the components together and defines the end-to-end flow for a
natural-language command:

    text -> validate -> interpret -> re-validate -> resolve names
         -> create expense + update balances -> result

DESIGN DECISION: The orchestrator enforces the boundaries:
- The interpreter only PROPOSES an expense; the validator decides
- The acting user is always the payer of a command expense
- Every command is audited under one correlation id, success or failure

create_app_components() wires everything for the HTTP app and for tests.
"""

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

import structlog

from splitmate.agents import CommandInterpreter, create_command_interpreter
from splitmate.audit import AuditLogger, create_correlation_id
from splitmate.config import AppSettings, get_settings
from splitmate.directory import GroupDirectory, UserDirectory
from splitmate.errors import ExternalServiceError, SplitMateError
from splitmate.ledger import GroupFinancialAggregator, LedgerEngine
from splitmate.models.ledger import CommandResult
from splitmate.services.expenses import ExpenseService
from splitmate.services.settlements import SettlementService
from splitmate.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
)
from splitmate.validation import CommandValidator


logger = structlog.get_logger()


class CommandFlow:
    """
    Orchestrates the "process command" use case.

    Flow:
    1. Validate the raw text (non-empty, not too long)
    2. Interpret -> raw JSON from the model
    3. Re-validate the JSON (amount, reason, members)
    4. Create the expense through ExpenseService (payer = acting user)
    5. Build the summary the caller shows back to the user
    """

    def __init__(
        self,
        expenses: ExpenseService,
        interpreter: Optional[CommandInterpreter] = None,
        validator: Optional[CommandValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._expenses = expenses
        self._interpreter = interpreter or create_command_interpreter()
        self._settings = settings or get_settings().app
        self._validator = validator or CommandValidator(self._settings)
        self._audit = audit_logger or AuditLogger()

    async def process_command(
        self,
        command: str,
        current_user_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> CommandResult:
        """
        Turn a natural-language command into a saved expense.

        Raises:
            ValidationError: Bad command text or bad interpreter output
            UnresolvedMembersError: A named member matched no user
            ExternalServiceError: The interpreter failed
        """
        correlation_id = correlation_id or create_correlation_id()
        command_id = create_correlation_id()

        try:
            text = self._validator.validate_command_text(command)
            raw = await self._interpreter.interpret(text)
            parsed = self._validator.validate_parsed_command(raw)

            await self._audit.log_command_parsed(
                command_id=command_id,
                amount=parsed.amount,
                member_count=len(parsed.members),
                actor_id=current_user_id,
                correlation_id=correlation_id,
            )

            expense_id = await self._expenses.create_expense_from_ai(
                acting_user_id=current_user_id,
                amount=parsed.amount,
                reason=parsed.reason,
                members=parsed.members,
                correlation_id=correlation_id,
            )
        except SplitMateError as e:
            if isinstance(e, ExternalServiceError):
                await self._audit.log_external_service_error(
                    e.service, str(e), correlation_id=correlation_id
                )
            await self._audit.log_command_failed(
                command_id=command_id,
                error=e,
                actor_id=current_user_id,
                correlation_id=correlation_id,
            )
            raise

        expense = await self._expenses.get_expense(current_user_id, expense_id)
        others = [s for s in expense.splits if s.user_id != expense.payer_id]
        split_amount = others[0].amount if others else expense.amount
        total_members = len(expense.splits)

        payer_display = "You" if parsed.payer_is_me else parsed.payer
        message = (
            f"{payer_display} paid ₹{expense.amount} for {expense.description} "
            f"split among {total_members} people (₹{split_amount} each)"
        )
        logger.info(
            "Command processed",
            correlation_id=str(correlation_id),
            expense_id=str(expense_id),
        )

        return CommandResult(
            expense_id=expense_id,
            amount=expense.amount,
            reason=expense.description,
            members=parsed.members,
            payer=parsed.payer,
            total_members=total_members,
            split_amount=split_amount,
            message=message,
        )


@dataclass
class AppComponents:
    """Everything the HTTP layer needs, wired to one storage backend."""

    storage: LedgerStorageInterface
    audit_logger: AuditLogger
    ledger: LedgerEngine
    users: UserDirectory
    groups: GroupDirectory
    expenses: ExpenseService
    settlements: SettlementService
    aggregator: GroupFinancialAggregator
    command_flow: CommandFlow


def create_app_components(
    storage_backend: Optional[str] = None,
    interpreter: Optional[CommandInterpreter] = None,
    settings: Optional[AppSettings] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        storage_backend: "memory" or "google_sheets"; defaults to
                         APP_STORAGE_BACKEND.
        interpreter: Command interpreter to use; defaults to the one
                     selected by APP_INTERPRETER_PROVIDER.
        settings: Application settings; defaults to the environment.
    """
    settings = settings or get_settings().app
    storage_backend = storage_backend or settings.storage_backend

    if storage_backend == "google_sheets":
        sheets_client = GoogleSheetsClient()
        storage = GoogleSheetsLedgerStorage(sheets_client)
        audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
    elif storage_backend == "memory":
        storage = InMemoryLedgerStorage()
        audit_logger = AuditLogger(InMemoryAuditStorage())
    else:
        raise ValueError(f"Unknown storage backend: {storage_backend}")

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
    aggregator = GroupFinancialAggregator(storage)
    command_flow = CommandFlow(
        expenses,
        interpreter=interpreter,
        audit_logger=audit_logger,
        settings=settings,
    )

    return AppComponents(
        storage=storage,
        audit_logger=audit_logger,
        ledger=ledger,
        users=users,
        groups=groups,
        expenses=expenses,
        settlements=settlements,
        aggregator=aggregator,
        command_flow=command_flow,
    )
