"""
Audit Logger

DESIGN DECISION: Every ledger mutation and every command is logged.
This provides:
1. Traceability of balance changes
2. Debugging capability when a balance looks wrong
3. A correlation id that follows one command from parse to save

The audit logger:
- Always writes a structured local log line
- Persists to audit storage when one is configured
- NEVER raises because persistence failed
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from splitmate.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from splitmate.services.storage import AuditStorageInterface


structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence), if configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        self._storage = storage
        self._logger = structlog.get_logger()

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns True if the storage write succeeded (or no storage is configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage is None:
            return True

        try:
            return await self._storage.append_event(event)
        except Exception as e:
            self._logger.error(
                "audit_storage_failed",
                error=str(e),
                event_id=str(event.event_id),
            )
            return False

    async def log_user_registered(self, user_id: UUID, name: str) -> None:
        await self.log(AuditEventBuilder.user_registered(user_id=user_id, name=name))

    async def log_group_created(
        self,
        group_id: UUID,
        name: str,
        member_count: int,
        actor_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.group_created(
            group_id=group_id,
            name=name,
            member_count=member_count,
            actor_id=actor_id,
        ))

    async def log_group_updated(
        self,
        group_id: UUID,
        changes: dict,
        actor_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.group_updated(
            group_id=group_id,
            changes=changes,
            actor_id=actor_id,
        ))

    async def log_group_deleted(
        self,
        group_id: UUID,
        expense_count: int,
        settlement_count: int,
        actor_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.group_deleted(
            group_id=group_id,
            expense_count=expense_count,
            settlement_count=settlement_count,
            actor_id=actor_id,
        ))

    async def log_expense_created(
        self,
        expense_id: UUID,
        description: str,
        amount: Decimal,
        split_count: int,
        actor_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a new expense and its balance update."""
        await self.log(AuditEventBuilder.expense_created(
            expense_id=expense_id,
            description=description,
            amount=str(amount),
            split_count=split_count,
            actor_id=actor_id,
            correlation_id=correlation_id,
        ))

    async def log_expense_deleted(
        self,
        expense_id: UUID,
        amount: Decimal,
        pruned_settlements: int,
        deleted_settlements: int,
        actor_id: UUID,
    ) -> None:
        """Log an expense deletion and the settlements it touched."""
        await self.log(AuditEventBuilder.expense_deleted(
            expense_id=expense_id,
            amount=str(amount),
            pruned_settlements=pruned_settlements,
            deleted_settlements=deleted_settlements,
            actor_id=actor_id,
        ))

    async def log_settlement_recorded(
        self,
        settlement_id: UUID,
        amount: Decimal,
        payer_id: UUID,
        receiver_id: UUID,
        actor_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.settlement_recorded(
            settlement_id=settlement_id,
            amount=str(amount),
            payer_id=payer_id,
            receiver_id=receiver_id,
            actor_id=actor_id,
        ))

    async def log_settlement_pruned(
        self,
        settlement_id: UUID,
        expense_id: UUID,
        deleted: bool,
        actor_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.settlement_pruned(
            settlement_id=settlement_id,
            expense_id=expense_id,
            deleted=deleted,
            actor_id=actor_id,
        ))

    async def log_command_parsed(
        self,
        command_id: UUID,
        amount: Decimal,
        member_count: int,
        actor_id: UUID,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.command_parsed(
            command_id=command_id,
            amount=str(amount),
            member_count=member_count,
            actor_id=actor_id,
            correlation_id=correlation_id,
        ))

    async def log_command_failed(
        self,
        command_id: UUID,
        error: Exception,
        actor_id: Optional[UUID],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.command_failed(
            command_id=command_id,
            error_type=type(error).__name__,
            error_message=str(error),
            actor_id=actor_id,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user action (e.g., one natural-language
    command) and pass it through every later step.
    """
    return uuid4()
