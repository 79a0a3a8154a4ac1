"""
Audit Models for SplitMate

Every ledger mutation is logged for audit purposes.
This provides:
1. Traceability of who changed which balance and why
2. Debugging information when balances look wrong
3. Ability to reconstruct history

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from splitmate.models.ledger import utcnow


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Directory
    USER_REGISTERED = "user_registered"
    GROUP_CREATED = "group_created"
    GROUP_UPDATED = "group_updated"
    GROUP_DELETED = "group_deleted"

    # Ledger
    EXPENSE_CREATED = "expense_created"
    EXPENSE_DELETED = "expense_deleted"
    SETTLEMENT_RECORDED = "settlement_recorded"
    SETTLEMENT_PRUNED = "settlement_pruned"
    SETTLEMENT_DELETED = "settlement_deleted"

    # Natural-language commands
    COMMAND_RECEIVED = "command_received"
    COMMAND_PARSED = "command_parsed"
    COMMAND_FAILED = "command_failed"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'expense', 'group', 'command')"
    )
    entity_id: Optional[UUID] = None

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one command from parse to save)"
    )

    actor_id: Optional[UUID] = Field(
        default=None,
        description="User who triggered the event"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    # Error information (if applicable)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "actor_id": str(self.actor_id) if self.actor_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, actor_id, description, details_json, error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            str(self.actor_id) if self.actor_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.expense_created(expense_id, actor_id, ...)
    """

    @staticmethod
    def user_registered(user_id: UUID, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_REGISTERED,
            entity_type="user",
            entity_id=user_id,
            actor_id=user_id,
            description=f"User registered: {name}",
        )

    @staticmethod
    def group_created(
        group_id: UUID,
        name: str,
        member_count: int,
        actor_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GROUP_CREATED,
            entity_type="group",
            entity_id=group_id,
            actor_id=actor_id,
            description=f"Group created: {name}",
            details={"member_count": member_count},
        )

    @staticmethod
    def group_updated(
        group_id: UUID,
        changes: dict,
        actor_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GROUP_UPDATED,
            entity_type="group",
            entity_id=group_id,
            actor_id=actor_id,
            description=f"Group updated: {', '.join(sorted(changes)) or 'no changes'}",
            details=changes,
        )

    @staticmethod
    def group_deleted(
        group_id: UUID,
        expense_count: int,
        settlement_count: int,
        actor_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GROUP_DELETED,
            severity=AuditSeverity.WARNING,
            entity_type="group",
            entity_id=group_id,
            actor_id=actor_id,
            description=(
                f"Group deleted with {expense_count} expenses "
                f"and {settlement_count} settlements"
            ),
            details={
                "expense_count": expense_count,
                "settlement_count": settlement_count,
            },
        )

    @staticmethod
    def expense_created(
        expense_id: UUID,
        description: str,
        amount: str,
        split_count: int,
        actor_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_CREATED,
            entity_type="expense",
            entity_id=expense_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Expense created: {description} - ₹{amount}",
            details={
                "amount": amount,
                "split_count": split_count,
            },
        )

    @staticmethod
    def expense_deleted(
        expense_id: UUID,
        amount: str,
        pruned_settlements: int,
        deleted_settlements: int,
        actor_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_DELETED,
            entity_type="expense",
            entity_id=expense_id,
            actor_id=actor_id,
            description=f"Expense deleted and balances reversed (₹{amount})",
            details={
                "amount": amount,
                "pruned_settlements": pruned_settlements,
                "deleted_settlements": deleted_settlements,
            },
        )

    @staticmethod
    def settlement_recorded(
        settlement_id: UUID,
        amount: str,
        payer_id: UUID,
        receiver_id: UUID,
        actor_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTLEMENT_RECORDED,
            entity_type="settlement",
            entity_id=settlement_id,
            actor_id=actor_id,
            description=f"Settlement recorded: ₹{amount}",
            details={
                "amount": amount,
                "payer_id": str(payer_id),
                "received_by_user_id": str(receiver_id),
            },
        )

    @staticmethod
    def settlement_pruned(
        settlement_id: UUID,
        expense_id: UUID,
        deleted: bool,
        actor_id: UUID,
    ) -> AuditEvent:
        if deleted:
            return AuditEvent(
                event_type=AuditEventType.SETTLEMENT_DELETED,
                severity=AuditSeverity.WARNING,
                entity_type="settlement",
                entity_id=settlement_id,
                actor_id=actor_id,
                description="Settlement deleted: its last related expense was removed",
                details={"expense_id": str(expense_id)},
            )
        return AuditEvent(
            event_type=AuditEventType.SETTLEMENT_PRUNED,
            entity_type="settlement",
            entity_id=settlement_id,
            actor_id=actor_id,
            description="Settlement no longer references a deleted expense",
            details={"expense_id": str(expense_id)},
        )

    @staticmethod
    def command_parsed(
        command_id: UUID,
        amount: str,
        member_count: int,
        actor_id: UUID,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COMMAND_PARSED,
            entity_type="command",
            entity_id=command_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Command parsed: ₹{amount} with {member_count} members",
            details={
                "amount": amount,
                "member_count": member_count,
            },
        )

    @staticmethod
    def command_failed(
        command_id: UUID,
        error_type: str,
        error_message: str,
        actor_id: Optional[UUID],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COMMAND_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="command",
            entity_id=command_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Command failed: {error_type}",
            error_message=error_message,
            details={"error_type": error_type},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
            correlation_id=correlation_id,
        )
