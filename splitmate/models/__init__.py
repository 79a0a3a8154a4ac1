"""
Data Models Package

This package contains all Pydantic models used in SplitMate.
All data flowing through the system must conform to these schemas.
"""

from splitmate.models.ledger import (
    Balance,
    CommandResult,
    CreditEntry,
    DebtEntry,
    Expense,
    ExpenseSplit,
    Group,
    GroupFinancials,
    GroupMember,
    MemberBalance,
    MemberRole,
    MemberSummary,
    Money,
    PairwiseSummary,
    ParsedCommand,
    Settlement,
    SplitParticipant,
    SplitType,
    User,
    ValidationIssue,
    to_money,
    utcnow,
)
from splitmate.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "Balance",
    "CommandResult",
    "CreditEntry",
    "DebtEntry",
    "Expense",
    "ExpenseSplit",
    "Group",
    "GroupFinancials",
    "GroupMember",
    "MemberBalance",
    "MemberRole",
    "MemberSummary",
    "Money",
    "PairwiseSummary",
    "ParsedCommand",
    "Settlement",
    "SplitParticipant",
    "SplitType",
    "User",
    "ValidationIssue",
    "to_money",
    "utcnow",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
