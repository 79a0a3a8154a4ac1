"""
Core Data Models for SplitMate

These models define the schemas for everything the ledger stores or returns.
They are designed to:
1. Enforce shape and range at runtime
2. Keep money exact (Decimal, two places, half-up rounding)
3. Be serializable for storage and logging

DESIGN DECISION: Pydantic validates SHAPE only. Cross-field ledger rules
(splits adding up to the amount, membership, authorization) are checked
again at the service boundary, because a schema cannot express them.
"""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Annotated, Any, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    model_validator,
)


CENT = Decimal("0.01")


def to_money(value: Any) -> Decimal:
    """
    Convert a number to a two-place Decimal using half-up rounding.

    Floats go through str() so 0.1 stays 0.1 instead of its binary expansion.
    """
    if isinstance(value, bool):
        raise ValueError("Amount must be a number")
    try:
        if isinstance(value, Decimal):
            amount = value
        elif isinstance(value, float):
            amount = Decimal(str(value))
        else:
            amount = Decimal(value)
        if not amount.is_finite():
            raise ValueError(f"Not a valid amount: {value!r}")
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError) as e:
        raise ValueError(f"Not a valid amount: {value!r}") from e


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


Money = Annotated[Decimal, BeforeValidator(to_money)]


# =============================================================================
# ENUMS
# =============================================================================

class MemberRole(str, Enum):
    """Role of a user inside a group."""
    ADMIN = "admin"
    MEMBER = "member"


class SplitType(str, Enum):
    """How an expense was divided among its participants."""
    EQUAL = "equal"
    PERCENTAGE = "percentage"
    EXACT = "exact"


# =============================================================================
# DIRECTORY MODELS
# =============================================================================

class User(BaseModel):
    """
    A participant identity.

    Display name and email are both usable for lookup.
    Users are created at signup and never deleted.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., min_length=3, max_length=320)
    image_url: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


class GroupMember(BaseModel):
    """Membership of one user in a group."""

    user_id: UUID
    role: MemberRole = MemberRole.MEMBER
    joined_at: datetime = Field(default_factory=utcnow)


class Group(BaseModel):
    """
    A named collection of members.

    CRITICAL: The creator is always a member with the admin role,
    and at least one admin must remain.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=1000)
    created_by: UUID
    members: list[GroupMember] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode='after')
    def validate_membership(self) -> 'Group':
        """Creator must be an admin member; at least one admin must exist."""
        creator = self.get_member(self.created_by)
        if creator is None or creator.role != MemberRole.ADMIN:
            raise ValueError("Group creator must be an admin member")
        return self

    def get_member(self, user_id: UUID) -> Optional[GroupMember]:
        for member in self.members:
            if member.user_id == user_id:
                return member
        return None

    def is_member(self, user_id: UUID) -> bool:
        return self.get_member(user_id) is not None

    def is_admin(self, user_id: UUID) -> bool:
        member = self.get_member(user_id)
        return member is not None and member.role == MemberRole.ADMIN

    @property
    def member_ids(self) -> list[UUID]:
        return [member.user_id for member in self.members]

    @property
    def admin_count(self) -> int:
        return sum(1 for m in self.members if m.role == MemberRole.ADMIN)


# =============================================================================
# LEDGER RECORDS
# =============================================================================

class ExpenseSplit(BaseModel):
    """One participant's share of an expense."""

    user_id: UUID
    amount: Money = Field(..., description="Share owed by this user")
    paid: bool = Field(
        default=False,
        description="True if this share is already covered (e.g. the payer's own share)"
    )


class SplitParticipant(BaseModel):
    """
    One participant of a structured split, before amounts are computed.

    percentage is used by percentage splits, amount by exact splits;
    equal splits need neither.
    """

    user_id: UUID
    percentage: Optional[Decimal] = None
    amount: Optional[Money] = None


class Expense(BaseModel):
    """
    A recorded shared expense.

    Immutable once created. The only mutation is delete, which must
    reverse the balance effects first.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    description: str = Field(..., min_length=1, max_length=500)
    amount: Money = Field(..., gt=0)
    category: str = Field(default="Other", max_length=100)
    date: datetime = Field(default_factory=utcnow)
    payer_id: UUID
    split_type: SplitType = SplitType.EQUAL
    splits: list[ExpenseSplit] = Field(..., min_length=1)
    group_id: Optional[UUID] = Field(
        default=None,
        description="None for one-on-one / personal expenses"
    )
    created_by: UUID
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def split_total(self) -> Decimal:
        return sum((s.amount for s in self.splits), Decimal("0"))

    def involves(self, user_id: UUID) -> bool:
        return self.payer_id == user_id or any(
            s.user_id == user_id for s in self.splits
        )


class Settlement(BaseModel):
    """A real-world payment that reduces outstanding debt."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    amount: Money = Field(..., gt=0)
    note: Optional[str] = Field(default=None, max_length=500)
    date: datetime = Field(default_factory=utcnow)
    payer_id: UUID
    received_by_user_id: UUID
    group_id: Optional[UUID] = None
    related_expense_ids: list[UUID] = Field(default_factory=list)
    created_by: UUID
    created_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode='after')
    def validate_parties(self) -> 'Settlement':
        if self.payer_id == self.received_by_user_id:
            raise ValueError("Payer and receiver must be different users")
        return self


class Balance(BaseModel):
    """
    Global running balance of one user.

    Sign convention: positive = the user is owed money,
    negative = the user owes money.
    """

    user_id: UUID
    amount: Money = Field(default=Decimal("0.00"))
    last_updated: datetime = Field(default_factory=utcnow)


# =============================================================================
# READ-SIDE VIEWS
# =============================================================================

class DebtEntry(BaseModel):
    """An amount this member owes to another member."""

    to: UUID
    amount: Money


class CreditEntry(BaseModel):
    """An amount another member owes to this member."""
    model_config = ConfigDict(populate_by_name=True)

    from_: UUID = Field(..., alias="from")
    amount: Money


class MemberSummary(BaseModel):
    """A group member as shown on the group page."""

    id: UUID
    name: str
    email: str
    image_url: Optional[str] = None
    role: MemberRole


class MemberBalance(BaseModel):
    """One member's position inside a group, after netting."""

    user_id: UUID
    name: str
    role: MemberRole
    total_balance: Money
    owes: list[DebtEntry] = Field(default_factory=list)
    owed_by: list[CreditEntry] = Field(default_factory=list)


class GroupFinancials(BaseModel):
    """Everything the group detail view needs, recomputed from history."""

    group_id: UUID
    name: str
    description: str
    members: list[MemberSummary]
    expenses: list[Expense]
    settlements: list[Settlement]
    balances: list[MemberBalance]

    def balance_for(self, user_id: UUID) -> Optional[MemberBalance]:
        for balance in self.balances:
            if balance.user_id == user_id:
                return balance
        return None


class PairwiseSummary(BaseModel):
    """One-on-one history between the current user and someone else."""

    other_user: User
    expenses: list[Expense]
    settlements: list[Settlement]
    balance: Money = Field(
        ...,
        description="Positive = the other user owes me, negative = I owe them"
    )


# =============================================================================
# COMMAND MODELS (natural-language path)
# =============================================================================

class ParsedCommand(BaseModel):
    """
    Structured output of the command interpreter.

    CRITICAL: This is PROPOSED data from a language model.
    It is re-validated before anything is persisted.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Decimal = Field(..., gt=0)
    reason: str = Field(..., min_length=1, max_length=500)
    payer: str = Field(default="me")
    members: list[str] = Field(default_factory=list)

    @model_validator(mode='after')
    def normalize(self) -> 'ParsedCommand':
        if not self.payer:
            self.payer = "me"
        self.members = [m.strip() for m in self.members if m and m.strip()]
        return self

    @property
    def payer_is_me(self) -> bool:
        return self.payer.lower() == "me"


class CommandResult(BaseModel):
    """What the command endpoint returns after a successful command."""

    expense_id: UUID
    amount: Money
    reason: str
    members: list[str]
    payer: str
    total_members: int = Field(..., ge=1)
    split_amount: Money
    message: str


# =============================================================================
# VALIDATION
# =============================================================================

class ValidationIssue(BaseModel):
    """A single problem found while validating input."""

    field: str = Field(..., description="Field with the issue")
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'split_mismatch')"
    )
    message: str = Field(..., description="Human-readable description of the issue")
