"""
Service-Boundary Validation

DESIGN DECISION: Pydantic models check the SHAPE of a record. The rules
that span fields or depend on configuration are checked here, right
before anything is persisted:

- splits must add up to the expense amount (within the tolerance)
- amounts must be positive and not absurdly large
- a command must be non-empty and short enough to interpret
- interpreter output is PROPOSED data and is checked like user input

IMPORTANT: Validation NEVER silently fixes input. Every problem becomes
a ValidationIssue, and any issue fails the operation with a
ValidationError carrying the full list.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Optional
from uuid import UUID

from splitmate.config import AppSettings, get_settings
from splitmate.errors import ValidationError
from splitmate.models.ledger import ExpenseSplit, ParsedCommand, ValidationIssue, to_money


def _raise_if_issues(issues: list[ValidationIssue]) -> None:
    if issues:
        raise ValidationError(
            "; ".join(issue.message for issue in issues),
            issues=issues,
        )


def _as_decimal(value: Any) -> Optional[Decimal]:
    """Coerce a JSON number or numeric string; None if it is neither."""
    if isinstance(value, bool) or value is None:
        return None
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return amount if amount.is_finite() else None


def parse_amount(value: Any) -> Decimal:
    """
    Quantize a caller-supplied amount for a write path.

    Values Decimal cannot quantize to cents (non-numbers, NaN, infinity,
    more integer digits than the context precision) fail as input errors.
    """
    try:
        return to_money(value)
    except ValueError as e:
        raise ValidationError(
            "Invalid amount. Amount seems too large or is not a number."
        ) from e


class ExpenseValidator:
    """Checks a proposed expense before it reaches storage."""

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    @property
    def tolerance(self) -> Decimal:
        return Decimal(str(self._settings.split_tolerance))

    def check_expense(
        self,
        description: str,
        amount: Decimal,
        splits: list[ExpenseSplit],
    ) -> list[ValidationIssue]:
        """Return every issue found; an empty list means valid."""
        issues = []

        if not description or not description.strip():
            issues.append(ValidationIssue(
                field="description",
                issue_type="missing",
                message="Description is required",
            ))

        if amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be greater than zero",
            ))
        elif amount > Decimal(str(self._settings.max_expense_amount)):
            issues.append(ValidationIssue(
                field="amount",
                issue_type="too_large",
                message="Amount seems too large. Please verify the amount.",
            ))

        if not splits:
            issues.append(ValidationIssue(
                field="splits",
                issue_type="missing",
                message="At least one split is required",
            ))
            return issues

        if any(split.amount < 0 for split in splits):
            issues.append(ValidationIssue(
                field="splits",
                issue_type="invalid_value",
                message="Split amounts cannot be negative",
            ))

        seen: set[UUID] = set()
        for split in splits:
            if split.user_id in seen:
                issues.append(ValidationIssue(
                    field="splits",
                    issue_type="duplicate",
                    message=f"User {split.user_id} appears in more than one split",
                ))
            seen.add(split.user_id)

        split_total = sum((s.amount for s in splits), Decimal("0"))
        if abs(split_total - amount) > self.tolerance:
            issues.append(ValidationIssue(
                field="splits",
                issue_type="split_mismatch",
                message="Split amounts must add up to the total amount",
            ))

        return issues

    def validate_expense(
        self,
        description: str,
        amount: Decimal,
        splits: list[ExpenseSplit],
    ) -> None:
        """
        Raises:
            ValidationError: If any issue was found
        """
        _raise_if_issues(self.check_expense(description, amount, splits))


class CommandValidator:
    """Checks natural-language commands and what the interpreter made of them."""

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    def validate_command_text(self, command: Any) -> str:
        """Return the stripped command, or raise ValidationError."""
        if not isinstance(command, str) or not command.strip():
            raise ValidationError("Command is required and must be a non-empty string")

        command = command.strip()
        if len(command) > self._settings.max_command_length:
            raise ValidationError(
                f"Command is too long. Please keep it under "
                f"{self._settings.max_command_length} characters."
            )
        return command

    def validate_parsed_command(self, data: Any) -> ParsedCommand:
        """
        Re-validate raw interpreter output.

        Accepts {amount, reason, payer?, members[]}; payer defaults to "me".
        """
        if not isinstance(data, dict):
            raise ValidationError("Could not understand the command")

        issues = []

        amount = _as_decimal(data.get("amount"))
        if amount is None or amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Invalid amount. Please specify a positive amount.",
            ))
        elif amount > Decimal(str(self._settings.max_expense_amount)):
            issues.append(ValidationIssue(
                field="amount",
                issue_type="too_large",
                message="Amount seems too large. Please verify the amount.",
            ))

        reason = data.get("reason")
        if not isinstance(reason, str) or not reason.strip():
            issues.append(ValidationIssue(
                field="reason",
                issue_type="missing",
                message="Please specify what the expense was for.",
            ))

        members = data.get("members", [])
        if not isinstance(members, list) or not all(
            isinstance(m, str) for m in members
        ):
            issues.append(ValidationIssue(
                field="members",
                issue_type="invalid_format",
                message="Members must be a list of names.",
            ))

        payer = data.get("payer")
        if payer is not None and not isinstance(payer, str):
            issues.append(ValidationIssue(
                field="payer",
                issue_type="invalid_format",
                message="Payer must be a name.",
            ))

        _raise_if_issues(issues)

        return ParsedCommand(
            amount=amount,
            reason=reason.strip(),
            payer=(payer or "me").strip() or "me",
            members=members,
        )
