"""Tests for split computation and service-boundary validation."""

from decimal import Decimal
from uuid import uuid4

import pytest

from splitmate.config import AppSettings
from splitmate.errors import ValidationError
from splitmate.models.ledger import ExpenseSplit, SplitParticipant, SplitType
from splitmate.services.splits import build_splits, command_splits, equal_share
from splitmate.validation import CommandValidator, ExpenseValidator


class TestCommandSplits:
    """Equal splits for natural-language commands."""

    def test_two_people(self):
        """Test that 300 between payer and one member is 150 each."""
        payer, alice = uuid4(), uuid4()
        per_person, splits = command_splits(Decimal("300"), payer, [alice])

        assert per_person == Decimal("150.00")
        assert splits[0] == ExpenseSplit(user_id=payer, amount=Decimal("150.00"), paid=True)
        assert splits[1] == ExpenseSplit(user_id=alice, amount=Decimal("150.00"), paid=False)

    def test_remainder_goes_to_payer(self):
        """Test that 500 over three people adds up exactly."""
        payer, bob, carol = uuid4(), uuid4(), uuid4()
        per_person, splits = command_splits(Decimal("500"), payer, [bob, carol])

        assert per_person == Decimal("166.67")
        assert splits[0].amount == Decimal("166.66")
        assert sum(s.amount for s in splits) == Decimal("500.00")

    def test_without_redistribution(self):
        """Test that every row gets the rounded share when redistribution is off."""
        payer, bob, carol = uuid4(), uuid4(), uuid4()
        _, splits = command_splits(
            Decimal("500"), payer, [bob, carol], redistribute_remainder=False
        )

        assert [s.amount for s in splits] == [Decimal("166.67")] * 3
        assert sum(s.amount for s in splits) == Decimal("500.01")

    def test_equal_share_needs_people(self):
        """Test that dividing among nobody fails."""
        with pytest.raises(ValidationError):
            equal_share(Decimal("10"), 0)


class TestBuildSplits:
    """Structured splits for the expense form."""

    def test_equal_split_marks_payer_paid(self):
        """Test equal split with the remainder on the last participant."""
        payer, a, b = uuid4(), uuid4(), uuid4()
        splits = build_splits(
            Decimal("100"),
            SplitType.EQUAL,
            [SplitParticipant(user_id=u) for u in (payer, a, b)],
            payer,
        )

        assert [s.amount for s in splits] == [
            Decimal("33.33"), Decimal("33.33"), Decimal("33.34")
        ]
        assert [s.paid for s in splits] == [True, False, False]

    def test_percentage_split(self):
        """Test that percentages become amounts."""
        payer, other = uuid4(), uuid4()
        splits = build_splits(
            Decimal("200"),
            SplitType.PERCENTAGE,
            [
                SplitParticipant(user_id=payer, percentage=Decimal("25")),
                SplitParticipant(user_id=other, percentage=Decimal("75")),
            ],
            payer,
        )
        assert [s.amount for s in splits] == [Decimal("50.00"), Decimal("150.00")]

    def test_percentages_must_sum_to_100(self):
        """Test that 90% in total is rejected."""
        payer, other = uuid4(), uuid4()
        with pytest.raises(ValidationError, match="sum to 100"):
            build_splits(
                Decimal("200"),
                SplitType.PERCENTAGE,
                [
                    SplitParticipant(user_id=payer, percentage=Decimal("40")),
                    SplitParticipant(user_id=other, percentage=Decimal("50")),
                ],
                payer,
            )

    def test_exact_amounts_must_sum_to_total(self):
        """Test that exact amounts are checked against the total."""
        payer, other = uuid4(), uuid4()
        with pytest.raises(ValidationError, match="must sum to the total"):
            build_splits(
                Decimal("100"),
                SplitType.EXACT,
                [
                    SplitParticipant(user_id=payer, amount=Decimal("30")),
                    SplitParticipant(user_id=other, amount=Decimal("60")),
                ],
                payer,
            )

    def test_no_participants(self):
        """Test that an empty participant list is rejected."""
        with pytest.raises(ValidationError, match="At least one participant"):
            build_splits(Decimal("100"), SplitType.EQUAL, [], uuid4())

    @pytest.mark.parametrize("amount", [Decimal("1e30"), Decimal("Infinity"), "lots"])
    def test_unquantizable_amount(self, amount):
        """Test that amounts without a cent representation are a ValidationError."""
        payer = uuid4()
        with pytest.raises(ValidationError, match="too large or is not a number"):
            build_splits(amount, SplitType.EQUAL, [SplitParticipant(user_id=payer)], payer)


class TestExpenseValidator:
    """Tests for ExpenseValidator."""

    @pytest.fixture
    def validator(self):
        return ExpenseValidator(AppSettings(_env_file=None))

    def test_valid_expense_has_no_issues(self, validator):
        """Test that matching splits pass."""
        payer, other = uuid4(), uuid4()
        splits = [
            ExpenseSplit(user_id=payer, amount=Decimal("150"), paid=True),
            ExpenseSplit(user_id=other, amount=Decimal("150")),
        ]
        assert validator.check_expense("Dinner", Decimal("300"), splits) == []

    def test_split_mismatch(self, validator):
        """Test that splits off by more than the tolerance are rejected."""
        splits = [
            ExpenseSplit(user_id=uuid4(), amount=Decimal("100")),
            ExpenseSplit(user_id=uuid4(), amount=Decimal("150")),
        ]
        with pytest.raises(ValidationError, match="must add up to the total amount"):
            validator.validate_expense("Dinner", Decimal("300"), splits)

    def test_one_cent_is_within_tolerance(self, validator):
        """Test that 3 x 166.67 is accepted for 500."""
        splits = [ExpenseSplit(user_id=uuid4(), amount=Decimal("166.67")) for _ in range(3)]
        validator.validate_expense("Groceries", Decimal("500"), splits)

    def test_collects_every_issue(self, validator):
        """Test that all problems are reported together."""
        user = uuid4()
        splits = [
            ExpenseSplit(user_id=user, amount=Decimal("-5")),
            ExpenseSplit(user_id=user, amount=Decimal("10")),
        ]
        issues = validator.check_expense("", Decimal("0"), splits)
        types = {issue.issue_type for issue in issues}

        assert {"missing", "invalid_value", "duplicate", "split_mismatch"} <= types

    def test_too_large(self, validator):
        """Test the sanity ceiling on amounts."""
        user = uuid4()
        splits = [ExpenseSplit(user_id=user, amount=Decimal("2000000"))]
        with pytest.raises(ValidationError, match="too large"):
            validator.validate_expense("Yacht", Decimal("2000000"), splits)


class TestCommandValidator:
    """Tests for CommandValidator."""

    @pytest.fixture
    def validator(self):
        return CommandValidator(AppSettings(_env_file=None))

    def test_command_text_required(self, validator):
        """Test that empty and non-string commands are rejected."""
        with pytest.raises(ValidationError, match="non-empty string"):
            validator.validate_command_text("   ")
        with pytest.raises(ValidationError, match="non-empty string"):
            validator.validate_command_text(42)

    def test_command_too_long(self, validator):
        """Test the 500 character limit."""
        with pytest.raises(ValidationError, match="too long"):
            validator.validate_command_text("x" * 501)

    def test_parsed_command(self, validator):
        """Test that numeric strings are accepted and payer defaults to me."""
        parsed = validator.validate_parsed_command(
            {"amount": "300", "reason": " dinner ", "members": ["Alice"]}
        )
        assert parsed.amount == Decimal("300")
        assert parsed.reason == "dinner"
        assert parsed.payer == "me"

    @pytest.mark.parametrize("amount", [0, -5, "abc", None, True])
    def test_parsed_command_rejects_bad_amount(self, validator, amount):
        """Test that non-positive or non-numeric amounts are rejected."""
        with pytest.raises(ValidationError, match="Invalid amount"):
            validator.validate_parsed_command(
                {"amount": amount, "reason": "dinner", "members": []}
            )

    def test_parsed_command_rejects_bad_members(self, validator):
        """Test that members must be a list of strings."""
        with pytest.raises(ValidationError, match="list of names"):
            validator.validate_parsed_command(
                {"amount": 10, "reason": "tea", "members": "Alice"}
            )

    def test_parsed_command_requires_reason(self, validator):
        """Test that a missing reason is reported."""
        with pytest.raises(ValidationError, match="what the expense was for"):
            validator.validate_parsed_command({"amount": 10, "members": []})
