"""Validation package."""

from splitmate.validation.validator import CommandValidator, ExpenseValidator, parse_amount

__all__ = ["CommandValidator", "ExpenseValidator", "parse_amount"]
