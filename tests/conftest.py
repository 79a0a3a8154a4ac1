"""
Shared fixtures for SplitMate tests.

Everything runs against in-memory storage and a scripted interpreter;
no network, no Google credentials.
"""

import asyncio
from decimal import Decimal

import pytest

from splitmate.agents import CommandInterpreter
from splitmate.config import AppSettings
from splitmate.orchestrator import create_app_components


class FakeInterpreter(CommandInterpreter):
    """Returns a scripted reply (or raises a scripted error)."""

    service_name = "fake"

    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.commands = []

    async def interpret(self, command: str) -> dict:
        self.commands.append(command)
        if self.error is not None:
            raise self.error
        return dict(self.reply or {})


@pytest.fixture
def settings():
    return AppSettings(_env_file=None)


@pytest.fixture
def legacy_settings():
    """Equal splits without remainder redistribution."""
    return AppSettings(_env_file=None, redistribute_rounding_remainder=False)


@pytest.fixture
def interpreter():
    return FakeInterpreter()


@pytest.fixture
def components(interpreter, settings):
    return create_app_components(
        storage_backend="memory",
        interpreter=interpreter,
        settings=settings,
    )


@pytest.fixture
def people(components):
    """John (usually the acting user), Alice, Bob and Carol, in that order."""
    async def register():
        users = components.users
        return {
            "john": await users.register_user("John Doe", "john@example.com"),
            "alice": await users.register_user("Alice Smith", "alice@example.com"),
            "bob": await users.register_user("Bob Brown", "bob@example.com"),
            "carol": await users.register_user("Carol White", "carol@example.com"),
        }

    return asyncio.run(register())


@pytest.fixture
def balance(components):
    """Global balance amount of a user; 0 when the user has no balance row."""
    async def lookup(user_id):
        row = await components.storage.get_balance(user_id)
        return row.amount if row else Decimal("0")

    return lookup
