"""Tests for the user and group directories."""

import asyncio
from decimal import Decimal
from uuid import uuid4

import pytest

from splitmate.directory import match_member
from splitmate.directory.users import MATCH_STRATEGIES, _name_contains
from splitmate.errors import (
    ForbiddenError,
    NotFoundError,
    UnresolvedMembersError,
    ValidationError,
)
from splitmate.models.ledger import MemberRole, SplitParticipant, SplitType, User
from splitmate.services.splits import build_splits


class TestMatchMember:
    """Name resolution strategies, in order."""

    @pytest.fixture
    def users(self):
        return [
            User(name="Alice Smith", email="alice@example.com"),
            User(name="Alicia Keys", email="alicia@example.com"),
            User(name="Robert Brown", email="bobby@example.com"),
        ]

    def test_exact_name_case_insensitive(self, users):
        """Test exact full-name matching."""
        assert match_member("alicia keys", users) is users[1]

    def test_word_overlap_prefers_directory_order(self, users):
        """Test that a partial first name resolves to the earliest match."""
        assert match_member("Ali", users) is users[0]

    def test_exact_email(self, users):
        """Test lookup by email address."""
        assert match_member("BOBBY@example.com", users) is users[2]

    def test_substring_strategy_spans_words(self, users):
        """Test the substring strategy on its own, across a word boundary."""
        assert _name_contains("ce sm", users[0])
        assert not _name_contains("smith alice", users[0])
        assert MATCH_STRATEGIES[-1] is _name_contains

    def test_no_match(self, users):
        """Test that unknown names return None."""
        assert match_member("Zed", users) is None
        assert match_member("   ", users) is None


class TestUserDirectory:
    """Tests for UserDirectory."""

    def test_register_rejects_duplicate_email(self, components, people):
        """Test that emails are unique, case-insensitively."""
        with pytest.raises(ValidationError, match="Email already registered"):
            asyncio.run(components.users.register_user("Other John", "JOHN@example.com"))

    def test_require_user(self, components, people):
        """Test that unknown ids raise NotFoundError."""
        with pytest.raises(NotFoundError, match="User not found"):
            asyncio.run(components.users.require_user(uuid4()))

    def test_list_users(self, components, people):
        """Test that every registered user is listed."""
        users = asyncio.run(components.users.list_users())
        assert {u.id for u in users} == {p.id for p in people.values()}

    def test_resolve_member_names(self, components, people):
        """Test that names resolve in the order given."""
        resolved = asyncio.run(components.users.resolve_member_names(["carol", "Alice"]))
        assert [u.id for u in resolved] == [people["carol"].id, people["alice"].id]

    def test_unresolved_names_are_listed(self, components, people):
        """Test that the error lists bad names and every known name."""
        with pytest.raises(UnresolvedMembersError) as exc_info:
            asyncio.run(components.users.resolve_member_names(["Alice", "Zed"]))

        assert exc_info.value.unresolved == ["Zed"]
        assert "Alice Smith" in exc_info.value.available
        assert "Users not found: Zed" in str(exc_info.value)


class TestGroupDirectory:
    """Tests for group membership rules."""

    @pytest.fixture
    def group(self, components, people):
        return asyncio.run(components.groups.create_group(
            people["john"].id,
            "Goa Trip",
            "Beach week",
            [people["alice"].id, people["bob"].id, people["john"].id],
        ))

    def test_creator_is_admin(self, group, people):
        """Test that the creator is added once, as admin."""
        assert group.member_ids == [people["john"].id, people["alice"].id, people["bob"].id]
        assert group.get_member(people["john"].id).role == MemberRole.ADMIN

    def test_list_groups_for_user(self, components, people, group):
        """Test that only groups the user belongs to are listed."""
        groups = asyncio.run(components.groups.list_groups_for_user(people["alice"].id))
        assert [g.id for g in groups] == [group.id]
        assert asyncio.run(components.groups.list_groups_for_user(people["carol"].id)) == []

    def test_create_with_unknown_member(self, components, people):
        """Test that initial members must exist."""
        with pytest.raises(NotFoundError):
            asyncio.run(components.groups.create_group(people["john"].id, "X", member_ids=[uuid4()]))

    def test_only_admins_add_members(self, components, people, group):
        """Test that a plain member cannot add people."""
        with pytest.raises(ForbiddenError, match="Only group admins can add members"):
            asyncio.run(components.groups.add_member(people["alice"].id, group.id, people["carol"].id))

    def test_non_admin_adding_unknown_user(self, components, people, group):
        """Test that the admin check comes before the user lookup."""
        with pytest.raises(ForbiddenError, match="Only group admins can add members"):
            asyncio.run(components.groups.add_member(people["alice"].id, group.id, uuid4()))

    def test_remove_non_member(self, components, people, group):
        """Test that removing someone outside the group fails and changes nothing."""
        groups = components.groups

        with pytest.raises(NotFoundError, match="not a member"):
            asyncio.run(groups.remove_member(people["john"].id, group.id, people["carol"].id))

        stored = asyncio.run(groups.get_group(people["john"].id, group.id))
        assert stored.member_ids == group.member_ids

    def test_add_existing_member(self, components, people, group):
        """Test that adding a member twice is rejected."""
        with pytest.raises(ValidationError, match="already a member"):
            asyncio.run(components.groups.add_member(people["john"].id, group.id, people["bob"].id))

    def test_cannot_remove_creator(self, components, people, group):
        """Test that removing the creator fails and membership is unchanged."""
        groups = components.groups

        with pytest.raises(ValidationError, match="Cannot remove group creator"):
            asyncio.run(groups.remove_member(people["john"].id, group.id, people["john"].id))

        stored = asyncio.run(groups.get_group(people["john"].id, group.id))
        assert stored.member_ids == group.member_ids

    def test_update_group_cannot_drop_creator(self, components, people, group):
        """Test that bulk updates enforce the same rule."""
        with pytest.raises(ValidationError, match="Cannot remove group creator"):
            asyncio.run(components.groups.update_group(
                people["john"].id, group.id, remove_member_ids=[people["john"].id]
            ))

    def test_update_group(self, components, people, group):
        """Test rename plus membership change in one step."""
        updated = asyncio.run(components.groups.update_group(
            people["john"].id,
            group.id,
            name="Goa Trip 2",
            add_member_ids=[people["carol"].id],
            remove_member_ids=[people["bob"].id],
        ))
        assert updated.name == "Goa Trip 2"
        assert updated.is_member(people["carol"].id)
        assert not updated.is_member(people["bob"].id)

    def test_non_member_cannot_view(self, components, people, group):
        """Test that outsiders are forbidden."""
        with pytest.raises(ForbiddenError):
            asyncio.run(components.groups.get_group(people["carol"].id, group.id))

    def test_only_creator_deletes(self, components, people, group):
        """Test that a member cannot delete the group."""
        with pytest.raises(ForbiddenError, match="Only group creator"):
            asyncio.run(components.groups.delete_group(people["alice"].id, group.id))

    def test_delete_group_reverses_balances(self, components, people, group, balance):
        """Test cascade deletion of expenses and settlements with their balance effects."""
        john, alice, bob = people["john"], people["alice"], people["bob"]

        async def scenario():
            splits = build_splits(
                Decimal("90"),
                SplitType.EQUAL,
                [SplitParticipant(user_id=u.id) for u in (john, alice, bob)],
                john.id,
            )
            await components.expenses.create_expense(
                acting_user_id=john.id,
                description="Dinner",
                amount=Decimal("90"),
                payer_id=john.id,
                splits=splits,
                group_id=group.id,
            )
            await components.settlements.record_settlement(
                acting_user_id=alice.id,
                amount=Decimal("30"),
                payer_id=alice.id,
                received_by_user_id=john.id,
                group_id=group.id,
            )
            before = [await balance(u.id) for u in (john, alice, bob)]

            await components.groups.delete_group(john.id, group.id)
            after = [await balance(u.id) for u in (john, alice, bob)]
            remaining = await components.storage.list_expenses_by_group(group.id)
            return before, after, remaining, await components.storage.get_group(group.id)

        before, after, remaining, stored = asyncio.run(scenario())

        assert before == [Decimal("30.00"), Decimal("0.00"), Decimal("-30.00")]
        assert after == [0, 0, 0]
        assert remaining == []
        assert stored is None
