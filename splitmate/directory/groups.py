"""
Group Directory

Group lifecycle and membership rules.

RULES:
- The creator is an admin member and can never be removed
- Only admins change name, description or membership
- Only the creator deletes the group; its expenses and settlements are
  deleted with it, and their balance effects are reversed first
"""

from typing import Iterable, Optional
from uuid import UUID

from splitmate.audit import AuditLogger
from splitmate.directory.users import UserDirectory
from splitmate.errors import ForbiddenError, NotFoundError, ValidationError
from splitmate.ledger.engine import LedgerEngine
from splitmate.models.ledger import Group, GroupMember, MemberRole
from splitmate.services.storage import LedgerStorageInterface


class GroupDirectory:
    """Creates, reads, changes and deletes groups."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        users: UserDirectory,
        ledger: Optional[LedgerEngine] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._users = users
        self._ledger = ledger or LedgerEngine(storage)
        self._audit = audit_logger or AuditLogger()

    async def _load(self, group_id: UUID) -> Group:
        group = await self._storage.get_group(group_id)
        if group is None:
            raise NotFoundError("Group not found")
        return group

    async def _load_as_admin(self, group_id: UUID, acting_user_id: UUID, action: str) -> Group:
        group = await self._load(group_id)
        if not group.is_admin(acting_user_id):
            raise ForbiddenError(f"Only group admins can {action}")
        return group

    async def require_membership(self, group_id: UUID, user_id: UUID) -> Group:
        """
        Raises:
            NotFoundError: If the group doesn't exist
            ForbiddenError: If the user is not a member
        """
        group = await self._load(group_id)
        if not group.is_member(user_id):
            raise ForbiddenError("You are not a member of this group")
        return group

    async def create_group(
        self,
        acting_user_id: UUID,
        name: str,
        description: str = "",
        member_ids: Iterable[UUID] = (),
    ) -> Group:
        """
        Create a group with the acting user as admin.

        Raises:
            NotFoundError: If the creator or any initial member doesn't exist
        """
        await self._users.require_user(acting_user_id)

        members = [GroupMember(user_id=acting_user_id, role=MemberRole.ADMIN)]
        for user_id in dict.fromkeys(member_ids):
            if user_id == acting_user_id:
                continue
            if await self._users.get_user(user_id) is None:
                raise NotFoundError("One or more members not found")
            members.append(GroupMember(user_id=user_id))

        group = Group(
            name=name,
            description=description or "",
            created_by=acting_user_id,
            members=members,
        )
        async with self._storage.transaction():
            await self._storage.save_group(group)

        await self._audit.log_group_created(
            group.id, group.name, len(group.members), acting_user_id
        )
        return group

    async def get_group(self, acting_user_id: UUID, group_id: UUID) -> Group:
        """A group, visible only to its members."""
        return await self.require_membership(group_id, acting_user_id)

    async def list_groups_for_user(self, user_id: UUID) -> list[Group]:
        return [g for g in await self._storage.list_groups() if g.is_member(user_id)]

    async def update_group(
        self,
        acting_user_id: UUID,
        group_id: UUID,
        name: Optional[str] = None,
        description: Optional[str] = None,
        add_member_ids: Iterable[UUID] = (),
        remove_member_ids: Iterable[UUID] = (),
    ) -> Group:
        """
        Rename, re-describe and change membership in one step.

        Adds are applied before removals. Members already present are
        not added twice.
        """
        add_member_ids = list(dict.fromkeys(add_member_ids))
        remove_member_ids = set(remove_member_ids)

        async with self._storage.transaction():
            group = await self._load_as_admin(group_id, acting_user_id, "modify the group")
            changes: dict = {}

            if name:
                group.name = name
                changes["name"] = name
            if description:
                group.description = description
                changes["description"] = description

            for user_id in add_member_ids:
                if group.is_member(user_id):
                    continue
                await self._users.require_user(user_id)
                group.members.append(GroupMember(user_id=user_id))
                changes.setdefault("added", []).append(str(user_id))

            if remove_member_ids:
                self._check_removal(group, remove_member_ids)
                group.members = [
                    m for m in group.members if m.user_id not in remove_member_ids
                ]
                changes["removed"] = sorted(str(u) for u in remove_member_ids)

            group = Group.model_validate(group.model_dump())
            await self._storage.update_group(group)

        await self._audit.log_group_updated(group.id, changes, acting_user_id)
        return group

    def _check_removal(self, group: Group, user_ids: set[UUID]) -> None:
        if group.created_by in user_ids:
            raise ValidationError("Cannot remove group creator")
        remaining_admins = [
            m for m in group.members
            if m.role == MemberRole.ADMIN and m.user_id not in user_ids
        ]
        if not remaining_admins:
            raise ValidationError("A group must keep at least one admin")

    async def add_member(
        self,
        acting_user_id: UUID,
        group_id: UUID,
        user_id: UUID,
    ) -> Group:
        """
        Raises:
            NotFoundError: If the group or the user doesn't exist
            ForbiddenError: If the acting user is not an admin
            ValidationError: If the user is already a member
        """
        async with self._storage.transaction():
            group = await self._load_as_admin(group_id, acting_user_id, "add members")
            await self._users.require_user(user_id)
            if group.is_member(user_id):
                raise ValidationError("User is already a member")

            group.members.append(GroupMember(user_id=user_id))
            await self._storage.update_group(group)

        await self._audit.log_group_updated(
            group.id, {"added": [str(user_id)]}, acting_user_id
        )
        return group

    async def remove_member(
        self,
        acting_user_id: UUID,
        group_id: UUID,
        user_id: UUID,
    ) -> Group:
        """
        Raises:
            NotFoundError: If the group doesn't exist or the user is not in it
            ForbiddenError: If the acting user is not an admin
            ValidationError: If the user is the creator or the last admin
        """
        async with self._storage.transaction():
            group = await self._load_as_admin(group_id, acting_user_id, "remove members")
            if not group.is_member(user_id):
                raise NotFoundError("User is not a member of this group")
            self._check_removal(group, {user_id})

            group.members = [m for m in group.members if m.user_id != user_id]
            await self._storage.update_group(group)

        await self._audit.log_group_updated(
            group.id, {"removed": [str(user_id)]}, acting_user_id
        )
        return group

    async def delete_group(self, acting_user_id: UUID, group_id: UUID) -> bool:
        """
        Delete a group with all its expenses and settlements.

        Raises:
            NotFoundError: If the group doesn't exist
            ForbiddenError: If the acting user is not the creator
        """
        async with self._storage.transaction():
            group = await self._load(group_id)
            if group.created_by != acting_user_id:
                raise ForbiddenError("Only group creator can delete the group")

            expenses = await self._storage.list_expenses_by_group(group_id)
            settlements = await self._storage.list_settlements_by_group(group_id)

            for expense in expenses:
                await self._ledger.reverse_expense_splits(expense.splits, expense.payer_id)
                await self._storage.delete_expense(expense.id)
            for settlement in settlements:
                await self._ledger.reverse_settlement(settlement)
                await self._storage.delete_settlement(settlement.id)

            await self._storage.delete_group(group_id)

        await self._audit.log_group_deleted(
            group_id, len(expenses), len(settlements), acting_user_id
        )
        return True
