"""
Group Financial Aggregator

Builds the group detail view from the stored expenses and settlements of
one group. ALWAYS a full recomputation; nothing here reads or writes the
global Balance table.
"""

from uuid import UUID

import structlog

from splitmate.errors import ForbiddenError, NotFoundError
from splitmate.ledger.netting import build_raw_ledger, credits_of, debts_of, net_ledger
from splitmate.models.ledger import GroupFinancials, MemberBalance, MemberSummary
from splitmate.services.storage import LedgerStorageInterface


logger = structlog.get_logger()


class GroupFinancialAggregator:
    """Computes per-member totals and the netted who-owes-whom ledger."""

    def __init__(self, storage: LedgerStorageInterface):
        self._storage = storage

    async def get_group_financials(
        self,
        acting_user_id: UUID,
        group_id: UUID,
    ) -> GroupFinancials:
        """
        Raises:
            NotFoundError: If the group doesn't exist
            ForbiddenError: If the acting user is not a member
        """
        group = await self._storage.get_group(group_id)
        if group is None:
            raise NotFoundError("Group not found")
        if not group.is_member(acting_user_id):
            raise ForbiddenError("You are not a member of this group")

        expenses = await self._storage.list_expenses_by_group(group_id)
        settlements = await self._storage.list_settlements_by_group(group_id)

        members = []
        for member in group.members:
            user = await self._storage.get_user(member.user_id)
            if user is None:
                logger.warning(
                    "Group member has no user record",
                    group_id=str(group_id),
                    user_id=str(member.user_id),
                )
                continue
            members.append(MemberSummary(
                id=user.id,
                name=user.name,
                email=user.email,
                image_url=user.image_url,
                role=member.role,
            ))

        member_ids = [m.id for m in members]
        totals, raw = build_raw_ledger(member_ids, expenses, settlements)
        ledger = net_ledger(raw)

        balances = [
            MemberBalance(
                user_id=m.id,
                name=m.name,
                role=m.role,
                total_balance=totals[m.id],
                owes=debts_of(ledger, m.id),
                owed_by=credits_of(ledger, m.id),
            )
            for m in members
        ]

        return GroupFinancials(
            group_id=group.id,
            name=group.name,
            description=group.description,
            members=members,
            expenses=expenses,
            settlements=settlements,
            balances=balances,
        )
