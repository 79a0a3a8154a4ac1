"""
User Directory

Registers users and turns the free-text names a command mentions into
user identities.

NAME RESOLUTION: Each name is tried against four strategies in order.
The first strategy with any match wins, and within a strategy the first
user in directory order wins:

1. Exact name, case-insensitive
2. Word overlap: some word of the name is contained in some word of
   the user's name, or the other way round ("Ali" finds "Alice Smith")
3. Exact email, case-insensitive
4. The user's name contains the whole search text

This is a heuristic. "Ann" can match "Anna" or "Anne"; whichever was
registered first is used.
"""

from typing import Iterable, Optional
from uuid import UUID

import structlog

from splitmate.audit import AuditLogger
from splitmate.errors import NotFoundError, UnresolvedMembersError, ValidationError
from splitmate.models.ledger import User
from splitmate.services.storage import LedgerStorageInterface


logger = structlog.get_logger()


def _exact_name(needle: str, user: User) -> bool:
    return user.name.strip().lower() == needle


def _word_overlap(needle: str, user: User) -> bool:
    user_words = user.name.strip().lower().split()
    return any(
        user_word in word or word in user_word
        for word in needle.split()
        for user_word in user_words
    )


def _exact_email(needle: str, user: User) -> bool:
    return user.email.strip().lower() == needle


def _name_contains(needle: str, user: User) -> bool:
    return needle in user.name.lower()


MATCH_STRATEGIES = (_exact_name, _word_overlap, _exact_email, _name_contains)


def match_member(name: str, users: list[User]) -> Optional[User]:
    """Resolve one name against the directory; None if nothing matches."""
    needle = name.strip().lower()
    if not needle:
        return None
    for strategy in MATCH_STRATEGIES:
        for user in users:
            if strategy(needle, user):
                return user
    return None


class UserDirectory:
    """Lookup and registration of users."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit = audit_logger or AuditLogger()

    async def register_user(
        self,
        name: str,
        email: str,
        image_url: Optional[str] = None,
    ) -> User:
        """
        Create a user at signup.

        Raises:
            ValidationError: If the email is already registered
        """
        user = User(name=name, email=email, image_url=image_url)

        async with self._storage.transaction():
            if await self.find_by_email(user.email) is not None:
                raise ValidationError(f"Email already registered: {user.email}")
            await self._storage.save_user(user)

        await self._audit.log_user_registered(user.id, user.name)
        return user

    async def get_user(self, user_id: UUID) -> Optional[User]:
        return await self._storage.get_user(user_id)

    async def require_user(self, user_id: UUID) -> User:
        """
        Raises:
            NotFoundError: If the user doesn't exist
        """
        user = await self._storage.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def list_users(self) -> list[User]:
        return await self._storage.list_users()

    async def find_by_email(self, email: str) -> Optional[User]:
        needle = email.strip().lower()
        for user in await self._storage.list_users():
            if user.email.strip().lower() == needle:
                return user
        return None

    async def resolve_member_names(self, names: Iterable[str]) -> list[User]:
        """
        Resolve every name or fail as a whole.

        Returns users in the order the names were given.

        Raises:
            UnresolvedMembersError: Listing the names that matched nobody
                and every known display name
        """
        users = await self._storage.list_users()
        resolved = []
        unresolved = []

        for name in names:
            user = match_member(name, users)
            if user is None:
                logger.info("Member name not resolved", name=name)
                unresolved.append(name)
            else:
                logger.debug("Member name resolved", name=name, user_id=str(user.id))
                resolved.append(user)

        if unresolved:
            raise UnresolvedMembersError(
                unresolved=unresolved,
                available=[u.name for u in users if u.name],
            )
        return resolved
