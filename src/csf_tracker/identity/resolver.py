"""
Identity resolver.

Turns free-text person references from CSV cells and Jira exports into
stable user ids, creating users on first sight. Resolving the same reference
twice always yields the same id.
"""

from typing import Iterable, Optional, Union

import structlog

from csf_tracker.identity.directory import UserDirectory
from csf_tracker.identity.parser import parse_identity

logger = structlog.get_logger(__name__)

LIST_SEPARATOR = ";"


class IdentityResolver:
    """Find-or-create users from ``Name <email>`` strings."""

    def __init__(self, directory: UserDirectory):
        self.directory = directory

    def resolve(self, raw: Optional[str]) -> Optional[str]:
        """Return the id of the user ``raw`` refers to.

        Matches on email (case-insensitively) first, then on exact name, and
        otherwise creates a new user. Blank input resolves to None.
        """
        parsed = parse_identity(raw)
        if parsed is None:
            return None

        if parsed.email:
            existing = self.directory.get_by_email(parsed.email)
            if existing is not None:
                return existing.id

        existing = self.directory.get_by_name(parsed.name)
        if existing is not None:
            return existing.id

        user = self.directory.create({"name": parsed.name, "email": parsed.email})
        logger.info("user_created", user_id=user.id, name=user.name, email=user.email)
        return user.id

    def resolve_many(self, raw: Union[str, Iterable[str], None]) -> list[str]:
        """Resolve a semicolon-separated cell or a list of references."""
        if raw is None:
            return []
        parts = raw.split(LIST_SEPARATOR) if isinstance(raw, str) else raw
        ids: list[str] = []
        for part in parts:
            user_id = self.resolve(part)
            if user_id and user_id not in ids:
                ids.append(user_id)
        return ids

    def format_user(self, user_id: Optional[str]) -> str:
        return self.directory.format_user(user_id)

    def format_users(self, user_ids: Iterable[str]) -> str:
        return self.directory.format_users(user_ids)
