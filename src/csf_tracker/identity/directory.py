"""
User directory.

The directory is the store of ``User`` records. Users are never deleted so
that every id referenced from another store keeps resolving.
"""

from typing import Iterable, Optional

import structlog

from csf_tracker.core.errors import ValidationError
from csf_tracker.identity.parser import normalize_email
from csf_tracker.models.user import User
from csf_tracker.core.store import EntityStore

logger = structlog.get_logger(__name__)

UNASSIGNED = "Unassigned"
UNKNOWN_USER = "Unknown"


class UserDirectory(EntityStore[User]):
    """Store of known users with lookups by email and name."""

    store_name = "users"
    collection = "users"
    model = User

    def get_by_email(self, email: Optional[str]) -> Optional[User]:
        """Case-insensitive email lookup."""
        wanted = (normalize_email(email) or "").lower()
        if not wanted:
            return None
        for user in self._items:
            if user.normalized_email == wanted:
                return user.model_copy(deep=True)
        return None

    def get_by_name(self, name: Optional[str]) -> Optional[User]:
        """Exact (whitespace-trimmed) name lookup."""
        wanted = (name or "").strip()
        if not wanted:
            return None
        for user in self._items:
            if user.name == wanted:
                return user.model_copy(deep=True)
        return None

    def delete(self, key: str) -> bool:
        raise ValidationError(
            "Users cannot be deleted; other records may still reference them",
            entity_id=key,
        )

    def display_name(self, user_id: Optional[str]) -> str:
        """Human label for a user reference, tolerating dangling ids."""
        if not user_id:
            return UNASSIGNED
        user = self.get(user_id)
        return user.name if user else UNKNOWN_USER

    def format_user(self, user_id: Optional[str]) -> str:
        """Render a user as ``Name <email>`` for CSV output.

        None and dangling ids render as an empty string.
        """
        if not user_id:
            return ""
        user = self.get(user_id)
        if user is None:
            return ""
        if user.email:
            return f"{user.name} <{user.email}>"
        return user.name

    def format_users(self, user_ids: Iterable[str]) -> str:
        return "; ".join(label for label in (self.format_user(i) for i in user_ids) if label)

    def fix_email_addresses(self) -> int:
        """Repair stored addresses with a duplicated domain.

        Returns:
            Number of users changed.
        """
        broken = [
            user.id for user in self._items
            if user.email and normalize_email(user.email) != user.email
        ]
        if not broken:
            return 0
        changed = self.bulk_update_items(
            broken, lambda user: {"email": normalize_email(user.email)}
        )
        logger.info("user_emails_fixed", count=changed)
        return changed

    def _prepare_create(self, raw: dict) -> dict:
        raw["email"] = normalize_email(raw.get("email"))
        email = raw["email"]
        existing = self.get_by_email(email) if email else None
        if existing is not None and existing.id != raw.get("id"):
            raise ValidationError(
                f"A user with email '{email}' already exists",
                field="email",
            )
        return raw

    def _prepare_update(self, current: User, fields: dict) -> dict:
        if "email" in fields:
            fields["email"] = normalize_email(fields["email"])
            other = self.get_by_email(fields["email"])
            if other is not None and other.id != current.id:
                raise ValidationError(
                    f"A user with email '{fields['email']}' already exists",
                    field="email",
                    entity_id=current.id,
                )
        return fields
