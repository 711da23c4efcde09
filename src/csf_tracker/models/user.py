"""
User model.

Users are referenced by id from controls, assessments, findings and
remediation plans. They are created lazily by the identity resolver and are
never deleted, so historical references keep resolving.
"""

from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator


class User(BaseModel):
    """A person who owns, audits or remediates something."""
    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    email: Optional[str] = None
    title: Optional[str] = None

    @field_validator('name')
    @classmethod
    def _strip_name(cls, value: str) -> str:
        return value.strip()

    @field_validator('email')
    @classmethod
    def _blank_email_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None

    @property
    def normalized_email(self) -> Optional[str]:
        return self.email.lower() if self.email else None
