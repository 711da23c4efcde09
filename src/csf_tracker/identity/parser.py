"""Parsing of free-text person references such as ``Amy Lee <amy@x.com>``."""

import re
from dataclasses import dataclass
from typing import Optional

# Greedy prefix so the last <...> group is taken as the email.
NAME_EMAIL_PATTERN = re.compile(r"^(.*)<([^<>]*)>\s*$")


@dataclass(frozen=True)
class ParsedIdentity:
    name: str
    email: Optional[str] = None


def normalize_email(email: Optional[str]) -> Optional[str]:
    """Trim an address and collapse a repeated domain (``a@x.com@x.com``)."""
    if email is None:
        return None
    email = email.strip()
    if not email:
        return None
    parts = email.split("@")
    if len(parts) > 2 and len(set(parts[1:])) == 1:
        email = f"{parts[0]}@{parts[1]}"
    return email


def name_from_email(email: str) -> str:
    local_part = email.split("@", 1)[0]
    name = re.sub(r"[._]+", " ", local_part).strip()
    return name or email


def parse_identity(raw: Optional[str]) -> Optional[ParsedIdentity]:
    """Split a person reference into name and email.

    Accepts ``Name <email>``, a bare email address, or a bare name. Returns
    None for blank input.
    """
    if raw is None:
        return None
    text = str(raw).strip()
    if not text:
        return None

    match = NAME_EMAIL_PATTERN.match(text)
    if match:
        name = match.group(1).strip()
        email = normalize_email(match.group(2))
        if email:
            return ParsedIdentity(name=name or name_from_email(email), email=email)
        if name:
            return ParsedIdentity(name=name)
        return None

    if "@" in text:
        email = normalize_email(text)
        return ParsedIdentity(name=name_from_email(email), email=email)

    return ParsedIdentity(name=text)
