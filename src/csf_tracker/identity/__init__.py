"""Identity resolution: free-text person references to stable user ids."""

from csf_tracker.identity.parser import ParsedIdentity, normalize_email, parse_identity
from csf_tracker.identity.directory import UNASSIGNED, UNKNOWN_USER, UserDirectory
from csf_tracker.identity.resolver import IdentityResolver

__all__ = [
    "ParsedIdentity",
    "normalize_email",
    "parse_identity",
    "UNASSIGNED",
    "UNKNOWN_USER",
    "UserDirectory",
    "IdentityResolver",
]
