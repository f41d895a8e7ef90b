"""Identifier classification and validation.

Every script accepts free-form identifiers for groups and recipients: object
ids, email addresses, aliases (mail nicknames) or display names. This module
decides which kind a string is, validates email-shaped input before anything
is sent to a remote service, and escapes literals for the two query languages
the scripts speak (OData $filter and PowerShell).
"""

import logging
import re
from enum import Enum
from uuid import UUID

from email_validator import EmailNotValidError
from email_validator import validate_email as ev

from groupadmin.core.constants import MAX_MAIL_NICKNAME_LENGTH

logger = logging.getLogger(__name__)

# Mail nickname: dot-separated atoms of RFC 5322 local-part characters
_ALIAS_ATOM = r"[A-Za-z0-9!#$%&'*+\-/=?^_`{|}~]+"
ALIAS_PATTERN = re.compile(rf"^{_ALIAS_ATOM}(\.{_ALIAS_ATOM})*$")


class IdentifierKind(Enum):
    """What a free-form identifier looks like."""

    OBJECT_ID = "object_id"
    EMAIL = "email"
    ALIAS = "alias"
    NAME = "name"


def is_email_shaped(value: str | None) -> bool:
    """Check whether a string is a syntactically valid email address.

    Deliverability is not checked; this runs before any remote call.
    Special-use domains such as ``corp.local`` or ``example.test`` are
    rejected.
    """
    if not value or not value.strip():
        return False
    try:
        ev(value.strip(), check_deliverability=False)
    except EmailNotValidError as e:
        logger.debug(f"Not an email address '{value}': {e}")
        return False
    return True


def is_object_id(value: str | None) -> bool:
    """Check whether a string is a directory object id (GUID)."""
    if not value:
        return False
    try:
        UUID(value.strip())
    except ValueError:
        return False
    return True


def is_valid_alias(value: str | None) -> bool:
    """Check whether a string can be used as a mail nickname."""
    if not value:
        return False
    return len(value) <= MAX_MAIL_NICKNAME_LENGTH and bool(ALIAS_PATTERN.match(value))


def classify_identifier(value: str) -> IdentifierKind:
    """Classify a free-form identifier.

    Args:
        value: Identifier as typed by the user

    Returns:
        IdentifierKind for the stripped value
    """
    value = value.strip()
    if is_object_id(value):
        return IdentifierKind.OBJECT_ID
    if "@" in value and is_email_shaped(value):
        return IdentifierKind.EMAIL
    if is_valid_alias(value):
        return IdentifierKind.ALIAS
    return IdentifierKind.NAME


def normalize_email(email: str | None) -> str | None:
    """Normalize email for comparison (lowercase, stripped).

    Args:
        email: Email address

    Returns:
        Lowercase stripped email or None
    """
    if not email:
        return None
    return email.lower().strip() or None


def odata_quote(value: str) -> str:
    """Escape a literal for use inside single quotes in an OData $filter."""
    return value.replace("'", "''")


def ps_quote(value: str) -> str:
    """Escape a literal for use inside a single-quoted PowerShell string."""
    return value.replace("'", "''")


def mail_nickname_from(display_name: str) -> str:
    """Generate a mail nickname from a display name.

    Keeps alphanumerics and ``-``, ``_``, ``.``; drops everything else.

    Args:
        display_name: Group display name

    Returns:
        Mail nickname, at most MAX_MAIL_NICKNAME_LENGTH characters
    """
    nickname = "".join(c for c in display_name if c.isascii() and (c.isalnum() or c in "-_."))
    nickname = re.sub(r"\.{2,}", ".", nickname).strip(".")
    return nickname[:MAX_MAIL_NICKNAME_LENGTH].rstrip(".")


def smtp_addresses(proxy_addresses: list[str] | None) -> list[str]:
    """Extract lowercase SMTP addresses from a proxyAddresses list.

    Both the primary (``SMTP:``) and secondary (``smtp:``) entries are kept;
    other address types (X500, SIP) are dropped.
    """
    if not proxy_addresses:
        return []
    return [
        address[5:].lower().strip()
        for address in proxy_addresses
        if address.lower().startswith("smtp:")
    ]
