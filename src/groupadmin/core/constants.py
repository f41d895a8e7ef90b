"""Constants shared by the group administration scripts.

- ExitCode: process exit codes returned by every script
- EMAIL_COLUMNS: CSV header names recognized as the member column
- EXPORT_COLUMNS: CSV header written by the member export
"""

from enum import IntEnum

__all__ = ["EMAIL_COLUMNS", "EXPORT_COLUMNS", "MAX_MAIL_NICKNAME_LENGTH", "ExitCode"]


class ExitCode(IntEnum):
    """Process exit codes."""

    SUCCESS = 0
    FAILURE = 1  # Remote query or mutation failed
    NOT_FOUND = 2  # Target not found, or matched more than one object
    VALIDATION = 3  # Input rejected before any remote call


# Member CSV column names, checked case-insensitively in this order
EMAIL_COLUMNS: tuple[str, ...] = ("Email", "UserPrincipalName")

EXPORT_COLUMNS: list[str] = ["DisplayName", "Email", "UserPrincipalName", "ObjectType", "Id"]

MAX_MAIL_NICKNAME_LENGTH = 64
