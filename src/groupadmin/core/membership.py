"""Membership planning for bulk additions."""

from collections.abc import Iterable
from dataclasses import dataclass, field

from groupadmin.core.identifiers import is_email_shaped, is_object_id, normalize_email


@dataclass
class MembershipPlan:
    """Desired identifiers split against the current membership."""

    to_add: list[str] = field(default_factory=list)
    already_members: list[str] = field(default_factory=list)
    invalid: list[str] = field(default_factory=list)
    duplicates: list[str] = field(default_factory=list)


@dataclass
class BulkAddResult:
    """Counters for one bulk membership run."""

    added: list[str] = field(default_factory=list)
    skipped_existing: list[str] = field(default_factory=list)
    not_found: list[str] = field(default_factory=list)
    ambiguous: list[str] = field(default_factory=list)
    invalid: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def skipped(self) -> int:
        """Rows skipped without an attempted change."""
        return (
            len(self.skipped_existing)
            + len(self.not_found)
            + len(self.ambiguous)
            + len(self.invalid)
        )

    @property
    def has_failures(self) -> bool:
        """Check if any attempted addition failed."""
        return bool(self.failed)


def member_key(identifier: str) -> str:
    """Key used to compare member identifiers (lowercase, stripped)."""
    return normalize_email(identifier) or ""


def is_member_identifier(identifier: str) -> bool:
    """Check if an identifier is acceptable as a member (email or object id)."""
    return is_email_shaped(identifier) or is_object_id(identifier)


def plan_additions(
    desired: Iterable[str],
    current: set[str],
    validate: bool = True,
) -> MembershipPlan:
    """Split desired member identifiers into what to add and what to skip.

    Args:
        desired: Member identifiers in input order
        current: Lowercase identifiers (ids, addresses, UPNs) of current members
        validate: If True, reject identifiers that are not email-shaped or object ids

    Returns:
        MembershipPlan with to_add in input order
    """
    plan = MembershipPlan()
    seen: set[str] = set()

    for identifier in desired:
        key = member_key(identifier)
        if not key:
            continue
        if validate and not is_member_identifier(key):
            plan.invalid.append(identifier.strip())
            continue
        if key in seen:
            plan.duplicates.append(key)
            continue
        seen.add(key)
        if key in current:
            plan.already_members.append(key)
        else:
            plan.to_add.append(key)

    return plan
