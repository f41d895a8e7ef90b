"""Resolve free-form identifiers to directory users and groups.

A recipient can be addressed by its primary mail, its UPN, any secondary SMTP
address in proxyAddresses, an alternate address in otherMails, its alias or
its display name. The same string can match different objects on different
fields, so each field is queried separately, results are merged by object id,
and each candidate keeps the most specific field it matched on. The most
specific field wins only when exactly one candidate holds it.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum

from groupadmin.core.identifiers import IdentifierKind, classify_identifier, odata_quote
from groupadmin.entra.groups import EntraGroup, EntraGroupManager
from groupadmin.entra.users import EntraUser, EntraUserManager

logger = logging.getLogger(__name__)


class MatchField(Enum):
    """Field an identifier matched on, most specific first."""

    OBJECT_ID = 0
    MAIL = 1
    UPN = 2
    PROXY_ADDRESS = 3
    OTHER_MAIL = 4
    ALIAS = 5
    DISPLAY_NAME = 6

    @property
    def label(self) -> str:
        """Human-readable field name."""
        return self.name.lower().replace("_", " ")


# Fields that count in strict mode
STRICT_FIELDS = frozenset({MatchField.OBJECT_ID, MatchField.MAIL, MatchField.UPN})


class ResolutionStatus(Enum):
    """Outcome of resolving one identifier."""

    RESOLVED = "resolved"
    NOT_FOUND = "not_found"
    AMBIGUOUS = "ambiguous"


@dataclass
class DirectoryMatch:
    """A directory object an identifier matched."""

    object_id: str
    object_type: str
    display_name: str | None
    email: str | None
    upn: str | None
    matched_on: MatchField

    @property
    def address(self) -> str:
        """Best address to show for this object."""
        return self.email or self.upn or self.object_id


@dataclass
class Resolution:
    """Result of resolving one identifier."""

    identifier: str
    candidates: list[DirectoryMatch] = field(default_factory=list)
    match: DirectoryMatch | None = None

    @property
    def status(self) -> ResolutionStatus:
        """Whether the identifier resolved to exactly one object."""
        if self.match:
            return ResolutionStatus.RESOLVED
        if self.candidates:
            return ResolutionStatus.AMBIGUOUS
        return ResolutionStatus.NOT_FOUND


def user_queries(identifier: str, strict: bool = False) -> list[tuple[MatchField, str, bool]]:
    """Build the user queries for an identifier.

    Args:
        identifier: Email address, alias or display name (not an object id)
        strict: Only query primary mail and UPN

    Returns:
        List of (field, filter expression, advanced query) tuples
    """
    value = odata_quote(identifier.strip())
    kind = classify_identifier(identifier)

    if kind == IdentifierKind.EMAIL:
        queries = [
            (MatchField.MAIL, f"mail eq '{value}'", False),
            (MatchField.UPN, f"userPrincipalName eq '{value}'", False),
        ]
        if not strict:
            queries += [
                (MatchField.PROXY_ADDRESS, f"proxyAddresses/any(p:p eq 'smtp:{value}')", True),
                (MatchField.OTHER_MAIL, f"otherMails/any(m:m eq '{value}')", False),
            ]
        return queries

    if strict:
        return []
    if kind == IdentifierKind.ALIAS:
        return [
            (MatchField.ALIAS, f"mailNickname eq '{value}'", False),
            (MatchField.ALIAS, f"startswith(userPrincipalName,'{value}@')", False),
        ]
    return [(MatchField.DISPLAY_NAME, f"displayName eq '{value}'", False)]


def group_queries(identifier: str, strict: bool = False) -> list[tuple[MatchField, str, bool]]:
    """Build the group queries for an identifier.

    Groups have no UPN or otherMails; the remaining fields mirror user_queries.
    """
    value = odata_quote(identifier.strip())
    kind = classify_identifier(identifier)

    if kind == IdentifierKind.EMAIL:
        queries = [(MatchField.MAIL, f"mail eq '{value}'", False)]
        if not strict:
            queries.append(
                (MatchField.PROXY_ADDRESS, f"proxyAddresses/any(p:p eq 'smtp:{value}')", True)
            )
        return queries

    if strict:
        return []
    if kind == IdentifierKind.ALIAS:
        return [(MatchField.ALIAS, f"mailNickname eq '{value}'", False)]
    return [(MatchField.DISPLAY_NAME, f"displayName eq '{value}'", False)]


def pick_match(candidates: list[DirectoryMatch]) -> DirectoryMatch | None:
    """Pick the single candidate with the most specific match field.

    Returns:
        The winner, or None if there are no candidates or several share the best field
    """
    if not candidates:
        return None
    best = min(c.matched_on.value for c in candidates)
    winners = [c for c in candidates if c.matched_on.value == best]
    return winners[0] if len(winners) == 1 else None


class IdentifierResolver:
    """Resolve identifiers against Entra ID users (and optionally groups)."""

    def __init__(
        self,
        users: EntraUserManager,
        groups: EntraGroupManager | None = None,
    ) -> None:
        """Initialize the resolver.

        Args:
            users: User manager used for user queries
            groups: Group manager; required to resolve groups
        """
        self.users = users
        self.groups = groups

    @staticmethod
    def _user_match(user: EntraUser, matched_on: MatchField) -> DirectoryMatch:
        return DirectoryMatch(
            object_id=user.id,
            object_type="user",
            display_name=user.display_name,
            email=user.email,
            upn=user.upn,
            matched_on=matched_on,
        )

    @staticmethod
    def _group_match(group: EntraGroup, matched_on: MatchField) -> DirectoryMatch:
        return DirectoryMatch(
            object_id=group.id,
            object_type="group",
            display_name=group.display_name,
            email=group.mail,
            upn=None,
            matched_on=matched_on,
        )

    async def resolve(
        self,
        identifier: str,
        strict: bool = False,
        include_groups: bool = False,
    ) -> Resolution:
        """Resolve an identifier to directory objects.

        Args:
            identifier: Object id, email address, alias or display name
            strict: Only accept object id, primary mail and UPN matches
            include_groups: Also match mail-enabled groups

        Returns:
            Resolution with all candidates and the winner, if any

        Raises:
            ValueError: If include_groups is set without a group manager
        """
        if include_groups and self.groups is None:
            raise ValueError("Resolving groups requires a group manager")

        identifier = identifier.strip()
        found: dict[str, DirectoryMatch] = {}

        def record(match: DirectoryMatch) -> None:
            existing = found.get(match.object_id)
            if existing is None or match.matched_on.value < existing.matched_on.value:
                found[match.object_id] = match

        if classify_identifier(identifier) == IdentifierKind.OBJECT_ID:
            user = await self.users.get_user(identifier)
            if user:
                record(self._user_match(user, MatchField.OBJECT_ID))
            elif include_groups:
                group = await self.groups.get_group(identifier)
                if group:
                    record(self._group_match(group, MatchField.OBJECT_ID))
        else:
            for matched_on, filter_expr, advanced in user_queries(identifier, strict):
                for user in await self.users.query_users(filter_expr, advanced=advanced):
                    record(self._user_match(user, matched_on))
            if include_groups:
                for matched_on, filter_expr, advanced in group_queries(identifier, strict):
                    for group in await self.groups.query_groups(filter_expr, advanced=advanced):
                        record(self._group_match(group, matched_on))

        candidates = sorted(
            found.values(),
            key=lambda c: (c.matched_on.value, (c.display_name or "").lower()),
        )
        resolution = Resolution(identifier=identifier, candidates=candidates)
        resolution.match = pick_match(candidates)

        logger.debug(
            f"Resolved '{identifier}': {resolution.status.value} "
            f"({len(candidates)} candidate{'s' if len(candidates) != 1 else ''})"
        )
        return resolution
