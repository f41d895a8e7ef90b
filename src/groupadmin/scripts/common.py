"""Group lookup and membership helpers shared by the CLI scripts."""

import logging

from groupadmin.core.membership import BulkAddResult, plan_additions
from groupadmin.entra.groups import EntraGroup, EntraGroupManager
from groupadmin.entra.resolver import DirectoryMatch, IdentifierResolver, ResolutionStatus
from groupadmin.exchange.client import ExchangeOnlineClient

logger = logging.getLogger(__name__)


def describe_group(group: EntraGroup) -> str:
    """One-line description of a group for log output."""
    mail = f" <{group.mail}>" if group.mail else ""
    return f"{group.display_name}{mail} [{group.group_type.value}] (ID: {group.id})"


def exchange_identity(group: EntraGroup) -> str:
    """Identity Exchange Online accepts for a group synced from Entra ID."""
    return group.mail or group.id


async def find_single_group(group_manager: EntraGroupManager, identifier: str) -> EntraGroup | None:
    """Find exactly one group for an identifier, logging why when that fails.

    Args:
        group_manager: Entra group manager
        identifier: Object id, email address, alias or display name

    Returns:
        The group, or None if nothing or more than one group matched
    """
    groups = await group_manager.find_groups(identifier)

    if not groups:
        logger.error(f"Group not found: {identifier}")
        suggestions = await group_manager.search_groups(identifier)
        if suggestions:
            logger.info("Groups with a similar name:")
            for group in suggestions:
                logger.info(f"  {describe_group(group)}")
        return None

    if len(groups) > 1:
        logger.error(f"'{identifier}' matches {len(groups)} groups; use the group ID or email:")
        for group in groups:
            logger.error(f"  {describe_group(group)}")
        return None

    return groups[0]


async def current_member_keys(group_manager: EntraGroupManager, group: EntraGroup) -> set[str]:
    """Lowercase ids, addresses and UPNs of a group's direct members.

    Graph can read the membership of every group type, including the
    Exchange-managed ones it cannot change.
    """
    keys: set[str] = set()
    for member in await group_manager.get_group_members(group.id):
        keys |= member.identifiers
    return keys


class MemberAdder:
    """Add members to one group, through Graph or Exchange Online as the group requires.

    The current membership is fetched once; every identifier is checked
    against it with a set lookup, resolved to a directory object, checked
    again by object id, then added. Failures are logged and counted, never
    retried.
    """

    def __init__(
        self,
        group: EntraGroup,
        group_manager: EntraGroupManager,
        resolver: IdentifierResolver,
        exchange_client: ExchangeOnlineClient | None = None,
    ) -> None:
        """Initialize the adder.

        Args:
            group: Target group
            group_manager: Entra group manager
            resolver: Resolver for member identifiers
            exchange_client: Required when the group is Exchange-managed
        """
        if group.is_exchange_managed and exchange_client is None:
            raise ValueError(f"{group.display_name} is managed by Exchange Online")
        self.group = group
        self.group_manager = group_manager
        self.resolver = resolver
        self.exchange_client = exchange_client

    async def _add(self, match: DirectoryMatch) -> bool:
        if self.group.is_exchange_managed:
            return await self.exchange_client.add_distribution_group_member(
                exchange_identity(self.group), match.address
            )
        return await self.group_manager.add_member(self.group.id, match.object_id)

    async def add_members(
        self,
        identifiers: list[str],
        strict: bool = False,
        dry_run: bool = False,
    ) -> BulkAddResult:
        """Add member identifiers that are not already in the group.

        Args:
            identifiers: Member identifiers (email addresses, UPNs, object ids)
            strict: Only resolve on object id, primary mail and UPN
            dry_run: Resolve and report without adding

        Returns:
            BulkAddResult with every identifier counted once
        """
        result = BulkAddResult()
        current = await current_member_keys(self.group_manager, self.group)
        logger.info(f"{self.group.display_name} has {len(current)} member identifiers")

        plan = plan_additions(identifiers, current)
        result.invalid.extend(plan.invalid)
        result.skipped_existing.extend(plan.already_members)
        for identifier in plan.invalid:
            logger.warning(f"Skipping invalid identifier: {identifier}")
        for identifier in plan.already_members:
            logger.info(f"Already a member: {identifier}")
        if plan.duplicates:
            logger.info(f"Ignoring {len(plan.duplicates)} duplicate rows")

        for identifier in plan.to_add:
            try:
                resolution = await self.resolver.resolve(identifier, strict=strict)
            except Exception as e:
                logger.error(f"Failed to resolve {identifier}: {e}")
                result.failed.append(identifier)
                continue

            if resolution.status == ResolutionStatus.NOT_FOUND:
                logger.warning(f"Not found: {identifier}")
                result.not_found.append(identifier)
                continue

            if resolution.status == ResolutionStatus.AMBIGUOUS:
                count = len(resolution.candidates)
                logger.warning(f"Ambiguous: {identifier} matches {count} objects")
                for candidate in resolution.candidates:
                    logger.warning(
                        f"  {candidate.display_name} <{candidate.address}> "
                        f"({candidate.matched_on.label})"
                    )
                result.ambiguous.append(identifier)
                continue

            match = resolution.match
            if match.object_id.lower() in current:
                logger.info(f"Already a member: {identifier} ({match.address})")
                result.skipped_existing.append(identifier)
                continue

            if dry_run:
                logger.info(f"Would add: {identifier} -> {match.display_name} <{match.address}>")
                result.added.append(identifier)
            elif await self._add(match):
                result.added.append(identifier)
            else:
                result.failed.append(identifier)
                continue

            # Another row may name the same object by a different address
            current.add(match.object_id.lower())

        return result
