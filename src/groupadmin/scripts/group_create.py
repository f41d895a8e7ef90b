"""CLI script to create a security, Microsoft 365, distribution or mail-enabled security group."""

import argparse
import asyncio
import logging
import sys

from groupadmin.core.cli import add_verbose_argument, setup_logging
from groupadmin.core.config import get_org_config
from groupadmin.core.constants import ExitCode
from groupadmin.core.identifiers import is_email_shaped, is_valid_alias, mail_nickname_from
from groupadmin.entra.groups import EntraGroupManager, GroupType
from groupadmin.entra.users import EntraUserManager
from groupadmin.exchange.client import ExchangeOnlineClient
from groupadmin.scripts.common import describe_group

logger = logging.getLogger(__name__)

# CLI --type value -> group type
GROUP_TYPES: dict[str, GroupType] = {
    "security": GroupType.SECURITY,
    "m365": GroupType.MICROSOFT_365,
    "distribution": GroupType.DISTRIBUTION,
    "mail-security": GroupType.MAIL_ENABLED_SECURITY,
}


def default_owner() -> str | None:
    """Owner from config/organization.json, if configured."""
    try:
        return get_org_config().default_owner
    except (FileNotFoundError, RuntimeError, KeyError) as e:
        logger.debug(f"No organization config: {e}")
        return None


async def run_create_group(
    name: str,
    group_type: GroupType,
    alias: str | None = None,
    description: str | None = None,
    owner: str | None = None,
    private: bool = False,
    strict: bool = False,
    dry_run: bool = False,
) -> int:
    """Create a group unless one with the same alias or name exists.

    Args:
        name: Display name of the new group
        group_type: Type of group to create
        alias: Mail nickname (generated from name if not given)
        description: Group description
        owner: Owner email address or UPN
        private: Create a Microsoft 365 group as Private
        strict: Treat an existing group as a failure
        dry_run: Show what would be done without making changes

    Returns:
        Exit code
    """
    name = name.strip()
    alias = alias.strip() if alias else mail_nickname_from(name)

    if not name:
        logger.error("Group name must not be empty")
        return ExitCode.VALIDATION
    if not is_valid_alias(alias):
        logger.error(f"Invalid alias '{alias}': use letters, digits and . - _ (max 64)")
        return ExitCode.VALIDATION
    if owner and not is_email_shaped(owner):
        logger.error(f"Invalid owner '{owner}': expected an email address or UPN")
        return ExitCode.VALIDATION

    logger.info("=" * 50)
    logger.info(f"Create {group_type.value} group: {name}")
    logger.info("=" * 50)
    if dry_run:
        logger.info("DRY RUN - no group will be created")

    try:
        group_manager = EntraGroupManager()
        existing = await group_manager.get_group_by_mail_nickname(alias)
        if existing is None:
            existing = await group_manager.get_group_by_name(name)
    except Exception as e:
        logger.error(f"Failed to check for existing groups: {e}")
        return ExitCode.FAILURE

    if existing:
        logger.info(f"Group already exists: {describe_group(existing)}")
        return ExitCode.FAILURE if strict else ExitCode.SUCCESS

    if dry_run:
        logger.info(f"Would create {group_type.value} group '{name}' with alias '{alias}'")
        if owner:
            logger.info(f"  Owner: {owner}")
        return ExitCode.SUCCESS

    if group_type in (GroupType.DISTRIBUTION, GroupType.MAIL_ENABLED_SECURITY):
        try:
            exchange_client = ExchangeOnlineClient()
        except ValueError as e:
            logger.error(str(e))
            return ExitCode.FAILURE

        created = await exchange_client.create_distribution_group(
            name=name,
            alias=alias,
            security=group_type == GroupType.MAIL_ENABLED_SECURITY,
            managed_by=owner,
            notes=description,
        )
        await exchange_client.close()
        if created is None:
            return ExitCode.FAILURE
        logger.info(f"Created: {created.display_name} <{created.primary_smtp_address}>")
        return ExitCode.SUCCESS

    owner_id = None
    if owner:
        try:
            user = await EntraUserManager().get_user(owner)
        except Exception as e:
            logger.error(f"Failed to look up owner {owner}: {e}")
            return ExitCode.FAILURE
        if user is None:
            logger.error(f"Owner not found: {owner}")
            return ExitCode.NOT_FOUND
        owner_id = user.id

    created = await group_manager.create_group(
        display_name=name,
        group_type=group_type,
        description=description,
        mail_nickname=alias,
        owner_id=owner_id,
        private=private,
    )
    if created is None:
        return ExitCode.FAILURE

    logger.info(f"Created: {describe_group(created)}")
    return ExitCode.SUCCESS


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Create a group in Entra ID or Exchange Online",
    )
    parser.add_argument("name", help="Display name of the new group")
    parser.add_argument(
        "--type",
        choices=list(GROUP_TYPES),
        default="security",
        help="Group type (default: security)",
    )
    parser.add_argument(
        "--alias",
        help="Mail nickname (default: generated from the name)",
    )
    parser.add_argument("--description", help="Group description")
    parser.add_argument(
        "--owner",
        help="Owner email address or UPN (default: default_owner from organization.json)",
    )
    parser.add_argument(
        "--private",
        action="store_true",
        help="Create a Microsoft 365 group as Private (default: Public)",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Exit with an error if the group already exists",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be done without making changes",
    )
    add_verbose_argument(parser)

    args = parser.parse_args()
    setup_logging(args.verbose)

    exit_code = asyncio.run(
        run_create_group(
            name=args.name,
            group_type=GROUP_TYPES[args.type],
            alias=args.alias,
            description=args.description,
            owner=args.owner or default_owner(),
            private=args.private,
            strict=args.strict,
            dry_run=args.dry_run,
        )
    )
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
