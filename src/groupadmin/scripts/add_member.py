"""CLI script to add a single member to a group."""

import argparse
import asyncio
import logging
import sys

from groupadmin.core.cli import add_verbose_argument, setup_logging
from groupadmin.core.constants import ExitCode
from groupadmin.core.membership import is_member_identifier
from groupadmin.entra.groups import EntraGroupManager
from groupadmin.entra.resolver import IdentifierResolver
from groupadmin.entra.users import EntraUserManager
from groupadmin.exchange.client import ExchangeOnlineClient
from groupadmin.scripts.common import MemberAdder, describe_group, find_single_group

logger = logging.getLogger(__name__)


async def run_add_member(
    group_identifier: str,
    member: str,
    strict: bool = False,
    dry_run: bool = False,
) -> int:
    """Add one member to a group.

    Args:
        group_identifier: Group id, email address, alias or display name
        member: Member email address, UPN or object id
        strict: Only resolve the member on object id, primary mail and UPN
        dry_run: Show what would be done without making changes

    Returns:
        Exit code
    """
    member = member.strip()
    if not is_member_identifier(member):
        logger.error(f"Invalid member '{member}': expected an email address, UPN or object ID")
        return ExitCode.VALIDATION

    try:
        group_manager = EntraGroupManager()
        group = await find_single_group(group_manager, group_identifier)
        if group is None:
            return ExitCode.NOT_FOUND

        logger.info(f"Group: {describe_group(group)}")
        exchange_client = ExchangeOnlineClient() if group.is_exchange_managed else None
        resolver = IdentifierResolver(EntraUserManager(), group_manager)
        adder = MemberAdder(group, group_manager, resolver, exchange_client)
        result = await adder.add_members([member], strict=strict, dry_run=dry_run)
    except Exception as e:
        logger.error(f"Failed to add {member}: {e}")
        return ExitCode.FAILURE

    if result.not_found or result.ambiguous:
        return ExitCode.NOT_FOUND
    if result.failed:
        return ExitCode.FAILURE
    return ExitCode.SUCCESS


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Add a member to a group")
    parser.add_argument("group", help="Group object ID, email, alias or display name")
    parser.add_argument("member", help="Member email address, UPN or object ID")
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Only match the member on primary email and UPN (no aliases)",
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
        run_add_member(
            group_identifier=args.group,
            member=args.member,
            strict=args.strict,
            dry_run=args.dry_run,
        )
    )
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
