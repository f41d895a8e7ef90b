"""CLI script to add members to a group from a CSV file."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from groupadmin.core.cli import add_verbose_argument, setup_logging
from groupadmin.core.constants import ExitCode
from groupadmin.core.csv_io import read_member_rows
from groupadmin.core.membership import BulkAddResult
from groupadmin.entra.groups import EntraGroupManager
from groupadmin.entra.resolver import IdentifierResolver
from groupadmin.entra.users import EntraUserManager
from groupadmin.exchange.client import ExchangeOnlineClient
from groupadmin.scripts.common import MemberAdder, describe_group, find_single_group

logger = logging.getLogger(__name__)


def print_result(result: BulkAddResult, dry_run: bool = False) -> None:
    """Print bulk add results."""
    logger.info("")
    logger.info("=" * 50)
    logger.info("Summary")
    logger.info("=" * 50)
    logger.info(f"  {'Would add' if dry_run else 'Added'}: {len(result.added)}")
    logger.info(f"  Skipped: {result.skipped}")
    logger.info(f"  Already members: {len(result.skipped_existing)}")
    if result.not_found:
        logger.info(f"  Not found: {len(result.not_found)}")
        for identifier in result.not_found:
            logger.info(f"    - {identifier}")
    if result.ambiguous:
        logger.info(f"  Ambiguous: {len(result.ambiguous)}")
        for identifier in result.ambiguous:
            logger.info(f"    - {identifier}")
    if result.invalid:
        logger.info(f"  Invalid: {len(result.invalid)}")
        for identifier in result.invalid:
            logger.info(f"    - {identifier}")
    if result.failed:
        logger.info(f"  Failed: {len(result.failed)}")
        for identifier in result.failed:
            logger.info(f"    - {identifier}")


async def run_bulk_add(
    group_identifier: str,
    csv_path: Path,
    column: str | None = None,
    strict: bool = False,
    dry_run: bool = False,
) -> int:
    """Add every member listed in a CSV file to a group.

    Args:
        group_identifier: Group id, email address, alias or display name
        csv_path: CSV file with an Email/UserPrincipalName column or one identifier per row
        column: Explicit column name to read
        strict: Only resolve members on object id, primary mail and UPN
        dry_run: Show what would be done without making changes

    Returns:
        Exit code
    """
    try:
        rows = read_member_rows(csv_path, column=column)
    except (FileNotFoundError, ValueError) as e:
        logger.error(str(e))
        return ExitCode.VALIDATION

    if not rows:
        logger.error(f"No member rows in {csv_path}")
        return ExitCode.VALIDATION

    logger.info("=" * 50)
    logger.info(f"Bulk add from {csv_path}")
    logger.info("=" * 50)
    if dry_run:
        logger.info("DRY RUN - no members will be added")

    try:
        group_manager = EntraGroupManager()
        group = await find_single_group(group_manager, group_identifier)
        if group is None:
            return ExitCode.NOT_FOUND

        logger.info(f"Group: {describe_group(group)}")
        exchange_client = ExchangeOnlineClient() if group.is_exchange_managed else None
        resolver = IdentifierResolver(EntraUserManager(), group_manager)
        adder = MemberAdder(group, group_manager, resolver, exchange_client)
        identifiers = [row.value for row in rows]
        result = await adder.add_members(identifiers, strict=strict, dry_run=dry_run)
    except Exception as e:
        logger.error(f"Bulk add failed: {e}")
        return ExitCode.FAILURE

    print_result(result, dry_run=dry_run)
    return ExitCode.FAILURE if result.has_failures else ExitCode.SUCCESS


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Add members listed in a CSV file to a group",
    )
    parser.add_argument("group", help="Group object ID, email, alias or display name")
    parser.add_argument(
        "csv",
        type=Path,
        help="CSV file with an Email or UserPrincipalName column, or one address per row",
    )
    parser.add_argument(
        "--column",
        help="Name of the CSV column holding member addresses",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Only match members on primary email and UPN (no aliases)",
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
        run_bulk_add(
            group_identifier=args.group,
            csv_path=args.csv,
            column=args.column,
            strict=args.strict,
            dry_run=args.dry_run,
        )
    )
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
