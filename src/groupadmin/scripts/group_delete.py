"""CLI script to delete a group."""

import argparse
import asyncio
import logging
import sys

from groupadmin.core.cli import add_verbose_argument, confirm, setup_logging
from groupadmin.core.constants import ExitCode
from groupadmin.entra.groups import EntraGroupManager
from groupadmin.exchange.client import ExchangeOnlineClient
from groupadmin.scripts.common import describe_group, exchange_identity, find_single_group

logger = logging.getLogger(__name__)


async def run_delete_group(
    identifier: str,
    force: bool = False,
    dry_run: bool = False,
) -> int:
    """Delete a group after confirmation.

    Distribution lists and mail-enabled security groups are removed through
    Exchange Online; other groups through Graph.

    Args:
        identifier: Group id, email address, alias or display name
        force: Skip the confirmation prompt
        dry_run: Show what would be deleted without deleting

    Returns:
        Exit code
    """
    try:
        group_manager = EntraGroupManager()
        group = await find_single_group(group_manager, identifier)
    except Exception as e:
        logger.error(f"Group lookup failed: {e}")
        return ExitCode.FAILURE

    if group is None:
        return ExitCode.NOT_FOUND

    logger.info(f"Group: {describe_group(group)}")

    if dry_run:
        logger.info("DRY RUN - would delete this group")
        return ExitCode.SUCCESS

    if not force and not confirm(f"Delete group '{group.display_name}'?"):
        logger.info("Aborted, nothing deleted")
        return ExitCode.SUCCESS

    if group.is_exchange_managed:
        try:
            exchange_client = ExchangeOnlineClient()
        except ValueError as e:
            logger.error(str(e))
            return ExitCode.FAILURE
        deleted = await exchange_client.delete_distribution_group(exchange_identity(group))
        await exchange_client.close()
    else:
        deleted = await group_manager.delete_group(group.id)

    if not deleted:
        return ExitCode.FAILURE

    logger.info(f"Deleted group: {group.display_name}")
    return ExitCode.SUCCESS


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Delete a group")
    parser.add_argument("identifier", help="Group object ID, email, alias or display name")
    parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Delete without asking for confirmation",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be deleted without deleting",
    )
    add_verbose_argument(parser)

    args = parser.parse_args()
    setup_logging(args.verbose)

    exit_code = asyncio.run(
        run_delete_group(
            identifier=args.identifier,
            force=args.force,
            dry_run=args.dry_run,
        )
    )
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
