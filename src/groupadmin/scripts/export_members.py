"""CLI script to export group members to the console or a CSV file."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from groupadmin.core.cli import add_verbose_argument, setup_logging
from groupadmin.core.constants import ExitCode
from groupadmin.core.csv_io import write_member_csv
from groupadmin.entra.groups import EntraGroupManager
from groupadmin.scripts.common import describe_group, find_single_group
from groupadmin.scripts.group_lookup import print_members

logger = logging.getLogger(__name__)


async def run_export(
    group_identifier: str,
    output: Path | None = None,
    transitive: bool = False,
) -> int:
    """Export the members of a group.

    Args:
        group_identifier: Group id, email address, alias or display name
        output: CSV file to write; members are printed as a table when None
        transitive: Include members of nested groups

    Returns:
        Exit code
    """
    try:
        group_manager = EntraGroupManager()
        group = await find_single_group(group_manager, group_identifier)
        if group is None:
            return ExitCode.NOT_FOUND
        members = await group_manager.get_group_members(group.id, transitive=transitive)
    except Exception as e:
        logger.error(f"Failed to fetch members: {e}")
        return ExitCode.FAILURE

    logger.info(f"Group: {describe_group(group)}")
    members.sort(key=lambda m: ((m.display_name or "").lower(), m.id))

    if output is None:
        print_members(members)
        return ExitCode.SUCCESS

    try:
        count = write_member_csv((m.to_row() for m in members), output)
    except OSError as e:
        logger.error(f"Failed to write {output}: {e}")
        return ExitCode.FAILURE

    logger.info(f"Exported {count} members to {output}")
    return ExitCode.SUCCESS


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Export the members of a group")
    parser.add_argument("group", help="Group object ID, email, alias or display name")
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        help="Write members to this CSV file instead of printing them",
    )
    parser.add_argument(
        "--transitive",
        action="store_true",
        help="Include members of nested groups",
    )
    add_verbose_argument(parser)

    args = parser.parse_args()
    setup_logging(args.verbose)

    exit_code = asyncio.run(
        run_export(
            group_identifier=args.group,
            output=args.output,
            transitive=args.transitive,
        )
    )
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
