"""CLI script to look up a group by id, email address, alias or display name."""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict

from groupadmin.core.cli import add_verbose_argument, setup_logging
from groupadmin.core.constants import ExitCode
from groupadmin.entra.groups import EntraGroup, EntraGroupManager, GroupMember
from groupadmin.scripts.common import find_single_group

logger = logging.getLogger(__name__)


def print_group(group: EntraGroup) -> None:
    """Print group details."""
    print(f"Display name:  {group.display_name}")
    print(f"ID:            {group.id}")
    print(f"Type:          {group.group_type.value}")
    print(f"Mail:          {group.mail or '-'}")
    print(f"Alias:         {group.mail_nickname or '-'}")
    if group.visibility:
        print(f"Visibility:    {group.visibility}")
    if group.description:
        print(f"Description:   {group.description}")
    aliases = [a for a in group.smtp_addresses if a != (group.mail or "").lower()]
    if aliases:
        print("Other addresses:")
        for address in aliases:
            print(f"  {address}")
    if group.is_exchange_managed:
        print("Managed by:    Exchange Online")


def print_members(members: list[GroupMember]) -> None:
    """Print a member table."""
    print()
    print(f"Members ({len(members)}):")
    for member in sorted(members, key=lambda m: (m.display_name or "").lower()):
        address = member.email or member.upn or ""
        print(f"  {member.display_name or '?':35s}  {address:40s}  [{member.object_type}]")


async def run_lookup(
    identifier: str,
    show_members: bool = False,
    transitive: bool = False,
    as_json: bool = False,
) -> int:
    """Look up a group and print it.

    Args:
        identifier: Group id, email address, alias or display name
        show_members: Also list members
        transitive: List members of nested groups too
        as_json: Print JSON instead of text

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

    members: list[GroupMember] = []
    if show_members:
        try:
            members = await group_manager.get_group_members(group.id, transitive=transitive)
        except Exception as e:
            logger.error(f"Failed to fetch members of {group.display_name}: {e}")
            return ExitCode.FAILURE

    if as_json:
        data = asdict(group)
        data["group_type"] = group.group_type.value
        if show_members:
            data["members"] = [asdict(m) for m in members]
        print(json.dumps(data, indent=2))
    else:
        print_group(group)
        if show_members:
            print_members(members)

    return ExitCode.SUCCESS


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Look up a group by object ID, email address, alias or display name",
    )
    parser.add_argument("identifier", help="Group object ID, email, alias or display name")
    parser.add_argument(
        "--members",
        action="store_true",
        help="Also list group members",
    )
    parser.add_argument(
        "--transitive",
        action="store_true",
        help="Include members of nested groups (implies --members)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print JSON instead of text",
    )
    add_verbose_argument(parser)

    args = parser.parse_args()
    setup_logging(args.verbose)

    exit_code = asyncio.run(
        run_lookup(
            identifier=args.identifier,
            show_members=args.members or args.transitive,
            transitive=args.transitive,
            as_json=args.json,
        )
    )
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
