"""CLI script to hide a recipient from, or show it in, the global address list.

Works for mailboxes, mail users, contacts, distribution lists, mail-enabled
security groups and Microsoft 365 groups. Visibility is an Exchange Online
property, so every change goes through Exchange Online PowerShell.
"""

import argparse
import asyncio
import logging
import sys

from groupadmin.core.cli import add_verbose_argument, setup_logging
from groupadmin.core.constants import ExitCode
from groupadmin.exchange.client import (
    ExchangeCommandError,
    ExchangeOnlineClient,
    ExchangeRecipient,
)

logger = logging.getLogger(__name__)


def visibility_label(hidden: bool) -> str:
    """Word used in output for a HiddenFromAddressListsEnabled value."""
    return "hidden" if hidden else "visible"


def print_status(recipient: ExchangeRecipient) -> None:
    """Print a recipient's current address list visibility."""
    print(f"Recipient: {recipient.display_name} <{recipient.primary_smtp_address}>")
    print(f"Type:      {recipient.recipient_type_details}")
    print(f"GAL:       {visibility_label(recipient.hidden_from_address_lists)}")


async def run_gal_visibility(
    identifier: str,
    hide: bool | None = None,
    dry_run: bool = False,
) -> int:
    """Show or change the GAL visibility of a recipient.

    Args:
        identifier: Email address, alias or name of the recipient
        hide: True to hide, False to show, None to only report the status
        dry_run: Show what would change without changing it

    Returns:
        Exit code
    """
    identifier = identifier.strip()
    if not identifier:
        logger.error("Identifier must not be empty")
        return ExitCode.VALIDATION

    try:
        client = ExchangeOnlineClient()
    except ValueError as e:
        logger.error(str(e))
        return ExitCode.FAILURE

    try:
        try:
            recipient = await client.get_recipient(identifier)
        except ExchangeCommandError as e:
            logger.error(f"Recipient lookup failed: {e}")
            return ExitCode.FAILURE
        if recipient is None:
            logger.error(f"Recipient not found: {identifier}")
            return ExitCode.NOT_FOUND

        if hide is None:
            print_status(recipient)
            return ExitCode.SUCCESS

        address = recipient.primary_smtp_address or recipient.identity
        if recipient.hidden_from_address_lists == hide:
            logger.info(f"{address} is already {visibility_label(hide)}, nothing to do")
            return ExitCode.SUCCESS

        if recipient.visibility_cmdlet is None:
            logger.error(
                f"Address list visibility of {recipient.recipient_type_details} "
                f"recipients cannot be changed"
            )
            return ExitCode.FAILURE

        if dry_run:
            logger.info(f"DRY RUN - would make {address} {visibility_label(hide)}")
            return ExitCode.SUCCESS

        if not await client.set_hidden_from_address_lists(recipient, hide):
            return ExitCode.FAILURE
    finally:
        await client.close()

    return ExitCode.SUCCESS


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Hide a recipient from, or show it in, the global address list",
    )
    parser.add_argument("identifier", help="Recipient email address, alias or name")
    action = parser.add_mutually_exclusive_group(required=True)
    action.add_argument(
        "--hide",
        dest="hide",
        action="store_const",
        const=True,
        help="Hide the recipient from the address lists",
    )
    action.add_argument(
        "--show",
        dest="hide",
        action="store_const",
        const=False,
        help="Show the recipient in the address lists",
    )
    action.add_argument(
        "--status",
        action="store_true",
        help="Only report the current visibility",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would change without changing it",
    )
    add_verbose_argument(parser)

    args = parser.parse_args()
    setup_logging(args.verbose)

    exit_code = asyncio.run(
        run_gal_visibility(
            identifier=args.identifier,
            hide=None if args.status else args.hide,
            dry_run=args.dry_run,
        )
    )
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
