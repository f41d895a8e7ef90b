"""CLI script to resolve an alias, UPN or email address to directory recipients."""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict

from groupadmin.core.cli import add_verbose_argument, setup_logging
from groupadmin.core.constants import ExitCode
from groupadmin.core.identifiers import is_email_shaped, is_object_id
from groupadmin.entra.groups import EntraGroupManager
from groupadmin.entra.resolver import IdentifierResolver, Resolution, ResolutionStatus
from groupadmin.entra.users import EntraUserManager

logger = logging.getLogger(__name__)


def print_resolution(resolution: Resolution) -> None:
    """Print every candidate, marking the winner."""
    print(f"Identifier: {resolution.identifier}")
    print(f"Status:     {resolution.status.value}")
    if not resolution.candidates:
        return
    print()
    for candidate in resolution.candidates:
        marker = "*" if candidate is resolution.match else " "
        print(
            f" {marker} {candidate.display_name or '?':30s}  {candidate.address:40s}  "
            f"[{candidate.object_type}, {candidate.matched_on.label}]"
        )
        if candidate.upn and candidate.upn != candidate.address:
            print(f"   {'':30s}  UPN: {candidate.upn}")


def resolution_to_dict(resolution: Resolution) -> dict:
    """JSON-serializable form of a resolution."""

    def candidate_dict(candidate) -> dict:
        data = asdict(candidate)
        data["matched_on"] = candidate.matched_on.label
        return data

    return {
        "identifier": resolution.identifier,
        "status": resolution.status.value,
        "match": candidate_dict(resolution.match) if resolution.match else None,
        "candidates": [candidate_dict(c) for c in resolution.candidates],
    }


async def run_resolve(
    identifier: str,
    strict: bool = False,
    include_groups: bool = False,
    as_json: bool = False,
) -> int:
    """Resolve an identifier and print the candidates.

    Args:
        identifier: Email address, UPN, alias, display name or object id
        strict: Only match object id, primary mail and UPN
        include_groups: Also match mail-enabled groups
        as_json: Print JSON instead of text

    Returns:
        Exit code
    """
    identifier = identifier.strip()
    if not identifier:
        logger.error("Identifier must not be empty")
        return ExitCode.VALIDATION
    if strict and not (is_email_shaped(identifier) or is_object_id(identifier)):
        logger.error(f"--strict requires an email address, UPN or object ID, got '{identifier}'")
        return ExitCode.VALIDATION

    try:
        groups = EntraGroupManager() if include_groups else None
        resolver = IdentifierResolver(EntraUserManager(), groups)
        resolution = await resolver.resolve(
            identifier, strict=strict, include_groups=include_groups
        )
    except Exception as e:
        logger.error(f"Failed to resolve {identifier}: {e}")
        return ExitCode.FAILURE

    if as_json:
        print(json.dumps(resolution_to_dict(resolution), indent=2))
    else:
        print_resolution(resolution)

    if resolution.status == ResolutionStatus.AMBIGUOUS:
        logger.error(f"'{identifier}' is ambiguous: {len(resolution.candidates)} candidates")
        return ExitCode.NOT_FOUND
    if resolution.status == ResolutionStatus.NOT_FOUND:
        logger.error(f"No recipient found for '{identifier}'")
        return ExitCode.NOT_FOUND
    return ExitCode.SUCCESS


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Resolve an alias, UPN or email address to directory recipients",
    )
    parser.add_argument("identifier", help="Email address, UPN, alias, display name or object ID")
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Only match primary email and UPN (no proxy addresses, aliases or names)",
    )
    parser.add_argument(
        "--include-groups",
        action="store_true",
        help="Also match mail-enabled groups",
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
        run_resolve(
            identifier=args.identifier,
            strict=args.strict,
            include_groups=args.include_groups,
            as_json=args.json,
        )
    )
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
