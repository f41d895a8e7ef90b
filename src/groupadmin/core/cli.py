"""Helpers shared by the CLI scripts."""

import argparse
import logging

# Loggers that log every HTTP request at INFO
NOISY_LOGGERS = ("azure", "httpx", "httpcore", "msal")


def setup_logging(verbose: bool = False) -> None:
    """Configure console logging for a script run."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def add_verbose_argument(parser: argparse.ArgumentParser) -> None:
    """Add the -v/--verbose flag every script accepts."""
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )


def confirm(prompt: str) -> bool:
    """Ask a yes/no question on the terminal. Anything but y/yes is no."""
    try:
        answer = input(f"{prompt} [y/N]: ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")
