"""Centralized logging configuration for CLI commands."""

import logging
import os


def configure_logging(verbose: bool) -> None:
    """Configure logging levels based on the verbose flag.

    Called once at CLI startup. Shows INFO+ with ``--verbose`` and WARNING+
    otherwise.

    Args:
        verbose: If True, show INFO+ logs. If False, show only WARNING+ logs.
    """
    # Tests manage their own logging
    if os.getenv("PYTEST_CURRENT_TEST"):
        return

    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=logging.INFO if verbose else logging.WARNING,
            format="%(levelname)s: %(message)s",
        )
    else:
        logging.getLogger().setLevel(logging.INFO if verbose else logging.WARNING)

    if not verbose:
        logging.getLogger("stepflow").setLevel(logging.WARNING)
