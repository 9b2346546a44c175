"""Wingman entry point."""

import logging
import os
import sys

from dotenv import find_dotenv, load_dotenv

from .cli import run_cli
from .logging import configure_logger


def main() -> None:
    """Main entry point."""
    load_dotenv(find_dotenv(usecwd=True))

    logging.basicConfig(
        level=os.getenv("WINGMAN_LOG_LEVEL", "WARNING").upper(),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    configure_logger(os.getenv("WINGMAN_LOG_DIR") or None)

    sys.exit(run_cli(sys.argv[1:]))


if __name__ == "__main__":
    main()
