from __future__ import annotations

import logging
import sys
from pathlib import Path

from .logging import configure_logging

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Console entry point: configure logging, then hand off to the Typer app."""
    if argv is None:
        argv = sys.argv[1:]

    configure_logging(Path("logs"))

    from .cli import run_cli

    try:
        run_cli(argv)
        return 0
    except SystemExit as e:
        return e.code if isinstance(e.code, int) else 0
    except Exception as e:
        logger.error("CLI error: %s", e, exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
