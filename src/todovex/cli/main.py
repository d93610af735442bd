# src/todovex/cli/main.py

"""
CLI entrypoint.

Loads settings once, initializes logging, fails fast on missing secrets,
builds AppState and runs one sub-command.
"""

from __future__ import annotations

import asyncio
import logging
import sys

from ..config import Settings
from ..errors import ConfigurationError, TodovexError, friendly_error_message
from ..logging_setup import setup_logging
from .bootstrap import create_app
from .commands import build_parser

logger = logging.getLogger(__name__)


async def _run(settings: Settings, args) -> int:
    state = create_app(settings)
    try:
        return await args.handler(state, args)
    finally:
        await state.aclose()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings.from_env(args.env_file)

    level_name = str(settings.log_level).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    # keep noisy libs readable
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)

    try:
        settings.validate()
    except ConfigurationError as e:
        logger.error("%s", e)
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    subtask = args.command == "suggest-subtasks"
    try:
        return asyncio.run(_run(settings, args))
    except TodovexError as e:
        logger.error("%s failed: %s (%s)", args.command, e, e.kind.value)
        print(friendly_error_message(e, subtask=subtask), file=sys.stderr)
        return 1
    except Exception as e:
        logger.exception("%s failed", args.command)
        if args.command in ("suggest", "suggest-subtasks"):
            print(friendly_error_message(e, subtask=subtask), file=sys.stderr)
        else:
            print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
