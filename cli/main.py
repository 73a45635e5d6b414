"""CLI entry point."""

import os
import sys
from typing import Optional

from common.logging_config import setup_logging
from cli.commands import dispatch
from cli.constants import EXIT_FAILED, EXIT_USAGE, HELP_TEXT
from cli.parser import ParseError, parse_command


def main(argv: Optional[list[str]] = None) -> int:
    """
    Entry point for CLI.

    Args:
        argv: Arguments without the program name (defaults to sys.argv[1:])

    Returns:
        Process exit code
    """
    argv = list(sys.argv[1:] if argv is None else argv)
    debug = '--debug' in argv
    if debug:
        argv.remove('--debug')

    log_level = 'DEBUG' if debug else os.getenv('LOG_LEVEL', 'WARNING')
    logger = setup_logging('cli', log_level=log_level)
    setup_logging('publisher', log_level=log_level)

    if debug:
        logger.info("Debug logging enabled")

    try:
        cmd = parse_command(argv)
    except ParseError as e:
        print(f"Error: {e}\n\n{HELP_TEXT}", file=sys.stderr)
        return EXIT_USAGE

    logger.info(f"Running {cmd.command}")
    try:
        result = dispatch(cmd)
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return EXIT_FAILED
    except Exception as e:
        logger.error(f"CLI error: {e}", exc_info=True)
        raise

    stream = sys.stderr if result.exit_code == EXIT_USAGE else sys.stdout
    print(result.message, file=stream)
    return result.exit_code


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
