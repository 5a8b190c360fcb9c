"""
Command-line interface for the importAndProcess command.

Parses ``importAndProcess <importAndSave|importAndBuild> <path-to-project>
<path-to-toolchain>``, loads the configuration, runs the command and exits
with the code the run produced.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from ..config import get_config
from ..models.invocation import ExitCode, ImportMode, InvocationArgs
from ..validation import ValidationError, handle_cli_error, validate_directory
from .orchestrator import create_runner

# --- Logging Setup ---
# stdout is reserved for service messages.
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)-5.5s] %(name)s:%(filename)s:%(lineno)d\t %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)


class _UsageArgumentParser(argparse.ArgumentParser):
    """ArgumentParser whose errors exit with the invalid-arguments code."""

    def error(self, message: str) -> None:
        self.print_usage(sys.stderr)
        self.exit(int(ExitCode.INVALID_ARGS), f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = _UsageArgumentParser(
        prog="importAndProcess",
        add_help=False,
        description="Import an external project into a project model and optionally build it.",
    )
    parser.add_argument(
        "mode",
        choices=ImportMode.choices(),
        help="importAndSave imports and saves the project, importAndBuild also compiles it.",
    )
    parser.add_argument("project_path", type=Path, help="Directory holding the project description.")
    parser.add_argument("toolchain_path", type=Path, help="Home directory of the toolchain (e.g. a JDK).")
    return parser


def parse_invocation(argv: Optional[List[str]] = None) -> InvocationArgs:
    """
    Parse and validate the command line.

    Raises:
        SystemExit: With INVALID_ARGS on any malformed argument vector.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        project_path = validate_directory(args.project_path, field_name="path-to-project")
    except ValidationError as e:
        parser.print_usage(sys.stderr)
        handle_cli_error(
            error=e,
            context="argument validation",
            exit_code=ExitCode.INVALID_ARGS,
            include_traceback=False,
            logger=logger,
        )

    return InvocationArgs(
        mode=ImportMode(args.mode),
        source_path=project_path,
        toolchain_path=args.toolchain_path,
    )


def main_cli(argv: Optional[List[str]] = None) -> None:
    """
    Main command-line entry point.

    Raises:
        SystemExit: Always, carrying the exit code of the run.
    """
    invocation = parse_invocation(argv)

    try:
        app_config = get_config()
    except Exception as e:
        handle_cli_error(
            error=e,
            context="configuration loading",
            exit_code=ExitCode.INVALID_ARGS,
            include_traceback=True,
            logger=logger,
        )

    logging.getLogger().setLevel(app_config.reporting.log_level.upper())

    runner = create_runner(app_config)
    exit_code = runner.process_command(invocation)
    logger.info(f"Finished with exit code {int(exit_code)} ({exit_code.name})")
    sys.exit(int(exit_code))


if __name__ == "__main__":
    main_cli()
