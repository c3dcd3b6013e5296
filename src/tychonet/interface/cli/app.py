from __future__ import annotations

"""
Command Line Interface (CLI) Application Controller.

Orchestrates the CLI lifecycle: logging bootstrap, settings loading, wiring
of the operator services, command dispatch and reply rendering. One-shot
commands run synchronously; the console command keeps the process alive
so freeze timers and dispatched resets can report back.
"""

import argparse
import shlex
import sys
from typing import IO, List, Optional

from tychonet.core.services.operator import Operator
from tychonet.domain.errors import ConfigurationError, PersistenceError, TychonetError
from tychonet.domain.models import ConfigKind, Origin, Reply, ResetResult
from tychonet.domain.settings import load_settings
from tychonet.infra.logging import LoggingConfig, configure_logging, get_logger
from tychonet.interface.cli import args as cli_args
from tychonet.interface.cli.render import ConsoleNotifier, render_reply
from tychonet.utils.i18n import i18n

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130

_QUIT_WORDS = ("quit", "exit")


# -----------------------------------------------------------------------------
# ENTRYPOINT ORCHESTRATOR
# -----------------------------------------------------------------------------

def main(argv: Optional[List[str]] = None) -> int:
    """
    Execute one CLI invocation.

    Args:
        argv: Optional list of command line arguments. Defaults to sys.argv.

    Returns:
        int: 0 on success, 1 on a failed command, 2 on usage or settings
            errors, 130 when interrupted.
    """
    # 1. Argument parsing phase
    parser = cli_args.build_parser()
    args = parser.parse_args(argv)

    # 2. Settings
    try:
        settings, _warnings = load_settings(args.settings_file)
    except ConfigurationError as e:
        print(f"ERROR: {i18n.t('cli.errors.settings', error=e)}", file=sys.stderr)
        return EXIT_USAGE

    # 3. Logging bootstrap
    log_level = "DEBUG" if args.debug else settings.log_level
    configure_logging(LoggingConfig(level=log_level, console=True, log_file=settings.log_file))
    logger.debug(f"CLI command '{args.command}' initiated")

    # 4. Service wiring
    notifier = ConsoleNotifier(attachments_dir=args.attachments_dir)
    try:
        operator = Operator.from_settings(settings, notifier)
    except (ConfigurationError, PersistenceError, ValueError) as e:
        logger.error(f"Startup failed: {e}")
        print(f"ERROR: {i18n.t('cli.errors.settings', error=e)}", file=sys.stderr)
        return EXIT_USAGE

    origin = cli_args.args_to_origin(args)
    interactive = args.command == "console"

    # 5. Execution phase
    try:
        operator.start(record_commit=interactive)
        if interactive:
            return run_console(operator, origin)
        return execute(operator, args, origin)
    except KeyboardInterrupt:
        print(i18n.t("cli.status.interrupted"), file=sys.stderr)
        return EXIT_INTERRUPTED
    except TychonetError as e:
        logger.error(f"Command failed: {e}")
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_FAILURE
    finally:
        operator.shutdown(wait=True)


# -----------------------------------------------------------------------------
# COMMAND DISPATCH
# -----------------------------------------------------------------------------

def execute(
        operator: Operator,
        args: argparse.Namespace,
        origin: Origin,
        wait: bool = True,
        out: Optional[IO[str]] = None,
) -> int:
    """
    Run one parsed command and print its reply.

    Raises:
        TychonetError: Parse, document, registry or persistence errors.
    """
    out = out or sys.stdout
    result = dispatch(operator, args, origin, wait=wait)

    if isinstance(result, Reply):
        print(render_reply(result), file=out, flush=True)
        return EXIT_OK
    if isinstance(result, ResetResult):
        # progress and outcome were already printed by the notifier
        return EXIT_OK if result.ok else EXIT_FAILURE
    return EXIT_OK


def dispatch(operator: Operator, args: argparse.Namespace, origin: Origin, wait: bool = True):
    command = args.command
    action = getattr(args, "action", None)

    if command == "status":
        return operator.status(args.network)
    if command == "param":
        return operator.get_param(args.param, args.network)
    if command == "account":
        return operator.get_account(args.address, args.network)
    if command == "commit":
        return operator.get_commit()

    if command == "config":
        kind = ConfigKind(args.kind)
        expr = cli_args.join_expr(args.expr)
        if action == "get":
            return operator.get_config(kind, expr)
        return operator.set_config(origin, kind, expr)

    if command == "freeze":
        return operator.freeze(origin, cli_args.join_expr(args.expr), args.network)
    if command == "unfreeze":
        return operator.unfreeze(origin, args.network)

    if command == "reset":
        return operator.reset(origin, cli_args.join_expr(args.params), wait=wait)
    if command == "reset-type":
        if action == "get":
            return operator.get_reset_type()
        return operator.set_reset_type(origin, args.value)

    if command == "workspace":
        if action == "get":
            return operator.get_workspace()
        if action == "set":
            return operator.set_workspace(origin, args.expr)
        return operator.delete_workspace(origin, args.name)

    if command == "network":
        if action == "get":
            return operator.get_network()
        return operator.set_network(origin, args.name)

    raise ValueError(f"unknown command: {command}")


# -----------------------------------------------------------------------------
# INTERACTIVE CONSOLE
# -----------------------------------------------------------------------------

def run_console(
        operator: Operator,
        origin: Origin,
        stdin: Optional[IO[str]] = None,
        out: Optional[IO[str]] = None,
) -> int:
    """
    Read commands line by line until EOF or `quit`.

    Resets are dispatched to the worker pool so the console stays
    responsive; their progress is printed by the notifier.
    """
    stdin = stdin or sys.stdin
    out = out or sys.stdout
    parser = cli_args.build_console_parser()

    print(i18n.t("cli.console.banner"), file=out, flush=True)
    for raw in stdin:
        line = raw.strip()
        if not line:
            continue
        if line in _QUIT_WORDS:
            break
        if line == "help":
            parser.print_help(file=out)
            continue

        try:
            # Non-POSIX splitting keeps the double quotes of JSON values.
            args = parser.parse_args(shlex.split(line, posix=False))
        except SystemExit:
            # argparse already printed the usage error
            continue
        except ValueError as e:
            print(f"ERROR: {e}", file=out, flush=True)
            continue

        try:
            result = dispatch(operator, args, origin, wait=False)
        except TychonetError as e:
            logger.warning(f"Console command failed: {e}")
            print(f"ERROR: {i18n.t('cli.errors.command', error=e)}", file=out, flush=True)
            continue

        if isinstance(result, Reply):
            print(render_reply(result), file=out, flush=True)

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
