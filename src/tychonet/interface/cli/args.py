from __future__ import annotations

"""
CLI Argument Definition.

Defines the global options and the operator commands. The same command
set backs both one-shot invocations and the interactive console.
"""

import argparse
from typing import List, Optional

from tychonet.domain.models import ConfigKind, Origin
from tychonet.utils.i18n import i18n

CONFIG_KINDS = [kind.value for kind in ConfigKind]


# -----------------------------------------------------------------------------
# ARGUMENT DEFINITION
# -----------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    """
    Construct the argument parser for the tychonet CLI.

    Returns:
        argparse.ArgumentParser: Configured parser instance.
    """
    p = argparse.ArgumentParser(
        prog="tychonet",
        description=i18n.t("app.description"),
    )

    # --- Runtime ---
    p.add_argument(
        "-s", "--settings",
        dest="settings_file",
        default=None,
        help="Settings JSON file (default: user data directory or TYCHONET_SETTINGS_FILE).",
    )
    p.add_argument(
        "--chat-id",
        dest="chat_id",
        type=int,
        default=0,
        help="Origin identifier checked against allowed_groups.",
    )
    p.add_argument(
        "--attachments-dir",
        dest="attachments_dir",
        default=None,
        help="Directory for long outputs such as error.txt (default: cwd).",
    )
    p.add_argument(
        "--debug",
        action="store_true",
        help="Verbose logging.",
    )

    subparsers = p.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True
    _add_commands(subparsers)
    subparsers.add_parser("console", help="Interactive session; freeze timers stay active.")
    return p


def build_console_parser() -> argparse.ArgumentParser:
    """Parser for one line typed into the interactive console."""
    p = argparse.ArgumentParser(prog="", add_help=True)
    subparsers = p.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True
    _add_commands(subparsers)
    return p


def _add_commands(subparsers: argparse._SubParsersAction) -> None:
    # --- Status ---
    status = subparsers.add_parser("status", help="Node timings of a network.")
    _add_network_option(status)

    param = subparsers.add_parser("param", help="One blockchain config param.")
    param.add_argument("param", type=int)
    _add_network_option(param)

    account = subparsers.add_parser("account", help="Raw state of an account.")
    account.add_argument("address", help="Address as <workchain>:<hex>; put `--` before -1:... addresses.")
    _add_network_option(account)

    subparsers.add_parser("commit", help="Last deployed commit.")

    # --- Configuration documents ---
    config = subparsers.add_parser("config", help="Read or edit a config document.")
    config_sub = config.add_subparsers(dest="action", metavar="ACTION")
    config_sub.required = True
    get = config_sub.add_parser("get", help="Print the value at a path.")
    get.add_argument("kind", choices=CONFIG_KINDS)
    get.add_argument("expr", nargs="*", help="Path, e.g. logger.outputs[1]")
    put = config_sub.add_parser("set", help="`<path> = <json>` or `delete <path>`.")
    put.add_argument("kind", choices=CONFIG_KINDS)
    put.add_argument("expr", nargs="+")

    # --- Freeze ---
    freeze = subparsers.add_parser("freeze", help="Block resets: `<duration>[:<reason>]`.")
    freeze.add_argument("expr", nargs="+")
    _add_network_option(freeze)

    unfreeze = subparsers.add_parser("unfreeze", help="Lift a freeze.")
    _add_network_option(unfreeze)

    # --- Reset ---
    reset = subparsers.add_parser(
        "reset",
        help="Reset the network: `[commit]; nodes=N; profile=P; type=full|restart; network=N; repo=R`.",
    )
    reset.add_argument("params", nargs="*")

    reset_type = subparsers.add_parser("reset-type", help="Default reset type.")
    reset_type_sub = reset_type.add_subparsers(dest="action", metavar="ACTION")
    reset_type_sub.required = True
    reset_type_sub.add_parser("get")
    reset_type_set = reset_type_sub.add_parser("set")
    reset_type_set.add_argument("value", choices=["full", "restart"])

    # --- Workspaces & networks ---
    workspace = subparsers.add_parser("workspace", help="List, switch or delete workspaces.")
    workspace_sub = workspace.add_subparsers(dest="action", metavar="ACTION")
    workspace_sub.required = True
    workspace_sub.add_parser("get")
    workspace_set = workspace_sub.add_parser("set", help="`<name>[:<copy_from>]`")
    workspace_set.add_argument("expr")
    workspace_del = workspace_sub.add_parser("del")
    workspace_del.add_argument("name")

    network = subparsers.add_parser("network", help="List or select networks.")
    network_sub = network.add_subparsers(dest="action", metavar="ACTION")
    network_sub.required = True
    network_sub.add_parser("get")
    network_set = network_sub.add_parser("set")
    network_set.add_argument("name")


def _add_network_option(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "-n", "--network",
        dest="network",
        default=None,
        help="Target network (default: the current workspace's network).",
    )


# -----------------------------------------------------------------------------
# MAPPING
# -----------------------------------------------------------------------------

def join_expr(parts: Optional[List[str]]) -> str:
    """Rejoin shell-split words into the original expression."""
    return " ".join(parts or [])


def args_to_origin(args: argparse.Namespace, default_chat_id: int = 0) -> Origin:
    chat_id = getattr(args, "chat_id", None)
    return Origin(chat_id=default_chat_id if chat_id is None else chat_id)
