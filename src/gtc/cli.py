"""Command line entry point for gtc.

Subcommands:
- ``info DIR``: print the repository snapshot as JSON
- ``clone URL DIR``: clone a repository, optionally creating the branch
- ``submodule-update DIR``: bring submodules up to date
- ``submodule-sync DIR``: update submodules from their remotes, commit and push
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Sequence

from .config import Config
from .errors import GtcError
from .git.auth import AuthMethod, get_auth
from .git.client import Client, ClientOpt

logger = logging.getLogger(__name__)


def _auth_from_args(args: argparse.Namespace) -> AuthMethod | None:
    if not args.username:
        return None
    return get_auth(args.username, args.password or "", args.ssh_key or "")


def _add_auth_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--username", default="", help="user name for basic or SSH auth")
    parser.add_argument("--password", default="", help="password or token for basic auth")
    parser.add_argument("--ssh-key", default="", help="path to an SSH private key")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gtc", description="Thin client over git repository operations")
    sub = parser.add_subparsers(dest="command", required=True)

    info = sub.add_parser("info", help="print a JSON snapshot of a repository")
    info.add_argument("dir")
    _add_auth_arguments(info)

    clone = sub.add_parser("clone", help="clone a repository with its submodules")
    clone.add_argument("url")
    clone.add_argument("dir")
    clone.add_argument("--revision", default="")
    clone.add_argument("--create-branch", action="store_true", help="create the revision if the remote lacks it")
    _add_auth_arguments(clone)

    update = sub.add_parser("submodule-update", help="update submodules")
    update.add_argument("dir")
    update.add_argument("--remote", action="store_true", help="follow origin/<revision> in each submodule")
    update.add_argument("--revision", default="")
    _add_auth_arguments(update)

    sync = sub.add_parser("submodule-sync", help="update submodules from remote, then commit and push")
    sync.add_argument("dir")
    sync.add_argument("--message", required=True)
    sync.add_argument("--revision", default="")
    _add_auth_arguments(sync)

    return parser


def run(args: argparse.Namespace, config: Config) -> int:
    auth = _auth_from_args(args)
    opt = ClientOpt(dir_path=args.dir, auth=auth, revision=getattr(args, "revision", ""))

    if args.command == "clone":
        opt.origin_url = args.url
        opt.create_branch = args.create_branch
        client = Client.clone(opt, config)
        print(client.dir_path)
        return 0

    client = Client.open(opt, config)
    if args.command == "info":
        print(json.dumps(client.info().to_dict(), indent=2, sort_keys=True))
    elif args.command == "submodule-update":
        client.submodule_update(remote=args.remote)
    elif args.command == "submodule-sync":
        sha = client.submodule_sync_up_to_date(args.message)
        if sha:
            print(sha)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entrypoint for the ``gtc`` console script."""
    args = build_parser().parse_args(argv)
    try:
        config = Config.load_from_env()
    except RuntimeError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    # stdout carries command output, logs go to stderr
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    try:
        return run(args, config)
    except (GtcError, OSError) as exc:
        logger.debug("command %s failed", args.command, exc_info=True)
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
