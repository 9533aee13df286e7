"""
Command-line interface for gitutil.

This module is responsible for argument parsing, mapping subcommands to
session actions, and printing one short status line per outcome.
"""

from __future__ import annotations

import argparse
import sys
from typing import Any, List, Optional

from .commits import CommitOutcome
from .config import SHORT_SHA_LENGTH
from .credentials import CredentialStore
from .errors import GitUtilError
from .logging_utils import configure_logging
from .remote import PullOutcome, PushOutcome
from .session import Action, PushReport, RepositorySession
from .staging import StageAll, StageSingle, StageUpdate


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gitutil",
        description=(
            "Stage, commit and push/pull a repository using the account "
            "configured for its directory."
        ),
    )
    parser.add_argument(
        "--repodir",
        help="Repository directory (default: current directory).",
    )
    parser.add_argument(
        "--configfilepath",
        help="Configuration document (default: $GITUTIL_CONFIG or "
             "~/.config/gitutil/GitUtilConfig.json).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (can be specified multiple times).",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("info", aliases=["information"], help="Show repository identity, branch and SHA.")
    sub.add_parser("status", aliases=["stat"], help="Show changes and the pending commit message.")

    pull = sub.add_parser("pull", help="Fetch and merge from origin.")
    pull.add_argument(
        "--upstream",
        action="store_true",
        help="Pull the main branch of the 'upstream' remote instead.",
    )

    push = sub.add_parser("push", help="Stage, commit and push.")
    push.add_argument(
        "--amend",
        action="store_true",
        help="Amend the last commit and force the push.",
    )
    mode = push.add_mutually_exclusive_group()
    mode.add_argument(
        "--all",
        action="store_true",
        help="Stage every changed or new file (default: modified files only).",
    )
    mode.add_argument(
        "--singlefile",
        metavar="PATH",
        help="Stage only this file.",
    )

    set_url = sub.add_parser("set-url", help="Set the origin (or upstream) URL.")
    set_url.add_argument("url")
    set_url.add_argument(
        "--upstream",
        action="store_true",
        help="Set the 'upstream' remote instead of 'origin'.",
    )

    branch = sub.add_parser("branch", help="List, delete or rename branches.")
    branch_mode = branch.add_mutually_exclusive_group()
    branch_mode.add_argument("--delete", metavar="NAME", help="Delete NAME locally and on origin.")
    branch_mode.add_argument("--rename", metavar="NAME", help="Rename the current branch to NAME.")

    authors = sub.add_parser("authors", help="List commits not made as the configured account.")
    authors.add_argument("--max-count", type=int, default=50)

    return parser


def _confirm_init(path: str) -> bool:
    print(f"Repo dir: {path} is not a git repository.")
    try:
        response = input(f"Initialize a repository in this location: {path}? [y/N] ")
    except EOFError:
        return False
    return response[:1].lower() == "y"


def _action_for(args: argparse.Namespace) -> tuple[Action, dict[str, Any]]:
    command = args.command
    if command in ("info", "information"):
        return Action.SHOW_INFO, {}
    if command in ("status", "stat"):
        return Action.SHOW_STATUS, {}
    if command == "pull":
        return Action.PULL, {"use_upstream": args.upstream}
    if command == "push":
        if args.singlefile:
            request = StageSingle(args.singlefile)
        elif args.all:
            request = StageAll()
        else:
            request = StageUpdate()
        return Action.PUSH, {"request": request, "amend": args.amend}
    if command == "set-url":
        return Action.UPDATE_REMOTE, {"url": args.url, "use_upstream": args.upstream}
    if command == "branch":
        if args.delete:
            return Action.DELETE_BRANCH, {"name": args.delete}
        if args.rename:
            return Action.RENAME_BRANCH, {"new_name": args.rename}
        return Action.LIST_BRANCHES, {}
    if command == "authors":
        return Action.AUDIT_AUTHORS, {"max_count": args.max_count}
    raise ValueError(f"unknown command: {command}")


def _print_push(report: PushReport) -> None:
    if report.commit.outcome == CommitOutcome.COMMITTED:
        print(f"committed {(report.commit.sha or '')[:SHORT_SHA_LENGTH]}")
    elif report.commit.outcome == CommitOutcome.EMPTY_COMMIT_AVOIDED:
        print("Not creating new commit.")
    labels = {
        PushOutcome.PUSHED: "pushed",
        PushOutcome.NOTHING_TO_PUSH: "nothing to push",
        PushOutcome.REMOTE_MISSING: "remote missing",
        PushOutcome.NON_FAST_FORWARD: "rejected",
        PushOutcome.AUTH_FAILED: "authentication failed",
        PushOutcome.UNKNOWN: "push failed",
    }
    print(f"{labels[report.outcome]}: {report.push.message}")


def _print_result(action: Action, result: Any) -> None:
    if action == Action.SHOW_INFO:
        print("\n".join(result.lines()))
    elif action == Action.SHOW_STATUS:
        print("\n".join(result.info.lines()))
        for entry in result.entries:
            print(f" {entry.path}: {entry.state}")
        print()
        print("Commit message:")
        print(result.message_preview if result.message_preview is not None else "(missing)")
    elif action == Action.PUSH:
        _print_push(result)
    elif action == Action.PULL:
        label = result.outcome.value.replace("_", " ")
        if result.outcome == PullOutcome.CONFLICT:
            label = "conflict"
        print(f"{label}: {result.message}")
    elif action == Action.UPDATE_REMOTE:
        print("remote updated" if result else "remote unchanged")
    elif action == Action.LIST_BRANCHES:
        for listing in result:
            print(listing.line())
    elif action in (Action.DELETE_BRANCH, Action.RENAME_BRANCH):
        print(result.message)
    elif action == Action.AUDIT_AUTHORS:
        if not result:
            print("All commits match the configured identity.")
        for i, entry in enumerate(result, start=1):
            print(f"{i} #{entry.short_sha}: {entry.message}")
            print(f"  author: {entry.author_name} <{entry.author_email}>")
            print(f"  committer: {entry.committer_name} <{entry.committer_email}>")


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    configure_logging(verbosity=args.verbose)

    action, options = _action_for(args)
    session = RepositorySession(
        args.repodir,
        CredentialStore(args.configfilepath),
        confirm_init=_confirm_init,
    )

    try:
        with session:
            result = session.run(action, **options)
    except KeyboardInterrupt:
        # Graceful shutdown on Ctrl+C
        return 130
    except GitUtilError as exc:
        print(f"gitutil: error: {exc}", file=sys.stderr)
        return 1

    _print_result(action, result)
    return 0


if __name__ == "__main__":  # pragma: no cover - manual invocation
    raise SystemExit(main())
