import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Optional

import http.client as http_client

from . import __version__
from .config import GITHUB_API_URL, GitHubConfig, JiraConfig, Workspace
from .core.coordinator import Coordinator
from .errors import MigrationError

PROG = "jira-attachment-processor"
SENSITIVE_KEYS = {"github_token", "jira_secret", "jira_username"}


def mask_sensitive(ns: argparse.Namespace) -> dict:
    """Return a dict copy of args with sensitive values masked."""
    data = {k: v for k, v in vars(ns).items() if k != "func"}
    for k in list(data.keys()):
        if k in SENSITIVE_KEYS and data[k]:
            data[k] = "****"
    return data


def configure_logging(debug: bool, log_file: Optional[Path]) -> None:
    level = logging.DEBUG if debug else logging.INFO
    handlers = []
    if log_file is not None:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    else:
        handlers.append(logging.StreamHandler(sys.stderr))

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        handlers=handlers,
    )

    if debug:
        http_client.HTTPConnection.debuglevel = 1  # type: ignore[attr-defined]
        for noisy in ("urllib3", "requests", "httpx"):
            logging.getLogger(noisy).setLevel(logging.DEBUG)
            logging.getLogger(noisy).propagate = True


def _env_arg(p: argparse.ArgumentParser, flag: str, env: str, help_text: str) -> None:
    """Add a string option that falls back to an environment variable."""
    default = os.environ.get(env)
    p.add_argument(flag, default=default, required=default is None,
                   help=f"{help_text} (default: ${env})")


def _add_jira_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--jira-url", required=True, help="JIRA URL")
    _env_arg(p, "--jira-username", "JIRA_USERNAME", "JIRA username")
    _env_arg(p, "--jira-secret", "JIRA_SECRET", "JIRA personal access token or password")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog=PROG,
        description="Utility for migrating GitHub issue attachments to JIRA attachments",
    )
    p.add_argument("--version", action="version", version=f"{PROG} v{__version__}")
    p.add_argument("--workdir", type=Path, default=Path("."),
                   help="Directory holding stage/, database.json and the archive output.")
    p.add_argument("--debug", action="store_true",
                   help="Enable verbose debug logging (incl. HTTP wire logs).")
    p.add_argument("--log-file", type=Path, default=None,
                   help="Write logs to this file instead of stderr.")
    sub = p.add_subparsers(dest="command")

    collect = sub.add_parser(
        "collect",
        help="Creates the relationships between the attachments, GitHub issues, and JIRA tickets",
    )
    collect.add_argument("--archive", type=Path, help="Path to GitHub repository archive")
    expansion = collect.add_mutually_exclusive_group()
    expansion.add_argument("--skip-archive", action="store_true",
                           help="Skip expanding the GitHub repository archive")
    expansion.add_argument("--force-expand", action="store_true",
                           help="Clear the staging directory and expand the archive again")
    _env_arg(collect, "--github-token", "GITHUB_TOKEN", "GitHub personal access token")
    collect.add_argument("--github-api-url", default=GITHUB_API_URL,
                         help="GitHub API URL (GitHub Enterprise: https://HOST/api/v3)")
    collect.add_argument("--org", required=True, help="GitHub organization name")
    collect.add_argument("--repo", required=True, help="GitHub repository name")
    _add_jira_args(collect)
    collect.add_argument("--jira-key", dest="jira_keys", action="append", required=True,
                         help="JIRA project key (repeatable). Example: --jira-key PROJ --jira-key OPS")
    collect.add_argument("--page-delay", type=float, default=1.0,
                         help="Seconds to wait between two listing requests.")
    collect.set_defaults(func=run_collect)

    upload = sub.add_parser("upload", help="Uploads attachments to JIRA")
    _add_jira_args(upload)
    upload.set_defaults(func=run_upload)

    package = sub.add_parser("package", aliases=["archive"],
                             help="Generates an archive of the exported attachments")
    package.set_defaults(func=run_package)
    return p


def run_collect(args: argparse.Namespace) -> None:
    github = GitHubConfig(
        token=args.github_token,
        org=args.org,
        repo=args.repo,
        api_url=args.github_api_url,
        page_delay=args.page_delay,
    )
    jira = JiraConfig(
        url=args.jira_url,
        username=args.jira_username,
        secret=args.jira_secret,
        project_keys=tuple(args.jira_keys),
        page_delay=args.page_delay,
    )
    coord = Coordinator(Workspace(args.workdir), github=github, jira=jira)
    coord.collect(args.archive, skip_archive=args.skip_archive, force_expand=args.force_expand)


def run_upload(args: argparse.Namespace) -> None:
    jira = JiraConfig(url=args.jira_url, username=args.jira_username, secret=args.jira_secret)
    Coordinator(Workspace(args.workdir), jira=jira).upload()


def run_package(args: argparse.Namespace) -> None:
    Coordinator(Workspace(args.workdir)).package()


_FAILURE_LABELS = {
    "collect": "collecting data",
    "upload": "uploading attachments",
    "package": "archiving attachments",
    "archive": "archiving attachments",
}


def main(argv: Optional[list] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return
    configure_logging(args.debug, args.log_file)

    log = logging.getLogger("cli")
    log.debug("Parsed args (masked): %s", mask_sensitive(args))

    try:
        args.func(args)
        log.info("Done.")
    except KeyboardInterrupt:
        log.warning("Interrupted by user.")
        sys.exit(130)
    except MigrationError as e:
        log.error("Failed %s: %s", _FAILURE_LABELS[args.command], e)
        sys.exit(1)
    except Exception:
        log.exception("Unhandled error during execution")
        sys.exit(1)


if __name__ == "__main__":

    main()
