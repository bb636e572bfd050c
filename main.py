#!/usr/bin/env python3
"""codebuild-run: start an AWS CodeBuild build and stream it to completion.

Usage:
    python main.py action                        # Run as a GitHub Actions step
    python main.py run -p my-project             # Build the local HEAD
    python main.py run -p my-project -s main     # Build an existing branch/commit
    python main.py config                        # Show effective configuration

    Flags (run):
      -b/--buildspec-override     Path to buildspec file
      -e/--env-vars-for-codebuild Environment variables to send to CodeBuild
      -r/--remote                 Git remote to publish to (default: origin)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

from codebuild_run.actions.github_action import (
    BUILD_ID_OUTPUT, github_inputs, poll_overrides, set_failed, set_output,
)
from codebuild_run.core.config import (
    RunnerSettings, format_config, load_config, validate_config,
)
from codebuild_run.core.errors import ValidationError
from codebuild_run.core.models import BuildStatus
from codebuild_run.core.parameters import BuildInputs, inputs_to_request
from codebuild_run.core.runner import run_build
from codebuild_run.core.service import build_service
from codebuild_run.git_ops.git_manager import GitOps

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("codebuild-run")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(
        description="Run an AWS CodeBuild build and stream its logs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    sub = parser.add_subparsers(dest="command", help="Command to run")

    # action: GitHub Actions step
    sub.add_parser("action", help="Run using GitHub Actions inputs (INPUT_* variables)")

    # run: local working copy
    run_p = sub.add_parser("run", help="Build the current repository HEAD")
    run_p.add_argument("-p", "--project-name", required=True, help="AWS CodeBuild Project Name")
    run_p.add_argument("-b", "--buildspec-override", help="Path to buildspec file")
    run_p.add_argument("-s", "--source-version-override",
                       help="Source version, branch, commit")
    run_p.add_argument("-e", "--env-vars-for-codebuild", nargs="*", default=[],
                       help="List of environment variables to send to CodeBuild")
    run_p.add_argument("-r", "--remote", default="origin", help="remote name to publish to")
    _add_poll_args(run_p)

    # config: show effective settings
    config_p = sub.add_parser("config", help="Show effective configuration")
    _add_poll_args(config_p)

    return parser.parse_args(argv)


def _add_poll_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--update-interval", type=float, help="Seconds between status polls")
    parser.add_argument("--update-back-off", type=float,
                        help="Base back-off in seconds when rate limited")
    parser.add_argument("--hide-logs", action="store_true",
                        help="Do not stream CloudWatch logs")
    parser.add_argument("--stop-signals", nargs="*", help="Signals that stop the build")
    parser.add_argument("--region", help="AWS region")
    parser.add_argument("--log-level", help="Logging level")


def _settings(root: Path, overrides: dict) -> RunnerSettings:
    settings = load_config(root, overrides)
    issues = validate_config(settings)
    if issues:
        raise ValidationError("; ".join(issues))
    logging.getLogger().setLevel(settings.log_level)
    return settings


def _report(status: BuildStatus) -> int:
    logger.info(f"Build {status.id}: {status.build_status}")
    return 0 if status.succeeded else 1


def cmd_action(root: Path) -> int:
    """Run as a GitHub Actions step."""
    environ = dict(os.environ)
    try:
        inputs = github_inputs(environ)
        settings = _settings(root, poll_overrides(environ))
        request = inputs_to_request(inputs, environ)
        service = build_service(settings.region)
        status = asyncio.run(run_build(
            service, request, settings.poll_config(),
            on_start=lambda handle: set_output(BUILD_ID_OUTPUT, handle.id, environ),
        ))
    except Exception as e:
        logger.debug("Action failed", exc_info=True)
        set_failed(str(e))
        return 1

    if not status.succeeded:
        set_failed(f"Build status: {status.build_status}")
    return _report(status)


def cmd_run(args: argparse.Namespace, root: Path) -> int:
    """Build the local HEAD, or an existing source version with -s."""
    settings = _settings(root, vars(args))
    git = GitOps(root, remote=args.remote)
    owner, repo = git.github_info()

    temporary = args.source_version_override is None
    branch = git.temporary_branch_name() if temporary else args.source_version_override

    environ = dict(os.environ)
    request = inputs_to_request(
        BuildInputs(
            project_name=args.project_name,
            owner=owner,
            repo=repo,
            source_version=branch,
            buildspec_override=args.buildspec_override,
            env_passthrough=args.env_vars_for_codebuild,
        ),
        environ,
    )
    service = build_service(settings.region)

    if temporary:
        git.push_branch(branch)
    try:
        status = asyncio.run(run_build(service, request, settings.poll_config()))
    finally:
        if temporary:
            git.delete_branch(branch)
    return _report(status)


def cmd_config(args: argparse.Namespace, root: Path) -> int:
    """Display effective configuration."""
    settings = load_config(root, vars(args))
    print(format_config(settings))
    for issue in validate_config(settings):
        print(f"! {issue}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    root = Path.cwd()

    if not args.command:
        print(__doc__)
        return 1

    if args.command == "action":
        return cmd_action(root)

    try:
        if args.command == "run":
            return cmd_run(args, root)
        if args.command == "config":
            return cmd_config(args, root)
    except Exception as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1
    return 1


if __name__ == "__main__":
    sys.exit(main())
