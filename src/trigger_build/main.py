from __future__ import annotations

import argparse
import os
import sys
import uuid
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from .config import TriggerSettings
from .constants import ExitCode
from .context import CIEnvironment
from .docs import DocsReviewApp
from .errors import TriggerBuildError
from .logging import TriggerLogger
from .models import TargetKind
from .targets import get_target
from .trigger import DownstreamTrigger, TriggerResult
from .variables import Variables, variables_for_env_file


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="trigger-build",
        description="Trigger a downstream pipeline from the current CI job.",
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--job", dest="job_name", default=None, help="Downstream job to resolve (and wait for)")
    common.add_argument("--no-wait", dest="wait", action="store_false", help="Return once the pipeline is created")
    common.add_argument(
        "--post-comment",
        action="store_true",
        help="Comment on the upstream commit with a link to the downstream pipeline",
    )

    targets = parser.add_subparsers(dest="target", required=True, metavar="TARGET")
    targets.add_parser(
        TargetKind.OMNIBUS.value,
        parents=[common],
        help="Build the omnibus-gitlab package",
    )
    targets.add_parser(
        TargetKind.CNG.value,
        parents=[common],
        help="Build the images used by the GitLab Helm chart",
    )
    targets.add_parser(
        TargetKind.DATABASE_TESTING.value,
        parents=[common],
        help="Test database changes on GitLab.com data",
    )
    docs = targets.add_parser(TargetKind.DOCS.value, parents=[common], help="Docs review app")
    docs.add_argument("action", choices=["deploy", "cleanup"])
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    logger = TriggerLogger(os.environ.get("CI_JOB_ID") or str(uuid.uuid4()))

    try:
        settings = TriggerSettings()
    except ValidationError as exc:
        logger.error("config_error", error=str(exc))
        return int(ExitCode.CONFIG_ERROR)

    env = CIEnvironment.capture()
    try:
        return run(args, env, settings, logger)
    except TriggerBuildError as exc:
        logger.error(type(exc).__name__, error=str(exc))
        return int(exc.exit_code)


def run(
    args: argparse.Namespace,
    env: CIEnvironment,
    settings: TriggerSettings,
    logger: TriggerLogger,
    trigger: Optional[DownstreamTrigger] = None,
) -> int:
    target = get_target(args.target)
    trigger = trigger or DownstreamTrigger(target, env, settings, logger)

    if target.kind is TargetKind.DOCS:
        app = DocsReviewApp(trigger)
        if args.action == "cleanup":
            with logger.stage("docs_cleanup", header=f"Stopping {app.environment_name}"):
                app.cleanup()
            return int(ExitCode.SUCCESS)
        with logger.stage("docs_deploy", header=f"Deploying {app.environment_name}"):
            result = app.deploy(post_comment=args.post_comment)
        _write_env_file(settings, result)
        return int(ExitCode.SUCCESS)

    job_name = args.job_name or target.default_job_name
    with logger.stage("trigger", header=f"Triggering {target.name} pipeline"):
        result = trigger.invoke(downstream_job_name=job_name, post_comment=args.post_comment)
    _write_env_file(settings, result)

    if args.wait and settings.wait and target.waits_for_completion:
        with logger.stage("wait", header=f"Waiting for downstream {result.watch_handle.kind}"):
            trigger.watcher().wait(result.watch_handle)

    return int(ExitCode.SUCCESS)


def _write_env_file(settings: TriggerSettings, result: TriggerResult) -> None:
    if not settings.env_file:
        return
    variables: Variables = {
        **result.variables,
        "DOWNSTREAM_PIPELINE_ID": str(result.pipeline.id),
        "DOWNSTREAM_PIPELINE_URL": result.pipeline.url,
    }
    if result.job is not None:
        variables["DOWNSTREAM_JOB_ID"] = str(result.job.id)
    Path(settings.env_file).write_text(variables_for_env_file(variables) + "\n", encoding="utf-8")


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
