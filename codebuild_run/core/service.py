"""AWS service adapter: CodeBuild and CloudWatch Logs via boto3.

The poll loop only talks to the ``BuildService`` protocol, so tests can drive
it with scripted replies. ``CodeBuildService`` is the real implementation; the
synchronous boto3 calls run in the default executor so that the status and log
fetches of one poll can be outstanding at the same time.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol

import boto3
from botocore.config import Config

from codebuild_run.core.arn import parse_log_arn
from codebuild_run.core.errors import CredentialsMissing
from codebuild_run.core.models import BuildHandle, BuildRequest, BuildStatus, LogBatch

logger = logging.getLogger(__name__)

USER_AGENT = "aws-codebuild-run-build"
NO_CREDENTIALS_MESSAGE = (
    "No credentials. Try adding @aws-actions/configure-aws-credentials earlier "
    "in your job to set up AWS credentials."
)


class BuildService(Protocol):
    """Remote operations the launcher and poll loop depend on."""

    async def start_build(self, request: BuildRequest) -> BuildHandle:
        ...

    async def stop_build(self, build_id: str) -> None:
        ...

    async def get_build_status(self, build_id: str) -> BuildStatus:
        ...

    async def get_log_events(
        self,
        log_group_name: str,
        log_stream_name: Optional[str],
        start_from_head: bool = True,
        next_token: Optional[str] = None,
    ) -> LogBatch:
        ...


def handle_from_api(build: dict) -> BuildHandle:
    """Build a handle from the ``build`` member of a StartBuild response."""
    logs = build.get("logs") or {}
    return BuildHandle(
        id=build["id"],
        log_location=parse_log_arn(logs.get("cloudWatchLogsArn")),
    )


def status_from_api(build: dict) -> BuildStatus:
    """Build a status snapshot from one ``BatchGetBuilds`` entry."""
    logs = build.get("logs") or {}
    return BuildStatus(
        id=build["id"],
        end_time=build.get("endTime"),
        build_status=build.get("buildStatus"),
        log_location=parse_log_arn(logs.get("cloudWatchLogsArn")),
        raw=build,
    )


class CodeBuildService:
    """``BuildService`` backed by boto3 ``codebuild`` and ``logs`` clients."""

    def __init__(self, codebuild_client, logs_client):
        self.codebuild = codebuild_client
        self.logs = logs_client

    async def _call(self, fn, **kwargs):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: fn(**kwargs))

    async def start_build(self, request: BuildRequest) -> BuildHandle:
        response = await self._call(
            self.codebuild.start_build, **request.to_api_params()
        )
        return handle_from_api(response["build"])

    async def stop_build(self, build_id: str) -> None:
        await self._call(self.codebuild.stop_build, id=build_id)

    async def get_build_status(self, build_id: str) -> BuildStatus:
        response = await self._call(self.codebuild.batch_get_builds, ids=[build_id])
        builds = response.get("builds") or []
        if not builds:
            raise LookupError(f"Build not found: {build_id}")
        return status_from_api(builds[0])

    async def get_log_events(
        self,
        log_group_name: str,
        log_stream_name: Optional[str],
        start_from_head: bool = True,
        next_token: Optional[str] = None,
    ) -> LogBatch:
        kwargs = {
            "logGroupName": log_group_name,
            "logStreamName": log_stream_name,
            "startFromHead": start_from_head,
        }
        if next_token is not None:
            kwargs["nextToken"] = next_token
        response = await self._call(self.logs.get_log_events, **kwargs)
        return LogBatch(
            events=tuple(e.get("message", "") for e in response.get("events", [])),
            next_token=response.get("nextForwardToken"),
        )


def build_service(region: Optional[str] = None) -> CodeBuildService:
    """Create the boto3-backed service, failing fast without credentials."""
    session = boto3.Session(region_name=region)
    if session.get_credentials() is None:
        raise CredentialsMissing(NO_CREDENTIALS_MESSAGE)

    config = Config(user_agent_extra=USER_AGENT)
    logger.debug(f"Creating CodeBuild/Logs clients (region={session.region_name})")
    return CodeBuildService(
        codebuild_client=session.client("codebuild", config=config),
        logs_client=session.client("logs", config=config),
    )
