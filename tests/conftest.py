"""Shared fixtures: a scripted BuildService and a recording sleep."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

import pytest

from codebuild_run.core.models import (
    BuildHandle, BuildRequest, BuildStatus, LogBatch, LogLocation,
)

BUILD_ID = "project_name:1234abcd"
LOG_ARN = (
    "arn:aws:logs:us-west-2:111122223333:log-group:/aws/codebuild/CloudWatchLogGroup"
    ":log-stream:1234abcd-12ab-34cd-56ef-1234567890ab"
)
NULL_LOG_ARN = "arn:aws:logs:us-west-2:111122223333:log-group:null:log-stream:null"
LOCATION = LogLocation(
    log_group_name="/aws/codebuild/CloudWatchLogGroup",
    log_stream_name="1234abcd-12ab-34cd-56ef-1234567890ab",
)


class ScriptedService:
    """BuildService double.

    Status replies are consumed in order; an Exception entry is raised.
    Log pages are keyed by the cursor they are requested with, like
    CloudWatch: asking again with the same token returns the same page.
    """

    def __init__(self, statuses=(), pages: Optional[dict] = None, handle=None):
        self.statuses = list(statuses)
        self.pages = pages or {}
        self.handle = handle or BuildHandle(id=BUILD_ID, log_location=LOCATION)
        self.started: list[BuildRequest] = []
        self.stopped: list[str] = []
        self.status_calls: list[str] = []
        self.log_calls: list[tuple] = []

    async def start_build(self, request: BuildRequest) -> BuildHandle:
        self.started.append(request)
        return self.handle

    async def stop_build(self, build_id: str) -> None:
        self.stopped.append(build_id)

    async def get_build_status(self, build_id: str) -> BuildStatus:
        self.status_calls.append(build_id)
        reply = self.statuses.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def get_log_events(self, log_group_name, log_stream_name,
                             start_from_head=True, next_token=None) -> LogBatch:
        self.log_calls.append((log_group_name, log_stream_name, start_from_head, next_token))
        reply = self.pages.get(next_token, LogBatch(next_token=next_token))
        if isinstance(reply, Exception):
            raise reply
        return reply


class RecordingSleep:
    """Async sleep replacement that records requested durations."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def running(location: LogLocation = LOCATION) -> BuildStatus:
    return BuildStatus(id=BUILD_ID, build_status="IN_PROGRESS", log_location=location)


def ended(status: str = "SUCCEEDED", location: LogLocation = LOCATION) -> BuildStatus:
    return BuildStatus(
        id=BUILD_ID,
        end_time=datetime(2024, 1, 1, tzinfo=timezone.utc),
        build_status=status,
        log_location=location,
    )


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def service_factory():
    return ScriptedService
