"""Tests for the boto3 service adapter, using botocore's Stubber."""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import patch

import boto3
import pytest
from botocore.exceptions import ClientError
from botocore.stub import Stubber

from codebuild_run.core.errors import CredentialsMissing, is_rate_limited
from codebuild_run.core.models import BuildRequest, EnvironmentVariable
from codebuild_run.core.service import CodeBuildService, build_service, status_from_api

from conftest import BUILD_ID, LOCATION, LOG_ARN, NULL_LOG_ARN


def _client(name: str):
    return boto3.client(
        name,
        region_name="us-west-2",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


@pytest.fixture
def stubbed():
    codebuild, logs = _client("codebuild"), _client("logs")
    with Stubber(codebuild) as cb_stub, Stubber(logs) as logs_stub:
        yield CodeBuildService(codebuild, logs), cb_stub, logs_stub
        cb_stub.assert_no_pending_responses()
        logs_stub.assert_no_pending_responses()


class TestCodeBuildService:

    @pytest.mark.asyncio
    async def test_start_build(self, stubbed):
        service, cb_stub, _ = stubbed
        request = BuildRequest(
            project_name="project_name",
            source_version="abc123",
            environment_variables=(EnvironmentVariable("GITHUB_SHA", "abc123"),),
        )
        cb_stub.add_response(
            "start_build",
            {"build": {"id": BUILD_ID, "logs": {"cloudWatchLogsArn": LOG_ARN}}},
            {
                "projectName": "project_name",
                "sourceVersion": "abc123",
                "environmentVariablesOverride": [
                    {"name": "GITHUB_SHA", "value": "abc123", "type": "PLAINTEXT"},
                ],
            },
        )

        handle = await service.start_build(request)

        assert handle.id == BUILD_ID
        assert handle.log_location == LOCATION

    @pytest.mark.asyncio
    async def test_get_build_status(self, stubbed):
        service, cb_stub, _ = stubbed
        end = datetime(2024, 1, 1, tzinfo=timezone.utc)
        cb_stub.add_response(
            "batch_get_builds",
            {"builds": [{
                "id": BUILD_ID,
                "buildStatus": "SUCCEEDED",
                "endTime": end,
                "logs": {"cloudWatchLogsArn": LOG_ARN},
            }]},
            {"ids": [BUILD_ID]},
        )

        status = await service.get_build_status(BUILD_ID)

        assert status.finished
        assert status.succeeded
        assert status.end_time == end
        assert status.log_location == LOCATION

    @pytest.mark.asyncio
    async def test_get_build_status_not_found(self, stubbed):
        service, cb_stub, _ = stubbed
        cb_stub.add_response("batch_get_builds", {"builds": []}, {"ids": [BUILD_ID]})
        with pytest.raises(LookupError):
            await service.get_build_status(BUILD_ID)

    @pytest.mark.asyncio
    async def test_throttled_status_is_recognised(self, stubbed):
        service, cb_stub, _ = stubbed
        cb_stub.add_client_error(
            "batch_get_builds",
            service_error_code="ThrottlingException",
            service_message="Rate exceeded",
        )
        with pytest.raises(ClientError) as excinfo:
            await service.get_build_status(BUILD_ID)
        assert is_rate_limited(excinfo.value)

    @pytest.mark.asyncio
    async def test_get_log_events_first_and_next_page(self, stubbed):
        service, _, logs_stub = stubbed
        logs_stub.add_response(
            "get_log_events",
            {
                "events": [{"timestamp": 1, "message": "hello\n", "ingestionTime": 2}],
                "nextForwardToken": "f/1",
                "nextBackwardToken": "b/1",
            },
            {
                "logGroupName": LOCATION.log_group_name,
                "logStreamName": LOCATION.log_stream_name,
                "startFromHead": True,
            },
        )
        logs_stub.add_response(
            "get_log_events",
            {"events": [], "nextForwardToken": "f/1", "nextBackwardToken": "b/1"},
            {
                "logGroupName": LOCATION.log_group_name,
                "logStreamName": LOCATION.log_stream_name,
                "startFromHead": True,
                "nextToken": "f/1",
            },
        )

        first = await service.get_log_events(
            LOCATION.log_group_name, LOCATION.log_stream_name,
        )
        second = await service.get_log_events(
            LOCATION.log_group_name, LOCATION.log_stream_name, next_token=first.next_token,
        )

        assert first.events == ("hello\n",)
        assert first.next_token == "f/1"
        assert second.events == ()

    @pytest.mark.asyncio
    async def test_stop_build(self, stubbed):
        service, cb_stub, _ = stubbed
        cb_stub.add_response("stop_build", {"build": {"id": BUILD_ID}}, {"id": BUILD_ID})
        await service.stop_build(BUILD_ID)


class TestStatusFromApi:

    def test_null_log_arn(self):
        status = status_from_api({"id": BUILD_ID, "logs": {"cloudWatchLogsArn": NULL_LOG_ARN}})
        assert status.log_location.known is False
        assert status.finished is False

    def test_missing_logs(self):
        assert status_from_api({"id": BUILD_ID}).log_location.known is False


class TestBuildService:

    def test_no_credentials(self):
        with patch("codebuild_run.core.service.boto3.Session") as session_cls:
            session_cls.return_value.get_credentials.return_value = None
            with pytest.raises(CredentialsMissing, match="configure-aws-credentials"):
                build_service("us-east-1")

    def test_clients_created_with_user_agent(self):
        with patch("codebuild_run.core.service.boto3.Session") as session_cls:
            session = session_cls.return_value
            service = build_service("us-east-1")
        session_cls.assert_called_once_with(region_name="us-east-1")
        services = [c.args[0] for c in session.client.call_args_list]
        assert services == ["codebuild", "logs"]
        config = session.client.call_args_list[0].kwargs["config"]
        assert config.user_agent_extra == "aws-codebuild-run-build"
        assert service.codebuild is session.client.return_value
