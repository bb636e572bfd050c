"""CloudWatch Logs ARN parsing."""

from __future__ import annotations

from typing import Optional

from codebuild_run.core.errors import InvalidLogArn
from codebuild_run.core.models import LogLocation

_GROUP_DELIMITER = ":log-group:"
_STREAM_DELIMITER = ":log-stream:"


def parse_log_arn(arn: Optional[str]) -> LogLocation:
    """Split a CodeBuild ``cloudWatchLogsArn`` into group and stream names.

    CodeBuild reports ``log-group:null:log-stream:null`` when the project has
    CloudWatch Logs disabled; that, like a missing ARN, yields an empty
    location.
    """
    if not arn:
        return LogLocation()
    if _GROUP_DELIMITER not in arn or _STREAM_DELIMITER not in arn:
        raise InvalidLogArn(f"Not a CloudWatch Logs stream ARN: {arn}")

    tail = arn.split(_GROUP_DELIMITER)[-1]
    group, _, stream = tail.partition(_STREAM_DELIMITER)
    if group == "null" or stream == "null":
        return LogLocation()
    return LogLocation(log_group_name=group, log_stream_name=stream)
