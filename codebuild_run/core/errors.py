"""Error taxonomy for codebuild-run.

Only rate-limit failures are handled locally (by the poll loop). Everything
else propagates to the entry point, which turns it into a failure report.
"""

from __future__ import annotations

RATE_LIMIT_MESSAGE = "Rate exceeded"


class CodeBuildRunError(Exception):
    """Base class for errors raised by codebuild-run itself."""


class ValidationError(CodeBuildRunError):
    """Invalid or missing caller input. Fatal, never retried."""


class MissingRequiredField(ValidationError):
    """A required input was not supplied."""

    def __init__(self, field_name: str):
        super().__init__(f"Input required and not supplied: {field_name}")
        self.field_name = field_name


class InvalidLogArn(ValidationError):
    """A CloudWatch Logs ARN without the log-group/log-stream segments."""


class CredentialsMissing(CodeBuildRunError):
    """boto3 could not resolve AWS credentials."""


def is_rate_limited(error: BaseException) -> bool:
    """True if the error message reports API throttling.

    botocore renders the service message into ``str(ClientError)``, e.g.
    ``... when calling the BatchGetBuilds operation: Rate exceeded``.
    """
    return RATE_LIMIT_MESSAGE in str(error)
