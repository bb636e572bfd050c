"""Core data models for codebuild-run."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class BuildState(Enum):
    """CodeBuild ``buildStatus`` values."""
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    FAULT = "FAULT"
    TIMED_OUT = "TIMED_OUT"
    IN_PROGRESS = "IN_PROGRESS"
    STOPPED = "STOPPED"


@dataclass(frozen=True)
class EnvironmentVariable:
    """One entry of ``environmentVariablesOverride``."""
    name: str
    value: str
    type: str = "PLAINTEXT"

    def to_api(self) -> dict:
        return {"name": self.name, "value": self.value, "type": self.type}


@dataclass(frozen=True)
class BuildRequest:
    """Parameters for a single ``StartBuild`` call."""
    project_name: str
    source_version: Optional[str] = None
    source_type_override: Optional[str] = None
    source_location_override: Optional[str] = None
    buildspec_override: Optional[str] = None
    compute_type_override: Optional[str] = None
    environment_type_override: Optional[str] = None
    image_override: Optional[str] = None
    image_pull_credentials_type_override: Optional[str] = None
    artifacts_override: Optional[dict] = None
    environment_variables: tuple[EnvironmentVariable, ...] = ()

    def to_api_params(self) -> dict[str, Any]:
        """Render boto3 ``start_build`` keyword arguments, omitting unset fields.

        The idempotency token is intentionally never set, so that repeated
        workflow events each start their own build.
        """
        params: dict[str, Any] = {"projectName": self.project_name}
        optional = {
            "sourceVersion": self.source_version,
            "sourceTypeOverride": self.source_type_override,
            "sourceLocationOverride": self.source_location_override,
            "buildspecOverride": self.buildspec_override,
            "computeTypeOverride": self.compute_type_override,
            "environmentTypeOverride": self.environment_type_override,
            "imageOverride": self.image_override,
            "imagePullCredentialsTypeOverride": self.image_pull_credentials_type_override,
            "artifactsOverride": self.artifacts_override,
        }
        params.update({k: v for k, v in optional.items() if v is not None})
        params["environmentVariablesOverride"] = [
            env.to_api() for env in self.environment_variables
        ]
        return params


@dataclass(frozen=True)
class LogLocation:
    """CloudWatch Logs group/stream of a build. Both unset when logging is off."""
    log_group_name: Optional[str] = None
    log_stream_name: Optional[str] = None

    @property
    def known(self) -> bool:
        return self.log_group_name is not None


@dataclass(frozen=True)
class BuildHandle:
    """Identifies a started build."""
    id: str
    log_location: LogLocation = field(default_factory=LogLocation)


@dataclass(frozen=True)
class BuildStatus:
    """One ``BatchGetBuilds`` snapshot of a build."""
    id: str
    end_time: Optional[datetime] = None
    build_status: Optional[str] = None
    log_location: LogLocation = field(default_factory=LogLocation)
    raw: dict = field(default_factory=dict, compare=False, repr=False)

    @property
    def finished(self) -> bool:
        return self.end_time is not None

    @property
    def succeeded(self) -> bool:
        return self.build_status == BuildState.SUCCEEDED.value


@dataclass(frozen=True)
class LogBatch:
    """Result of one ``GetLogEvents`` call."""
    events: tuple[str, ...] = ()
    next_token: Optional[str] = None


@dataclass
class PollState:
    """Counters carried across poll iterations."""
    current_wait: float
    consecutive_empty_log_responses: int = 0
    total_events_seen: int = 0
    throttle_count: int = 0
    log_cursor: Optional[str] = None


@dataclass(frozen=True)
class PollConfig:
    """Poll loop settings, fixed for the lifetime of a run. Durations in seconds."""
    update_interval: float = 30.0
    update_back_off: float = 15.0
    hide_logs: bool = False
    stop_signals: tuple[str, ...] = ("SIGINT",)
