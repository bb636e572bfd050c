"""Maps normalized caller inputs onto a CodeBuild ``StartBuild`` request."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence

from codebuild_run.core.errors import MissingRequiredField
from codebuild_run.core.models import BuildRequest, EnvironmentVariable

logger = logging.getLogger(__name__)

GITHUB_ENV_PREFIX = "GITHUB_"
DEFAULT_SOURCE_TYPE = "GITHUB"
DEFAULT_SERVER_URL = "https://github.com"


@dataclass
class BuildInputs:
    """Already-validated options from the Actions inputs or the CLI."""
    project_name: Optional[str]
    owner: Optional[str] = None
    repo: Optional[str] = None
    source_version: Optional[str] = None
    source_type_override: Optional[str] = None
    source_location_override: Optional[str] = None
    buildspec_override: Optional[str] = None
    compute_type_override: Optional[str] = None
    environment_type_override: Optional[str] = None
    image_override: Optional[str] = None
    image_pull_credentials_type_override: Optional[str] = None
    artifacts_type_override: Optional[str] = None
    env_passthrough: Sequence[str] = field(default_factory=list)
    disable_source_override: bool = False
    disable_github_env_vars: bool = False
    server_url: str = DEFAULT_SERVER_URL


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    return value or None


def environment_overrides(
    environ: Mapping[str, str],
    passthrough: Sequence[str] = (),
    include_github: bool = True,
) -> tuple[EnvironmentVariable, ...]:
    """Select the variables forwarded to the build, in ``environ`` order.

    A name is kept when it carries the ``GITHUB_`` prefix (unless
    ``include_github`` is off) or is listed in ``passthrough``.
    """
    wanted = set(passthrough)
    selected: dict[str, EnvironmentVariable] = {}
    for name, value in environ.items():
        if (include_github and name.startswith(GITHUB_ENV_PREFIX)) or name in wanted:
            selected[name] = EnvironmentVariable(name=name, value=value)
    return tuple(selected.values())


def inputs_to_request(inputs: BuildInputs, environ: Mapping[str, str]) -> BuildRequest:
    """Build the ``StartBuild`` request for ``inputs``.

    ``environ`` is the process environment snapshot to scan for forwarded
    variables; pass ``dict(os.environ)`` from the entry points.
    """
    if not inputs.project_name:
        raise MissingRequiredField("project-name")

    source: dict[str, Optional[str]] = {}
    if not inputs.disable_source_override:
        location = _blank_to_none(inputs.source_location_override)
        if location is None and inputs.owner and inputs.repo:
            location = f"{inputs.server_url.rstrip('/')}/{inputs.owner}/{inputs.repo}.git"
        source = {
            "source_version": _blank_to_none(inputs.source_version),
            "source_type_override": (
                _blank_to_none(inputs.source_type_override) or DEFAULT_SOURCE_TYPE
            ),
            "source_location_override": location,
        }
    else:
        logger.debug("Source override disabled, using the project's source settings")

    artifacts_type = _blank_to_none(inputs.artifacts_type_override)

    return BuildRequest(
        project_name=inputs.project_name,
        buildspec_override=_blank_to_none(inputs.buildspec_override),
        compute_type_override=_blank_to_none(inputs.compute_type_override),
        environment_type_override=_blank_to_none(inputs.environment_type_override),
        image_override=_blank_to_none(inputs.image_override),
        image_pull_credentials_type_override=_blank_to_none(
            inputs.image_pull_credentials_type_override
        ),
        artifacts_override={"type": artifacts_type} if artifacts_type else None,
        environment_variables=environment_overrides(
            environ,
            passthrough=inputs.env_passthrough,
            include_github=not inputs.disable_github_env_vars,
        ),
        **source,
    )
