"""GitHub Actions adapter.

Reads the action inputs (``INPUT_*`` variables) and the workflow context from
the environment, and reports outputs and failures with the conventions the
Actions runner understands.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Mapping, Optional

from codebuild_run.core.errors import MissingRequiredField, ValidationError
from codebuild_run.core.parameters import DEFAULT_SERVER_URL, BuildInputs

logger = logging.getLogger(__name__)

BUILD_ID_OUTPUT = "aws-build-id"


def get_input(name: str, environ: Mapping[str, str], required: bool = False) -> str:
    """Return the trimmed value of action input ``name`` ("" if unset)."""
    key = f"INPUT_{name.replace(' ', '_').upper()}"
    value = environ.get(key, "").strip()
    if required and not value:
        raise MissingRequiredField(name)
    return value


def get_bool_input(name: str, environ: Mapping[str, str]) -> bool:
    return get_input(name, environ).lower() == "true"


def get_list_input(name: str, environ: Mapping[str, str]) -> list[str]:
    """Split a comma separated input, dropping blanks."""
    return [item.strip() for item in get_input(name, environ).split(",") if item.strip()]


def get_seconds_input(name: str, environ: Mapping[str, str]) -> Optional[float]:
    raw = get_input(name, environ)
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        raise ValidationError(f"Input {name} must be a number of seconds, got {raw!r}") from None


def _event_payload(environ: Mapping[str, str]) -> dict:
    path = environ.get("GITHUB_EVENT_PATH")
    if not path or not Path(path).exists():
        return {}
    return json.loads(Path(path).read_text())


def resolve_source_version(environ: Mapping[str, str]) -> Optional[str]:
    """Pick the commit to build.

    An explicit override wins. Pull request events build the PR head commit,
    not the merge commit in ``GITHUB_SHA``.
    """
    override = get_input("source-version-override", environ)
    if override:
        return override
    if environ.get("GITHUB_EVENT_NAME") == "pull_request":
        head = _event_payload(environ).get("pull_request", {}).get("head", {})
        sha = head.get("sha")
        if not sha:
            raise ValidationError("No source version could be evaluated.")
        return sha
    return environ.get("GITHUB_SHA")


def github_inputs(environ: Mapping[str, str]) -> BuildInputs:
    """Collect the build inputs of the running workflow step."""
    project_name = get_input("project-name", environ, required=True)
    owner, _, repo = environ.get("GITHUB_REPOSITORY", "").partition("/")

    return BuildInputs(
        project_name=project_name,
        owner=owner or None,
        repo=repo or None,
        source_version=resolve_source_version(environ),
        source_type_override=get_input("source-type-override", environ),
        source_location_override=get_input("source-location-override", environ),
        buildspec_override=get_input("buildspec-override", environ),
        compute_type_override=get_input("compute-type-override", environ),
        environment_type_override=get_input("environment-type-override", environ),
        image_override=get_input("image-override", environ),
        image_pull_credentials_type_override=get_input(
            "image-pull-credentials-type-override", environ
        ),
        artifacts_type_override=get_input("artifacts-type-override", environ),
        env_passthrough=get_list_input("env-vars-for-codebuild", environ),
        disable_source_override=get_bool_input("disable-source-override", environ),
        disable_github_env_vars=get_bool_input("disable-github-env-vars", environ),
        server_url=environ.get("GITHUB_SERVER_URL") or DEFAULT_SERVER_URL,
    )


def poll_overrides(environ: Mapping[str, str]) -> dict:
    """Poll settings from the action inputs, in ``load_config`` override form."""
    return {
        "update_interval": get_seconds_input("update-interval", environ),
        "update_back_off": get_seconds_input("update-back-off", environ),
        "hide_logs": get_bool_input("hide-cloudwatch-logs", environ),
        "stop_signals": get_list_input("stop-on-signals", environ),
    }


def set_output(name: str, value: str, environ: Mapping[str, str]) -> None:
    """Publish a step output via the ``$GITHUB_OUTPUT`` file."""
    path = environ.get("GITHUB_OUTPUT")
    if not path:
        logger.info(f"Output {name}={value} (GITHUB_OUTPUT not set)")
        return
    with open(path, "a", encoding="utf-8") as f:
        f.write(f"{name}={value}\n")


def set_failed(message: str) -> None:
    """Emit an error annotation; the caller exits non-zero."""
    print(f"::error::{message}")
