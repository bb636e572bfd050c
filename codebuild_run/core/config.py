"""Configuration management for codebuild-run.

Loads settings from config/codebuild-run.toml, with CLI args and env vars as
overrides. Precedence: env vars > CLI args > config file > defaults.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from codebuild_run.core.models import PollConfig
from codebuild_run.core.errors import ValidationError
from codebuild_run.core.signals import DEFAULT_STOP_SIGNALS, resolve_signals

logger = logging.getLogger(__name__)

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore[no-redef]

CONFIG_FILE = Path("config") / "codebuild-run.toml"


@dataclass
class RunnerSettings:
    """Merged configuration from all sources."""

    # Polling (seconds)
    update_interval: float = 30.0
    update_back_off: float = 15.0
    hide_logs: bool = False

    # Cancellation
    stop_signals: list[str] = field(default_factory=lambda: list(DEFAULT_STOP_SIGNALS))

    # AWS
    region: Optional[str] = None

    log_level: str = "INFO"

    def poll_config(self) -> PollConfig:
        """Freeze the polling-related settings for one run."""
        return PollConfig(
            update_interval=self.update_interval,
            update_back_off=self.update_back_off,
            hide_logs=self.hide_logs,
            stop_signals=tuple(self.stop_signals),
        )


def load_config(
    project_root: Path,
    cli_overrides: Optional[dict] = None,
) -> RunnerSettings:
    """Load configuration with precedence: env > CLI > file > defaults.

    Args:
        project_root: Directory holding the optional config/ folder.
        cli_overrides: Dict of CLI argument overrides.

    Returns:
        Merged RunnerSettings instance.
    """
    settings = RunnerSettings()

    config_path = project_root / CONFIG_FILE
    if config_path.exists():
        _apply_toml(settings, config_path)

    if cli_overrides:
        _apply_cli(settings, cli_overrides)

    _apply_env(settings)

    return settings


def _apply_toml(settings: RunnerSettings, path: Path) -> None:
    """Apply values from the [runner] table of a TOML config file."""
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning(f"Failed to load config from {path}: {e}")
        return

    runner = data.get("runner", {})
    if "update_interval" in runner:
        settings.update_interval = float(runner["update_interval"])
    if "update_back_off" in runner:
        settings.update_back_off = float(runner["update_back_off"])
    if "hide_logs" in runner:
        settings.hide_logs = bool(runner["hide_logs"])
    if "stop_signals" in runner:
        settings.stop_signals = list(runner["stop_signals"])
    if "region" in runner:
        settings.region = runner["region"]
    if "log_level" in runner:
        settings.log_level = runner["log_level"]


def _apply_cli(settings: RunnerSettings, overrides: dict) -> None:
    """Apply CLI argument overrides. ``None`` means the flag was not given."""
    if overrides.get("update_interval") is not None:
        settings.update_interval = float(overrides["update_interval"])
    if overrides.get("update_back_off") is not None:
        settings.update_back_off = float(overrides["update_back_off"])
    if overrides.get("hide_logs"):
        settings.hide_logs = True
    if overrides.get("stop_signals"):
        settings.stop_signals = list(overrides["stop_signals"])
    if overrides.get("region"):
        settings.region = overrides["region"]
    if overrides.get("log_level"):
        settings.log_level = overrides["log_level"]


def _apply_env(settings: RunnerSettings) -> None:
    """Apply environment variable overrides."""
    env_map = {
        "CODEBUILD_RUN_UPDATE_INTERVAL": "update_interval",
        "CODEBUILD_RUN_UPDATE_BACK_OFF": "update_back_off",
        "CODEBUILD_RUN_HIDE_LOGS": "hide_logs",
        "CODEBUILD_RUN_LOG_LEVEL": "log_level",
        "AWS_REGION": "region",
    }
    for env_key, attr in env_map.items():
        val = os.environ.get(env_key)
        if val is None:
            continue
        current = getattr(settings, attr)
        if isinstance(current, bool):
            setattr(settings, attr, val.lower() in ("true", "1", "yes"))
        elif isinstance(current, float):
            try:
                setattr(settings, attr, float(val))
            except ValueError:
                logger.warning(f"Invalid number for {env_key}: {val}")
        else:
            setattr(settings, attr, val)


def validate_config(settings: RunnerSettings) -> list[str]:
    """Validate config and return list of issues (empty = valid)."""
    issues = []
    if settings.update_interval <= 0:
        issues.append(f"update_interval must be > 0, got {settings.update_interval}")
    if settings.update_back_off < 0:
        issues.append(f"update_back_off must be >= 0, got {settings.update_back_off}")
    if settings.log_level not in ("DEBUG", "INFO", "WARNING", "ERROR"):
        issues.append(f"Invalid log_level: {settings.log_level}")
    if not settings.stop_signals:
        issues.append("stop_signals must name at least one signal")
    try:
        resolve_signals(settings.stop_signals)
    except ValidationError as e:
        issues.append(str(e))
    return issues


def format_config(settings: RunnerSettings) -> str:
    """Format effective config for display."""
    return "\n".join([
        "# Effective Configuration",
        "",
        "[runner]",
        f"  update_interval   = {settings.update_interval}",
        f"  update_back_off   = {settings.update_back_off}",
        f"  hide_logs         = {settings.hide_logs}",
        f"  stop_signals      = {settings.stop_signals}",
        f"  region            = {settings.region or '(boto3 default)'}",
        f"  log_level         = {settings.log_level}",
    ])
