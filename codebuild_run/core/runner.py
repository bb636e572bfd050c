"""End-to-end run: start the build, arm cancellation, poll to completion."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from codebuild_run.core.launcher import BuildLauncher
from codebuild_run.core.models import BuildHandle, BuildRequest, BuildStatus, PollConfig
from codebuild_run.core.poller import LogSink, PollLoop, print_line
from codebuild_run.core.service import BuildService
from codebuild_run.core.signals import CancellationToken, resolve_signals

logger = logging.getLogger(__name__)


async def run_build(
    service: BuildService,
    request: BuildRequest,
    config: PollConfig,
    sink: LogSink = print_line,
    token: Optional[CancellationToken] = None,
    on_start: Optional[Callable[[BuildHandle], None]] = None,
    poller: Optional[PollLoop] = None,
) -> BuildStatus:
    """Start ``request`` and return the build's terminal status.

    ``on_start`` is called with the handle as soon as the build exists, so
    callers can report the build id even if polling later fails.
    """
    # Bad signal names must fail before StartBuild, not leave a build running.
    resolve_signals(config.stop_signals)

    launcher = BuildLauncher(service)
    handle = await launcher.launch(request)
    if on_start is not None:
        on_start(handle)

    token = token or CancellationToken()
    bridge = launcher.arm_cancellation(handle, config.stop_signals, token)
    poller = poller or PollLoop(service, config, sink)
    try:
        return await poller.wait_for_build_end_time(handle, token)
    finally:
        bridge.uninstall()
        await launcher.drain()
