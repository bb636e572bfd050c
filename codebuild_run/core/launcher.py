"""Starting a build and wiring cancellation to it."""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Optional

from codebuild_run.core.models import BuildHandle, BuildRequest
from codebuild_run.core.service import BuildService
from codebuild_run.core.signals import DEFAULT_STOP_SIGNALS, CancellationToken, SignalBridge

logger = logging.getLogger(__name__)


class BuildLauncher:
    """Issues the StartBuild call and the best-effort StopBuild calls."""

    def __init__(self, service: BuildService):
        self.service = service
        self._stop_tasks: set[asyncio.Task] = set()

    async def launch(self, request: BuildRequest) -> BuildHandle:
        """Start one build. Not retried: StartBuild is not idempotent."""
        handle = await self.service.start_build(request)
        logger.info(f"Started build {handle.id} for project {request.project_name}")
        return handle

    async def stop(self, build_id: str) -> None:
        """Ask CodeBuild to stop ``build_id``; failures are logged only."""
        try:
            await self.service.stop_build(build_id)
            logger.info(f"Stop requested for build {build_id}")
        except Exception as e:
            logger.error(f"Failed to stop build {build_id}: {e}")

    def _schedule_stop(self, build_id: str) -> None:
        task = asyncio.get_running_loop().create_task(self.stop(build_id))
        self._stop_tasks.add(task)
        task.add_done_callback(self._stop_tasks.discard)

    async def drain(self) -> None:
        """Wait for in-flight stop requests."""
        if self._stop_tasks:
            await asyncio.gather(*self._stop_tasks)

    def arm_cancellation(
        self,
        handle: BuildHandle,
        signals: Iterable[str] = DEFAULT_STOP_SIGNALS,
        token: Optional[CancellationToken] = None,
    ) -> SignalBridge:
        """Stop ``handle`` whenever ``token`` is cancelled or a stop signal arrives.

        Must be called from inside the running event loop.
        """
        token = token or CancellationToken()
        token.add_callback(lambda: self._schedule_stop(handle.id))
        bridge = SignalBridge(token, signals)
        bridge.install()
        return bridge
