"""Build status polling and CloudWatch Logs relay.

The loop polls ``BatchGetBuilds`` and ``GetLogEvents`` side by side until the
build reports an end time *and* the log stream has gone quiet. CloudWatch Logs
is eventually consistent: the stream can return empty pages before all lines
have landed, so a single empty page after completion is not trusted as the
end of the stream. Two consecutive empty pages are required, and empty pages
only count once some output has been seen or the build has finished.

Throttling (``Rate exceeded``) is retried indefinitely with jittered
exponential backoff; the enlarged interval is kept for the rest of the run.
Any other error ends the loop.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional

from codebuild_run.core.errors import is_rate_limited
from codebuild_run.core.models import (
    BuildHandle, BuildStatus, LogBatch, PollConfig, PollState,
)
from codebuild_run.core.service import BuildService
from codebuild_run.core.signals import CancellationToken

logger = logging.getLogger(__name__)

QUIESCENT_EMPTY_READS = 2

LogSink = Callable[[str], None]


def print_line(line: str) -> None:
    # stdout is a pipe under CI runners; flush so lines stream live.
    print(line, flush=True)


class PollLoop:
    """Tracks one build to completion, relaying its log lines to ``sink``."""

    def __init__(
        self,
        service: BuildService,
        config: PollConfig,
        sink: LogSink = print_line,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        jitter: Callable[[float, float], float] = random.uniform,
    ):
        self.service = service
        self.config = config
        self.sink = sink
        self._sleep = sleep
        self._jitter = jitter
        self.state: Optional[PollState] = None

    async def _fetch(
        self, current: BuildHandle | BuildStatus, cursor: Optional[str],
    ) -> tuple[BuildStatus, LogBatch]:
        location = current.log_location
        if self.config.hide_logs or not location.known:
            status = await self.service.get_build_status(current.id)
            return status, LogBatch()

        status, batch = await asyncio.gather(
            self.service.get_build_status(current.id),
            self.service.get_log_events(
                location.log_group_name,
                location.log_stream_name,
                start_from_head=True,
                next_token=cursor,
            ),
        )
        return status, batch

    def _backoff(self, state: PollState) -> float:
        """Grow the wait after a throttled call. There is no upper bound."""
        ceiling = self.config.update_back_off * (2 ** state.throttle_count)
        state.current_wait = state.current_wait + self._jitter(0, ceiling)
        state.throttle_count += 1
        return state.current_wait

    def _emit(self, events: tuple[str, ...]) -> None:
        for message in events:
            self.sink(message.rstrip("\r\n"))

    async def wait_for_build_end_time(
        self,
        handle: BuildHandle,
        token: Optional[CancellationToken] = None,
    ) -> BuildStatus:
        """Poll until the build has an end time and its logs are drained.

        Returns the final status snapshot, or raises the first
        non-throttling error from the service.
        """
        state = PollState(current_wait=self.config.update_interval)
        self.state = state
        current: BuildHandle | BuildStatus = handle
        cancel_seen = False

        while True:
            if token is not None and token.cancelled and not cancel_seen:
                cancel_seen = True
                logger.info(f"Stop requested for {handle.id}, waiting for CodeBuild to report it")

            try:
                status, batch = await self._fetch(current, state.log_cursor)
            except Exception as e:
                if not is_rate_limited(e):
                    raise
                wait = self._backoff(state)
                logger.warning(
                    f"Rate limited (throttle #{state.throttle_count}), "
                    f"retrying in {wait:.1f}s"
                )
                await self._sleep(wait)
                continue

            if batch.events:
                state.consecutive_empty_log_responses = 0
                state.total_events_seen += len(batch.events)
            elif state.total_events_seen > 0 or status.finished:
                state.consecutive_empty_log_responses += 1

            self._emit(batch.events)

            if status.finished and state.consecutive_empty_log_responses >= QUIESCENT_EMPTY_READS:
                logger.info(f"Build {status.id} finished with status {status.build_status}")
                return status

            if batch.next_token is not None:
                state.log_cursor = batch.next_token
            current = status

            if status.finished and state.throttle_count == 0:
                await self._sleep(state.current_wait / 2)
            else:
                await self._sleep(state.current_wait)
