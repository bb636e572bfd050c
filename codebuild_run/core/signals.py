"""Cancellation: OS signals feeding a cancellation token.

Cancelling is advisory. The token only fans out to its callbacks (the launcher
subscribes a stop-build request); the poll loop keeps running and learns about
the stop from the next status fetch.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import Callable, Iterable, Optional

from codebuild_run.core.errors import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_STOP_SIGNALS = ("SIGINT",)


class CancellationToken:
    """Explicit cancellation channel shared by the bridge, launcher and loop."""

    def __init__(self) -> None:
        self._callbacks: list[Callable[[], None]] = []
        self.requests = 0

    @property
    def cancelled(self) -> bool:
        return self.requests > 0

    def add_callback(self, callback: Callable[[], None]) -> None:
        self._callbacks.append(callback)

    def cancel(self) -> None:
        """Record a cancellation request and notify every subscriber."""
        self.requests += 1
        for callback in list(self._callbacks):
            callback()


def resolve_signals(names: Iterable[str]) -> list[signal.Signals]:
    """Map names such as ``SIGINT`` or ``term`` to signal numbers."""
    resolved = []
    for raw in names:
        name = raw.strip().upper()
        if not name:
            continue
        if not name.startswith("SIG"):
            name = f"SIG{name}"
        try:
            resolved.append(signal.Signals[name])
        except KeyError:
            raise ValidationError(f"Unknown signal: {raw}") from None
    return resolved


class SignalBridge:
    """Owns the process signal handlers for the duration of one build."""

    def __init__(
        self,
        token: CancellationToken,
        signals: Iterable[str] = DEFAULT_STOP_SIGNALS,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self.token = token
        self.signals = resolve_signals(signals)
        self._loop = loop
        self._installed: list[signal.Signals] = []
        self._previous: dict[signal.Signals, object] = {}

    def _on_signal(self, sig: signal.Signals) -> None:
        logger.warning(f"Received {sig.name}, requesting build stop")
        self.token.cancel()

    def install(self) -> None:
        """Register handlers with the event loop."""
        loop = self._loop = self._loop or asyncio.get_running_loop()
        for sig in self.signals:
            try:
                loop.add_signal_handler(sig, self._on_signal, sig)
            except NotImplementedError:
                # No loop-level signal support (e.g. Windows event loops).
                self._previous[sig] = signal.signal(
                    sig,
                    lambda signum, frame, s=sig: loop.call_soon_threadsafe(self._on_signal, s),
                )
            self._installed.append(sig)
        logger.debug(f"Stop signals armed: {[s.name for s in self._installed]}")

    def uninstall(self) -> None:
        """Restore the handlers that were active before ``install``."""
        loop = self._loop
        for sig in self._installed:
            if sig in self._previous:
                signal.signal(sig, self._previous.pop(sig))
            elif loop is not None:
                loop.remove_signal_handler(sig)
        self._installed.clear()
