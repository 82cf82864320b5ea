"""Interrupt signal capture for graceful shutdown."""

from __future__ import annotations

import signal
from types import FrameType


class SignalHandler:
    """Installs a SIGINT handler that records the signal instead of interrupting."""

    _signal: int = 0

    def __init__(self) -> None:
        signal.signal(signal.SIGINT, SignalHandler._handle)

    @staticmethod
    def _handle(signum: int, frame: FrameType | None) -> None:
        SignalHandler._signal = signum

    def received(self) -> int:
        """The number of the last signal caught, or 0 if none was."""
        return SignalHandler._signal