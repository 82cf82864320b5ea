"""Retrying of failing tasks, immediately or through futures."""

from __future__ import annotations

from concurrent.futures import Future
from typing import Callable, Generic, TypeVar

T = TypeVar("T")

ErrorLogger = Callable[[int, Exception], None]


class DbnResponseError(Exception):
    """Error reported by the data service for a bad or oversized response."""


def is_zstd_buffer_overflow(error: BaseException) -> bool:
    """True when a response exceeded the decompression buffer."""
    return isinstance(error, DbnResponseError) and "Zstd" in str(error)


def no_retry_error(error: BaseException) -> bool:
    """True for errors that are certain to fail again when retried."""
    return is_zstd_buffer_overflow(error)


class Retry:
    """Run a task, retrying it up to ``retries`` more times after failures."""

    def __init__(self, retries: int) -> None:
        self.retries = retries

    def run(self, func: Callable[[], T], error_logger: ErrorLogger) -> T:
        attempt = 0
        while True:
            try:
                return func()
            except Exception as error:
                attempt += 1
                if attempt > self.retries or no_retry_error(error):
                    raise
                error_logger(attempt, error)


class RetryDelayed(Generic[T]):
    """Submit a task at once and retry it when its result is retrieved."""

    def __init__(
        self,
        retries: int,
        submit: Callable[[], Future[T]],
        error_logger: ErrorLogger,
    ) -> None:
        self.retries = retries
        self._attempt = 0
        self._submit = submit
        self._error_logger = error_logger
        self._future = submit()

    def retrieve(self) -> T:
        while True:
            try:
                return self._future.result()
            except Exception as error:
                self._attempt += 1
                if self._attempt > self.retries or no_retry_error(error):
                    raise
                self._error_logger(self._attempt, error)
                self._future = self._submit()