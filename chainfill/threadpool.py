"""A thread pool that tracks job outcomes by job id."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable

GENERIC_MESSAGE = "ThreadPool: generic exception"


@dataclass
class JobResult:
    """Outcome of a finished job."""

    failed: bool = False
    message: str = ""


class ThreadPool:
    """Runs jobs on worker threads and keeps their results until queried."""

    def __init__(self, threads: int) -> None:
        self._executor = ThreadPoolExecutor(max_workers=threads)
        self._condition = threading.Condition()
        self._last_id = 0
        self._results: dict[int, JobResult] = {}
        self._pending: set[int] = set()

    def post(self, job: Callable[[], object]) -> int:
        """Queue a job and return its id."""
        with self._condition:
            self._last_id += 1
            job_id = self._last_id
            self._pending.add(job_id)
        self._executor.submit(self._run, job_id, job)
        return job_id

    def _run(self, job_id: int, job: Callable[[], object]) -> None:
        result = JobResult()
        try:
            job()
        except Exception as error:
            result = JobResult(True, str(error))
        except BaseException:
            result = JobResult(True, GENERIC_MESSAGE)
        self._store(job_id, result)

    def _store(self, job_id: int, result: JobResult) -> None:
        with self._condition:
            if job_id in self._pending:
                self._pending.discard(job_id)
            else:
                result = JobResult(
                    True, f"Error corrupted ThreadPool missing pending JobId {job_id}"
                )
            self._results[job_id] = result
            self._condition.notify_all()

    def result(self, job_id: int) -> JobResult | None:
        """Take the result of a finished job, or None while it is still pending."""
        with self._condition:
            if job_id in self._results:
                return self._results.pop(job_id)
            if job_id not in self._pending:
                raise ValueError(f"Invalid JobId {job_id}")
            return None

    def query(self) -> dict[int, JobResult]:
        """Wait for finished jobs and take all their results.

        Returns an empty dict once no jobs are pending and all results are taken.
        """
        with self._condition:
            self._condition.wait_for(lambda: self._results or not self._pending)
            taken = dict(sorted(self._results.items()))
            self._results.clear()
            return taken

    def join(self) -> None:
        """Wait for all queued jobs and stop the workers."""
        self._executor.shutdown(wait=True)

    def __enter__(self) -> ThreadPool:
        return self

    def __exit__(self, *args: object) -> None:
        self.join()