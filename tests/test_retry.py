import itertools
import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from chainfill.retry import (
    DbnResponseError,
    Retry,
    RetryDelayed,
    is_zstd_buffer_overflow,
    no_retry_error,
)
from chainfill.threadpool import ThreadPool

WORKER_THREADS = 10
VAR_THREADS = 5
SLEEP = 10


def _sporadic(counter):
    def work(n_sleep):
        if next(counter) % 5 == 0:
            raise RuntimeError(f"Bad count {n_sleep}")
        time.sleep(n_sleep / 10000)
        return f"Thread {threading.get_ident()} slept {n_sleep}"

    return work


def test_zstd_overflow_detection():
    assert is_zstd_buffer_overflow(DbnResponseError("Zstd error decompressing")) is True
    assert is_zstd_buffer_overflow(DbnResponseError("other")) is False
    assert is_zstd_buffer_overflow(RuntimeError("Zstd error")) is False
    assert no_retry_error(DbnResponseError("Zstd error")) is True
    assert no_retry_error(ValueError("Zstd")) is False


def test_run_succeeds_after_failures():
    attempts = []
    logged = []

    def func():
        attempts.append(1)
        if len(attempts) < 3:
            raise RuntimeError("flaky")
        return "done"

    result = Retry(2).run(func, lambda n, e: logged.append((n, str(e))))
    assert result == "done"
    assert logged == [(1, "flaky"), (2, "flaky")]


def test_run_exceeding_retries_raises():
    logged = []

    def func():
        raise RuntimeError("always")

    with pytest.raises(RuntimeError, match="always"):
        Retry(1).run(func, lambda n, e: logged.append(n))
    assert logged == [1]


def test_run_does_not_retry_zstd_overflow():
    logged = []
    calls = []

    def func():
        calls.append(1)
        raise DbnResponseError("Zstd error: output buffer full")

    with pytest.raises(DbnResponseError):
        Retry(5).run(func, lambda n, e: logged.append(n))
    assert calls == [1]
    assert logged == []


def test_immediate_retry_in_thread_pool():
    counter = itertools.count(1)
    work = _sporadic(counter)
    lock = threading.Lock()
    results = []
    errors = []

    def logger(attempt, error):
        with lock:
            errors.append(f"fails nTry[{attempt}] with exception {error}")

    with ThreadPoolExecutor(VAR_THREADS) as var_pool:
        with ThreadPool(WORKER_THREADS) as worker:

            def job():
                for j in range(2 * VAR_THREADS):
                    result = Retry(20).run(
                        lambda j=j: var_pool.submit(work, SLEEP * j).result(), logger
                    )
                    with lock:
                        results.append(result)

            for _ in range(2 * WORKER_THREADS):
                worker.post(job)
    assert len(results) == WORKER_THREADS * VAR_THREADS * 4
    assert len(errors) > 0
    assert not any("Bad count" in r for r in results)


def test_delayed_retry_in_thread_pool():
    counter = itertools.count(1)
    work = _sporadic(counter)
    lock = threading.Lock()
    results = []
    errors = []

    def logger(attempt, error):
        with lock:
            errors.append(f"fails [{attempt}] with exception {error}")

    with ThreadPoolExecutor(VAR_THREADS) as var_pool:
        worker = ThreadPool(WORKER_THREADS)

        def job():
            pending = [
                RetryDelayed(20, lambda j=j: var_pool.submit(work, SLEEP * j), logger)
                for j in range(2 * VAR_THREADS)
            ]
            for delayed in pending:
                try:
                    result = delayed.retrieve()
                except Exception as error:
                    result = str(error)
                with lock:
                    results.append(result)

        for _ in range(2 * WORKER_THREADS):
            worker.post(job)
        worker.join()
        result_map = worker.query()
    assert len(result_map) == WORKER_THREADS * 2
    assert all(not r.failed for r in result_map.values())
    assert len(results) == WORKER_THREADS * VAR_THREADS * 2 * 2
    assert not any("Bad count" in r for r in results)
    assert len(errors) > 0


def test_delayed_retry_gives_up():
    calls = []

    def submit():
        calls.append(1)
        future = ThreadPoolExecutor(1).submit(lambda: 1 / 0)
        return future

    delayed = RetryDelayed(2, submit, lambda n, e: None)
    with pytest.raises(ZeroDivisionError):
        delayed.retrieve()
    assert len(calls) == 3