"""Option chain records, put-call parity gap filling, retries, a thread pool and file persistence."""

__version__ = "0.1.0"

__all__ = [
    "gapfiller",
    "market",
    "osioption",
    "pcpfit",
    "persister",
    "records",
    "retry",
    "signals",
    "threadpool",
]