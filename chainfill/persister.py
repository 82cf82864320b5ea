"""Persisting of option chains and notices of missing chains."""

from __future__ import annotations

import enum
import os
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, ContextManager, Iterable, TextIO

Outputter = Callable[[str], ContextManager[TextIO]]
Renderer = Callable[[TextIO, Any, Any, "CsvFormat"], None]


class CsvFormat(enum.Enum):
    """Layout of a chain in CSV: puts and calls stacked or side by side."""

    STACKED = "stacked"
    SIDE_BY_SIDE = "side-by-side"


class Persister(ABC):
    """Stores option chains and notices of chains that could not be built."""

    @abstractmethod
    def persist(self, chain: Any, market_environment: Any) -> None:
        """Store an option chain."""

    @abstractmethod
    def persist_missing(
        self, symbol: str, date: str, missing: Iterable[tuple[datetime, str]]
    ) -> None:
        """Store a notice of (time, expiry date) pairs for which chains are missing."""


def open_output_file(path: str) -> TextIO:
    """Open a file for writing, creating its parent directories first."""
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    return open(path, "w", encoding="utf-8", newline="")


def _with_nanoseconds(timestamp: datetime, seconds_separator: str, time_format: str) -> str:
    fraction = f"{timestamp.microsecond * 1000:09d}"
    return f"{timestamp.strftime(time_format)}{seconds_separator}{fraction}"


class CsvPersister(Persister):
    """Writes chains to CSV files below a base path, one file per chain.

    A chain must provide ``underlier``, ``valuation_date``, ``expiry_date`` and
    ``puts``. ``render(stream, chain, market_environment, csv_format)`` writes the
    CSV body of a chain.
    """

    def __init__(
        self,
        base_path: str,
        split_folders_by_date: bool,
        csv_format: CsvFormat = CsvFormat.STACKED,
        render: Renderer | None = None,
        outputter: Outputter | None = None,
        missing_outputter: Outputter | None = None,
    ) -> None:
        self.base_path = base_path
        self.split_folders_by_date = split_folders_by_date
        self.csv_format = CsvFormat(csv_format)
        self.render = render
        self.outputter = outputter or open_output_file
        self.missing_outputter = missing_outputter or open_output_file

    def filename_part(self, date: str, symbol: str) -> str:
        """Path prefix for files of a symbol on a date."""
        path = self.base_path
        if self.split_folders_by_date:
            path += "/" + date
        return path + "/" + symbol.lower()

    def persist(self, chain: Any, market_environment: Any) -> None:
        if self.render is None:
            raise ValueError("CsvPersister has no CSV renderer to write chains with")
        path = self.filename_part(chain.valuation_date, chain.underlier)
        path += f"_chain_{chain.valuation_date}_{chain.expiry_date}_n{len(chain.puts)}.csv"
        with self.outputter(path) as stream:
            self.render(stream, chain, market_environment, self.csv_format)

    def persist_missing(
        self, symbol: str, date: str, missing: Iterable[tuple[datetime, str]]
    ) -> None:
        entries = list(missing)
        if not entries:
            return
        first_time = entries[0][0]
        path = self.filename_part(date, symbol)
        path += f"_missing_{date}_{_with_nanoseconds(first_time, '.', '%H-%M-%S')}.txt"
        with self.missing_outputter(path) as stream:
            for timestamp, expiry_date in entries:
                line_time = _with_nanoseconds(timestamp, ".", "%Y-%m-%d %H:%M:%S")
                stream.write(f"{line_time} EXP {expiry_date}\n")