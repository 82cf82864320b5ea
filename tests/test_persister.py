import io
from dataclasses import dataclass, field
from datetime import datetime

import pytest

from chainfill.persister import CsvFormat, CsvPersister, open_output_file


@dataclass
class _Chain:
    underlier: str = "SPY"
    valuation_date: str = "2025-04-02"
    expiry_date: str = "2025-04-04"
    puts: dict = field(default_factory=lambda: {f"{i:08d}": None for i in range(193)})


class _Capture(io.StringIO):
    def __init__(self, texts):
        super().__init__()
        self._texts = texts

    def close(self):
        self._texts.append(self.getvalue())
        super().close()


def _capturing_outputter(paths, texts):
    def outputter(path):
        paths.append(path)
        return _Capture(texts)

    return outputter


def _render(stream, chain, market_environment, csv_format):
    stream.write(f"{chain.underlier},{market_environment},{csv_format.value}\n")


def test_chain_path_and_rendered_content():
    paths, texts = [], []
    persister = CsvPersister(
        "basePath",
        True,
        CsvFormat.SIDE_BY_SIDE,
        render=_render,
        outputter=_capturing_outputter(paths, texts),
    )
    persister.persist(_Chain(), "env")
    assert paths == ["basePath/2025-04-02/spy_chain_2025-04-02_2025-04-04_n193.csv"]
    assert texts == ["SPY,env,side-by-side\n"]


def test_missing_chain_notice():
    paths, texts = [], []
    persister = CsvPersister(
        "basePath", True, missing_outputter=_capturing_outputter(paths, texts)
    )
    at = datetime(2025, 4, 2, 17, 30, 0)
    persister.persist_missing("SPY", "2025-04-02", [(at, "2025-04-02"), (at, "2025-04-03")])
    assert paths == ["basePath/2025-04-02/spy_missing_2025-04-02_17-30-00.000000000.txt"]
    assert texts == [
        "2025-04-02 17:30:00.000000000 EXP 2025-04-02\n"
        "2025-04-02 17:30:00.000000000 EXP 2025-04-03\n"
    ]


def test_empty_missing_list_writes_nothing():
    paths, texts = [], []
    persister = CsvPersister(
        "basePath", True, missing_outputter=_capturing_outputter(paths, texts)
    )
    persister.persist_missing("SPY", "2025-04-02", [])
    assert paths == []
    assert texts == []


def test_filename_part_without_date_folders():
    persister = CsvPersister("out", False)
    assert persister.filename_part("2025-04-02", "QQQ") == "out/qqq"
    assert CsvPersister("out", True).filename_part("2025-04-02", "QQQ") == "out/2025-04-02/qqq"


def test_default_format_is_stacked():
    paths, texts = [], []
    persister = CsvPersister(
        "b", False, render=_render, outputter=_capturing_outputter(paths, texts)
    )
    persister.persist(_Chain(puts={}), 1)
    assert texts == ["SPY,1,stacked\n"]
    assert paths == ["b/spy_chain_2025-04-02_2025-04-04_n0.csv"]


def test_unsupported_format_rejected():
    with pytest.raises(ValueError):
        CsvPersister("b", False, "sideways")


def test_persist_without_renderer_raises():
    persister = CsvPersister("b", False, outputter=_capturing_outputter([], []))
    with pytest.raises(ValueError):
        persister.persist(_Chain(), None)


def test_files_written_below_created_directories(tmp_path):
    persister = CsvPersister(str(tmp_path), True, render=_render)
    persister.persist(_Chain(), "env")
    written = tmp_path / "2025-04-02" / "spy_chain_2025-04-02_2025-04-04_n193.csv"
    assert written.read_text(encoding="utf-8") == "SPY,env,stacked\n"


def test_open_output_file_creates_parents(tmp_path):
    target = tmp_path / "a" / "b" / "c.txt"
    with open_output_file(str(target)) as stream:
        stream.write("hello")
    assert target.read_text(encoding="utf-8") == "hello"