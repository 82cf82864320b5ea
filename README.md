# chainfill

A library for cleaning up option chain snapshots: parsing OSI option
identifiers, computing put-call parity rates across strikes, filling missing
bid/ask quotes, and writing chains and notices of missing chains to files.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

- `chainfill.osioption` – `OsiOption` parses identifiers such as
  `SPY 240610C00123000` into `underlier`, `expiry_date`, `type`,
  `strike_dollars`, `strike_decimal` and `strike`, and offers `is_call()` and
  `is_put()`. A malformed identifier raises `ValueError`. `to_strike_key`,
  `from_strike_key` and `from_strike_key_as_string` convert between strikes
  and the eight digit strike keys (five dollar digits, three decimal digits)
  that index put and call records; `format_strike` renders strike digits
  without padding zeros.
- `chainfill.records` – `PriceWeight` (a price with its size; a size of 0
  means no price) and `Record`, the last trade and best bid/ask of one option,
  with helpers such as `mid_price()`, `spread()`, `bid_ask_valid()` and
  `is_empty()`. `fit_least_squares_line` returns slope and intercept of a
  least squares line; `on_all_put_call_records` applies a callback to puts and
  calls matched on strike key.
- `chainfill.pcpfit` – `parity_rate`, `match_put_call` (a `PcpResult` per
  strike key present on both sides), `remove_keys_not_in`, and
  `fit_pcp_rate_for_gaps`, which maps every strike key lacking a valid parity
  rate to a `LineFit` of kind `FitType.GAP`, `FitType.START` or `FitType.END`.
- `chainfill.gapfiller` – `GapFiller(discount_factor, parity_rate).fill(puts, calls)`
  returns filled copies of the two record maps. It completes records that have
  only a bid or only an ask with a line fit of spreads (`spread_fit`), fills
  gaps between good strikes by put-call parity, falling back to linear
  interpolation when the parity price is below a quarter of the ATM price, and
  extrapolates far out-of-the-money quotes on a log scale. Strike keys without
  a counterpart on the other side are dropped and listed in `orphaned_puts`
  and `orphaned_calls`. Filled records carry the comments `spread-fit`,
  `pcp-fit`, `lin-interpol` or `log-extrapolate`. The building blocks
  (`estimate_atm_price`, `interpolate`, `compute_spread`, `recv_time_of`,
  `fill_fit_values`, `add_comment`) are public as well.
- `chainfill.market` – `MarketEnvironment`, an immutable holder of the
  risk-free rate and exchange close information; `risk_free_rate_for`
  returns the flat rate.
- `chainfill.persister` – the `Persister` base class and `CsvPersister`,
  which writes one file per chain under a base path, optionally in per-date
  folders, as `<symbol>_chain_<date>_<expiry>_n<puts>.csv`, and lists of
  missing chains as `<symbol>_missing_<date>_<HH-MM-SS.nnnnnnnnn>.txt`.
  Output goes through `open_output_file` unless other outputters are given.
- `chainfill.retry` – `Retry` re-runs a failing callable; `RetryDelayed`
  resubmits a task returning a `concurrent.futures.Future` when its result is
  retrieved. A `DbnResponseError` mentioning `Zstd` (a response buffer
  overflow) is never retried.
- `chainfill.threadpool` – `ThreadPool` runs jobs on worker threads and keeps
  a `JobResult` (`failed`, `message`) per job id; `query()` waits for and takes
  finished results, `result(job_id)` takes one.
- `chainfill.signals` – `SignalHandler` installs a SIGINT handler so that
  `received()` reports a Ctrl+C instead of the program being interrupted.

## Examples

```python
from chainfill.osioption import OsiOption, to_strike_key, from_strike_key

option = OsiOption("SPY 240610P00123400")
option.is_put()              # True
option.strike                # "123.4"
to_strike_key(10.01)         # "00010010"
from_strike_key("00123400")  # 123.4
```

```python
from chainfill.gapfiller import GapFiller
from chainfill.records import PriceWeight, Record

def quote(bid, ask):
    return Record(bid=PriceWeight(bid, 1), ask=PriceWeight(ask, 1))

puts = {"00100000": quote(1.0, 1.2), "00105000": Record(ask=PriceWeight(2.5, 3))}
calls = {"00100000": quote(5.0, 5.2), "00105000": quote(2.0, 2.2)}

filler = GapFiller(discount_factor=0.999, parity_rate=104.0)
filled_puts, filled_calls = filler.fill(puts, calls)
```

```python
from chainfill.retry import Retry

def log(attempt, error):
    print(f"attempt {attempt} failed: {error}")

def flaky():
    ...

result = Retry(3).run(flaky, log)
```

## What the package does not do

- It does not fetch market data; record maps are built by the caller.
- It does not compute the discount factor or the parity rate of a chain;
  `GapFiller` takes both as arguments.
- `CsvPersister` chooses file paths and opens files, but the CSV body of a
  chain is written by the `render` callable passed to it; without one,
  `persist` raises `ValueError`.
- There is no command-line program.