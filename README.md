# fastchess

Tools for driving UCI chess engines from Python: starting engine processes,
exchanging UCI commands, tracking clocks, pinning engines to CPUs and handing
out openings from an EPD book.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Checking an engine

The package installs a command that puts an engine through a fixed series of
UCI steps (`uci`, `isready`, `id name`, `id author`, `ucinewgame`, `position`,
and `go` with several clock settings) and prints each step as passed or
failed, stopping at the first failure:

```
fastchess-compliance /path/to/engine
fastchess-compliance /path/to/engine "--some-engine-arg"
```

The second argument is split into words like a shell command line. The exit
status is 0 when every step passes and 1 otherwise. The same check is
available as `python -m fastchess.compliance` and, from code, as
`fastchess.compliance.compliant(cmd, args)`.

## Modules

- `fastchess.options` – UCI option types (`ButtonOption`, `CheckOption`,
  `ComboOption`, `SpinOption`, `StringOption`, with `OptionType`), the
  `UCIOptions` collection and `parse_uci_option_line`, which turns an
  `option name ... type ...` line into an option or returns `None` for lines
  that declare no known type. Spin options with non-numeric or out-of-range
  values raise `ValueError`.
- `fastchess.timecontrol` – `Limits` (milliseconds, plus `moves` to go) and
  `TimeControl`, which tracks `time_left` and `moves_left`, charges each move
  with `update_time` (returning `False` when the flag falls) and gives a
  `timeout_threshold` as a `timedelta`. `str(tc)` gives forms such as
  `40/60+0.6`, `0.1/move` or `-`.
- `fastchess.cpuinfo` – `CpuInfo`, `PhysicalCpu` and `Core`, filled from the
  text of `/proc/cpuinfo` by `parse_cpuinfo`, or for this machine by
  `get_cpu_info`, which falls back to one core per logical processor where
  `/proc/cpuinfo` cannot be read.
- `fastchess.affinity` – `set_affinity(cpus, pid)`, which returns `False` where
  the platform cannot pin processes, and `AffinityManager`, whose `consume`
  hands out an `AffinityProcessor` so that engines first get distinct
  physical cores and only then the second hyperthread of each. An
  `AffinityProcessor` returns to the pool with `release()` or on leaving a
  `with` block.
- `fastchess.book` – `read_epd` (plain or `.gz`), `shuffle`, `rotate`,
  `truncate`, and `OpeningBook`, which serves `Opening`s in sequential or
  random order (`OrderType`), starting at a one-based `start` and skipping
  ahead by the games already played; `fetch_id` cycles through the book.
- `fastchess.process` – `Process`, a child process started with `init`, with
  `write_input`, line-based `read_output` that stops at a line starting with a
  given word or after a timeout, and `terminate`, which kills and reaps the
  child and logs how it ended (`signal_to_string`). Processes still running
  at interpreter exit are killed.
- `fastchess.uci_engine` – `EngineConfig`, `EngineLimit`, `Color`, `ScoreType`
  and `UciEngine`, with `start`, `refresh_uci`, `isready`, `ucinewgame`,
  `position`, `go`, `read_engine`, `bestmove`, `last_info_line`,
  `last_score_type`, `last_score`, `last_time` and related helpers.
- `fastchess.compliance` – `is_valid_info_line`, `compliant` and the `main`
  behind `fastchess-compliance`.

## Example

```python
from fastchess.timecontrol import Limits, TimeControl
from fastchess.uci_engine import Color, EngineConfig, UciEngine

config = EngineConfig(name="engine", cmd="/path/to/engine")
with UciEngine(config, False) as engine:
    engine.start()              # raises RuntimeError if the engine does not answer
    engine.ucinewgame()

    tc = TimeControl(Limits(time=10_000, increment=100))
    engine.position([], "startpos")
    engine.go(tc, tc, Color.WHITE)
    engine.read_engine("bestmove")
    print(engine.bestmove(), engine.last_score_type(), engine.last_score())
```

Leaving the `with` block sends `quit` and reaps the engine process.

## What this package does not do

- It does not run matches or tournaments: there is no game loop, no move
  legality checking, no adjudication and no scheduling of pairings.
- It keeps no results: no scoreboard, Elo or SPRT calculation, and it writes
  no PGN or EPD game records.
- `OpeningBook` reads EPD files only. PGN openings must be parsed elsewhere
  and passed in through its `openings` argument.
- The only command is `fastchess-compliance`; there is no command for playing
  engines against each other.
- Processes are driven through POSIX pipes; CPU pinning works only where the
  platform offers `os.sched_setaffinity`.