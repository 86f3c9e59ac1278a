"""A step-by-step check that an engine speaks UCI well enough to play games."""

from __future__ import annotations

import argparse
import sys
from collections.abc import Callable, Sequence

from fastchess.process import Status
from fastchess.uci_engine import EngineConfig, UciEngine

_GREEN_PASSED = "\033[1;32m Passed\033[0m"
_RED_FAILED = "\033[1;31m Failed\033[0m"

_INTEGER_FIELDS = ("time", "nps", "score")


def is_valid_info_line(info_line: str) -> bool:
    """Check that a line is an ``info`` line whose time, nps and score values are integers.

    Problems are reported on stderr.
    """
    tokens = iter(info_line.split())

    if next(tokens, None) != "info":
        print(f"\r\nInvalid info line format: {info_line}", file=sys.stderr)
        return False

    for token in tokens:
        if token not in _INTEGER_FIELDS:
            continue
        value = next(tokens, None)
        if value is None:
            print(f"\r\nNo value after token: {token}", file=sys.stderr)
            return False
        if "." in value:
            print(f"\r\nTime/NPS/Score value is not an integer: {value}", file=sys.stderr)
            return False

    return True


def _started(engine: UciEngine) -> bool:
    try:
        engine.start()
    except RuntimeError:
        return False
    return True


def _ready(engine: UciEngine) -> bool:
    return engine.isready() is Status.OK


def _read_bestmove(engine: UciEngine) -> bool:
    return engine.read_engine("bestmove") is Status.OK


def _read_bestmove_with_move(engine: UciEngine) -> bool:
    return _read_bestmove(engine) and engine.bestmove() is not None


def _has_info(engine: UciEngine) -> bool:
    return bool(engine.last_info_line())


def _valid_info(engine: UciEngine) -> bool:
    return is_valid_info_line(engine.last_info_line())


def _info_has_score(engine: UciEngine) -> bool:
    return "score" in engine.last_info_line()


def _send(command: str) -> Callable[[UciEngine], bool]:
    return lambda engine: engine.write_engine(command)


_STEPS: tuple[tuple[str, Callable[[UciEngine], bool]], ...] = (
    ("Start the engine", _started),
    ("Check if engine is ready", _ready),
    ("Check id name", lambda engine: engine.id_name() is not None),
    ("Check id author", lambda engine: engine.id_author() is not None),
    ("Send ucinewgame", lambda engine: engine.ucinewgame()),
    ("Set position to startpos", _send("position startpos")),
    ("Check if engine is ready after startpos", _ready),
    (
        "Set position to fen",
        _send("position fen 3r2k1/p5n1/1pq1p2p/2p3p1/2P1P1n1/1P1P2pP/PN1Q2K1/5R2 w - - 0 27"),
    ),
    ("Check if engine is ready after fen", _ready),
    ("Send go wtime 100", _send("go wtime 100")),
    ("Read bestmove", _read_bestmove),
    ("Check if engine prints an info line", _has_info),
    ("Verify info line format is valid", _valid_info),
    ("Verify info line contains score", _info_has_score),
    (
        "Set position to black to move",
        _send("position fen rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1"),
    ),
    ("Send go btime 100", _send("go btime 100")),
    ("Read bestmove after go btime 100", _read_bestmove),
    ("Check if engine prints an info line after go btime 100", _has_info),
    ("Verify info line format is valid after go btime 100", _valid_info),
    ("Check if engine prints an info line with the score after go btime 100", _info_has_score),
    (
        "Send go wtime 100 winc 100 btime 100 binc 100",
        _send("go wtime 100 winc 100 btime 100 binc 100"),
    ),
    ("Read bestmove after go wtime 100 winc 100 btime 100 binc 100", _read_bestmove),
    ("Check if engine prints an info line after go wtime 100 winc 100", _has_info),
    ("Verify info line format is valid after go wtime 100 winc 100", _valid_info),
    (
        "Check if engine prints an info line with the score after go wtime 100 winc 100",
        _info_has_score,
    ),
    (
        "Send go btime 100 binc 100 wtime 100 winc 100",
        _send("go btime 100 binc 100 wtime 100 winc 100"),
    ),
    ("Read bestmove after go btime 100 binc 100 wtime 100 winc 100", _read_bestmove),
    ("Check if engine prints an info line after go btime 100 binc 100", _has_info),
    ("Verify info line format is valid after go btime 100 binc 100", _valid_info),
    (
        "Check if engine prints an info line with the score after go btime 100 binc 100",
        _info_has_score,
    ),
    ("Check if engine prints an info line after go btime 100 binc 100", _info_has_score),
    # A short simulated game.
    ("Send ucinewgame", lambda engine: engine.ucinewgame()),
    ("Set position to startpos", _send("position startpos")),
    ("Send go wtime 100", _send("go wtime 100 btime 100")),
    ("Read bestmove after go wtime 100 btime 100", _read_bestmove_with_move),
    ("Verify info line format is valid after go wtime 100 btime 100", _valid_info),
    (
        "Set position to startpos moves e2e4 e7e5",
        _send("position startpos moves e2e4 e7e5"),
    ),
    ("Send go wtime 100 btime 100", _send("go wtime 100 btime 100")),
    ("Read bestmove after position startpos moves e2e4 e7e5", _read_bestmove_with_move),
    (
        "Verify info line format is valid after position startpos moves e2e4 e7e5",
        _valid_info,
    ),
)


def compliant(cmd: str, args: str = "") -> bool:
    """Run the engine ``cmd`` with ``args`` through every check; stop at the first failure."""
    config = EngineConfig(cmd=cmd, args=args)

    with UciEngine(config, False) as engine:
        for step, (description, action) in enumerate(_STEPS, start=1):
            print(f"Step {step}: {description}...", end="", flush=True)

            if not action(engine):
                print(f"\r{_RED_FAILED} Step {step}: {description}", file=sys.stderr, flush=True)
                return False

            print(f"\r{_GREEN_PASSED} Step {step}: {description}", flush=True)

    print("Engine passed all compliance checks.", flush=True)
    return True


def main(argv: Sequence[str] | None = None) -> int:
    """Check an engine from the command line; exit status 0 when it passes."""
    parser = argparse.ArgumentParser(description="Check an engine for UCI compliance.")
    parser.add_argument("cmd", help="engine executable")
    parser.add_argument("args", nargs="?", default="", help="arguments for the engine")
    options = parser.parse_args(argv)
    return 0 if compliant(options.cmd, options.args) else 1


if __name__ == "__main__":
    sys.exit(main())