"""Talking to a chess engine over the UCI protocol."""

from __future__ import annotations

import enum
import logging
import sys
import threading
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import timedelta
from types import TracebackType
from typing import TypeVar

from fastchess.options import OptionType, UCIOptions, parse_uci_option_line
from fastchess.process import Line, Process, Standard, Status
from fastchess.timecontrol import TimeControl

logger = logging.getLogger(__name__)

STARTUP_TIME = timedelta(seconds=10)
UCINEWGAME_TIME = timedelta(seconds=60)
PING_TIME = timedelta(seconds=60)

_START_SEMAPHORE = threading.BoundedSemaphore(16)

_T = TypeVar("_T")


class ScoreType(enum.Enum):
    """How the engine expressed its last score."""

    CP = "cp"
    MATE = "mate"
    ERR = "err"


class Color(enum.Enum):
    """Side to move."""

    WHITE = "white"
    BLACK = "black"


@dataclass
class EngineLimit:
    """Search limits for an engine: its clock, a node limit and a depth limit."""

    tc: TimeControl = field(default_factory=TimeControl)
    nodes: int = 0
    plies: int = 0


@dataclass
class EngineConfig:
    """How to start an engine and what to tell it."""

    name: str = ""
    cmd: str = ""
    args: str = ""
    dir: str = ""
    options: list[tuple[str, str]] = field(default_factory=list)
    limit: EngineLimit = field(default_factory=EngineLimit)
    chess960: bool = False


def _find_element(
    tokens: Sequence[str], key: str, convert: Callable[[str], _T]
) -> _T | None:
    """Return the token following ``key`` converted, or None."""
    try:
        return convert(tokens[tokens.index(key) + 1])
    except (ValueError, IndexError):
        return None


class UciEngine:
    """A UCI engine process and the conversation held with it."""

    STARTUP_TIME = STARTUP_TIME
    UCINEWGAME_TIME = UCINEWGAME_TIME
    PING_TIME = PING_TIME

    def __init__(
        self,
        config: EngineConfig,
        realtime_logging: bool,
        stop_event: threading.Event | None = None,
    ) -> None:
        self.config = config
        self.realtime_logging = realtime_logging
        self._stop = stop_event if stop_event is not None else threading.Event()
        self._process = Process(realtime_logging=realtime_logging, stop_event=self._stop)
        self.uci_options = UCIOptions()
        self._output: list[Line] = []
        self._initialized = False

    def __enter__(self) -> UciEngine:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    @property
    def output(self) -> list[Line]:
        """Lines received by the last read."""
        return self._output

    def close(self) -> None:
        """Ask the engine to quit and reap its process."""
        self.quit()
        self._process.terminate()

    def _log_line(self, line: Line) -> None:
        arrow = "<---" if line.std is not Standard.ERR else "<!--"
        logger.debug("%s %s %s %s", line.time, self.config.name, arrow, line.line)

    def _read(self, last_word: str, threshold: timedelta) -> tuple[Status, list[Line]]:
        result = self._process.read_output(last_word, threshold)
        if isinstance(result, Status):
            return result, []
        return result

    def start(self) -> None:
        """Start the engine and wait for ``uciok``; later calls do nothing.

        Raises RuntimeError when the engine cannot be started or does not answer.
        """
        if self._initialized:
            return

        with _START_SEMAPHORE:
            logger.debug("Starting engine %s at %s", self.config.name, self.config.cmd)

            status = self._process.init(
                self.config.dir, self.config.cmd, self.config.args, self.config.name
            )
            if status is not Status.OK:
                raise RuntimeError("Couldn't start engine process")

            if not self.uci():
                raise RuntimeError("Couldn't write uci to engine")

            if not self.uciok(STARTUP_TIME):
                raise RuntimeError("Engine didn't respond to uciok after startup")

            self._initialized = True

    def refresh_uci(self) -> bool:
        """Start a new game and send the configured options, Threads first."""
        logger.debug("Refreshing engine %s", self.config.name)

        if not self.ucinewgame():
            logger.warning("Engine %s failed to start/refresh (ucinewgame).", self.config.name)
            return False

        options = sorted(self.config.options, key=lambda pair: pair[0] != "Threads")
        for name, value in options:
            self._send_setoption(name, value)

        if self.config.chess960:
            self._send_setoption("UCI_Chess960", "true")

        logger.debug("Engine %s refreshed.", self.config.name)
        return True

    def _id_field(self, key: str) -> str | None:
        if not self.uci() or not self.uciok():
            logger.warning("Warning; Engine %s didn't respond to uci.", self.config.name)
            return None

        for line in self._output:
            pos = line.line.find(key)
            if pos != -1:
                return line.line[pos + len(key) + 1 :]
        return None

    def id_name(self) -> str | None:
        """Ask for the engine's name as given in ``id name``."""
        return self._id_field("id name")

    def id_author(self) -> str | None:
        """Ask for the engine's author as given in ``id author``."""
        return self._id_field("id author")

    def uci(self) -> bool:
        logger.debug("Sending uci to engine %s", self.config.name)
        if not self.write_engine("uci"):
            logger.warning("Failed to send uci to engine %s", self.config.name)
            return False
        return True

    def uciok(self, threshold: timedelta = PING_TIME) -> bool:
        """Wait for ``uciok`` and record every option the engine advertises."""
        logger.debug("Waiting for uciok from engine %s", self.config.name)

        ok = self.read_engine("uciok", threshold) is Status.OK

        for line in self._output:
            if not self.realtime_logging:
                self._log_line(line)
            option = parse_uci_option_line(line.line)
            if option is not None:
                self.uci_options.add_option(option)

        if not ok:
            logger.warning("Engine %s did not respond to uciok in time.", self.config.name)
        return ok

    def ucinewgame(self) -> bool:
        logger.debug("Sending ucinewgame to engine %s", self.config.name)
        if not self.write_engine("ucinewgame"):
            logger.warning("Failed to send ucinewgame to engine %s", self.config.name)
            return False
        return self.isready(UCINEWGAME_TIME) is Status.OK

    def isready(self, threshold: timedelta = PING_TIME) -> Status:
        """Ping the engine and wait for ``readyok``."""
        alive = self._process.alive()
        if alive is not Status.OK:
            return alive

        logger.debug("Pinging engine %s", self.config.name)
        self.write_engine("isready")
        self._process.setup_read()

        status, lines = self._read("readyok", threshold)

        if not self.realtime_logging:
            for line in lines:
                self._log_line(line)

        if status is not Status.OK:
            if not self._stop.is_set():
                logger.warning("Warning; Engine %s is not responsive", self.config.name)
            return status

        logger.debug("Engine %s is responsive", self.config.name)
        return status

    def position(self, moves: Iterable[str], fen: str) -> bool:
        """Send the position as ``startpos`` or a FEN, followed by the moves."""
        command = "position " + ("startpos" if fen == "startpos" else f"fen {fen}")
        moves = list(moves)
        if moves:
            command += " moves " + " ".join(moves)
        return self.write_engine(command)

    def go(self, our_tc: TimeControl, enemy_tc: TimeControl, stm: Color) -> bool:
        """Tell the engine to search with the clocks of both sides."""
        parts = ["go"]
        limit = self.config.limit

        if limit.nodes:
            parts.append(f"nodes {limit.nodes}")
        if limit.plies:
            parts.append(f"depth {limit.plies}")

        if our_tc.is_fixed_time:
            parts.append(f"movetime {our_tc.fixed_time}")
            return self.write_engine(" ".join(parts))

        white, black = (our_tc, enemy_tc) if stm is Color.WHITE else (enemy_tc, our_tc)

        if our_tc.is_timed or our_tc.is_increment:
            if white.is_timed or white.is_increment:
                parts.append(f"wtime {white.time_left}")
            if black.is_timed or black.is_increment:
                parts.append(f"btime {black.time_left}")

        if our_tc.is_increment:
            if white.is_increment:
                parts.append(f"winc {white.increment}")
            if black.is_increment:
                parts.append(f"binc {black.increment}")

        if our_tc.is_moves:
            parts.append(f"movestogo {our_tc.moves_left}")

        return self.write_engine(" ".join(parts))

    def quit(self) -> None:
        if not self._initialized:
            return
        logger.debug("Sending quit to engine %s", self.config.name)
        self.write_engine("quit")

    def _send_setoption(self, name: str, value: str) -> None:
        option = self.uci_options.get_option(name)
        if option is None:
            logger.warning("Warning; %s doesn't have option %s", self.config.name, name)
            return

        if not option.is_valid(value):
            logger.warning("Warning; Invalid value for option %s; %s", name, value)
            return

        logger.debug("Sending setoption to engine %s %s %s", self.config.name, name, value)

        if option.type is OptionType.BUTTON:
            if value != "true":
                return
            if not self.write_engine(f"setoption name {name}"):
                logger.warning("Failed to send setoption to engine %s %s", self.config.name, name)
                return
            option.set_value(value)

        if not self.write_engine(f"setoption name {name} value {value}"):
            logger.warning(
                "Failed to send setoption to engine %s %s %s", self.config.name, name, value
            )
            return

        option.set_value(value)

    def write_engine(self, text: str) -> bool:
        """Send one line to the engine; False if it could not be written."""
        logger.debug("%s ---> %s", self.config.name, text)
        return self._process.write_input(text + "\n") is Status.OK

    def read_engine(self, last_word: str, threshold: timedelta = PING_TIME) -> Status:
        """Read until a line starts with ``last_word``; keep the lines as ``output``."""
        self._process.setup_read()
        status, self._output = self._read(last_word, threshold)
        return status

    def write_log(self) -> None:
        """Log the lines of the last read."""
        for line in self._output:
            self._log_line(line)

    def set_cpus(self, cpus: Sequence[int]) -> None:
        """Pin the engine process to ``cpus``; warn if that fails."""
        if not cpus or sys.platform == "darwin":
            return
        if not self._process.set_affinity(cpus):
            logger.warning(
                "Warning; Failed to set CPU affinity for the engine process to %s. Please restart.",
                ", ".join(str(cpu) for cpu in cpus),
            )

    def bestmove(self) -> str | None:
        """The move from a ``bestmove`` in the last line read, if any."""
        if not self._output:
            logger.warning("Warning; No output from %s", self.config.name)
            return None

        move = _find_element(self._output[-1].line.split(), "bestmove", str)
        if move is None:
            logger.warning("Warning; No bestmove found in the last line from %s", self.config.name)
        return move

    def last_info_line(self, exact: bool = True) -> str:
        """The latest ``info`` line holding a score for the first principal variation.

        With ``exact``, bound scores (lowerbound, upperbound) are skipped.
        """
        for entry in reversed(self._output):
            text = entry.line
            if exact and ("lowerbound" in text or "upperbound" in text):
                continue
            if (
                "info" in text
                and " score " in text
                and (" multipv " not in text or " multipv 1" in text)
            ):
                return text
        return ""

    def last_info(self, exact: bool = True) -> list[str]:
        """The tokens of ``last_info_line``, or an empty list."""
        line = self.last_info_line(exact)
        if not line:
            logger.warning(
                "Warning; Last info string with score not found from %s", self.config.name
            )
            return []
        return line.split()

    def last_score_type(self) -> ScoreType:
        score = _find_element(self.last_info(), "score", str)
        if score == "cp":
            return ScoreType.CP
        if score == "mate":
            return ScoreType.MATE
        return ScoreType.ERR

    def last_time(self) -> timedelta:
        """The search time the engine last reported."""
        millis = _find_element(self.last_info(False), "time", int) or 0
        return timedelta(milliseconds=millis)

    def last_score(self) -> int:
        """The last score; mate scores are given in moves, unconverted."""
        score_type = self.last_score_type()
        if score_type is ScoreType.ERR:
            return 0
        key = "cp" if score_type is ScoreType.CP else "mate"
        return _find_element(self.last_info(), key, int) or 0

    def output_includes_bestmove(self) -> bool:
        return any("bestmove" in entry.line for entry in self._output)