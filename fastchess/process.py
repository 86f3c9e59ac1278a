"""Child engine processes: starting them, talking over pipes and reaping them."""

from __future__ import annotations

import atexit
import enum
import logging
import os
import selectors
import shlex
import signal
import subprocess
import threading
import weakref
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from types import TracebackType

from fastchess.affinity import set_affinity as _set_affinity

logger = logging.getLogger(__name__)

_READ_SIZE = 4096


class Standard(enum.Enum):
    """The stream a line travelled on."""

    INPUT = "input"
    OUTPUT = "output"
    ERR = "err"


class Status(enum.Enum):
    """Outcome of an operation on a process."""

    OK = "ok"
    ERR = "err"
    TIMEOUT = "timeout"
    NONE = "none"


@dataclass
class Line:
    """A line read from the engine, with the time it arrived."""

    line: str
    time: str = ""
    std: Standard = Standard.OUTPUT


_SIGNAL_DESCRIPTIONS = (
    ("SIGABRT", "Abort"),
    ("SIGALRM", "Alarm clock"),
    ("SIGBUS", "Bus error"),
    ("SIGCHLD", "Child stopped or terminated"),
    ("SIGCONT", "Continue executing"),
    ("SIGFPE", "Floating point exception"),
    ("SIGHUP", "Hangup"),
    ("SIGILL", "Illegal instruction"),
    ("SIGINT", "Interrupt"),
    ("SIGKILL", "Kill"),
    ("SIGPIPE", "Broken pipe"),
    ("SIGQUIT", "Quit program"),
    ("SIGSEGV", "Segmentation fault"),
    ("SIGSTOP", "Stop executing"),
    ("SIGTERM", "Termination"),
    ("SIGTRAP", "Trace/breakpoint trap"),
    ("SIGTSTP", "Terminal stop signal"),
    ("SIGTTIN", "Background process attempting read"),
    ("SIGTTOU", "Background process attempting write"),
    ("SIGUSR1", "User-defined signal 1"),
    ("SIGUSR2", "User-defined signal 2"),
    ("SIGPOLL", "Pollable event"),
    ("SIGPROF", "Profiling timer expired"),
    ("SIGSYS", "Bad system call"),
    ("SIGURG", "Urgent condition on socket"),
    ("SIGVTALRM", "Virtual timer expired"),
    ("SIGXCPU", "CPU time limit exceeded"),
    ("SIGXFSZ", "File size limit exceeded"),
)

_STOP_SIGNALS = ("SIGSTOP", "SIGTSTP", "SIGTTIN", "SIGTTOU")


def _signal_table(names: Iterable[str]) -> dict[int, str]:
    descriptions = dict(_SIGNAL_DESCRIPTIONS)
    table: dict[int, str] = {}
    for name in names:
        number = getattr(signal, name, None)
        if number is not None:
            table.setdefault(int(number), f"{name} - {descriptions[name]}")
    return table


_TERM_SIGNALS = _signal_table(name for name, _ in _SIGNAL_DESCRIPTIONS)
_STOPPED_SIGNALS = _signal_table(_STOP_SIGNALS)


def signal_to_string(status: int) -> str:
    """Describe a raw wait status as returned by ``waitpid``."""
    low = status & 0x7F
    if low == 0:
        return f"Process exited normally with status {(status >> 8) & 0xFF}"
    if low != 0x7F:
        text = f"Process terminated by signal {low} ({_TERM_SIGNALS.get(low, 'Unknown signal')})"
        if status & 0x80:
            text += " - Core dumped"
        return text
    if status & 0xFF == 0x7F:
        stop = (status >> 8) & 0xFF
        return f"Process stopped by signal {stop} ({_STOPPED_SIGNALS.get(stop, 'Unknown stop signal')})"
    if status == 0xFFFF:
        return "Process continued"
    return f"Unknown status {status}"


def _wait_status(returncode: int) -> int:
    """Turn a subprocess return code back into a raw wait status."""
    if returncode < 0:
        return -returncode
    return (returncode & 0xFF) << 8


def _timestamp() -> str:
    return datetime.now().isoformat(timespec="microseconds")


def _timeout_seconds(threshold: timedelta | float | None) -> float | None:
    """None means wait forever; numbers are milliseconds."""
    if threshold is None:
        return None
    seconds = threshold.total_seconds() if isinstance(threshold, timedelta) else threshold / 1000.0
    return seconds if seconds > 0 else None


_RUNNING: weakref.WeakSet[Process] = weakref.WeakSet()
_RUNNING_LOCK = threading.Lock()


def _kill_running() -> None:
    with _RUNNING_LOCK:
        processes = list(_RUNNING)
    for process in processes:
        process.terminate()


atexit.register(_kill_running)


class Process:
    """An engine running as a child process, spoken to over its stdin and stdout.

    Reading collects whole lines from stdout and stderr until a stdout line
    starts with the awaited word, the timeout passes or ``stop_event`` is set.
    """

    def __init__(
        self,
        *,
        realtime_logging: bool = True,
        stop_event: threading.Event | None = None,
    ) -> None:
        self.realtime_logging = realtime_logging
        self._stop = stop_event if stop_event is not None else threading.Event()
        self._proc: subprocess.Popen[bytes] | None = None
        self._initialized = False
        self._startup_error = False
        self._exit_status: int | None = None
        self._buffers: dict[Standard, bytearray] = {}
        self._closed: set[Standard] = set()
        self.wd = ""
        self.command = ""
        self.args = ""
        self.log_name = ""

    def __enter__(self) -> Process:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.terminate()

    @property
    def pid(self) -> int | None:
        return self._proc.pid if self._proc is not None else None

    def _require_init(self) -> subprocess.Popen[bytes]:
        if not self._initialized or self._proc is None:
            raise RuntimeError("Process is not initialized")
        return self._proc

    def init(self, wd: str, command: str, args: str, log_name: str) -> Status:
        """Start ``command`` with ``args`` (shell-style words) in directory ``wd``."""
        if self._initialized:
            raise RuntimeError("Process is already initialized")

        self.wd = wd
        self.command = command
        self.args = args
        self.log_name = log_name
        self._initialized = True
        self._startup_error = False
        self._exit_status = None
        self._buffers = {Standard.OUTPUT: bytearray(), Standard.ERR: bytearray()}
        self._closed = set()

        try:
            argv = [command, *shlex.split(args)]
            self._proc = subprocess.Popen(
                argv,
                cwd=wd or None,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                bufsize=0,
            )
        except (OSError, ValueError) as exc:
            logger.error("Failed to start process: %s", exc)
            self._proc = None
            self._startup_error = True
            return Status.ERR

        with _RUNNING_LOCK:
            _RUNNING.add(self)
        return Status.OK

    def alive(self) -> Status:
        """OK while the process runs, ERR once it has exited."""
        proc = self._require_init()
        returncode = proc.poll()
        if returncode is None:
            return Status.OK
        self._exit_status = _wait_status(returncode)
        return Status.ERR

    def set_affinity(self, cpus: Iterable[int]) -> bool:
        proc = self._require_init()
        return _set_affinity(cpus, proc.pid)

    def terminate(self) -> None:
        """Kill the process if it still runs, reap it and log how it ended."""
        if self._startup_error:
            self._initialized = False
            return
        if not self._initialized or self._proc is None:
            return

        with _RUNNING_LOCK:
            _RUNNING.discard(self)

        proc = self._proc
        if self._exit_status is None:
            if proc.poll() is None:
                proc.kill()
                proc.wait()
            self._exit_status = _wait_status(proc.returncode)

        logger.debug("Terminating process with pid: %s %s", proc.pid, self._exit_status)
        logger.info("%s <--- %s", self.log_name, signal_to_string(self._exit_status))

        for stream in (proc.stdin, proc.stdout, proc.stderr):
            if stream is not None:
                try:
                    stream.close()
                except OSError:
                    pass

        self._initialized = False

    def setup_read(self) -> None:
        """Discard any output that has been received but not yet read."""
        for buffer in self._buffers.values():
            buffer.clear()

    def _drain(self, std: Standard, lines: list[Line], searchword: str) -> bool:
        buffer = self._buffers[std]
        while True:
            newline = buffer.find(b"\n")
            if newline < 0:
                return False
            raw = bytes(buffer[:newline])
            del buffer[: newline + 1]
            if not raw:
                continue
            text = raw.decode("utf-8", errors="replace")
            stamp = _timestamp()
            lines.append(Line(text, stamp, std))
            if self.realtime_logging:
                logger.debug("%s %s <--- %s", stamp, self.log_name, text)
            if searchword and text.startswith(searchword):
                return True

    def read_output(
        self,
        last_word: str,
        threshold: timedelta | float | None = None,
    ) -> tuple[Status, list[Line]]:
        """Read lines until one on stdout starts with ``last_word``.

        ``threshold`` bounds the wait for each piece of output (a timedelta
        or milliseconds); None or zero waits forever. Returns the status
        and the lines read.
        """
        proc = self._require_init()
        lines: list[Line] = []

        if self._drain(Standard.OUTPUT, lines, last_word):
            return Status.OK, lines
        self._drain(Standard.ERR, lines, "")

        timeout = _timeout_seconds(threshold)
        files = {Standard.OUTPUT: proc.stdout, Standard.ERR: proc.stderr}

        with selectors.DefaultSelector() as selector:
            for std, stream in files.items():
                if stream is not None and std not in self._closed:
                    selector.register(stream.fileno(), selectors.EVENT_READ, std)

            while True:
                if not selector.get_map():
                    return Status.ERR

                events = selector.select(timeout)

                if self._stop.is_set():
                    return Status.ERR

                if not events:
                    for std, buffer in self._buffers.items():
                        if buffer:
                            text = buffer.decode("utf-8", errors="replace")
                            lines.append(Line(text, _timestamp(), std))
                            if self.realtime_logging:
                                logger.debug("%s <--- %s", self.log_name, text)
                    return Status.TIMEOUT, lines

                for key, _ in events:
                    std: Standard = key.data
                    try:
                        chunk = os.read(key.fd, _READ_SIZE)
                    except OSError:
                        return Status.ERR, lines
                    if not chunk:
                        selector.unregister(key.fd)
                        self._closed.add(std)
                        continue
                    self._buffers[std] += chunk
                    word = last_word if std is Standard.OUTPUT else ""
                    if self._drain(std, lines, word):
                        return Status.OK, lines

    def write_input(self, text: str) -> Status:
        """Send ``text`` to the engine's stdin as is."""
        proc = self._require_init()
        if self.alive() is not Status.OK or proc.stdin is None:
            return Status.ERR
        data = text.encode("utf-8")
        try:
            while data:
                written = proc.stdin.write(data)
                if written is None:
                    continue
                data = data[written:]
        except (OSError, ValueError):
            return Status.ERR
        return Status.OK