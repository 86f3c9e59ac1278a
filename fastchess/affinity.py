"""Pinning engine processes to CPUs."""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Iterable, Sequence
from types import TracebackType

from fastchess.cpuinfo import CpuInfo, get_cpu_info

logger = logging.getLogger(__name__)


def set_affinity(cpus: Iterable[int], pid: int) -> bool:
    """Restrict process ``pid`` to ``cpus``; return whether it worked."""
    setter = getattr(os, "sched_setaffinity", None)
    if setter is None:
        return False
    logger.debug("Setting affinity mask for process pid: %s", pid)
    try:
        setter(pid, set(cpus))
    except (OSError, ValueError):
        return False
    return True


class AffinityProcessor:
    """A set of CPUs handed out by an AffinityManager.

    Usable as a context manager, which releases it back to the pool on exit.
    """

    def __init__(self, cpus: Sequence[int]) -> None:
        self.cpus = list(cpus)
        self.available = True

    def release(self) -> None:
        """Return these CPUs to the pool."""
        self.available = True

    def __enter__(self) -> AffinityProcessor:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"AffinityProcessor(cpus={self.cpus!r}, available={self.available!r})"


class AffinityManager:
    """Hands out CPUs so that engines do not share physical cores.

    Hyperthreads are split into two groups; each group holds at most one
    logical processor per physical core. The second group is only used
    once every core of the first is taken.
    """

    def __init__(
        self,
        use_affinity: bool,
        cpus: Sequence[int] = (),
        tpe: int = 1,
        cpu_info: CpuInfo | None = None,
    ) -> None:
        self._lock = threading.Lock()
        self._groups: tuple[list[AffinityProcessor], list[AffinityProcessor]] = ([], [])
        self._null_core = AffinityProcessor([])
        self.use_affinity = use_affinity and tpe <= 1

        if self.use_affinity:
            if cpus:
                self._setup_selected_cores(cpus)
            else:
                self._setup_cores(cpu_info if cpu_info is not None else get_cpu_info())
            logger.debug("Using affinity")

    def _setup_cores(self, cpu_info: CpuInfo) -> None:
        with self._lock:
            for _, physical in sorted(cpu_info.physical_cpus.items()):
                for _, core in sorted(physical.cores.items()):
                    for idx, processor in enumerate(core.processors):
                        self._groups[idx % 2].append(AffinityProcessor([processor]))

    def _setup_selected_cores(self, cpus: Sequence[int]) -> None:
        with self._lock:
            self._groups[0].extend(AffinityProcessor([cpu]) for cpu in cpus)

    def consume(self) -> AffinityProcessor:
        """Take the first free CPU; raise RuntimeError when none is left."""
        if not self.use_affinity:
            return self._null_core

        with self._lock:
            for group in self._groups:
                for core in group:
                    if core.available:
                        core.available = False
                        return core

        logger.error("No cores available")
        raise RuntimeError("No cores available")