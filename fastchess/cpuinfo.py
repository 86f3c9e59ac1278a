"""Discovery of the machine's physical CPUs, cores and logical processors."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path

_CPUINFO_PATH = Path("/proc/cpuinfo")

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


@dataclass
class Core:
    """A physical core and the logical processors running on it."""

    core_id: int = -1
    processors: list[int] = field(default_factory=list)


@dataclass
class PhysicalCpu:
    """A CPU package (socket) and its cores, keyed by core id."""

    physical_id: int = -1
    cores: dict[int, Core] = field(default_factory=dict)


@dataclass
class CpuInfo:
    """All physical CPUs of the system, keyed by physical id."""

    physical_cpus: dict[int, PhysicalCpu] = field(default_factory=dict)

    def add_processor(self, physical_id: int, core_id: int, processor_id: int) -> None:
        """Record a logical processor belonging to the given core and package."""
        cpu = self.physical_cpus.setdefault(physical_id, PhysicalCpu(physical_id))
        core = cpu.cores.setdefault(core_id, Core(core_id))
        core.processors.append(processor_id)


def _extract_value(line: str) -> int:
    _, colon, rest = line.partition(":")
    if not colon:
        return -1
    match = _LEADING_INT.match(rest)
    if match is None:
        raise ValueError(f"Not an integer value in cpuinfo line: {line!r}")
    return int(match.group(1))


def parse_cpuinfo(text: str) -> CpuInfo:
    """Build a CpuInfo from the contents of a Linux ``/proc/cpuinfo`` file.

    A processor is recorded once its ``processor``, ``core id`` and
    ``physical id`` fields have all been seen.
    """
    processor_id = core_id = physical_id = -1
    info = CpuInfo()

    for line in text.splitlines():
        if "processor" in line:
            processor_id = _extract_value(line)
        elif "core id" in line:
            core_id = _extract_value(line)
        elif "physical id" in line:
            physical_id = _extract_value(line)

        if -1 not in (core_id, processor_id, physical_id):
            info.add_processor(physical_id, core_id, processor_id)
            processor_id = core_id = physical_id = -1

    return info


def get_cpu_info() -> CpuInfo:
    """Describe this machine's processors.

    Reads ``/proc/cpuinfo`` where it exists; otherwise every logical
    processor is reported as its own core on a single package.
    """
    try:
        text = _CPUINFO_PATH.read_text(encoding="utf-8", errors="replace")
    except OSError:
        info = CpuInfo()
        for i in range(os.cpu_count() or 0):
            info.add_processor(0, i, i)
        return info
    return parse_cpuinfo(text)