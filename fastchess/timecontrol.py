"""Time controls for engine games."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import timedelta

MARGIN = 100


@dataclass
class Limits:
    """Time control limits, all in milliseconds except ``moves``."""

    increment: int = 0
    fixed_time: int = 0
    time: int = 0
    moves: int = 0
    timemargin: int = 0


@dataclass
class TimeControl:
    """A clock running under the given limits."""

    limits: Limits = field(default_factory=Limits)
    time_left: int = field(init=False)
    moves_left: int = field(init=False)

    MARGIN = MARGIN

    def __post_init__(self) -> None:
        self.limits = replace(self.limits)
        if self.limits.fixed_time != 0:
            self.time_left = self.limits.fixed_time
        else:
            self.time_left = self.limits.time + self.limits.increment
        self.moves_left = self.limits.moves

    @property
    def fixed_time(self) -> int:
        return self.limits.fixed_time

    @property
    def increment(self) -> int:
        return self.limits.increment

    @property
    def is_fixed_time(self) -> bool:
        return self.limits.fixed_time != 0

    @property
    def is_timed(self) -> bool:
        return self.limits.time != 0

    @property
    def is_moves(self) -> bool:
        return self.limits.moves != 0

    @property
    def is_increment(self) -> bool:
        return self.limits.increment != 0

    def timeout_threshold(self) -> timedelta:
        """How long to wait for a move before declaring a time loss."""
        return timedelta(milliseconds=self.time_left + self.limits.timemargin + MARGIN)

    def update_time(self, elapsed_millis: int) -> bool:
        """Charge a move's time to the clock; False if the flag fell."""
        limits = self.limits
        if limits.moves > 0:
            if self.moves_left == 1:
                self.moves_left = limits.moves
                self.time_left += limits.time
            else:
                self.moves_left -= 1

        if limits.fixed_time == 0 and limits.time + limits.increment == 0:
            return True

        self.time_left -= elapsed_millis

        if self.time_left < -limits.timemargin:
            return False

        self.time_left = max(self.time_left, 0)
        self.time_left += limits.increment

        if limits.fixed_time != 0:
            self.time_left = limits.fixed_time

        return True

    def __str__(self) -> str:
        limits = self.limits
        if limits.fixed_time > 0:
            return f"{limits.fixed_time / 1000.0:.8g}/move"

        parts = []
        if limits.moves == 0 and limits.time == 0 and limits.increment == 0:
            parts.append("-")
        if limits.moves > 0:
            parts.append(f"{limits.moves}/")
        if limits.time + limits.increment > 0:
            parts.append(f"{limits.time / 1000.0:g}")
        if limits.increment > 0:
            parts.append(f"+{limits.increment / 1000.0:g}")
        return "".join(parts)