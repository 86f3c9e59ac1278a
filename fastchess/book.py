"""Opening books read from EPD files."""

from __future__ import annotations

import enum
import gzip
import logging
import random
import re
from collections.abc import Iterable, MutableSequence
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

STARTPOS = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"

_LINE_BREAK = re.compile(r"\r\n|\r|\n")


@dataclass
class Opening:
    """A starting position and the moves played from it."""

    fen_epd: str = STARTPOS
    moves: list[str] = field(default_factory=list)


class FormatType(enum.Enum):
    EPD = "epd"
    PGN = "pgn"
    NONE = "none"


class OrderType(enum.Enum):
    RANDOM = "random"
    SEQUENTIAL = "sequential"


def read_epd(path: str | Path) -> list[str]:
    """Return the non-empty lines of an EPD file, gzip-compressed if it ends in ``.gz``.

    Raises OSError if the file cannot be read and ValueError if it holds
    no openings.
    """
    path_str = str(path)
    try:
        if path_str.endswith(".gz"):
            with gzip.open(path_str, "rb") as handle:
                data = handle.read()
        else:
            data = Path(path_str).read_bytes()
    except OSError as exc:
        raise OSError(f"Failed to open file: {path_str}") from exc

    text = data.decode("utf-8", errors="replace")
    openings = [line for line in _LINE_BREAK.split(text) if line]
    if not openings:
        raise ValueError(f"No openings found in file: {path_str}")
    return openings


def shuffle(items: MutableSequence, rng: random.Random) -> None:
    """Shuffle ``items`` in place (Fisher-Yates) using 32-bit draws from ``rng``."""
    n = len(items)
    for i in range(n - 1):
        j = i + rng.getrandbits(32) % (n - i)
        items[i], items[j] = items[j], items[i]


def rotate(items: list, offset: int) -> None:
    """Rotate ``items`` left in place so that ``items[offset % len]`` comes first."""
    if not items:
        return
    k = offset % len(items)
    items[:] = items[k:] + items[:k]


def truncate(items: list, rounds: int) -> None:
    """Drop everything past the first ``rounds`` items."""
    del items[rounds:]


class OpeningBook:
    """Openings handed out in turn to the games of a tournament.

    ``start`` is one-based. Games already played (``initial_matchcount``)
    advance the book by one opening per ``games`` games, so a resumed
    tournament continues where it stopped. ``openings`` may supply an
    already parsed list instead of a file.
    """

    def __init__(
        self,
        file: str | Path = "",
        format_type: FormatType = FormatType.EPD,
        *,
        order: OrderType = OrderType.SEQUENTIAL,
        start: int = 1,
        games: int = 2,
        rounds: int | None = None,
        initial_matchcount: int = 0,
        openings: Iterable[Opening | str] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        if games <= 0:
            raise ValueError("games must be positive")
        self.order = order
        self.start = start
        self.games = games
        self.rounds = rounds
        self.offset = start - 1 + initial_matchcount // games
        self._index = 0
        self._rng = rng if rng is not None else random.Random()
        self._openings: list[Opening | str] = self._load(file, format_type, openings)

        if not self._openings:
            return

        if order is OrderType.RANDOM:
            logger.info("Indexing opening suite...")
            shuffle(self._openings, self._rng)

        if self.offset > 0:
            logger.info("Offsetting the opening book by %d openings...", self.offset)
            rotate(self._openings, self.offset)

        if rounds is not None:
            truncate(self._openings, rounds)

    @staticmethod
    def _load(
        file: str | Path,
        format_type: FormatType,
        openings: Iterable[Opening | str] | None,
    ) -> list[Opening | str]:
        if openings is not None:
            return list(openings)
        if not str(file) or format_type is FormatType.NONE:
            return []
        if format_type is FormatType.EPD:
            return list(read_epd(file))
        raise ValueError("PGN books must be supplied as parsed openings")

    def fetch_id(self) -> int | None:
        """Index of the next opening, cycling through the book; None if it is empty."""
        idx = self._index
        self._index += 1
        if not self._openings:
            return None
        return idx % len(self._openings)

    def __getitem__(self, idx: int | None) -> Opening:
        if idx is None:
            return Opening()
        item = self._openings[idx]
        if isinstance(item, str):
            return Opening(item, [])
        return item

    def __len__(self) -> int:
        return len(self._openings)