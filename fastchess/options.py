"""UCI engine options and the parser for ``option`` lines."""

from __future__ import annotations

import enum
import re
from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator

_INT_PREFIX = re.compile(r"\s*[+-]?\d+")
_FLOAT_PREFIX = re.compile(r"\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")

_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1


class OptionType(enum.Enum):
    """Kinds of option an engine can advertise."""

    BUTTON = "button"
    CHECK = "check"
    COMBO = "combo"
    SPIN = "spin"
    STRING = "string"


class UCIOption(ABC):
    """An option advertised by an engine, holding its current value."""

    type: OptionType

    def __init__(self, name: str) -> None:
        self.name = name

    @property
    @abstractmethod
    def value(self) -> str:
        """The current value as sent over the wire."""

    @abstractmethod
    def set_value(self, value: str) -> None:
        """Change the value if it is acceptable for this option."""

    @abstractmethod
    def is_valid(self, value: str) -> bool:
        """Whether ``value`` is acceptable for this option."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, value={self.value!r})"


class ButtonOption(UCIOption):
    """A button; its only acceptable value is ``true``."""

    type = OptionType.BUTTON

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self._pressed = False

    @property
    def value(self) -> str:
        return "true" if self._pressed else "false"

    def set_value(self, value: str) -> None:
        if self.is_valid(value):
            self._pressed = True

    def is_valid(self, value: str) -> bool:
        return value == "true"


class CheckOption(UCIOption):
    """A boolean switch."""

    type = OptionType.CHECK

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self._checked = False

    @property
    def value(self) -> str:
        return "true" if self._checked else "false"

    def set_value(self, value: str) -> None:
        if self.is_valid(value):
            self._checked = value == "true"

    def is_valid(self, value: str) -> bool:
        return value in ("true", "false")


class ComboOption(UCIOption):
    """A choice among a fixed list of strings."""

    type = OptionType.COMBO

    def __init__(self, name: str, options: Iterable[str], default: str) -> None:
        super().__init__(name)
        self.options = list(options)
        self._value = default

    @property
    def value(self) -> str:
        return self._value

    def set_value(self, value: str) -> None:
        if self.is_valid(value):
            self._value = value

    def is_valid(self, value: str) -> bool:
        return value in self.options


def _parse_number(text: str, number_type: type) -> int | float:
    pattern = _INT_PREFIX if number_type is int else _FLOAT_PREFIX
    match = pattern.match(text)
    if match is None:
        raise ValueError(f"Not a numeric value: {text!r}")
    return number_type(match.group())


class SpinOption(UCIOption):
    """A number constrained to the closed range ``[min_value, max_value]``."""

    type = OptionType.SPIN

    def __init__(
        self,
        name: str,
        min_value: str,
        max_value: str,
        number_type: type = int,
    ) -> None:
        super().__init__(name)
        if number_type not in (int, float):
            raise TypeError("SpinOption only supports int and float.")
        self.number_type = number_type
        self.min_value = _parse_number(min_value, number_type)
        self.max_value = _parse_number(max_value, number_type)
        if self.min_value > self.max_value:
            raise ValueError("Min value cannot be greater than max value.")
        self._value: int | float = self.min_value

    @property
    def value(self) -> str:
        if self.number_type is float:
            return f"{self._value:f}"
        return str(self._value)

    def set_value(self, value: str) -> None:
        parsed = _parse_number(value, self.number_type)
        if not self.is_valid(value):
            raise ValueError("Value is out of the allowed range.")
        self._value = parsed

    def is_valid(self, value: str) -> bool:
        parsed = _parse_number(value, self.number_type)
        return self.min_value <= parsed <= self.max_value


class StringOption(UCIOption):
    """Free text; every value is acceptable."""

    type = OptionType.STRING

    def __init__(self, name: str, default: str) -> None:
        super().__init__(name)
        self._value = default

    @property
    def value(self) -> str:
        return self._value or "<empty>"

    def set_value(self, value: str) -> None:
        self._value = value

    def is_valid(self, value: str) -> bool:
        return True


class UCIOptions:
    """The options an engine has advertised, in order of appearance."""

    def __init__(self) -> None:
        self._options: list[UCIOption] = []

    def add_option(self, option: UCIOption) -> None:
        self._options.append(option)

    def get_option(self, name: str) -> UCIOption | None:
        """Return the first option called ``name``, or None."""
        return next((opt for opt in self._options if opt.name == name), None)

    def __iter__(self) -> Iterator[UCIOption]:
        return iter(self._options)

    def __len__(self) -> int:
        return len(self._options)


def _is_integer(text: str) -> bool:
    if _INT_PREFIX.fullmatch(text) is None:
        return False
    return _INT32_MIN <= int(text) <= _INT32_MAX


def _is_float(text: str) -> bool:
    return _FLOAT_PREFIX.fullmatch(text) is not None


def parse_uci_option_line(line: str) -> UCIOption | None:
    """Build an option from an engine's ``option`` line.

    Returns None when the line declares no known option type. Raises
    ValueError when a spin option's bounds or default are not numeric or
    the default lies outside the bounds.
    """
    tokens = iter(line.split())
    name = ""
    option_type = ""
    params: dict[str, str] = {}

    for token in tokens:
        if token == "name":
            name = next(tokens, name)
            for word in tokens:
                token = word
                if word == "type":
                    break
                name += " " + word

        if token == "type":
            option_type = next(tokens, option_type)
        elif token in ("default", "min", "max"):
            params[token] = next(tokens, params.get(token, ""))
        elif token == "var":
            for var in tokens:
                if var != "var":
                    params["var"] = params.get("var", "") + var + " "

    default = params.get("default", "")

    if option_type == "check":
        check = CheckOption(name)
        check.set_value(default)
        return check
    if option_type == "spin":
        low, high = params.get("min", ""), params.get("max", "")
        for number_type, test in ((int, _is_integer), (float, _is_float)):
            if test(default) and test(low) and test(high):
                spin = SpinOption(name, low, high, number_type)
                spin.set_value(default)
                return spin
        raise ValueError("The spin values are not numeric.")
    if option_type == "combo":
        return ComboOption(name, params.get("var", "").split(), default)
    if option_type == "button":
        return ButtonOption(name)
    if option_type == "string":
        return StringOption(name, default)
    return None