import pytest

from fastchess.options import (
    ButtonOption,
    CheckOption,
    ComboOption,
    OptionType,
    SpinOption,
    StringOption,
    UCIOptions,
    parse_uci_option_line,
)


def test_button_option_starts_unpressed_and_accepts_true():
    button = ButtonOption("Clear Hash")
    assert button.value == "false"
    assert not button.is_valid("false")
    button.set_value("false")
    assert button.value == "false"
    button.set_value("true")
    assert button.value == "true"


def test_check_option_ignores_invalid_values():
    check = CheckOption("Ponder")
    check.set_value("true")
    assert check.value == "true"
    check.set_value("maybe")
    assert check.value == "true"
    check.set_value("false")
    assert check.value == "false"


def test_combo_option_accepts_only_listed_values():
    combo = ComboOption("Style", ["Solid", "Normal"], "Normal")
    combo.set_value("Wild")
    assert combo.value == "Normal"
    combo.set_value("Solid")
    assert combo.value == "Solid"


def test_string_option_shows_empty_marker():
    opt = StringOption("Path", "")
    assert opt.value == "<empty>"
    assert opt.is_valid("anything at all")
    opt.set_value("/tmp/tb")
    assert opt.value == "/tmp/tb"


def test_spin_option_min_greater_than_max_raises():
    with pytest.raises(ValueError):
        SpinOption("Hash", "10", "1")


def test_spin_option_out_of_range_raises():
    spin = SpinOption("Hash", "1", "1024")
    with pytest.raises(ValueError):
        spin.set_value("2048")
    spin.set_value("64")
    assert spin.value == "64"


def test_spin_option_non_numeric_value_raises():
    spin = SpinOption("Hash", "1", "1024")
    with pytest.raises(ValueError):
        spin.is_valid("abc")


def test_parse_check_option():
    opt = parse_uci_option_line("option name Ponder type check default false")
    assert isinstance(opt, CheckOption)
    assert opt.name == "Ponder"
    assert opt.type is OptionType.CHECK
    assert opt.value == "false"


def test_parse_int_spin_option():
    opt = parse_uci_option_line("option name Hash type spin default 16 min 1 max 1024")
    assert opt.type is OptionType.SPIN
    assert opt.name == "Hash"
    assert opt.value == "16"
    assert opt.is_valid("1024")
    assert not opt.is_valid("1025")


def test_parse_float_spin_option():
    opt = parse_uci_option_line("option name Scale type spin default 0.5 min 0.0 max 1.0")
    assert opt.type is OptionType.SPIN
    assert float(opt.value) == 0.5
    assert not opt.is_valid("1.5")
    opt.set_value("0.25")
    assert float(opt.value) == 0.25


def test_parse_spin_with_non_numeric_bounds_raises():
    with pytest.raises(ValueError, match="not numeric"):
        parse_uci_option_line("option name Hash type spin default x min 1 max 10")


def test_parse_spin_default_outside_range_raises():
    with pytest.raises(ValueError):
        parse_uci_option_line("option name Hash type spin default 100 min 1 max 10")


def test_parse_combo_option():
    opt = parse_uci_option_line(
        "option name Style type combo default Normal var Solid var Normal var Risky"
    )
    assert opt.type is OptionType.COMBO
    assert opt.value == "Normal"
    assert opt.options == ["Solid", "Normal", "Risky"]
    assert opt.is_valid("Risky")
    assert not opt.is_valid("Foo")


def test_parse_button_with_spaced_name():
    opt = parse_uci_option_line("option name Clear Hash type button")
    assert isinstance(opt, ButtonOption)
    assert opt.name == "Clear Hash"


def test_parse_string_option_with_spaced_name():
    opt = parse_uci_option_line("option name Syzygy Path type string default /tb")
    assert opt.type is OptionType.STRING
    assert opt.name == "Syzygy Path"
    assert opt.value == "/tb"


def test_parse_string_option_without_default():
    opt = parse_uci_option_line("option name NalimovPath type string default")
    assert opt.value == "<empty>"


@pytest.mark.parametrize(
    "line",
    ["info depth 1 score cp 20", "id name Engine", "option name Foo type unknown", ""],
)
def test_parse_non_option_lines_return_none(line):
    assert parse_uci_option_line(line) is None


def test_uci_options_lookup():
    options = UCIOptions()
    hash_opt = SpinOption("Hash", "1", "1024")
    threads = SpinOption("Threads", "1", "512")
    options.add_option(hash_opt)
    options.add_option(threads)
    assert options.get_option("Threads") is threads
    assert options.get_option("Hash") is hash_opt
    assert options.get_option("Missing") is None
    assert len(options) == 2
    assert list(options) == [hash_opt, threads]