from datetime import timedelta

import pytest

from fastchess.timecontrol import MARGIN, Limits, TimeControl


def test_fixed_time_initialises_time_left():
    tc = TimeControl(Limits(fixed_time=1000))
    assert tc.time_left == 1000
    assert tc.is_fixed_time
    assert not tc.is_timed


def test_default_timecontrol_has_no_limits():
    tc = TimeControl()
    assert tc.time_left == 0
    assert tc.moves_left == 0
    assert str(tc) == "-"


def test_no_time_limits_never_flags():
    tc = TimeControl(Limits(moves=0))
    assert tc.update_time(10_000_000)
    assert tc.time_left == 0


def test_increment_is_added_after_move():
    tc = TimeControl(Limits(time=5000, increment=200))
    before = tc.time_left
    assert tc.update_time(0)
    assert tc.time_left - before == tc.increment


def test_exceeding_time_beyond_margin_flags():
    tc = TimeControl(Limits(time=1000, timemargin=50))
    assert not tc.update_time(1051)


def test_within_margin_clamps_to_zero_then_adds_increment():
    tc = TimeControl(Limits(time=1000, increment=0, timemargin=50))
    assert tc.update_time(tc.time_left + 50)
    assert tc.time_left == 0

    tc2 = TimeControl(Limits(time=1000, increment=300, timemargin=50))
    assert tc2.update_time(tc2.time_left + 20)
    assert tc2.time_left == 300


def test_fixed_time_resets_after_each_move():
    tc = TimeControl(Limits(fixed_time=500))
    assert tc.update_time(400)
    assert tc.time_left == 500


def test_moves_to_go_cycle():
    limits = Limits(moves=2, time=1000)
    tc = TimeControl(limits)
    assert tc.moves_left == 2
    assert tc.update_time(0)
    assert tc.moves_left == 1
    before = tc.time_left
    assert tc.update_time(0)
    assert tc.moves_left == limits.moves
    assert tc.time_left - before == limits.time


def test_timeout_threshold_includes_margins():
    base = TimeControl(Limits(time=1000))
    with_margin = TimeControl(Limits(time=1000, timemargin=250))
    assert with_margin.timeout_threshold() - base.timeout_threshold() == timedelta(milliseconds=250)
    zero = TimeControl()
    assert zero.timeout_threshold() == timedelta(milliseconds=MARGIN)


@pytest.mark.parametrize(
    "limits, expected",
    [
        (Limits(fixed_time=1000), "1/move"),
        (Limits(moves=40, time=60000), "40/60"),
        (Limits(time=10000, increment=100), "10+0.1"),
    ],
)
def test_string_form(limits, expected):
    assert str(TimeControl(limits)) == expected


def test_equality_tracks_clock_state():
    limits = Limits(time=1000, increment=10)
    first = TimeControl(limits)
    second = TimeControl(limits)
    assert first == second
    assert first.update_time(100)
    assert first != second
    assert first.limits == second.limits


def test_limits_are_copied():
    limits = Limits(time=1000)
    tc = TimeControl(limits)
    limits.time = 5
    assert tc.limits.time == 1000


def test_flags():
    tc = TimeControl(Limits(time=1000, increment=10, moves=40))
    assert tc.is_timed
    assert tc.is_increment
    assert tc.is_moves
    assert not tc.is_fixed_time