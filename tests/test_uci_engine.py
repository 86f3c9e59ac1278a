import shlex
import sys
from datetime import timedelta

import pytest

from fastchess.options import OptionType
from fastchess.process import Status
from fastchess.timecontrol import Limits, TimeControl
from fastchess.uci_engine import (
    Color,
    EngineConfig,
    EngineLimit,
    ScoreType,
    UciEngine,
)

FAKE_ENGINE = r'''
import sys

received = []
while True:
    raw = sys.stdin.readline()
    if not raw:
        break
    line = raw.strip()
    if not line:
        continue
    received.append(line)
    if line == "uci":
        print("id name Fake Engine")
        print("id author Tester")
        print("option name Hash type spin default 16 min 1 max 1024")
        print("option name Threads type spin default 1 min 1 max 64")
        print("option name Ponder type check default false")
        print("option name Clear Hash type button")
        print("option name UCI_Chess960 type check default false")
        print("uciok")
    elif line == "isready":
        print("readyok")
    elif line.startswith("echo "):
        print(line[5:])
    elif line.startswith("go"):
        for cmd in received:
            print("info string cmd " + cmd)
        print("info depth 1 score cp 25 time 7 nodes 100 pv e2e4")
        print("bestmove e2e4 ponder e7e5")
    elif line == "quit":
        break
    sys.stdout.flush()
'''


def make_engine(tmp_path, **config_kwargs):
    script = tmp_path / "fake_engine.py"
    script.write_text(FAKE_ENGINE)
    config = EngineConfig(
        name="fake",
        cmd=sys.executable,
        args=shlex.quote(str(script)),
        **config_kwargs,
    )
    return UciEngine(config, realtime_logging=False)


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(tmp_path)
    eng.start()
    yield eng
    eng.close()


def received_commands(eng):
    prefix = "info string cmd "
    return [line.line[len(prefix):] for line in eng.output if line.line.startswith(prefix)]


def echo_and_read(eng, *lines):
    for text in lines:
        assert eng.write_engine("echo " + text)
    return eng.read_engine("bestmove", timedelta(seconds=10))


def test_start_records_options(engine):
    hash_option = engine.uci_options.get_option("Hash")
    assert hash_option.type is OptionType.SPIN
    assert hash_option.value == "16"
    assert engine.uci_options.get_option("Clear Hash").type is OptionType.BUTTON


def test_start_twice_is_noop(engine):
    count = len(engine.uci_options)
    engine.start()
    assert len(engine.uci_options) == count


def test_start_failure_raises(tmp_path):
    config = EngineConfig(name="missing", cmd=str(tmp_path / "no_such_engine"))
    eng = UciEngine(config, realtime_logging=True)
    with pytest.raises(RuntimeError):
        eng.start()
    eng.close()


def test_id_name_and_author(engine):
    assert engine.id_name() == "Fake Engine"
    assert engine.id_author() == "Tester"


def test_isready_and_ucinewgame(engine):
    assert engine.isready() is Status.OK
    assert engine.ucinewgame() is True


def test_isready_after_quit_fails(engine):
    engine.quit()
    assert engine.isready(timedelta(seconds=5)) is Status.ERR


def test_position_and_go_commands(engine):
    tc = TimeControl(Limits(time=1000, increment=100))
    assert engine.position(["e2e4", "e7e5"], "startpos")
    assert engine.go(tc, tc, Color.WHITE)
    assert engine.read_engine("bestmove") is Status.OK
    commands = received_commands(engine)
    assert "position startpos moves e2e4 e7e5" in commands
    expected = f"go wtime {tc.time_left} btime {tc.time_left} winc 100 binc 100"
    assert commands[-1] == expected


def test_position_with_fen(engine):
    fen = "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1"
    tc = TimeControl(Limits(fixed_time=500))
    assert engine.position([], fen)
    assert engine.go(tc, tc, Color.BLACK)
    assert engine.read_engine("bestmove") is Status.OK
    commands = received_commands(engine)
    assert commands[-2] == "position fen " + fen
    assert commands[-1] == "go movetime 500"


def test_go_black_to_move_without_increment(engine):
    our = TimeControl(Limits(time=2000))
    enemy = TimeControl(Limits(time=1000, increment=50))
    assert engine.go(our, enemy, Color.BLACK)
    assert engine.read_engine("bestmove") is Status.OK
    expected = f"go wtime {enemy.time_left} btime {our.time_left}"
    assert received_commands(engine)[-1] == expected


def test_go_with_limits_and_movestogo(tmp_path):
    eng = make_engine(tmp_path, limit=EngineLimit(nodes=1000, plies=12))
    eng.start()
    try:
        tc = TimeControl(Limits(time=1000, moves=40))
        assert eng.go(tc, tc, Color.WHITE)
        assert eng.read_engine("bestmove") is Status.OK
        expected = f"go nodes 1000 depth 12 wtime {tc.time_left} btime {tc.time_left} movestogo 40"
        assert received_commands(eng)[-1] == expected
    finally:
        eng.close()


def test_search_results(engine):
    tc = TimeControl(Limits(time=1000))
    assert engine.go(tc, tc, Color.WHITE)
    assert engine.read_engine("bestmove") is Status.OK
    assert engine.bestmove() == "e2e4"
    assert engine.output_includes_bestmove()
    assert engine.last_score_type() is ScoreType.CP
    assert engine.last_score() == 25
    assert engine.last_time() == timedelta(milliseconds=7)


def test_last_info_line_prefers_first_pv_and_skips_bounds(engine):
    first = "info depth 5 score cp 30 multipv 1 pv e2e4"
    second = "info depth 5 score cp 10 multipv 2 pv d2d4"
    bound = "info depth 6 score cp 50 lowerbound pv e2e4"
    assert echo_and_read(engine, first, second, bound, "bestmove e2e4") is Status.OK
    assert engine.last_info_line() == first
    assert engine.last_info_line(False) == bound
    assert engine.last_info() == first.split()
    assert engine.last_score() == 30


def test_mate_score(engine):
    assert echo_and_read(engine, "info depth 3 score mate 2 time 5", "bestmove e2e4") is Status.OK
    assert engine.last_score_type() is ScoreType.MATE
    assert engine.last_score() == 2
    assert engine.last_time() == timedelta(milliseconds=5)


def test_no_info_line(engine):
    assert echo_and_read(engine, "bestmove e2e4") is Status.OK
    assert engine.last_info_line() == ""
    assert engine.last_info() == []
    assert engine.last_score_type() is ScoreType.ERR
    assert engine.last_score() == 0
    assert engine.last_time() == timedelta(0)


def test_timeout_leaves_no_bestmove(engine):
    assert engine.write_engine("echo info string hello")
    assert engine.read_engine("bestmove", timedelta(milliseconds=300)) is Status.TIMEOUT
    assert engine.bestmove() is None
    assert not engine.output_includes_bestmove()


def test_refresh_sends_threads_first(tmp_path):
    options = [("Hash", "32"), ("Threads", "2"), ("Hash", "99999"), ("Missing", "1")]
    eng = make_engine(tmp_path, options=options, chess960=True)
    eng.start()
    try:
        assert eng.refresh_uci() is True
        tc = TimeControl(Limits(fixed_time=100))
        assert eng.go(tc, tc, Color.WHITE)
        assert eng.read_engine("bestmove") is Status.OK
        commands = received_commands(eng)
        threads = commands.index("setoption name Threads value 2")
        hash_cmd = commands.index("setoption name Hash value 32")
        assert threads < hash_cmd
        assert "setoption name Hash value 99999" not in commands
        assert not any("Missing" in cmd for cmd in commands)
        assert "setoption name UCI_Chess960 value true" in commands
        assert eng.uci_options.get_option("Hash").value == "32"
        assert eng.uci_options.get_option("UCI_Chess960").value == "true"
    finally:
        eng.close()


def test_button_option_sends_setoption(tmp_path):
    eng = make_engine(tmp_path, options=[("Clear Hash", "true")])
    eng.start()
    try:
        assert eng.refresh_uci() is True
        tc = TimeControl(Limits(fixed_time=100))
        assert eng.go(tc, tc, Color.WHITE)
        assert eng.read_engine("bestmove") is Status.OK
        commands = received_commands(eng)
        assert "setoption name Clear Hash" in commands
        assert eng.uci_options.get_option("Clear Hash").value == "true"
    finally:
        eng.close()


def test_write_before_start_raises(tmp_path):
    eng = make_engine(tmp_path)
    with pytest.raises(RuntimeError):
        eng.write_engine("uci")


def test_context_manager_closes(tmp_path):
    with make_engine(tmp_path) as eng:
        eng.start()
        assert eng.isready() is Status.OK
    with pytest.raises(RuntimeError):
        eng.write_engine("isready")