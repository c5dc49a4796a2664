import sys
import json

import pytest

from main import main


def test_valid_script_exits_zero(capsys):
    assert main(["1 2", "ADD 3 EQUAL"]) == 0
    out = capsys.readouterr().out
    assert "Script valid" in out


def test_invalid_script_exits_one(capsys):
    assert main(["", "EQUALVERIFY"]) == 1
    out = capsys.readouterr().out
    assert "Stack underflow" in out
    assert "Script invalid" in out


def test_usage_and_parse_errors_exit_two(capsys):
    assert main(["1"]) == 2
    assert main(["1", "2", "x"]) == 2
    assert main(["FROB", "1"]) == 2
    assert "Unknown opcode" in capsys.readouterr().out


def test_prints_state_at_each_breakpoint(capsys):
    assert main(["1 2", "ADD 3 EQUAL", "2", "4"]) == 0
    out = capsys.readouterr().out
    decoder = json.JSONDecoder()
    states = []
    idx = out.find("{")
    while idx != -1:
        state, end = decoder.raw_decode(out, idx)
        states.append(state)
        idx = out.find("{", end)
    assert [s["counter"] for s in states] == [2, 4, 5]
    assert states[0]["stack"] == ["01", "02"]
    assert states[-1]["valid"] is True


def test_reads_scripts_from_files(tmp_path, capsys):
    unlocking = tmp_path / "unlock.txt"
    unlocking.write_text("// push two numbers\n1\n2\n")
    assert main(["@" + str(unlocking), "ADD 3 EQUAL"]) == 0
    assert main(["@" + str(tmp_path / "missing.txt"), "1"]) == 2


@pytest.mark.skipif(not hasattr(sys, "set_int_max_str_digits"), reason="no int digit limit")
def test_overlong_number_exits_two(capsys):
    assert main(["9" * 5001, "1"]) == 2
    assert "number too long" in capsys.readouterr().out
