import json

import pytest

from config import MAX_STEPS, PHASE_LOCKING, PHASE_UNLOCKING
from script_errors import ParseError
from script_parser import parse
from stepper import (
    find_next_breakpoint, initialize, is_breakpoint, run_to_completion,
    run_to_next_breakpoint, stack_is_valid, step_once, toggle_breakpoint,
)


def step_all(snapshot):
    steps = 0
    while not snapshot.complete:
        snapshot = step_once(snapshot)
        steps += 1
    return snapshot, steps


def test_initialize():
    s = initialize("1 2", "ADD 3 EQUAL")
    assert len(s.program) == 5
    assert s.unlocking_length == 2
    assert s.counter == 0
    assert s.stack == () and s.alt_stack == ()
    assert not s.complete
    assert not s.valid
    assert s.phase == PHASE_UNLOCKING
    assert s.error is None
    assert s.breakpoints == frozenset()


def test_initialize_accepts_instruction_lists():
    s = initialize(parse("1 2"), parse("ADD"))
    assert [i.opcode for i in s.program] == ["OP_1", "OP_2", "OP_ADD"]


def test_initialize_propagates_parse_errors():
    with pytest.raises(ParseError):
        initialize("1 2", "ADD FROB")


def test_add_and_compare_runs_five_steps():
    final, steps = step_all(initialize("1 2", "ADD 3 EQUAL"))
    assert steps == 5
    assert final.counter == 5
    assert final.stack == (b"\x01",)
    assert final.complete and final.valid
    assert final.error is None
    assert final.phase == PHASE_LOCKING


def test_underflow_halts_with_error():
    final = run_to_completion(initialize("", "EQUALVERIFY"))
    assert final.complete
    assert not final.valid
    assert "underflow" in final.error.lower()
    assert final.counter == 0
    assert final.phase == PHASE_LOCKING


def test_run_to_next_breakpoint_stops_on_it():
    s = toggle_breakpoint(initialize("1 2", "ADD 3 EQUAL"), 2)
    paused = run_to_next_breakpoint(s)
    assert paused.counter == 2
    assert not paused.complete
    assert paused.is_paused
    assert paused.stack == (b"\x01", b"\x02")

    final = run_to_next_breakpoint(paused)
    assert final.complete and final.valid


def test_push_dup_equal_is_valid():
    final = run_to_completion(initialize("ff", "DUP EQUAL"))
    assert [item.hex() for item in final.stack] == ["01"]
    assert final.valid


def test_run_to_completion_takes_first_step_from_breakpoint():
    s = toggle_breakpoint(initialize("1 2", "ADD 3 EQUAL"), 0)
    final = run_to_completion(s)
    assert final.complete and final.valid


def test_run_to_completion_pauses_at_later_breakpoint():
    s = toggle_breakpoint(initialize("1 2", "ADD 3 EQUAL"), 3)
    paused = run_to_completion(s)
    assert paused.counter == 3
    assert not paused.complete
    final = run_to_completion(paused)
    assert final.complete


def test_adjacent_breakpoints():
    s = initialize("1 2", "ADD 3 EQUAL")
    s = toggle_breakpoint(toggle_breakpoint(s, 1), 2)
    first = run_to_next_breakpoint(s)
    assert first.counter == 1
    second = run_to_next_breakpoint(first)
    assert second.counter == 2
    assert run_to_next_breakpoint(second).complete


def test_inline_breakpoint_marker():
    s = initialize("1 BREAKPOINT 2", "ADD 3 EQUAL")
    assert s.breakpoints == frozenset()
    assert find_next_breakpoint(s) == 1
    paused = run_to_completion(s)
    assert paused.counter == 1
    assert paused.is_paused
    final = run_to_next_breakpoint(paused)
    assert final.complete and final.valid


def test_is_breakpoint_predicate():
    program = parse("1 NOP10 2")
    assert is_breakpoint({0}, program, 0)
    assert is_breakpoint(set(), program, 1)
    assert not is_breakpoint(set(), program, 2)
    assert not is_breakpoint(set(), program, 3)


def test_toggle_twice_restores_breakpoints():
    s = toggle_breakpoint(initialize("1 2", "ADD 3 EQUAL"), 4)
    twice = toggle_breakpoint(toggle_breakpoint(s, 1), 1)
    assert twice.breakpoints == s.breakpoints == frozenset({4})
    assert twice == s


def test_toggle_out_of_range():
    with pytest.raises(IndexError):
        toggle_breakpoint(initialize("1", "1"), 2)


def test_find_next_breakpoint():
    s = initialize("1 2", "ADD 3 EQUAL")
    assert find_next_breakpoint(s) is None
    s = toggle_breakpoint(toggle_breakpoint(s, 0), 3)
    # the current position does not count
    assert find_next_breakpoint(s) == 3
    assert s.next_breakpoint == 3
    after = run_to_next_breakpoint(s)
    assert after.counter == 3
    assert find_next_breakpoint(after) is None


def test_step_ceiling():
    s = initialize(" ".join(["OP_NOP"] * (MAX_STEPS + 1)), "1")
    final = run_to_completion(s)
    assert final.complete
    assert not final.valid
    assert final.counter == MAX_STEPS
    assert "too many steps" in final.error.lower()


def test_custom_step_ceiling():
    s = initialize("1 2", "ADD 3 EQUAL")
    final = run_to_completion(s, max_steps=3)
    assert final.complete and not final.valid
    assert final.counter == 3
    assert final.stack == (b"\x03",)
    limited = run_to_next_breakpoint(s, max_steps=2)
    assert limited.complete and limited.counter == 2


def test_run_to_completion_always_completes_without_breakpoints():
    for unlocking, locking in [("1 2", "ADD 3 EQUAL"), ("", ""), ("0", "IF 1 ENDIF"), ("RETURN", "")]:
        assert run_to_completion(initialize(unlocking, locking)).complete


def test_snapshots_are_not_modified():
    s0 = initialize("1 2", "ADD 3 EQUAL")
    s1 = step_once(s0)
    assert s0.counter == 0 and s0.stack == ()
    assert s1.counter == 1 and s1.stack == (b"\x01",)
    s2 = step_once(s1)
    assert s1.stack == (b"\x01",)
    assert s2.stack == (b"\x01", b"\x02")


def test_stepping_an_old_snapshot_forks():
    s0 = initialize("1 2", "ADD 3 EQUAL")
    a1 = step_once(s0)
    b1 = step_once(s0)
    assert a1 == b1
    assert a1.lineage is not b1.lineage
    a2 = step_once(a1)
    b2 = step_once(b1)
    assert a2 == b2
    # a1 is no longer the head of its lineage; stepping it again must not
    # reuse the machine that is already past it
    assert step_once(a1) == a2


def test_toggle_hands_machine_to_new_snapshot():
    s1 = step_once(initialize("1 2", "ADD 3 EQUAL"))
    t1 = toggle_breakpoint(s1, 4)
    assert t1.lineage is s1.lineage
    assert step_once(t1).counter == 2
    assert step_once(s1).counter == 2


def test_complete_snapshot_is_terminal():
    final = run_to_completion(initialize("1", ""))
    assert final.complete
    assert step_once(final) is final
    assert run_to_completion(final) is final
    assert run_to_next_breakpoint(final) is final


def test_validity_requires_single_truthy_item():
    assert not run_to_completion(initialize("1 1", "")).valid
    assert not run_to_completion(initialize("0", "")).valid
    assert run_to_completion(initialize("5", "")).valid
    empty = run_to_completion(initialize("", ""))
    assert empty.complete and not empty.valid and empty.error is None


def test_stack_is_valid():
    assert stack_is_valid([b"\x01"])
    assert not stack_is_valid([])
    assert not stack_is_valid([b"\x80"])
    assert not stack_is_valid([b"\x01", b"\x01"])


def test_failed_instruction_keeps_last_good_stacks():
    final = run_to_completion(initialize("1 TOALTSTACK 2 3", "EQUALVERIFY"))
    assert final.counter == 4
    assert final.stack == (b"\x02", b"\x03")
    assert final.alt_stack == (b"\x01",)
    assert "not equal" in final.error


def test_phase_follows_counter():
    s = initialize("1", "1 EQUAL")
    assert s.phase == PHASE_UNLOCKING
    s = step_once(s)
    assert s.phase == PHASE_LOCKING


def test_to_dict_is_json_ready():
    s = toggle_breakpoint(initialize("ff", "DUP EQUAL"), 2)
    paused = run_to_next_breakpoint(s)
    d = paused.to_dict()
    json.dumps(d)
    assert d["counter"] == 2
    assert d["stack"] == ["ff", "ff"]
    assert d["alt_stack"] == []
    assert d["breakpoints"] == [2]
    assert [p["script"] for p in d["program"]] == ["unlock", "lock", "lock"]
    assert d["program"][0]["data"] == "ff"
    assert d["program"][2]["breakpoint"] is True
    assert d["complete"] is False


def test_oversized_num2bin_ends_on_the_snapshot():
    final = run_to_completion(initialize("1", "ffffffffffff7f NUM2BIN"))
    assert final.complete
    assert not final.valid
    assert final.counter == 2
    assert "NUM2BIN" in final.error
    assert [item.hex() for item in final.stack] == ["01", "ffffffffffff7f"]
