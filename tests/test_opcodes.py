import pytest

from opcodes import (
    OP_0, OP_1NEGATE, OP_PUSHDATA1, OP_PUSHDATA2, OP_PUSHDATA4,
    code_for, is_push, name_for, push_opcode_for, small_int_opcode,
)
from script_errors import ParseError, UnknownOpcode


def test_code_for_accepts_bare_and_prefixed_mnemonics():
    assert code_for("OP_DUP") == 0x76
    assert code_for("DUP") == 0x76
    assert code_for("op_hash160") == 0xa9
    assert code_for("checksig") == 0xac


def test_code_for_resolves_aliases():
    assert code_for("OP_TRUE") == code_for("OP_1")
    assert code_for("FALSE") == OP_0
    assert code_for("OP_CHECKLOCKTIMEVERIFY") == code_for("OP_NOP2")
    assert code_for("BREAKPOINT") == code_for("OP_NOP10")


def test_unknown_mnemonic_raises():
    with pytest.raises(UnknownOpcode) as excinfo:
        code_for("OP_FROBNICATE")
    assert excinfo.value.mnemonic == "OP_FROBNICATE"
    # unknown opcodes are parse errors too
    assert isinstance(excinfo.value, ParseError)


def test_name_for_round_trips_table_entries():
    for name in ("OP_0", "OP_1NEGATE", "OP_16", "OP_ADD", "OP_CHECKMULTISIGVERIFY"):
        assert name_for(code_for(name)) == name


def test_name_for_direct_pushes_and_unknown_codes():
    assert name_for(1) == "OP_PUSHBYTES_1"
    assert name_for(75) == "OP_PUSHBYTES_75"
    assert name_for(0xba) == "OP_UNKNOWN_186"


@pytest.mark.parametrize("length, expected", [
    (0, 0),
    (1, 1),
    (75, 75),
    (76, OP_PUSHDATA1),
    (255, OP_PUSHDATA1),
    (256, OP_PUSHDATA2),
    (65535, OP_PUSHDATA2),
    (65536, OP_PUSHDATA4),
])
def test_push_opcode_picks_smallest_class(length, expected):
    assert push_opcode_for(length) == expected


def test_small_int_opcodes():
    assert small_int_opcode(0) == OP_0
    assert small_int_opcode(-1) == OP_1NEGATE
    assert small_int_opcode(1) == code_for("OP_1")
    assert small_int_opcode(16) == code_for("OP_16")
    with pytest.raises(ValueError):
        small_int_opcode(17)


def test_is_push():
    assert is_push(OP_0)
    assert is_push(20)
    assert is_push(code_for("OP_16"))
    assert not is_push(code_for("OP_RESERVED"))
    assert not is_push(code_for("OP_DUP"))
