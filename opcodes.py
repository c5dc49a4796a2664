#!/usr/bin/env python3
"""
opcodes.py

Opcode table: mnemonic <-> numeric code, plus the push size classes.
Codes 0x01-0x4b push that many raw bytes and have no mnemonic of their own.
"""

from script_errors import UnknownOpcode

# Push value
OP_0 = 0x00
OP_PUSHDATA1 = 0x4c
OP_PUSHDATA2 = 0x4d
OP_PUSHDATA4 = 0x4e
OP_1NEGATE = 0x4f
OP_RESERVED = 0x50
OP_1 = 0x51
OP_16 = 0x60

# Largest length a direct push opcode can carry:
MAX_DIRECT_PUSH = 0x4b

OPCODES = {
    "OP_0": OP_0,
    "OP_PUSHDATA1": OP_PUSHDATA1,
    "OP_PUSHDATA2": OP_PUSHDATA2,
    "OP_PUSHDATA4": OP_PUSHDATA4,
    "OP_1NEGATE": OP_1NEGATE,
    "OP_RESERVED": OP_RESERVED,
    # OP_1 .. OP_16 are filled in below

    # Control
    "OP_NOP": 0x61,
    "OP_VER": 0x62,
    "OP_IF": 0x63,
    "OP_NOTIF": 0x64,
    "OP_VERIF": 0x65,
    "OP_VERNOTIF": 0x66,
    "OP_ELSE": 0x67,
    "OP_ENDIF": 0x68,
    "OP_VERIFY": 0x69,
    "OP_RETURN": 0x6a,

    # Stack ops
    "OP_TOALTSTACK": 0x6b,
    "OP_FROMALTSTACK": 0x6c,
    "OP_2DROP": 0x6d,
    "OP_2DUP": 0x6e,
    "OP_3DUP": 0x6f,
    "OP_2OVER": 0x70,
    "OP_2ROT": 0x71,
    "OP_2SWAP": 0x72,
    "OP_IFDUP": 0x73,
    "OP_DEPTH": 0x74,
    "OP_DROP": 0x75,
    "OP_DUP": 0x76,
    "OP_NIP": 0x77,
    "OP_OVER": 0x78,
    "OP_PICK": 0x79,
    "OP_ROLL": 0x7a,
    "OP_ROT": 0x7b,
    "OP_SWAP": 0x7c,
    "OP_TUCK": 0x7d,

    # Splice ops
    "OP_CAT": 0x7e,
    "OP_SPLIT": 0x7f,
    "OP_NUM2BIN": 0x80,
    "OP_BIN2NUM": 0x81,
    "OP_SIZE": 0x82,

    # Bit logic
    "OP_INVERT": 0x83,
    "OP_AND": 0x84,
    "OP_OR": 0x85,
    "OP_XOR": 0x86,
    "OP_EQUAL": 0x87,
    "OP_EQUALVERIFY": 0x88,
    "OP_RESERVED1": 0x89,
    "OP_RESERVED2": 0x8a,

    # Numeric
    "OP_1ADD": 0x8b,
    "OP_1SUB": 0x8c,
    "OP_2MUL": 0x8d,
    "OP_2DIV": 0x8e,
    "OP_NEGATE": 0x8f,
    "OP_ABS": 0x90,
    "OP_NOT": 0x91,
    "OP_0NOTEQUAL": 0x92,
    "OP_ADD": 0x93,
    "OP_SUB": 0x94,
    "OP_MUL": 0x95,
    "OP_DIV": 0x96,
    "OP_MOD": 0x97,
    "OP_LSHIFT": 0x98,
    "OP_RSHIFT": 0x99,
    "OP_BOOLAND": 0x9a,
    "OP_BOOLOR": 0x9b,
    "OP_NUMEQUAL": 0x9c,
    "OP_NUMEQUALVERIFY": 0x9d,
    "OP_NUMNOTEQUAL": 0x9e,
    "OP_LESSTHAN": 0x9f,
    "OP_GREATERTHAN": 0xa0,
    "OP_LESSTHANOREQUAL": 0xa1,
    "OP_GREATERTHANOREQUAL": 0xa2,
    "OP_MIN": 0xa3,
    "OP_MAX": 0xa4,
    "OP_WITHIN": 0xa5,

    # Crypto
    "OP_RIPEMD160": 0xa6,
    "OP_SHA1": 0xa7,
    "OP_SHA256": 0xa8,
    "OP_HASH160": 0xa9,
    "OP_HASH256": 0xaa,
    "OP_CODESEPARATOR": 0xab,
    "OP_CHECKSIG": 0xac,
    "OP_CHECKSIGVERIFY": 0xad,
    "OP_CHECKMULTISIG": 0xae,
    "OP_CHECKMULTISIGVERIFY": 0xaf,

    # Expansion
    "OP_NOP1": 0xb0,
    "OP_NOP2": 0xb1,
    "OP_NOP3": 0xb2,
    "OP_NOP4": 0xb3,
    "OP_NOP5": 0xb4,
    "OP_NOP6": 0xb5,
    "OP_NOP7": 0xb6,
    "OP_NOP8": 0xb7,
    "OP_NOP9": 0xb8,
    "OP_NOP10": 0xb9,
}

for _n in range(1, 17):
    OPCODES["OP_%d" % _n] = OP_1 + _n - 1

# Alternative spellings accepted on input; never produced on output.
ALIASES = {
    "OP_FALSE": "OP_0",
    "OP_TRUE": "OP_1",
    "OP_CHECKLOCKTIMEVERIFY": "OP_NOP2",
    "OP_CHECKSEQUENCEVERIFY": "OP_NOP3",
    "OP_BREAKPOINT": "OP_NOP10",
}

NAMES = {code: name for name, code in OPCODES.items()}


def normalize_mnemonic(token: str) -> str:
    """Uppercase a mnemonic, add the OP_ prefix if missing and resolve aliases."""
    name = token.upper()
    if not name.startswith("OP_"):
        name = "OP_" + name
    return ALIASES.get(name, name)


def code_for(mnemonic: str) -> int:
    name = normalize_mnemonic(mnemonic)
    if name not in OPCODES:
        raise UnknownOpcode(mnemonic)
    return OPCODES[name]


def name_for(code: int) -> str:
    """
    Mnemonic for a numeric code. Direct pushes are named OP_PUSHBYTES_<n>,
    codes outside the table OP_UNKNOWN_<code>.
    """
    if code in NAMES:
        return NAMES[code]
    if 1 <= code <= MAX_DIRECT_PUSH:
        return "OP_PUSHBYTES_%d" % code
    return "OP_UNKNOWN_%d" % code


def push_opcode_for(length: int) -> int:
    """Smallest push opcode able to carry `length` bytes of data."""
    if length < 0:
        raise ValueError("negative push length")
    if length <= MAX_DIRECT_PUSH:
        return length
    if length <= 0xff:
        return OP_PUSHDATA1
    if length <= 0xffff:
        return OP_PUSHDATA2
    return OP_PUSHDATA4


def is_push(code: int) -> bool:
    """True for every opcode that only pushes a constant."""
    return code <= OP_16 and code != OP_RESERVED


def small_int_opcode(n: int) -> int:
    """OP_0, OP_1NEGATE or OP_1..OP_16 for n in [-1, 16]."""
    if n == 0:
        return OP_0
    if n == -1:
        return OP_1NEGATE
    if 1 <= n <= 16:
        return OP_1 + n - 1
    raise ValueError("no small integer opcode for %d" % n)
