#!/usr/bin/env python3
"""
script_parser.py

Turns script text into a list of Instructions.

Two parsers are tried in order:
  - parse_asm: strict ASM as printed by node software ("OP_DUP OP_HASH160 <hex> ..."),
    returns None for anything it does not accept.
  - parse_tokens: the tolerant token-by-token grammar. Accepts hex (with or
    without 0x), decimal numbers, bare or OP_-prefixed mnemonics in any case,
    and // or # comment lines. Raises ParseError on an unknown token.
"""

import re
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from config import COMMENT_MARKERS
from opcodes import (
    OPCODES, OP_0, OP_PUSHDATA1, OP_PUSHDATA2, OP_PUSHDATA4,
    code_for, name_for, push_opcode_for, small_int_opcode,
)
from script_errors import ParseError
from script_num import encode_num

logger = logging.getLogger("ScriptDebugger")

HEX_RE = re.compile(r"^(?:0x)?((?:[0-9a-f]{2})*)$", re.IGNORECASE)
ASM_HEX_RE = re.compile(r"^(?:[0-9a-f]{2})+$", re.IGNORECASE)
DECIMAL_RE = re.compile(r"^-?[0-9]+$")

PUSHDATA_LIMITS = {
    OP_PUSHDATA1: 0xff,
    OP_PUSHDATA2: 0xffff,
    OP_PUSHDATA4: 0xffffffff,
}


@dataclass(frozen=True)
class Instruction:
    opcode: str
    code: int
    data: Optional[bytes] = None

    @classmethod
    def push(cls, data: bytes) -> "Instruction":
        """Push instruction using the smallest opcode that fits `data`."""
        if not data:
            return cls.op(OP_0)
        code = push_opcode_for(len(data))
        return cls(name_for(code), code, data)

    @classmethod
    def op(cls, code: int) -> "Instruction":
        return cls(name_for(code), code)

    def is_push_data(self) -> bool:
        return self.data is not None

    def __str__(self):
        if self.data is None:
            return self.opcode
        if self.code in PUSHDATA_LIMITS:
            return "%s %s" % (self.opcode, self.data.hex())
        return self.data.hex()


Parser = Callable[[str], Optional[List[Instruction]]]


def parse_number(n: int) -> Instruction:
    """Dedicated opcode for -1..16, otherwise a push of the minimal encoding."""
    if -1 <= n <= 16:
        return Instruction.op(small_int_opcode(n))
    return Instruction.push(encode_num(n))


def _pushdata(code: int, data: bytes, token: str) -> Instruction:
    if len(data) > PUSHDATA_LIMITS[code]:
        raise ParseError("%s cannot carry %d bytes" % (name_for(code), len(data)), token)
    return Instruction(name_for(code), code, data)


def parse_asm(text: str) -> Optional[List[Instruction]]:
    """
    Strict ASM parser. Only exact OP_ mnemonics, "0", "-1", even-length hex
    without prefix, and "OP_PUSHDATAn <hex>" pairs are accepted. Any other
    token makes the whole parse return None.
    """
    tokens = text.split()
    instructions = []
    i = 0
    while i < len(tokens):
        token = tokens[i]
        i += 1
        if token == "0":
            instructions.append(Instruction.op(small_int_opcode(0)))
        elif token == "-1":
            instructions.append(Instruction.op(small_int_opcode(-1)))
        elif token in OPCODES:
            code = OPCODES[token]
            if code in PUSHDATA_LIMITS:
                if i >= len(tokens) or not ASM_HEX_RE.match(tokens[i]):
                    return None
                data = bytes.fromhex(tokens[i])
                i += 1
                if len(data) > PUSHDATA_LIMITS[code]:
                    return None
                instructions.append(Instruction(token, code, data))
            else:
                instructions.append(Instruction(token, code))
        elif ASM_HEX_RE.match(token):
            instructions.append(Instruction.push(bytes.fromhex(token)))
        else:
            return None
    return instructions


def tokenize(text: str) -> List[str]:
    tokens = []
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith(COMMENT_MARKERS):
            continue
        tokens.extend(line.split())
    return tokens


def parse_token(token: str) -> Instruction:
    m = HEX_RE.match(token)
    if m:
        return Instruction.push(bytes.fromhex(m.group(1)))
    if DECIMAL_RE.match(token):
        try:
            n = int(token)
        except ValueError as e:
            raise ParseError("number too long: %s" % e, token)
        return parse_number(n)
    code = code_for(token)
    return Instruction(name_for(code), code)


def parse_tokens(text: str) -> List[Instruction]:
    """Tolerant token-by-token parser. Raises ParseError on the first bad token."""
    tokens = tokenize(text)
    instructions = []
    i = 0
    while i < len(tokens):
        instruction = parse_token(tokens[i])
        i += 1
        # OP_PUSHDATAn takes the following hex token as its payload
        if instruction.code in PUSHDATA_LIMITS and instruction.data is None:
            m = HEX_RE.match(tokens[i]) if i < len(tokens) else None
            if m is None:
                raise ParseError("%s needs a hex payload" % instruction.opcode, tokens[i - 1])
            instruction = _pushdata(instruction.code, bytes.fromhex(m.group(1)), tokens[i])
            i += 1
        instructions.append(instruction)
    return instructions


def with_fallback(primary: Parser, fallback: Parser) -> Parser:
    """Parser that runs `fallback` whenever `primary` returns None."""
    def combined(text: str):
        result = primary(text)
        if result is None:
            logger.debug("Strict parse rejected input, using token parser")
            return fallback(text)
        return result
    return combined


_parse = with_fallback(parse_asm, parse_tokens)


def parse(text: str) -> List[Instruction]:
    return _parse(text)


def format_script(instructions: List[Instruction]) -> str:
    """ASM text for a list of instructions; parse(format_script(x)) == x."""
    return " ".join(str(i) for i in instructions)
