#!/usr/bin/env python3
"""
script_engine.py

Implements a stack-based Script interpreter with a broad subset of Bitcoin
(BSV) opcodes. The machine runs one instruction per call to step(), so it can
be paused and inspected between any two instructions.

Fatal conditions never escape step(): they are stored on the machine as
`error` and the program counter stays on the failing instruction.

Signature opcodes verify against a TxContext when one is given. Without one
they always succeed (simplified mode for experimenting with scripts).
"""

import logging
from typing import List, Optional, Sequence

from config import MAX_SCRIPT_NUM_LENGTH, PHASE_LOCKING, PHASE_UNLOCKING
from crypto_utils import hash160, double_sha256, ripemd160, sha1, sha256
from opcodes import OP_1, OP_16, OP_PUSHDATA4, code_for
from script_errors import (
    ExecutionError, InvalidOpcode, InvalidOperand, OpReturnError,
    StackUnderflow, UnbalancedConditional, VerificationFailed,
)
from script_num import bool_item, cast_to_bool, decode_num, encode_num
from script_parser import Instruction

logger = logging.getLogger("ScriptDebugger")

HANDLERS = {}

def handles(*names):
    """Register a ScriptMachine method as the handler for the named opcodes."""
    def register(func):
        for name in names:
            HANDLERS[code_for(name)] = func
        return func
    return register

# Evaluated even inside a non-executed branch.
CONDITIONAL_OPS = ("OP_IF", "OP_NOTIF", "OP_ELSE", "OP_ENDIF")


class ScriptMachine:
    """
    Main stack, alt stack and program counter over a fixed program
    (unlocking instructions followed by locking instructions).
    The top of each stack is the last list element.
    """

    def __init__(self, program: Sequence[Instruction], unlocking_length: int, context=None):
        self.program = tuple(program)
        self.unlocking_length = unlocking_length
        self.context = context
        self.pc = 0
        self.stack: List[bytes] = []
        self.alt_stack: List[bytes] = []
        # one entry per open IF: whether that branch is being executed
        self.branches: List[bool] = []
        self.error: Optional[ExecutionError] = None

    @classmethod
    def restore(cls, program, unlocking_length, pc, stack, alt_stack, branches=(), context=None):
        machine = cls(program, unlocking_length, context)
        machine.pc = pc
        machine.stack = list(stack)
        machine.alt_stack = list(alt_stack)
        machine.branches = list(branches)
        return machine

    def clone(self) -> "ScriptMachine":
        machine = self.restore(self.program, self.unlocking_length, self.pc,
                               self.stack, self.alt_stack, self.branches, self.context)
        machine.error = self.error
        return machine

    @property
    def phase(self) -> str:
        if self.pc < self.unlocking_length:
            return PHASE_UNLOCKING
        return PHASE_LOCKING

    @property
    def finished(self) -> bool:
        return self.error is not None or self.pc >= len(self.program)

    @property
    def executing(self) -> bool:
        return all(self.branches)

    def step(self) -> bool:
        """
        Execute the instruction at pc and advance. Returns True while there
        is more to run.
        """
        if self.finished:
            return False
        instruction = self.program[self.pc]
        logger.debug("[%d] %s %s", self.pc, self.phase, instruction)
        saved = (list(self.stack), list(self.alt_stack), list(self.branches))
        try:
            self.execute(instruction)
        except ExecutionError as e:
            # a failed instruction leaves the stacks as they were before it
            self.stack, self.alt_stack, self.branches = saved
            e.counter = self.pc
            self.error = e
            logger.warning("Script halted at %d (%s): %s", self.pc, instruction.opcode, e)
            return False
        self.pc += 1
        if self.pc == len(self.program) and self.branches:
            self.error = UnbalancedConditional("OP_IF without matching OP_ENDIF", self.pc)
            logger.warning("Script halted at end: %s", self.error)
            return False
        return self.pc < len(self.program)

    def execute(self, instruction: Instruction):
        if not self.executing and instruction.opcode not in CONDITIONAL_OPS:
            return
        if instruction.data is not None:
            self.stack.append(instruction.data)
            return
        handler = HANDLERS.get(instruction.code)
        if handler is None:
            if 0 < instruction.code <= OP_PUSHDATA4:
                raise InvalidOperand("%s: missing push data" % instruction.opcode)
            raise InvalidOpcode("Invalid opcode: %s" % instruction.opcode)
        handler(self, instruction)

    # ------------------------------------------------------------------
    # Stack helpers
    # ------------------------------------------------------------------
    def require(self, ins: Instruction, n: int):
        if len(self.stack) < n:
            raise StackUnderflow("%s: Stack underflow" % ins.opcode)

    def pop(self, ins: Instruction) -> bytes:
        self.require(ins, 1)
        return self.stack.pop()

    def pop_num(self, ins: Instruction) -> int:
        item = self.pop(ins)
        if len(item) > MAX_SCRIPT_NUM_LENGTH:
            raise InvalidOperand("%s: number too long (%d bytes)" % (ins.opcode, len(item)))
        return decode_num(item)

    def push_num(self, n: int):
        self.stack.append(encode_num(n))

    def push_bool(self, value: bool):
        self.stack.append(bool_item(value))

    def check_sig(self, signature: bytes, pubkey: bytes) -> bool:
        if self.context is None:
            return True
        return self.context.check_sig(signature, pubkey)

    # ------------------------------------------------------------------
    # Constants
    # ------------------------------------------------------------------
    @handles("OP_0")
    def op_false(self, ins):
        self.stack.append(b"")

    @handles("OP_1NEGATE")
    def op_1negate(self, ins):
        self.push_num(-1)

    def op_small_int(self, ins):
        self.push_num(ins.code - OP_1 + 1)

    # ------------------------------------------------------------------
    # Flow control
    # ------------------------------------------------------------------
    @handles("OP_NOP", "OP_NOP1", "OP_NOP2", "OP_NOP3", "OP_NOP4", "OP_NOP5",
             "OP_NOP6", "OP_NOP7", "OP_NOP8", "OP_NOP9", "OP_NOP10", "OP_CODESEPARATOR")
    def op_nop(self, ins):
        pass

    @handles("OP_IF", "OP_NOTIF")
    def op_if(self, ins):
        taken = False
        if self.executing:
            taken = cast_to_bool(self.pop(ins))
            if ins.opcode == "OP_NOTIF":
                taken = not taken
        self.branches.append(taken)

    @handles("OP_ELSE")
    def op_else(self, ins):
        if not self.branches:
            raise UnbalancedConditional("OP_ELSE without OP_IF")
        self.branches[-1] = not self.branches[-1]

    @handles("OP_ENDIF")
    def op_endif(self, ins):
        if not self.branches:
            raise UnbalancedConditional("OP_ENDIF without OP_IF")
        self.branches.pop()

    @handles("OP_VERIFY")
    def op_verify(self, ins):
        if not cast_to_bool(self.pop(ins)):
            raise VerificationFailed("OP_VERIFY: top of stack is false")

    @handles("OP_RETURN")
    def op_return(self, ins):
        raise OpReturnError("OP_RETURN: script marked unspendable")

    # ------------------------------------------------------------------
    # Stack ops
    # ------------------------------------------------------------------
    @handles("OP_TOALTSTACK")
    def op_toaltstack(self, ins):
        self.alt_stack.append(self.pop(ins))

    @handles("OP_FROMALTSTACK")
    def op_fromaltstack(self, ins):
        if not self.alt_stack:
            raise StackUnderflow("OP_FROMALTSTACK: Alt stack underflow")
        self.stack.append(self.alt_stack.pop())

    @handles("OP_2DROP")
    def op_2drop(self, ins):
        self.require(ins, 2)
        del self.stack[-2:]

    @handles("OP_2DUP")
    def op_2dup(self, ins):
        self.require(ins, 2)
        self.stack.extend(self.stack[-2:])

    @handles("OP_3DUP")
    def op_3dup(self, ins):
        self.require(ins, 3)
        self.stack.extend(self.stack[-3:])

    @handles("OP_2OVER")
    def op_2over(self, ins):
        self.require(ins, 4)
        self.stack.extend(self.stack[-4:-2])

    @handles("OP_2ROT")
    def op_2rot(self, ins):
        self.require(ins, 6)
        pair = self.stack[-6:-4]
        del self.stack[-6:-4]
        self.stack.extend(pair)

    @handles("OP_2SWAP")
    def op_2swap(self, ins):
        self.require(ins, 4)
        self.stack[-4:] = self.stack[-2:] + self.stack[-4:-2]

    @handles("OP_IFDUP")
    def op_ifdup(self, ins):
        self.require(ins, 1)
        if cast_to_bool(self.stack[-1]):
            self.stack.append(self.stack[-1])

    @handles("OP_DEPTH")
    def op_depth(self, ins):
        self.push_num(len(self.stack))

    @handles("OP_DROP")
    def op_drop(self, ins):
        self.pop(ins)

    @handles("OP_DUP")
    def op_dup(self, ins):
        self.require(ins, 1)
        self.stack.append(self.stack[-1])

    @handles("OP_NIP")
    def op_nip(self, ins):
        self.require(ins, 2)
        del self.stack[-2]

    @handles("OP_OVER")
    def op_over(self, ins):
        self.require(ins, 2)
        self.stack.append(self.stack[-2])

    @handles("OP_PICK", "OP_ROLL")
    def op_pick(self, ins):
        n = self.pop_num(ins)
        if n < 0:
            raise InvalidOperand("%s: negative depth %d" % (ins.opcode, n))
        self.require(ins, n + 1)
        item = self.stack[-n - 1]
        if ins.opcode == "OP_ROLL":
            del self.stack[-n - 1]
        self.stack.append(item)

    @handles("OP_ROT")
    def op_rot(self, ins):
        self.require(ins, 3)
        self.stack.append(self.stack.pop(-3))

    @handles("OP_SWAP")
    def op_swap(self, ins):
        self.require(ins, 2)
        self.stack[-2], self.stack[-1] = self.stack[-1], self.stack[-2]

    @handles("OP_TUCK")
    def op_tuck(self, ins):
        self.require(ins, 2)
        self.stack.insert(-2, self.stack[-1])

    # ------------------------------------------------------------------
    # Splice ops
    # ------------------------------------------------------------------
    @handles("OP_CAT")
    def op_cat(self, ins):
        self.require(ins, 2)
        if len(self.stack[-1]) + len(self.stack[-2]) > MAX_SCRIPT_NUM_LENGTH:
            raise InvalidOperand("OP_CAT: result longer than %d bytes" % MAX_SCRIPT_NUM_LENGTH)
        b = self.stack.pop()
        a = self.stack.pop()
        self.stack.append(a + b)

    @handles("OP_SPLIT")
    def op_split(self, ins):
        self.require(ins, 2)
        n = self.pop_num(ins)
        data = self.stack.pop()
        if n < 0 or n > len(data):
            raise InvalidOperand("OP_SPLIT: position %d out of range" % n)
        self.stack.append(data[:n])
        self.stack.append(data[n:])

    @handles("OP_NUM2BIN")
    def op_num2bin(self, ins):
        self.require(ins, 2)
        size = self.pop_num(ins)
        value = encode_num(decode_num(self.stack.pop()))
        if size > MAX_SCRIPT_NUM_LENGTH:
            raise InvalidOperand("OP_NUM2BIN: size %d exceeds %d bytes" % (size, MAX_SCRIPT_NUM_LENGTH))
        if size < 0 or len(value) > size:
            raise InvalidOperand("OP_NUM2BIN: %d bytes do not fit in %d" % (len(value), size))
        if len(value) == size:
            self.stack.append(value)
            return
        padded = bytearray(value)
        sign = 0
        if padded:
            sign = padded[-1] & 0x80
            padded[-1] &= 0x7f
        padded.extend(b"\x00" * (size - len(padded)))
        padded[-1] |= sign
        self.stack.append(bytes(padded))

    @handles("OP_BIN2NUM")
    def op_bin2num(self, ins):
        self.stack.append(encode_num(decode_num(self.pop(ins))))

    @handles("OP_SIZE")
    def op_size(self, ins):
        self.require(ins, 1)
        self.push_num(len(self.stack[-1]))

    # ------------------------------------------------------------------
    # Bit logic
    # ------------------------------------------------------------------
    @handles("OP_INVERT")
    def op_invert(self, ins):
        self.stack.append(bytes(~b & 0xff for b in self.pop(ins)))

    @handles("OP_AND", "OP_OR", "OP_XOR")
    def op_bitwise(self, ins):
        self.require(ins, 2)
        b = self.stack.pop()
        a = self.stack.pop()
        if len(a) != len(b):
            raise InvalidOperand("%s: operands differ in size" % ins.opcode)
        if ins.opcode == "OP_AND":
            out = bytes(x & y for x, y in zip(a, b))
        elif ins.opcode == "OP_OR":
            out = bytes(x | y for x, y in zip(a, b))
        else:
            out = bytes(x ^ y for x, y in zip(a, b))
        self.stack.append(out)

    @handles("OP_EQUAL", "OP_EQUALVERIFY")
    def op_equal(self, ins):
        self.require(ins, 2)
        b = self.stack.pop()
        a = self.stack.pop()
        if ins.opcode == "OP_EQUALVERIFY":
            if a != b:
                raise VerificationFailed("OP_EQUALVERIFY: Values not equal")
            return
        self.push_bool(a == b)

    # ------------------------------------------------------------------
    # Numeric
    # ------------------------------------------------------------------
    @handles("OP_1ADD", "OP_1SUB", "OP_NEGATE", "OP_ABS", "OP_NOT", "OP_0NOTEQUAL")
    def op_unary(self, ins):
        a = self.pop_num(ins)
        if ins.opcode == "OP_1ADD":
            self.push_num(a + 1)
        elif ins.opcode == "OP_1SUB":
            self.push_num(a - 1)
        elif ins.opcode == "OP_NEGATE":
            self.push_num(-a)
        elif ins.opcode == "OP_ABS":
            self.push_num(abs(a))
        elif ins.opcode == "OP_NOT":
            self.push_bool(a == 0)
        else:
            self.push_bool(a != 0)

    @handles("OP_ADD", "OP_SUB", "OP_MUL", "OP_DIV", "OP_MOD",
             "OP_BOOLAND", "OP_BOOLOR", "OP_NUMEQUAL", "OP_NUMEQUALVERIFY",
             "OP_NUMNOTEQUAL", "OP_LESSTHAN", "OP_GREATERTHAN",
             "OP_LESSTHANOREQUAL", "OP_GREATERTHANOREQUAL", "OP_MIN", "OP_MAX")
    def op_binary(self, ins):
        self.require(ins, 2)
        b = self.pop_num(ins)
        a = self.pop_num(ins)
        op = ins.opcode
        if op in ("OP_DIV", "OP_MOD") and b == 0:
            raise InvalidOperand("%s: division by zero" % op)
        if op == "OP_ADD":
            self.push_num(a + b)
        elif op == "OP_SUB":
            self.push_num(a - b)
        elif op == "OP_MUL":
            self.push_num(a * b)
        elif op == "OP_DIV":
            # truncates toward zero
            q = abs(a) // abs(b)
            self.push_num(q if (a < 0) == (b < 0) else -q)
        elif op == "OP_MOD":
            # result takes the sign of the dividend
            r = abs(a) % abs(b)
            self.push_num(-r if a < 0 else r)
        elif op == "OP_BOOLAND":
            self.push_bool(a != 0 and b != 0)
        elif op == "OP_BOOLOR":
            self.push_bool(a != 0 or b != 0)
        elif op == "OP_NUMEQUAL":
            self.push_bool(a == b)
        elif op == "OP_NUMEQUALVERIFY":
            if a != b:
                raise VerificationFailed("OP_NUMEQUALVERIFY: %d != %d" % (a, b))
        elif op == "OP_NUMNOTEQUAL":
            self.push_bool(a != b)
        elif op == "OP_LESSTHAN":
            self.push_bool(a < b)
        elif op == "OP_GREATERTHAN":
            self.push_bool(a > b)
        elif op == "OP_LESSTHANOREQUAL":
            self.push_bool(a <= b)
        elif op == "OP_GREATERTHANOREQUAL":
            self.push_bool(a >= b)
        elif op == "OP_MIN":
            self.push_num(min(a, b))
        else:
            self.push_num(max(a, b))

    @handles("OP_WITHIN")
    def op_within(self, ins):
        self.require(ins, 3)
        upper = self.pop_num(ins)
        lower = self.pop_num(ins)
        x = self.pop_num(ins)
        self.push_bool(lower <= x < upper)

    # ------------------------------------------------------------------
    # Crypto
    # ------------------------------------------------------------------
    @handles("OP_RIPEMD160", "OP_SHA1", "OP_SHA256", "OP_HASH160", "OP_HASH256")
    def op_hash(self, ins):
        funcs = {
            "OP_RIPEMD160": ripemd160,
            "OP_SHA1": sha1,
            "OP_SHA256": sha256,
            "OP_HASH160": hash160,
            "OP_HASH256": double_sha256,
        }
        data = self.pop(ins)
        try:
            digest = funcs[ins.opcode](data)
        except ValueError as e:
            # hashlib.new raises ValueError for digests the OpenSSL build lacks
            raise InvalidOpcode("%s: hash unavailable (%s)" % (ins.opcode, e))
        self.stack.append(digest)

    @handles("OP_CHECKSIG", "OP_CHECKSIGVERIFY")
    def op_checksig(self, ins):
        self.require(ins, 2)
        pubkey = self.stack.pop()
        signature = self.stack.pop()
        ok = self.check_sig(signature, pubkey)
        if ins.opcode == "OP_CHECKSIGVERIFY":
            if not ok:
                raise VerificationFailed("OP_CHECKSIGVERIFY: signature check failed")
            return
        self.push_bool(ok)

    @handles("OP_CHECKMULTISIG", "OP_CHECKMULTISIGVERIFY")
    def op_checkmultisig(self, ins):
        # stack: <dummy> <sig1>..<sigM> <M> <key1>..<keyN> <N>
        n_keys = self.pop_num(ins)
        if n_keys < 0:
            raise InvalidOperand("%s: negative key count" % ins.opcode)
        self.require(ins, n_keys + 1)
        keys = [self.stack.pop() for _ in range(n_keys)][::-1]
        n_sigs = self.pop_num(ins)
        if n_sigs < 0 or n_sigs > n_keys:
            raise InvalidOperand("%s: bad signature count %d" % (ins.opcode, n_sigs))
        self.require(ins, n_sigs + 1)
        sigs = [self.stack.pop() for _ in range(n_sigs)][::-1]
        self.stack.pop()  # dummy element, historical off-by-one

        ok = True
        if self.context is not None:
            isig = ikey = 0
            while ok and isig < n_sigs:
                if self.check_sig(sigs[isig], keys[ikey]):
                    isig += 1
                ikey += 1
                if n_sigs - isig > n_keys - ikey:
                    ok = False

        if ins.opcode == "OP_CHECKMULTISIGVERIFY":
            if not ok:
                raise VerificationFailed("OP_CHECKMULTISIGVERIFY: signature check failed")
            return
        self.push_bool(ok)


for _code in range(OP_1, OP_16 + 1):
    HANDLERS[_code] = ScriptMachine.op_small_int
