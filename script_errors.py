#!/usr/bin/env python3
"""
script_errors.py

Exception types for parsing and executing scripts.

Parse errors are raised to the caller. Execution errors are raised inside the
machine only and end up as the error message of a halted snapshot.
"""

from typing import Optional


class ScriptError(Exception):
    pass


class ParseError(ScriptError, ValueError):
    """A token could not be turned into an instruction."""

    def __init__(self, reason: str, token: Optional[str] = None):
        super().__init__(reason)
        self.reason = reason
        self.token = token


class UnknownOpcode(ParseError):
    def __init__(self, mnemonic: str):
        super().__init__("Unknown opcode: %s" % mnemonic, mnemonic)
        self.mnemonic = mnemonic


class ExecutionError(ScriptError):
    """Fatal condition hit while executing one instruction."""

    def __init__(self, message: str, counter: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.counter = counter


class StackUnderflow(ExecutionError):
    pass


class VerificationFailed(ExecutionError):
    pass


class InvalidOpcode(ExecutionError):
    pass


class InvalidOperand(ExecutionError):
    pass


class UnbalancedConditional(ExecutionError):
    pass


class OpReturnError(ExecutionError):
    pass


class StepLimitExceeded(ExecutionError):
    pass
