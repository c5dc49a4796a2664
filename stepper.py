#!/usr/bin/env python3
"""
stepper.py

Stepping and breakpoint control on top of the script machine.

Every operation takes a Snapshot and returns a new one; snapshots are never
modified. The live ScriptMachine behind a chain of snapshots is owned by a
Lineage. Only the newest snapshot of a lineage (its head) may reuse the
machine; stepping any other snapshot rebuilds a machine from the snapshot's
own fields first, so two branches of history never share a machine.
A single lineage must still not be stepped from two threads at once.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import FrozenSet, Iterable, Optional, Sequence, Tuple, Union

from config import (
    BREAKPOINT_OPCODE, MAX_STEPS, PHASE_LOCKING, PHASE_UNLOCKING, REQUIRE_CLEAN_STACK,
)
from opcodes import code_for
from script_engine import ScriptMachine
from script_errors import StepLimitExceeded
from script_num import cast_to_bool
from script_parser import Instruction, parse

logger = logging.getLogger("ScriptDebugger")

BREAKPOINT_CODE = code_for(BREAKPOINT_OPCODE)


class Lineage:
    """Owns the one live machine behind a chain of snapshots."""

    def __init__(self, machine: ScriptMachine):
        self.machine = machine
        self.head: Optional["Snapshot"] = None


@dataclass(frozen=True)
class Snapshot:
    program: Tuple[Instruction, ...]
    unlocking_length: int
    counter: int = 0
    stack: Tuple[bytes, ...] = ()
    alt_stack: Tuple[bytes, ...] = ()
    branches: Tuple[bool, ...] = ()
    complete: bool = False
    valid: bool = False
    phase: str = PHASE_UNLOCKING
    error: Optional[str] = None
    breakpoints: FrozenSet[int] = frozenset()
    context: object = field(default=None, compare=False, repr=False)
    lineage: Optional[Lineage] = field(default=None, compare=False, repr=False)

    @property
    def current_instruction(self) -> Optional[Instruction]:
        if self.counter < len(self.program):
            return self.program[self.counter]
        return None

    @property
    def is_paused(self) -> bool:
        """Stopped on a breakpoint, not finished."""
        return not self.complete and is_breakpoint(self.breakpoints, self.program, self.counter)

    @property
    def next_breakpoint(self) -> Optional[int]:
        return find_next_breakpoint(self)

    def to_dict(self) -> dict:
        """Printable view: stack items and push data as hex."""
        return {
            'program': [
                {
                    'index': i,
                    'opcode': ins.opcode,
                    'code': ins.code,
                    'data': ins.data.hex() if ins.data is not None else None,
                    'script': 'unlock' if i < self.unlocking_length else 'lock',
                    'breakpoint': is_breakpoint(self.breakpoints, self.program, i),
                }
                for i, ins in enumerate(self.program)
            ],
            'counter': self.counter,
            'stack': [item.hex() for item in self.stack],
            'alt_stack': [item.hex() for item in self.alt_stack],
            'complete': self.complete,
            'valid': self.valid,
            'phase': self.phase,
            'error': self.error,
            'breakpoints': sorted(self.breakpoints),
        }


def is_breakpoint(breakpoints: Iterable[int], program: Sequence[Instruction], index: int) -> bool:
    """An index pauses execution if it is in the set or holds the inline marker opcode."""
    if index in breakpoints:
        return True
    return 0 <= index < len(program) and program[index].code == BREAKPOINT_CODE


def stack_is_valid(stack: Sequence[bytes]) -> bool:
    if not stack:
        return False
    if REQUIRE_CLEAN_STACK and len(stack) != 1:
        return False
    return cast_to_bool(stack[-1])


def _as_program(script: Union[str, Sequence[Instruction]]) -> Tuple[Instruction, ...]:
    if isinstance(script, str):
        return tuple(parse(script))
    return tuple(script)


def initialize(unlocking, locking, breakpoints: Iterable[int] = (), context=None) -> Snapshot:
    """
    Start a new lineage. `unlocking` and `locking` are script text or lists
    of Instructions. Raises ParseError if either text does not parse.
    """
    unlocking_program = _as_program(unlocking)
    locking_program = _as_program(locking)
    program = unlocking_program + locking_program
    logger.info("Ready to execute %d instructions (%d unlocking, %d locking)",
                len(program), len(unlocking_program), len(locking_program))
    return Snapshot(
        program=program,
        unlocking_length=len(unlocking_program),
        phase=PHASE_UNLOCKING if unlocking_program else PHASE_LOCKING,
        breakpoints=frozenset(breakpoints),
        context=context,
    )


def _machine_for(snapshot: Snapshot) -> ScriptMachine:
    return ScriptMachine.restore(
        snapshot.program, snapshot.unlocking_length, snapshot.counter,
        snapshot.stack, snapshot.alt_stack, snapshot.branches, snapshot.context,
    )


def step_once(snapshot: Snapshot) -> Snapshot:
    """Execute one instruction. A complete snapshot is returned unchanged."""
    if snapshot.complete:
        return snapshot

    lineage = snapshot.lineage
    if lineage is None or lineage.head is not snapshot:
        lineage = Lineage(_machine_for(snapshot))
    machine = lineage.machine

    continues = machine.step()
    complete = not continues or machine.pc >= len(snapshot.program)
    error = str(machine.error) if machine.error is not None else None
    valid = complete and error is None and stack_is_valid(machine.stack)

    new = replace(
        snapshot,
        counter=machine.pc,
        stack=tuple(machine.stack),
        alt_stack=tuple(machine.alt_stack),
        branches=tuple(machine.branches),
        complete=complete,
        valid=valid,
        phase=machine.phase,
        error=error,
        lineage=None if complete else lineage,
    )
    lineage.head = new
    if complete:
        logger.info("Script finished at %d: %s", new.counter,
                    "valid" if valid else "invalid (%s)" % (error or "stack check failed"))
    return new


def _halt(snapshot: Snapshot, error: StepLimitExceeded) -> Snapshot:
    logger.warning("Script halted at %d: %s", snapshot.counter, error)
    return replace(snapshot, complete=True, valid=False, error=str(error), lineage=None)


def _run(snapshot: Snapshot, max_steps: int, stop_before_first: bool) -> Snapshot:
    current = snapshot
    steps = 0
    if stop_before_first and current.is_paused:
        return current
    while not current.complete:
        if steps >= max_steps:
            return _halt(current, StepLimitExceeded(
                "Too many steps: gave up after %d" % max_steps, current.counter))
        current = step_once(current)
        steps += 1
        if current.is_paused:
            logger.info("Paused at breakpoint %d", current.counter)
            break
    return current


def run_to_completion(snapshot: Snapshot, max_steps: int = MAX_STEPS) -> Snapshot:
    """
    Step until the script finishes or lands on a breakpoint. The first step
    is always taken, even from a breakpoint. After max_steps the snapshot is
    forced complete and invalid.
    """
    return _run(snapshot, max_steps, stop_before_first=False)


def run_to_next_breakpoint(snapshot: Snapshot, max_steps: int = MAX_STEPS) -> Snapshot:
    """
    Leave the breakpoint we are paused on (if any), then step until the next
    breakpoint, completion or max_steps.
    """
    current = snapshot
    budget = max_steps
    if current.is_paused:
        if budget <= 0:
            return _halt(current, StepLimitExceeded(
                "Too many steps: gave up after %d" % max_steps, current.counter))
        current = step_once(current)
        budget -= 1
    return _run(current, budget, stop_before_first=True)


def toggle_breakpoint(snapshot: Snapshot, index: int) -> Snapshot:
    if not 0 <= index < len(snapshot.program):
        raise IndexError("breakpoint %d outside program of %d instructions" % (index, len(snapshot.program)))
    new = replace(snapshot, breakpoints=snapshot.breakpoints ^ {index})
    # the new snapshot takes over the machine; stepping the old one forks
    if snapshot.lineage is not None and snapshot.lineage.head is snapshot:
        snapshot.lineage.head = new
    return new


def find_next_breakpoint(snapshot: Snapshot) -> Optional[int]:
    for i in range(snapshot.counter + 1, len(snapshot.program)):
        if is_breakpoint(snapshot.breakpoints, snapshot.program, i):
            return i
    return None
