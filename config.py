#!/usr/bin/env python3
"""
config.py

Global configuration parameters for the script debugger: step limits,
parser markers, validity rules and logging format.
"""

# Run-to-completion / run-to-breakpoint give up after this many steps:
MAX_STEPS = 10_000

# Lines starting with one of these are skipped by the token parser.
COMMENT_MARKERS = ("//", "#")

# Instructions with this opcode behave as if a breakpoint was set on them.
# Scripts may also spell it OP_BREAKPOINT.
BREAKPOINT_OPCODE = "OP_NOP10"

# If True a finished script is valid only with exactly one truthy item left
# on the main stack. If False only the top item is looked at.
REQUIRE_CLEAN_STACK = True

# Arithmetic operands longer than this (in bytes) are rejected.
# Post-genesis BSV allows far more; 750_000 matches that policy limit.
MAX_SCRIPT_NUM_LENGTH = 750_000

# Names the execution phases are reported under.
PHASE_UNLOCKING = "unlocking"
PHASE_LOCKING = "locking"

LOG_FORMAT = "[%(asctime)s] %(levelname)s - %(name)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
