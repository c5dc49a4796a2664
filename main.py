#!/usr/bin/env python3
"""
main.py

The main entry point. Usage:

  python main.py [-v] <unlocking> <locking> [breakpoint ...]

Debugs an unlocking + locking script pair from the command line:
- Parses both scripts (an argument starting with @ is read from that file)
- Runs to each breakpoint in turn, printing the machine state as JSON
- Prints the final state and exits 0 if the script is valid, 1 if not

Exit code 2 means bad usage or a script that does not parse.
"""

import sys
import json
import logging

from config import LOG_DATE_FORMAT, LOG_FORMAT
from script_errors import ParseError
from stepper import initialize, run_to_next_breakpoint

USAGE = "Usage: python main.py [-v] <unlocking> <locking> [breakpoint ...]"

def read_script(arg: str) -> str:
    if arg.startswith("@"):
        with open(arg[1:], encoding="utf-8") as f:
            return f.read()
    return arg

def main(argv=None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    verbose = "-v" in args
    if verbose:
        args.remove("-v")

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT
    )

    if len(args) < 2:
        print(USAGE)
        return 2

    try:
        breakpoints = [int(a) for a in args[2:]]
    except ValueError:
        print(USAGE)
        return 2

    try:
        snapshot = initialize(read_script(args[0]), read_script(args[1]), breakpoints)
    except (ParseError, OSError) as e:
        print(f"Error: {e}")
        return 2

    while True:
        snapshot = run_to_next_breakpoint(snapshot)
        print(json.dumps(snapshot.to_dict(), indent=2))
        if snapshot.complete:
            break

    if snapshot.error:
        print(f"Script failed: {snapshot.error}")
    print("Script valid" if snapshot.valid else "Script invalid")
    return 0 if snapshot.valid else 1

if __name__ == "__main__":
    sys.exit(main())
