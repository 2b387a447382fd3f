"""Stderr diagnostics shared by the capture engine and the chat shell."""

import sys

_debug = False


def set_debug(enabled: bool):
    global _debug
    _debug = bool(enabled)


def log_debug(msg):
    if _debug:
        print(f"DEBUG: {msg}", file=sys.stderr)


def log_warn(msg):
    # Warnings are always shown; they never stop the session.
    print(f"WARN: {msg}", file=sys.stderr)
