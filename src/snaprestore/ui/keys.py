"""Keyboard input: a small Key value type and a raw-mode terminal reader.

Uses termios/select on Unix and msvcrt on Windows.
"""

from __future__ import annotations

import logging
import os
import sys
import time
from dataclasses import dataclass
from typing import Protocol

log = logging.getLogger(__name__)

_IS_WINDOWS = sys.platform == "win32"


@dataclass(frozen=True)
class Key:
    """One keystroke. ``code`` is "char" for printable input, else a key name."""

    code: str
    char: str = ""

    @classmethod
    def of(cls, char: str) -> Key:
        return cls("char", char)

    def is_char(self, *chars: str) -> bool:
        return self.code == "char" and self.char in chars


UP = Key("up")
DOWN = Key("down")
LEFT = Key("left")
RIGHT = Key("right")
TAB = Key("tab")
BACKTAB = Key("backtab")
ENTER = Key("enter")
ESC = Key("esc")
BACKSPACE = Key("backspace")
CTRL_C = Key("ctrl_c")
CTRL_Z = Key("ctrl_z")
UNKNOWN = Key("unknown")

_CSI_KEYS = {
    "A": UP,
    "B": DOWN,
    "C": RIGHT,
    "D": LEFT,
    "Z": BACKTAB,
}

_CONTROL_KEYS = {
    "\r": ENTER,
    "\n": ENTER,
    "\t": TAB,
    "\x7f": BACKSPACE,
    "\x08": BACKSPACE,
    "\x03": CTRL_C,
    "\x1a": CTRL_Z,
}

# Second byte after a 0x00/0xE0 prefix from msvcrt.getwch()
_WINDOWS_KEYS = {
    "H": UP,
    "P": DOWN,
    "K": LEFT,
    "M": RIGHT,
    "\x0f": BACKTAB,
}


class KeySource(Protocol):
    """Anything the application can poll for keystrokes."""

    def read_key(self, timeout: float) -> Key | None:
        """Wait up to ``timeout`` seconds for a key. None when nothing arrived."""
        ...


def parse_key(buffer: str) -> tuple[Key, str]:
    """Decode the first keystroke in ``buffer``.

    Returns the key and the unconsumed remainder. ``buffer`` must not be
    empty.
    """
    head = buffer[0]
    if head == "\x1b":
        if len(buffer) >= 3 and buffer[1] in "[O":
            # CSI / SS3: parameters, then a final byte in @..~
            end = 2
            while end < len(buffer) and not ("@" <= buffer[end] <= "~"):
                end += 1
            if end >= len(buffer):
                return UNKNOWN, ""
            return _CSI_KEYS.get(buffer[end], UNKNOWN), buffer[end + 1:]
        return ESC, buffer[1:]
    if head in _CONTROL_KEYS:
        rest = buffer[1:]
        if head == "\r" and rest.startswith("\n"):
            rest = rest[1:]
        return _CONTROL_KEYS[head], rest
    if head.isprintable():
        return Key.of(head), buffer[1:]
    return UNKNOWN, buffer[1:]


class TerminalKeys:
    """Read keys from the controlling terminal with raw input.

    Use as a context manager; the previous terminal mode is restored on
    exit. Output processing is left on so the renderer keeps working.
    """

    def __init__(self) -> None:
        self._fd = sys.stdin.fileno()
        self._saved = None
        self._pending = ""

    def __enter__(self) -> TerminalKeys:
        if not _IS_WINDOWS:
            self._enter_raw()
        return self

    def __exit__(self, *exc) -> None:
        if not _IS_WINDOWS:
            self._leave_raw()

    def _enter_raw(self) -> None:
        import termios

        self._saved = termios.tcgetattr(self._fd)
        mode = termios.tcgetattr(self._fd)
        mode[0] &= ~(termios.IXON | termios.ICRNL)
        mode[3] &= ~(termios.ICANON | termios.ECHO | termios.ISIG | termios.IEXTEN)
        mode[6][termios.VMIN] = 1
        mode[6][termios.VTIME] = 0
        termios.tcsetattr(self._fd, termios.TCSAFLUSH, mode)

    def _leave_raw(self) -> None:
        import termios

        if self._saved is not None:
            termios.tcsetattr(self._fd, termios.TCSAFLUSH, self._saved)
            self._saved = None

    def read_key(self, timeout: float) -> Key | None:
        if self._pending:
            key, self._pending = parse_key(self._pending)
            return key
        if _IS_WINDOWS:
            return self._read_windows(timeout)
        return self._read_unix(timeout)

    def _read_unix(self, timeout: float) -> Key | None:
        import select

        ready, _, _ = select.select([self._fd], [], [], timeout)
        if not ready:
            return None
        data = os.read(self._fd, 64).decode("utf-8", errors="replace")
        if not data:
            return None
        key, self._pending = parse_key(data)
        return key

    def _read_windows(self, timeout: float) -> Key | None:
        import msvcrt

        deadline = time.monotonic() + timeout
        while not msvcrt.kbhit():
            if time.monotonic() >= deadline:
                return None
            time.sleep(0.01)
        ch = msvcrt.getwch()
        if ch in ("\x00", "\xe0"):
            return _WINDOWS_KEYS.get(msvcrt.getwch(), UNKNOWN)
        if ch == "\x1b":
            return ESC
        key, self._pending = parse_key(ch)
        return key

    def suspend(self) -> None:
        """Stop the process (SIGTSTP) with the terminal restored; re-enter raw mode on resume."""
        if _IS_WINDOWS:
            log.debug("Suspend is not supported on Windows")
            return
        import signal

        self._leave_raw()
        try:
            os.kill(os.getpid(), signal.SIGTSTP)
        finally:
            self._enter_raw()
