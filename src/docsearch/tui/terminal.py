"""Raw terminal handling and key decoding.

Bytes read from stdin in raw mode are translated into ``KeyEvent`` values
with the physical key names the dispatcher understands.
"""

from __future__ import annotations

import contextlib
import os
import termios
import tty
from collections.abc import Iterator

from .keybindings import KeyEvent, KeyTarget, Modifiers

CTRL = Modifiers(ctrl=True)

_CONTROL_KEYS = {
    b"\r": ("Enter", Modifiers()),
    b"\n": ("Enter", Modifiers()),
    b"\t": ("Tab", Modifiers()),
    b"\x08": ("Backspace", Modifiers()),
    b"\x7f": ("Backspace", Modifiers()),
}

_CSI_KEYS = {
    b"A": "ArrowUp",
    b"B": "ArrowDown",
    b"C": "ArrowRight",
    b"D": "ArrowLeft",
}


def _char_code(char: str) -> tuple[str, Modifiers]:
    if char.isascii() and char.isalpha():
        return f"Key{char.upper()}", Modifiers(shift=char.isupper())
    if char.isdigit() and char.isascii():
        return f"Digit{char}", Modifiers()
    return "Char", Modifiers()


def decode_keys(data: bytes, target: KeyTarget = KeyTarget.OTHER) -> list[KeyEvent]:
    """Decode one chunk of raw terminal input.

    A lone ESC byte is the Escape key; ``ESC [ X`` sequences are arrows and
    unknown sequences are dropped. Control bytes 0x01-0x1a map to Ctrl+letter.

    Args:
        data: Bytes read from the terminal
        target: Focus target stamped on every decoded event

    Returns:
        Key events in input order

    Examples:
        >>> [e.code for e in decode_keys(b"\\x1b[Bj")]
        ['ArrowDown', 'KeyJ']
    """
    events: list[KeyEvent] = []
    text = data.decode("utf-8", errors="replace")
    raw = text.encode("utf-8")
    index = 0
    while index < len(raw):
        byte = raw[index : index + 1]

        if byte in _CONTROL_KEYS:
            code, modifiers = _CONTROL_KEYS[byte]
            events.append(KeyEvent(code=code, modifiers=modifiers, target=target))
            index += 1
            continue

        if byte == b"\x1b":
            if raw[index + 1 : index + 2] != b"[":
                events.append(KeyEvent(code="Escape", target=target))
                index += 1
                continue
            # CSI: parameters up to the final byte in 0x40-0x7e.
            end = index + 2
            while end < len(raw) and not 0x40 <= raw[end] <= 0x7E:
                end += 1
            final = raw[end : end + 1]
            params = raw[index + 2 : end]
            code = _CSI_KEYS.get(final)
            if code is not None:
                modifiers = CTRL if params.endswith(b";5") else Modifiers()
                events.append(KeyEvent(code=code, modifiers=modifiers, target=target))
            index = end + 1
            continue

        if 1 <= raw[index] <= 26:
            letter = chr(ord("A") + raw[index] - 1)
            events.append(KeyEvent(code=f"Key{letter}", modifiers=CTRL, target=target))
            index += 1
            continue

        if raw[index] < 0x20:
            index += 1
            continue

        # One UTF-8 character.
        length = 1
        lead = raw[index]
        if lead >= 0xF0:
            length = 4
        elif lead >= 0xE0:
            length = 3
        elif lead >= 0xC0:
            length = 2
        char = raw[index : index + length].decode("utf-8", errors="replace")
        code, modifiers = _char_code(char)
        events.append(KeyEvent(code=code, modifiers=modifiers, target=target, text=char))
        index += length
    return events


class TerminalController:
    """Owns the raw-mode lifecycle of the controlling terminal."""

    def __init__(self, stdin_fd: int, stdout_fd: int) -> None:
        self.stdin_fd = stdin_fd
        self.stdout_fd = stdout_fd
        self._saved_tty_state = termios.tcgetattr(stdin_fd)

    def enable_raw_mode(self) -> None:
        # cbreak keeps output post-processing so rich's newlines still work.
        tty.setcbreak(self.stdin_fd, termios.TCSANOW)
        attrs = termios.tcgetattr(self.stdin_fd)
        attrs[0] &= ~(termios.IXON | termios.ICRNL)
        attrs[3] &= ~termios.ISIG
        termios.tcsetattr(self.stdin_fd, termios.TCSANOW, attrs)

    def restore(self) -> None:
        termios.tcsetattr(self.stdin_fd, termios.TCSAFLUSH, self._saved_tty_state)

    def read_available(self) -> bytes:
        return os.read(self.stdin_fd, 1024)

    @contextlib.contextmanager
    def raw_mode(self) -> Iterator[None]:
        try:
            self.enable_raw_mode()
            yield
        finally:
            self.restore()
