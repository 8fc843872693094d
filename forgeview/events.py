"""Input events produced by the terminal listener."""

from __future__ import annotations

import curses
from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class Event:
    pass


@dataclass(frozen=True)
class Key(Event):
    """A key press.

    ``name`` is the character itself for printable keys, or one of
    Esc, Enter, Backspace, Tab, BackTab, Up, Down, Left, Right, Home, End,
    PageUp, PageDown. Control chords use the lowercase letter with ``ctrl`` set.
    """

    name: str
    ctrl: bool = False

    @property
    def is_interrupt(self) -> bool:
        return self.ctrl and self.name == "c"

    @property
    def is_char(self) -> bool:
        return not self.ctrl and len(self.name) == 1


@dataclass(frozen=True)
class Tick(Event):
    pass


@dataclass(frozen=True)
class Render(Event):
    pass


_SPECIAL_KEYS = {
    curses.KEY_UP: "Up",
    curses.KEY_DOWN: "Down",
    curses.KEY_LEFT: "Left",
    curses.KEY_RIGHT: "Right",
    curses.KEY_HOME: "Home",
    curses.KEY_END: "End",
    curses.KEY_PPAGE: "PageUp",
    curses.KEY_NPAGE: "PageDown",
    curses.KEY_BTAB: "BackTab",
    curses.KEY_ENTER: "Enter",
    curses.KEY_BACKSPACE: "Backspace",
}

_CONTROL_CHARS = {
    "\x1b": "Esc",
    "\n": "Enter",
    "\r": "Enter",
    "\t": "Tab",
    "\x7f": "Backspace",
    "\x08": "Backspace",
}


def key_from_curses(value: Union[str, int]) -> Optional[Key]:
    """Normalize a ``get_wch()`` result. Returns None for keys we never bind."""
    if isinstance(value, int):
        name = _SPECIAL_KEYS.get(value)
        return Key(name) if name else None

    if value in _CONTROL_CHARS:
        return Key(_CONTROL_CHARS[value])

    code = ord(value)
    if 1 <= code <= 26:
        return Key(chr(code + ord("a") - 1), ctrl=True)
    if code < 32:
        return None
    return Key(value)
