"""Curses terminal ownership and the input listener task."""

from __future__ import annotations

import asyncio
import curses
import logging
from typing import Callable, Dict, Optional, Union

from .events import Event, Render, Tick, key_from_curses

logger = logging.getLogger(__name__)

TICK_INTERVAL = 0.25
RENDER_INTERVAL = 1 / 60
POLL_INTERVAL = 0.01

ReadKey = Callable[[], Optional[Union[str, int]]]


def init_colors() -> Dict[str, int]:
    palette = {
        "header": 0,
        "accent": 0,
        "open": 0,
        "merged": 0,
        "closed": 0,
        "add": 0,
        "del": 0,
        "hunk": 0,
        "match": 0,
        "flash": 0,
        "error": 0,
    }

    if not curses.has_colors():
        return palette

    try:
        curses.start_color()
        curses.use_default_colors()
        curses.init_pair(1, curses.COLOR_CYAN, -1)
        curses.init_pair(2, curses.COLOR_GREEN, -1)
        curses.init_pair(3, curses.COLOR_YELLOW, -1)
        curses.init_pair(4, curses.COLOR_RED, -1)
        curses.init_pair(5, curses.COLOR_MAGENTA, -1)
        curses.init_pair(6, curses.COLOR_BLACK, curses.COLOR_YELLOW)

        palette["header"] = curses.color_pair(1)
        palette["accent"] = curses.color_pair(1)
        palette["open"] = curses.color_pair(2)
        palette["merged"] = curses.color_pair(5)
        palette["closed"] = curses.color_pair(4)
        palette["add"] = curses.color_pair(2)
        palette["del"] = curses.color_pair(4)
        palette["hunk"] = curses.color_pair(1)
        palette["match"] = curses.color_pair(6)
        palette["flash"] = curses.color_pair(2)
        palette["error"] = curses.color_pair(4)
    except curses.error:
        return {k: 0 for k in palette}

    return palette


class Terminal:
    """Owns the curses screen for the lifetime of the app."""

    def __init__(self):
        self.stdscr = None
        self.palette: Dict[str, int] = {}

    def open(self):
        self.stdscr = curses.initscr()
        curses.noecho()
        curses.cbreak()
        self.stdscr.keypad(True)
        self.stdscr.nodelay(True)
        try:
            curses.curs_set(0)
        except curses.error:
            pass
        self.palette = init_colors()
        return self

    def read_key(self) -> Optional[Union[str, int]]:
        try:
            return self.stdscr.get_wch()
        except curses.error:
            return None

    def suspend(self):
        """Hand the terminal back to the shell (normal screen, cooked mode)."""
        curses.def_prog_mode()
        curses.endwin()

    def resume(self):
        curses.reset_prog_mode()
        # Keystrokes typed while the child ran (e.g. the pager's q) are dropped.
        curses.flushinp()
        try:
            curses.curs_set(0)
        except curses.error:
            pass
        self.stdscr.nodelay(True)
        self.stdscr.clear()

    def close(self):
        if self.stdscr is None:
            return
        self.stdscr.keypad(False)
        curses.nocbreak()
        curses.echo()
        curses.endwin()
        self.stdscr = None

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()


class InputListener:
    """Polls the terminal and turns keys and timers into events on its own queue."""

    def __init__(
        self,
        read_key: ReadKey,
        tick_interval: float = TICK_INTERVAL,
        render_interval: float = RENDER_INTERVAL,
        poll_interval: float = POLL_INTERVAL,
    ):
        self._read_key = read_key
        self.tick_interval = tick_interval
        self.render_interval = render_interval
        self.poll_interval = poll_interval
        self.events: asyncio.Queue = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> "InputListener":
        self._task = asyncio.create_task(self._run())
        return self

    async def next_event(self) -> Event:
        return await self.events.get()

    async def stop(self):
        """Cancel the polling task and wait until it has exited."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _run(self):
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + self.tick_interval
        next_render = loop.time()
        while True:
            raw = self._read_key()
            while raw is not None:
                key = key_from_curses(raw)
                if key is not None:
                    self.events.put_nowait(key)
                raw = self._read_key()

            now = loop.time()
            if now >= next_render:
                self.events.put_nowait(Render())
                next_render = now + self.render_interval
            if now >= next_tick:
                self.events.put_nowait(Tick())
                next_tick = now + self.tick_interval
            await asyncio.sleep(self.poll_interval)
