"""Main loop: multiplexes terminal events and the action channel."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from . import keymap, render
from .actions import SUSPEND_ACTIONS, Action, LoadHome, Noop
from .cache import ResponseCache
from .events import Key, Render
from .loader import ActionChannel, BackgroundRunner
from .session import Session
from .suspend import Suspender
from .terminal import InputListener, Terminal

logger = logging.getLogger(__name__)


class App:
    """Owns the session, the action channel and the input listener."""

    def __init__(
        self,
        forge,
        terminal: Terminal,
        cache=None,
        listener_factory: Optional[Callable[[], InputListener]] = None,
        suspender: Optional[Suspender] = None,
        draw: Optional[Callable[[Session], None]] = None,
    ):
        self.forge = forge
        self.terminal = terminal
        self.channel = ActionChannel()
        self.runner = BackgroundRunner(self.channel.send)
        self.cache = cache if cache is not None else ResponseCache.for_forge(forge.name)
        self.session = Session(forge, self.channel.send, cache=self.cache, runner=self.runner)
        self.listener_factory = listener_factory or (lambda: InputListener(terminal.read_key))
        self.suspender = suspender or Suspender(
            terminal,
            self.listener_factory,
            forge,
            self.runner,
            self.channel.send,
        )
        self._draw = draw or (lambda session: render.draw(terminal.stdscr, session, terminal.palette))

    def dispatch(self, action: Action):
        if not isinstance(action, Noop):
            logger.debug(f"Action: {type(action).__name__}")
            self.session.update(action)

    async def run(self):
        listener = self.listener_factory().start()
        self.channel.send(LoadHome())
        pending_event: Optional[asyncio.Task] = None
        pending_action: Optional[asyncio.Task] = None
        try:
            while not self.session.should_quit:
                if pending_event is None:
                    pending_event = asyncio.ensure_future(listener.next_event())
                if pending_action is None:
                    pending_action = asyncio.ensure_future(self.channel.get())

                done, _ = await asyncio.wait(
                    {pending_event, pending_action},
                    return_when=asyncio.FIRST_COMPLETED,
                )

                if pending_event in done:
                    event = pending_event.result()
                    pending_event = None
                    if isinstance(event, Key) and event.is_interrupt:
                        logger.info("Interrupted")
                        break
                    if isinstance(event, Render):
                        self._draw(self.session)
                    else:
                        action = keymap.translate(self.session, event)
                        if isinstance(action, SUSPEND_ACTIONS):
                            self.channel.send(action)
                        else:
                            self.dispatch(action)

                if pending_action in done:
                    action = pending_action.result()
                    pending_action = None
                    if isinstance(action, SUSPEND_ACTIONS):
                        # The listener is replaced; its pending read goes with it.
                        if pending_event is not None:
                            pending_event.cancel()
                            pending_event = None
                        listener = await self.suspender.run(action, listener)
                    else:
                        self.dispatch(action)
        finally:
            for task in (pending_event, pending_action):
                if task is not None:
                    task.cancel()
            await listener.stop()
            await self.runner.shutdown()
            await self.forge.aclose()
