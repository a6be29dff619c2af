"""Busy spinner shown while long-running package-manager steps execute.

The spinner is cosmetic: it redraws the current terminal line on a fixed
interval and is cancelled when the step finishes.  Nothing it does can fail
the pipeline.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator
from dataclasses import dataclass, field

from rich.console import Console
from rich.control import Control
from rich.segment import ControlType

from create_typed_express_app.utils import console as default_console

FRAMES: tuple[str, ...] = ("⠙", "⠘", "⠰", "⠴", "⠤", "⠦", "⠆", "⠃", "⠋", "⠉")
INTERVAL_SECONDS = 0.1

_CLEAR_LINE = Control(ControlType.CARRIAGE_RETURN, (ControlType.ERASE_IN_LINE, 2))


@dataclass
class SpinnerHandle:
    """A running spinner animation."""

    label: str
    task: asyncio.Task[None] | None = None
    frames_drawn: int = field(default=0)

    @property
    def active(self) -> bool:
        return self.task is not None and not self.task.done()


class Spinner:
    """Draws ``<frame> <label>`` on one line, cycling through ``FRAMES``.

    Not built on ``rich.live.Live``: child output is relayed as raw bytes
    that bypass Live's redirection, so the line is redrawn by hand.
    """

    def __init__(
        self,
        console: Console | None = None,
        frames: tuple[str, ...] = FRAMES,
        interval: float = INTERVAL_SECONDS,
    ) -> None:
        self.console = console or default_console
        self.frames = frames
        self.interval = interval

    def start(self, label: str) -> SpinnerHandle:
        """Start animating *label*; must be called from a running event loop."""
        handle = SpinnerHandle(label=label)
        handle.task = asyncio.get_running_loop().create_task(self._animate(handle))
        return handle

    async def stop(self, handle: SpinnerHandle) -> None:
        """Cancel the animation and clear the line. Safe to call twice."""
        task, handle.task = handle.task, None
        if task is None:
            return
        task.cancel()
        await asyncio.wait([task])
        self._clear()

    @contextlib.asynccontextmanager
    async def spinning(self, label: str) -> AsyncIterator[SpinnerHandle]:
        """Keep the spinner running for the duration of the ``async with`` body."""
        handle = self.start(label)
        try:
            yield handle
        finally:
            await self.stop(handle)

    async def _animate(self, handle: SpinnerHandle) -> None:
        if not self.console.is_terminal:
            # Frames cannot be redrawn in place on a pipe or file.
            return
        index = 0
        while True:
            try:
                self.console.control(_CLEAR_LINE)
                self.console.print(
                    f"{self.frames[index]} [cyan]{handle.label}[/cyan]", end=""
                )
                handle.frames_drawn += 1
            except Exception:
                # A broken terminal must not take the pipeline down with it.
                return
            index = (index + 1) % len(self.frames)
            await asyncio.sleep(self.interval)

    def _clear(self) -> None:
        with contextlib.suppress(Exception):
            self.console.control(_CLEAR_LINE)
