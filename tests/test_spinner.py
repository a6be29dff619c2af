"""Unit tests for the busy spinner (create_typed_express_app.spinner)."""

from __future__ import annotations

import asyncio
import io

import pytest
from rich.console import Console

from create_typed_express_app.spinner import FRAMES, INTERVAL_SECONDS, Spinner


def _output(console: Console) -> str:
    assert isinstance(console.file, io.StringIO)
    return console.file.getvalue()


class TestSpinner:
    @pytest.mark.unit
    def test_defaults(self):
        assert len(FRAMES) == 10
        assert INTERVAL_SECONDS == 0.1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_draws_label_and_cycles_frames(self, quiet_spinner: Spinner, quiet_console: Console):
        handle = quiet_spinner.start("Installing necessary dependencies")
        await asyncio.sleep(0.2)
        assert handle.active
        await quiet_spinner.stop(handle)

        out = _output(quiet_console)
        assert "Installing necessary dependencies" in out
        assert handle.frames_drawn >= 2
        assert FRAMES[0] in out and FRAMES[1] in out

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_stop_clears_line(self, quiet_spinner: Spinner, quiet_console: Console):
        handle = quiet_spinner.start("busy")
        await asyncio.sleep(0.05)
        await quiet_spinner.stop(handle)
        assert not handle.active
        assert _output(quiet_console).endswith("\r\x1b[2K")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_stop_twice_is_noop(self, quiet_spinner: Spinner):
        handle = quiet_spinner.start("busy")
        await quiet_spinner.stop(handle)
        await quiet_spinner.stop(handle)
        assert not handle.active

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_no_frames_after_stop(self, quiet_spinner: Spinner):
        handle = quiet_spinner.start("busy")
        await asyncio.sleep(0.05)
        await quiet_spinner.stop(handle)
        drawn = handle.frames_drawn
        await asyncio.sleep(0.05)
        assert handle.frames_drawn == drawn

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_context_manager_stops_on_error(self, quiet_spinner: Spinner):
        with pytest.raises(RuntimeError):
            async with quiet_spinner.spinning("busy") as handle:
                raise RuntimeError("step failed")
        assert not handle.active

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_context_manager_stops_on_cancel(self, quiet_spinner: Spinner):
        handles = []

        async def step():
            async with quiet_spinner.spinning("busy") as handle:
                handles.append(handle)
                await asyncio.sleep(60)

        task = asyncio.create_task(step())
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert not handles[0].active

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_broken_console_does_not_raise(self):
        class Broken(io.StringIO):
            def write(self, s):
                raise OSError("terminal gone")

        spinner = Spinner(console=Console(file=Broken(), force_terminal=True), interval=0.01)
        async with spinner.spinning("busy"):
            await asyncio.sleep(0.05)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_silent_when_not_a_terminal(self):
        console = Console(file=io.StringIO(), force_terminal=False)
        spinner = Spinner(console=console, interval=0.01)
        async with spinner.spinning("busy") as handle:
            await asyncio.sleep(0.05)
        assert handle.frames_drawn == 0
        assert _output(console) == ""
