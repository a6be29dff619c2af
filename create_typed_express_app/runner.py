"""External process execution for package-manager and compiler steps.

Spawns one command at a time, relays its stdout/stderr to ours as the bytes
arrive, optionally forwards our stdin line by line, and reports success as a
plain boolean.  Launch failures (missing or non-executable binaries) are
reported on the console and turned into ``False`` rather than exceptions.
"""

from __future__ import annotations

import asyncio
import os
import sys
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import BinaryIO

from rich.markup import escape

from create_typed_express_app.utils import print_error

_CHUNK_SIZE = 4096


class ProcessRunner:
    """Runs external commands with live stream relay.

    Args:
        stdout: Binary stream receiving the child's stdout (default: ours).
        stderr: Binary stream receiving the child's stderr (default: ours).
        stdin: Binary stream whose lines are forwarded to interactive
            children (default: ours).
    """

    def __init__(
        self,
        stdout: BinaryIO | None = None,
        stderr: BinaryIO | None = None,
        stdin: BinaryIO | None = None,
    ) -> None:
        self._stdout = stdout
        self._stderr = stderr
        self._stdin = stdin

    # Defaults are looked up per call: any of our standard streams may be
    # None when the interpreter starts with that descriptor closed.

    @property
    def stdout(self) -> BinaryIO | None:
        return self._stdout if self._stdout is not None else _std_buffer(sys.stdout)

    @property
    def stderr(self) -> BinaryIO | None:
        return self._stderr if self._stderr is not None else _std_buffer(sys.stderr)

    @property
    def stdin(self) -> BinaryIO | None:
        return self._stdin if self._stdin is not None else _std_buffer(sys.stdin)

    async def run(
        self,
        command: str,
        args: Sequence[str] = (),
        *,
        cwd: str | Path | None = None,
        env: Mapping[str, str] | None = None,
        interactive: bool = False,
    ) -> bool:
        """Run ``command *args`` and wait for it to exit.

        Args:
            command: Executable name or path.
            args: Arguments passed to the executable.
            cwd: Working directory for the child process.
            env: Complete environment for the child (``None`` inherits ours).
            interactive: Forward lines from ``self.stdin`` to the child.

        Returns:
            ``True`` iff the process exited with status 0.
        """
        # Nothing to forward from a closed stdin: the child reads EOF instead.
        forwarding = interactive and self.stdin is not None
        try:
            process = await asyncio.create_subprocess_exec(
                command,
                *args,
                stdin=asyncio.subprocess.PIPE if forwarding else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(cwd) if cwd else None,
                env=dict(env) if env is not None else None,
            )
        except FileNotFoundError as exc:
            if cwd and exc.filename is not None and str(exc.filename) == str(cwd):
                print_error(f"Working directory not found: {escape(str(cwd))}")
            else:
                print_error(f"Command not found: {escape(command)}")
            return False
        except PermissionError:
            print_error(f"Permission denied executing: {escape(command)}")
            return False
        except OSError as exc:
            print_error(f"Could not run {escape(command)}: {escape(str(exc))}")
            return False

        assert process.stdout is not None and process.stderr is not None  # guaranteed by PIPE

        drains = [
            asyncio.create_task(self._relay(process.stdout, self.stdout)),
            asyncio.create_task(self._relay(process.stderr, self.stderr)),
        ]
        forward: asyncio.Task[None] | None = None
        if forwarding:
            forward = asyncio.create_task(self._forward_stdin(process))

        try:
            await asyncio.gather(*drains)
            returncode = await process.wait()
        except asyncio.CancelledError:
            if process.returncode is None:
                process.kill()
                await process.wait()
            raise
        finally:
            pending = [t for t in (*drains, forward) if t is not None and not t.done()]
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        return returncode == 0

    # ------------------------------------------------------------------
    # Stream plumbing
    # ------------------------------------------------------------------

    @staticmethod
    async def _relay(source: asyncio.StreamReader, sink: BinaryIO | None) -> None:
        """Copy *source* into *sink* chunk by chunk until EOF.

        With no *sink* the output is drained and dropped so the child never
        blocks on a full pipe.
        """
        while True:
            chunk = await source.read(_CHUNK_SIZE)
            if not chunk:
                return
            if sink is None:
                continue
            sink.write(chunk)
            sink.flush()

    async def _forward_stdin(self, process: asyncio.subprocess.Process) -> None:
        """Forward lines from ``self.stdin`` to the child until EOF or exit."""
        assert process.stdin is not None
        try:
            async for line in self._stdin_lines():
                if process.returncode is not None:
                    return
                process.stdin.write(line)
                await process.stdin.drain()
            process.stdin.close()
        except (BrokenPipeError, ConnectionResetError):
            # Child closed its stdin or exited.
            return

    async def _stdin_lines(self):
        """Yield lines from ``self.stdin`` without blocking the event loop.

        Pipes and terminals are read through an asyncio pipe transport on a
        duplicate descriptor so closing the transport leaves our stdin open.
        Regular files never block, so they are read in a worker thread.
        """
        loop = asyncio.get_running_loop()
        reader = asyncio.StreamReader()
        transport = None
        try:
            fd = self.stdin.fileno()
            dup = os.fdopen(os.dup(fd), "rb", buffering=0)
        except (ValueError, OSError):
            dup = None
        if dup is not None:
            try:
                transport, _ = await loop.connect_read_pipe(
                    lambda: asyncio.StreamReaderProtocol(reader), dup
                )
            except (ValueError, OSError):
                dup.close()

        if transport is None:
            while True:
                line = await asyncio.to_thread(self.stdin.readline)
                if not line:
                    return
                yield line

        try:
            while True:
                line = await reader.readline()
                if not line:
                    return
                yield line
        finally:
            transport.close()
            os.set_blocking(fd, True)


def _std_buffer(stream) -> BinaryIO | None:
    """Binary layer of a standard stream, or ``None`` if it is closed or missing."""
    if stream is None:
        return None
    return getattr(stream, "buffer", None)
