"""Shared pytest fixtures for the create-typed-express-app test suite.

Provides reusable fixtures for:
- A fake package manager that records invocations instead of running npm
- Quiet spinners that render into an in-memory console
- Pipeline configs rooted in a temporary directory
"""

from __future__ import annotations

import io
import json
from collections.abc import Awaitable, Callable, Mapping, Sequence
from pathlib import Path
from typing import Any

import pytest
from rich.console import Console

from create_typed_express_app.config import Config
from create_typed_express_app.spinner import Spinner


# ---------------------------------------------------------------------------
# Fake package manager
# ---------------------------------------------------------------------------

def _classify(args: Sequence[str]) -> str:
    """Map an npm/npx argument list to a step name."""
    if not args:
        return "unknown"
    if args[0] == "init":
        return "init"
    if args[0] == "install":
        return "install-dev" if "--save-dev" in args else "install"
    if args[0] == "tsc":
        return "tsc"
    return "unknown"


class FakeRunner:
    """Stands in for ``ProcessRunner``.

    ``init`` writes a ``package.json`` into the working directory the way
    ``npm init -y`` would.  Steps listed in *fail_on* report failure, and
    *hooks* run (and are awaited) before a step reports its result.
    """

    def __init__(
        self,
        descriptor: dict[str, Any] | None = None,
        fail_on: Sequence[str] = (),
    ) -> None:
        self.descriptor = descriptor
        self.fail_on = set(fail_on)
        self.hooks: dict[str, Callable[[], Awaitable[None]]] = {}
        self.calls: list[dict[str, Any]] = []

    @property
    def steps(self) -> list[str]:
        return [call["step"] for call in self.calls]

    async def run(
        self,
        command: str,
        args: Sequence[str] = (),
        *,
        cwd: str | Path | None = None,
        env: Mapping[str, str] | None = None,
        interactive: bool = False,
    ) -> bool:
        step = _classify(args)
        self.calls.append({
            "step": step,
            "command": command,
            "args": list(args),
            "cwd": Path(cwd) if cwd else None,
            "env": dict(env) if env is not None else None,
            "interactive": interactive,
        })
        hook = self.hooks.get(step)
        if hook is not None:
            await hook()
        if step in self.fail_on:
            return False
        if step == "init" and cwd is not None:
            descriptor = self.descriptor
            if descriptor is None:
                descriptor = {
                    "name": Path(cwd).name,
                    "version": "1.0.0",
                    "description": "",
                    "main": "index.js",
                    "scripts": {"test": 'echo "Error: no test specified" && exit 1'},
                    "license": "ISC",
                }
            (Path(cwd) / "package.json").write_text(json.dumps(descriptor, indent=2), encoding="utf-8")
        return True


@pytest.fixture
def fake_runner() -> FakeRunner:
    """A fake package manager where every step succeeds."""
    return FakeRunner()


# ---------------------------------------------------------------------------
# Console / spinner
# ---------------------------------------------------------------------------

@pytest.fixture
def quiet_console() -> Console:
    """Rich console rendering into memory as a colour terminal."""
    return Console(
        file=io.StringIO(),
        force_terminal=True,
        width=100,
        _environ={"TERM": "xterm-256color"},
    )


@pytest.fixture
def quiet_spinner(quiet_console: Console) -> Spinner:
    """Spinner drawing into ``quiet_console`` with a short interval."""
    return Spinner(console=quiet_console, interval=0.01)


# ---------------------------------------------------------------------------
# Paths & Configs
# ---------------------------------------------------------------------------

@pytest.fixture
def tmp_project_dir(tmp_path: Path) -> Path:
    """Existing, empty project root (auto-cleanup)."""
    project_dir = tmp_path / "test-project"
    project_dir.mkdir()
    yield project_dir


@pytest.fixture
def make_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Callable[..., Config]:
    """Factory for configs whose directory lives under ``tmp_path``."""
    for var in ("CTEA_NPM", "CTEA_NPX", "CTEA_SEVERITY", "CTEA_COMPILER_FAILURE_FATAL"):
        monkeypatch.delenv(var, raising=False)

    def _make(name: str = "my-app", **kwargs: Any) -> Config:
        kwargs.setdefault("skip_prompts", True)
        return Config(directory=tmp_path / name, **kwargs)

    return _make
