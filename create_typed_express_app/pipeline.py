"""create-typed-express-app pipeline orchestrator.

Runs the scaffolding steps strictly in order:

VALIDATING        -- check the project name against npm rules and reserved names.
DIRECTORY_READY   -- create the project root (remembering whether we did).
INITIALIZING      -- ``npm init`` (interactive unless ``-y``).
INSTALLING_DEPS   -- ``npm install express``.
INSTALLING_DEV_DEPS -- ``npm install --save-dev typescript nodemon ...``.
SCAFFOLDING       -- ``npx tsc --init`` then write directories and templates.
PATCHING_METADATA -- merge npm scripts and ``main`` into ``package.json``.

Any failure or interrupt after the root exists removes it again, but only if
this run created it.

Usage::

    create-typed-express-app my-app -y
    python -m create_typed_express_app my-app --strict
"""

from __future__ import annotations

import asyncio
import os
import shutil
import signal
import sys
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from rich.markup import escape

from create_typed_express_app import __version__
from create_typed_express_app.config import CompilerSeverity, Config
from create_typed_express_app.naming import npm_name_problems, validate_project_name
from create_typed_express_app.runner import ProcessRunner
from create_typed_express_app.scaffolder import (
    DIRECTORIES,
    FILES,
    SCRIPTS,
    DescriptorError,
    ScaffoldError,
    Scaffolder,
    patch_descriptor,
    read_descriptor,
    resolve_entry_path,
)
from create_typed_express_app.spinner import Spinner
from create_typed_express_app.utils import (
    console,
    format_duration,
    print_error,
    print_success,
    print_warning,
)

CLEANUP_ATTEMPTS = 2
CLEANUP_RETRY_DELAY = 0.2

# ---------------------------------------------------------------------------
# Stages and exceptions
# ---------------------------------------------------------------------------


class Stage(str, Enum):
    VALIDATING = "validating"
    DIRECTORY_READY = "directory-ready"
    INITIALIZING = "initializing"
    INSTALLING_DEPS = "installing-deps"
    INSTALLING_DEV_DEPS = "installing-dev-deps"
    SCAFFOLDING = "scaffolding"
    PATCHING_METADATA = "patching-metadata"
    DONE = "done"
    FAILED = "failed"
    ABORTED = "aborted"


class PipelineError(Exception):
    """Raised when a pipeline stage fails irrecoverably."""

    def __init__(self, stage: Stage, message: str) -> None:
        self.stage = stage
        super().__init__(message)


class ProjectNameError(PipelineError):
    """The project name is not usable; nothing has been created yet."""


class ProcessFailure(PipelineError):
    """An external command exited non-zero or could not be launched."""


class PipelineInterrupted(PipelineError):
    """The user interrupted the run."""


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------


@dataclass
class ProjectContext:
    """Where child processes run and with which environment."""

    root: Path
    env: dict[str, str]


@dataclass
class PipelineState:
    context: ProjectContext
    stage: Stage = Stage.VALIDATING
    created_root: bool = False
    entry_path: str | None = None
    warnings: list[str] = field(default_factory=list)
    started_at: float = field(default_factory=time.monotonic)
    error: PipelineError | None = None


# ---------------------------------------------------------------------------
# Pipeline Orchestrator
# ---------------------------------------------------------------------------


class Pipeline:
    """Drives one scaffolding run and owns the cleanup policy.

    Attributes:
        config: Options for this run.
        state: Mutable record of progress through the stages.
        runner: Executes ``npm`` / ``npx``.
        spinner: Animates the install steps.
        scaffolder: Writes the source tree.
    """

    def __init__(
        self,
        config: Config,
        runner: ProcessRunner | None = None,
        spinner: Spinner | None = None,
        scaffolder: Scaffolder | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self.config = config
        self.runner = runner or ProcessRunner()
        self.spinner = spinner or Spinner()
        self.scaffolder = scaffolder or Scaffolder()
        self.state = PipelineState(
            context=ProjectContext(
                root=config.root,
                env=dict(env if env is not None else os.environ),
            )
        )
        self._body: asyncio.Task[None] | None = None

    @property
    def root(self) -> Path:
        return self.state.context.root

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def run(self) -> int:
        """Execute every stage and return the process exit code."""
        loop = asyncio.get_running_loop()
        handled = self._install_signal_handlers(loop)
        self._body = asyncio.create_task(self._execute())
        try:
            await self._body
        except PipelineError as exc:
            return self._fail(exc)
        except asyncio.CancelledError:
            if not self._body.done():
                await asyncio.wait([self._body])
            return self._fail(
                PipelineInterrupted(self.state.stage, "Aborting installation: interrupted by user.")
            )
        except Exception:
            self.state.stage = Stage.FAILED
            self._cleanup()
            raise
        finally:
            for sig in handled:
                loop.remove_signal_handler(sig)
        return 0

    def interrupt(self) -> None:
        """Cancel the running stage; ``run`` then cleans up and returns 1."""
        if self._body is not None and not self._body.done():
            self._body.cancel()

    async def _execute(self) -> None:
        self._validate()
        self._prepare_directory()
        await self._initialize()
        await self._install(
            Stage.INSTALLING_DEPS, self.config.dependencies, dev=False,
            label="Installing necessary dependencies",
        )
        await self._install(
            Stage.INSTALLING_DEV_DEPS, self.config.dev_dependencies, dev=True,
            label="Installing necessary dev dependencies",
        )
        await self._scaffold()
        await self._patch_metadata()
        self._report_done()

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _validate(self) -> None:
        self.state.stage = Stage.VALIDATING
        name = self.config.project_name
        reserved = self.config.reserved_names
        if validate_project_name(name, reserved):
            return

        lines = [
            f'Cannot create a project named "{escape(name)}" either because it does not '
            "meet npm naming prescriptions or a dependency with the same name exists.",
        ]
        lines.extend(f"  - {escape(problem)}" for problem in npm_name_problems(name))
        lines.append("Due to the way npm works, the following names are not allowed:\n")
        lines.extend(f"  {escape(dep)}" for dep in reserved)
        lines.append("\nPlease use a different project name.")
        raise ProjectNameError(Stage.VALIDATING, "\n".join(lines))

    def _prepare_directory(self) -> None:
        root = self.root
        console.print(f"Creating a new typed Express app in [green]{escape(str(root))}[/green].")
        if root.exists() and not root.is_dir():
            raise PipelineError(Stage.DIRECTORY_READY, f"{escape(str(root))} exists and is not a directory.")
        if not root.exists():
            try:
                root.mkdir(parents=True)
            except OSError as exc:
                raise PipelineError(
                    Stage.DIRECTORY_READY, f"Could not create {escape(str(root))}: {escape(str(exc))}"
                ) from exc
            self.state.created_root = True
        self.state.stage = Stage.DIRECTORY_READY

    async def _initialize(self) -> None:
        self.state.stage = Stage.INITIALIZING
        args = ["init"]
        if self.config.skip_prompts:
            args.append("-y")
        ok = await self._run(self.config.npm_command, args, interactive=not self.config.skip_prompts)
        if not ok:
            raise ProcessFailure(Stage.INITIALIZING, "npm init did not complete successfully.")

    async def _install(self, stage: Stage, packages: list[str], *, dev: bool, label: str) -> None:
        self.state.stage = stage
        if not packages:
            return
        args = ["install", *packages, "--save-dev" if dev else "--save", "--no-audit"]
        async with self.spinner.spinning(label):
            ok = await self._run(self.config.npm_command, args)
        if not ok:
            kind = "dev dependencies" if dev else "dependencies"
            raise ProcessFailure(stage, f"Failed to install {kind}: {escape(', '.join(packages))}")
        print_success("✓ Done.")

    async def _bootstrap_compiler(self) -> None:
        args = ["tsc", "--init", "--rootDir", "src", "--outDir", "dist", *self.config.severity.tsc_flags]
        if await self._run(self.config.npx_command, args):
            return
        message = "TypeScript initialisation (tsc --init) failed."
        if self.config.compiler_failure_fatal:
            raise ProcessFailure(self.state.stage, message)
        self.state.warnings.append(message)
        print_warning(f"{message} Run `npx tsc --init` inside the project yourself.")

    async def _scaffold(self) -> None:
        self.state.stage = Stage.SCAFFOLDING
        await self._bootstrap_compiler()
        try:
            entry_path = resolve_entry_path(read_descriptor(self.root))
            written = await self.scaffolder.materialize(self.root, DIRECTORIES, FILES, entry_path)
        except (ScaffoldError, DescriptorError, OSError) as exc:
            raise PipelineError(Stage.SCAFFOLDING, escape(str(exc))) from exc
        self.state.entry_path = entry_path
        console.print(f"[dim]Wrote {len(written)} files, entry point {escape(entry_path)}[/dim]")

    async def _patch_metadata(self) -> None:
        self.state.stage = Stage.PATCHING_METADATA
        assert self.state.entry_path is not None
        try:
            await patch_descriptor(self.root, SCRIPTS, self.state.entry_path)
        except (DescriptorError, OSError) as exc:
            raise PipelineError(Stage.PATCHING_METADATA, escape(str(exc))) from exc

    def _report_done(self) -> None:
        self.state.stage = Stage.DONE
        elapsed = format_duration(time.monotonic() - self.state.started_at)
        directory = escape(str(self.config.directory))
        console.print()
        print_success(f"Success! Created {escape(self.config.project_name)} in {elapsed}.")
        console.print("Inside that directory, you can run:\n")
        console.print("  [cyan]npm run dev[/cyan]    Starts the development server with nodemon.")
        console.print("  [cyan]npm run build[/cyan]  Compiles TypeScript into dist/.")
        console.print("  [cyan]npm start[/cyan]      Builds and runs the compiled app.\n")
        console.print("We suggest that you begin by typing:\n")
        console.print(f"  [cyan]cd[/cyan] {directory}")
        console.print("  [cyan]npm run dev[/cyan]\n")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _run(self, command: str, args: list[str], *, interactive: bool = False) -> bool:
        ctx = self.state.context
        return await self.runner.run(command, args, cwd=ctx.root, env=ctx.env, interactive=interactive)

    def _fail(self, exc: PipelineError) -> int:
        self.state.error = exc
        aborted = isinstance(exc, PipelineInterrupted)
        self.state.stage = Stage.ABORTED if aborted else Stage.FAILED
        console.print()
        print_error(str(exc))
        self._cleanup()
        return 1

    def _cleanup(self) -> None:
        """Remove the project root, but only if this run created it."""
        if not self.state.created_root or not self.root.exists():
            return
        console.print(f"Deleting generated files in [yellow]{escape(str(self.root))}[/yellow]...")
        for attempt in range(CLEANUP_ATTEMPTS):
            try:
                shutil.rmtree(self.root)
                break
            except OSError as exc:
                # A cancelled write may still be finishing in a worker thread.
                if attempt + 1 < CLEANUP_ATTEMPTS:
                    time.sleep(CLEANUP_RETRY_DELAY)
                    continue
                print_warning(f"Could not remove {escape(str(self.root))}: {escape(str(exc))}")
                return
        self.state.created_root = False

    def _install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> list[int]:
        handled: list[int] = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.interrupt)
            except (NotImplementedError, RuntimeError, ValueError):
                # Windows event loops and non-main threads.
                continue
            handled.append(sig)
        return handled


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def build_parser():
    import argparse

    parser = argparse.ArgumentParser(
        prog="create-typed-express-app",
        description="Create a new TypeScript + Express server project",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  create-typed-express-app my-app\n"
            "  create-typed-express-app my-app -y --strict\n"
            "  create-typed-express-app ./services/api --severity moderate\n"
        ),
    )
    parser.add_argument("directory", help="The new TypeScript app directory")
    parser.add_argument("-y", "--yes", dest="y", action="store_true", help="Skip npm init prompts")
    flavour = parser.add_mutually_exclusive_group()
    flavour.add_argument(
        "--strict",
        action="store_true",
        help="Turn on TypeScript strict type checking mode",
    )
    flavour.add_argument(
        "--severity",
        choices=[level.value for level in CompilerSeverity],
        default=None,
        help="TypeScript checking level for the generated tsconfig.json",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for ``create-typed-express-app``."""
    args = build_parser().parse_args(argv)

    try:
        config = Config.from_args(args)
    except ValueError as exc:
        print_error(f"Invalid configuration: {escape(str(exc))}")
        sys.exit(1)

    try:
        exit_code = asyncio.run(Pipeline(config).run())
    except KeyboardInterrupt:
        print_error("Aborting installation: interrupted by user.")
        exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
