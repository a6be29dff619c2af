"""create-typed-express-app configuration.

Typed configuration for a single scaffolding run. Settings use Pydantic v2
models so they are validated at construction time and can be assembled from
environment variables and parsed CLI options without boiler-plate.
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator


DEFAULT_DEPENDENCIES: list[str] = ["express"]

DEFAULT_DEV_DEPENDENCIES: list[str] = [
    "typescript",
    "nodemon",
    "ts-node",
    "@types/express",
    "@types/node",
]

_TRUTHY = {"1", "true", "yes", "on"}


class CompilerSeverity(str, Enum):
    """How strict the generated ``tsconfig.json`` should be."""

    LOOSE = "loose"
    MODERATE = "moderate"
    STRICT = "strict"

    @property
    def tsc_flags(self) -> list[str]:
        """Extra ``tsc --init`` flags for this level."""
        return {
            CompilerSeverity.LOOSE: [],
            CompilerSeverity.MODERATE: ["--noImplicitAny"],
            CompilerSeverity.STRICT: ["--strict"],
        }[self]


class Config(BaseModel):
    """Options for one scaffolding run.

    Instances are created once by the CLI entry point (or directly by tests)
    and then handed to ``Pipeline``.
    """

    directory: Path = Field(..., description="Target project directory as given by the user")
    skip_prompts: bool = Field(default=False, description="Run `npm init -y` instead of interactive init")
    severity: CompilerSeverity = Field(default=CompilerSeverity.LOOSE)
    compiler_failure_fatal: bool = Field(
        default=False,
        description="Abort the run when `tsc --init` fails instead of warning",
    )

    npm_command: str = Field(default="npm", min_length=1)
    npx_command: str = Field(default="npx", min_length=1)

    dependencies: list[str] = Field(default_factory=lambda: list(DEFAULT_DEPENDENCIES))
    dev_dependencies: list[str] = Field(default_factory=lambda: list(DEFAULT_DEV_DEPENDENCIES))

    @field_validator("dependencies", "dev_dependencies")
    @classmethod
    def _no_blank_packages(cls, value: list[str]) -> list[str]:
        if any(not pkg.strip() for pkg in value):
            raise ValueError("package names must not be blank")
        return value

    # ------------------------------------------------------------------
    # Derived values (read-only properties)
    # ------------------------------------------------------------------

    @property
    def root(self) -> Path:
        """Absolute, resolved project root."""
        return self.directory.expanduser().resolve()

    @property
    def project_name(self) -> str:
        """Project name derived from the basename of the root."""
        return self.root.name

    @property
    def reserved_names(self) -> list[str]:
        """Names a project may not take: every package this run installs."""
        seen: dict[str, None] = {}
        for name in [*self.dependencies, *self.dev_dependencies]:
            seen.setdefault(name, None)
        return list(seen)

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls, directory: str | Path, **overrides: Any) -> "Config":
        """Build a ``Config`` from environment variables.

        Recognised variables (all optional):
            CTEA_NPM, CTEA_NPX, CTEA_SEVERITY, CTEA_COMPILER_FAILURE_FATAL.

        Keyword *overrides* win over the environment.
        """
        kwargs: dict[str, Any] = {"directory": Path(directory)}
        if os.environ.get("CTEA_NPM"):
            kwargs["npm_command"] = os.environ["CTEA_NPM"]
        if os.environ.get("CTEA_NPX"):
            kwargs["npx_command"] = os.environ["CTEA_NPX"]
        if os.environ.get("CTEA_SEVERITY"):
            kwargs["severity"] = CompilerSeverity(os.environ["CTEA_SEVERITY"].strip().lower())
        if os.environ.get("CTEA_COMPILER_FAILURE_FATAL"):
            kwargs["compiler_failure_fatal"] = (
                os.environ["CTEA_COMPILER_FAILURE_FATAL"].strip().lower() in _TRUTHY
            )
        kwargs.update(overrides)
        return cls(**kwargs)

    @classmethod
    def from_args(cls, args: Any) -> "Config":
        """Build a ``Config`` from an ``argparse.Namespace`` on top of the environment."""
        overrides: dict[str, Any] = {"skip_prompts": bool(args.y)}
        if args.strict:
            overrides["severity"] = CompilerSeverity.STRICT
        elif args.severity:
            overrides["severity"] = CompilerSeverity(args.severity)
        return cls.from_env(args.directory, **overrides)
