"""Directory plan and template materialisation.

Creates the source tree of a new project inside an existing root: every
planned directory first, then every template file, with the entry file's
location derived from the descriptor's ``main`` field.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping
from pathlib import Path, PurePosixPath
from typing import Any

from create_typed_express_app.scaffolder.templates import TemplateFile, render_placeholders

SOURCE_DIR = "src"
OUTPUT_DIR = "dist"
SOURCE_EXTENSION = ".ts"
OUTPUT_EXTENSION = ".js"
FALLBACK_ENTRY = f"{SOURCE_DIR}/index{SOURCE_EXTENSION}"


class ScaffoldError(Exception):
    """Raised when the source tree cannot be materialised."""


def resolve_entry_path(descriptor: Mapping[str, Any]) -> str:
    """Return the TypeScript entry file for a descriptor.

    ``main: "app.js"`` gives ``src/app.ts``; a missing or blank ``main``
    gives ``src/index.ts``.  Everything from the first dot of the file name
    on is treated as the extension.
    """
    main = descriptor.get("main")
    if not isinstance(main, str) or not main.strip():
        return FALLBACK_ENTRY

    parts = [p for p in PurePosixPath(main.strip().replace("\\", "/")).parts if p not in ("/", ".")]
    if not parts:
        return FALLBACK_ENTRY
    stem = parts[-1].split(".")[0]
    if not stem:
        return FALLBACK_ENTRY
    return "/".join([SOURCE_DIR, *parts[:-1], stem + SOURCE_EXTENSION])


def resolve_output_path(entry_path: str) -> str:
    """Map a source entry (``src/app.ts``) to its compiled output (``dist/app.js``)."""
    path = PurePosixPath(entry_path)
    if path.parts and path.parts[0] == SOURCE_DIR:
        path = PurePosixPath(*path.parts[1:])
    return str(PurePosixPath(OUTPUT_DIR) / path.with_suffix(OUTPUT_EXTENSION))


class Scaffolder:
    """Writes the directory plan and template set into a project root."""

    def __init__(self, template_dir: Path | None = None) -> None:
        self.template_dir = template_dir

    async def materialize(
        self,
        root: str | Path,
        directories: Iterable[str],
        files: Iterable[TemplateFile],
        entry_path: str,
    ) -> list[Path]:
        """Create *directories* then write *files* under *root*.

        Args:
            root: Existing project root.
            directories: Relative directories to create (idempotent).
            files: Templates to write; their paths may use ``{{entryFile}}``.
            entry_path: Value substituted for ``{{entryFile}}``.

        Returns:
            Absolute paths of the written files, in template order.

        Raises:
            ScaffoldError: If *root* is missing or a path escapes it.
        """
        root_path = Path(root).resolve()
        if not root_path.is_dir():
            raise ScaffoldError(f"Project root does not exist: {root_path}")

        for directory in directories:
            target = self._inside(root_path, directory)
            await asyncio.to_thread(target.mkdir, parents=True, exist_ok=True)

        written: list[Path] = []
        for template in files:
            rel = render_placeholders(template.path, entry_path)
            target = self._inside(root_path, rel)
            content = template.read(self.template_dir)
            await asyncio.to_thread(_write_file, target, content)
            written.append(target)
        return written

    @staticmethod
    def _inside(root: Path, relative: str) -> Path:
        target = (root / relative).resolve()
        if target != root and root not in target.parents:
            raise ScaffoldError(f"Refusing to write outside the project root: {relative}")
        return target


def _write_file(path: Path, content: str) -> None:
    """Write *content* verbatim, creating the parent for entries outside the plan."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8", newline="")
