"""``package.json`` patching.

Merges the generated npm scripts into the project descriptor and points its
``main`` field at the compiled entry file.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from create_typed_express_app.scaffolder.generator import resolve_output_path
from create_typed_express_app.scaffolder.templates import render_placeholders
from create_typed_express_app.utils import load_json, save_json

DESCRIPTOR_NAME = "package.json"


class DescriptorError(Exception):
    """Raised when ``package.json`` is missing or malformed."""


def read_descriptor(root: str | Path) -> dict[str, Any]:
    """Load the descriptor at *root*."""
    path = Path(root) / DESCRIPTOR_NAME
    try:
        return load_json(path)
    except FileNotFoundError as exc:
        raise DescriptorError(f"{DESCRIPTOR_NAME} not found in {root}") from exc
    except (json.JSONDecodeError, TypeError) as exc:
        raise DescriptorError(f"{path} is not a valid JSON object: {exc}") from exc


def merge_scripts(
    descriptor: Mapping[str, Any],
    script_entries: Mapping[str, Any],
    entry_path: str,
) -> dict[str, Any]:
    """Return a patched copy of *descriptor*.

    New script keys win over existing ones; untouched keys and every other
    field are preserved in their original order.
    """
    output_path = resolve_output_path(entry_path)
    existing = descriptor.get("scripts")
    if existing is None:
        existing = {}
    elif not isinstance(existing, Mapping):
        raise DescriptorError("'scripts' must be a JSON object")

    scripts = dict(existing)
    for name, command in script_entries.items():
        if isinstance(command, str):
            command = render_placeholders(command, entry_path, output_path)
        scripts[name] = command

    patched = dict(descriptor)
    patched["main"] = output_path
    patched["scripts"] = scripts
    return patched


async def patch_descriptor(
    root: str | Path,
    script_entries: Mapping[str, Any],
    entry_path: str,
) -> dict[str, Any]:
    """Merge *script_entries* into ``<root>/package.json`` and write it back.

    Returns:
        The descriptor as written.
    """
    patched = merge_scripts(read_descriptor(root), script_entries, entry_path)
    await save_json(patched, Path(root) / DESCRIPTOR_NAME)
    return patched
