"""Project scaffolding -- source tree materialisation and ``package.json`` patching.

Quick usage::

    from create_typed_express_app.scaffolder import (
        DIRECTORIES, FILES, SCRIPTS, Scaffolder, patch_descriptor,
        read_descriptor, resolve_entry_path,
    )

    entry = resolve_entry_path(read_descriptor(root))
    await Scaffolder().materialize(root, DIRECTORIES, FILES, entry)
    await patch_descriptor(root, SCRIPTS, entry)
"""

from create_typed_express_app.scaffolder.descriptor import (
    DescriptorError,
    patch_descriptor,
    read_descriptor,
)
from create_typed_express_app.scaffolder.generator import (
    ScaffoldError,
    Scaffolder,
    resolve_entry_path,
    resolve_output_path,
)
from create_typed_express_app.scaffolder.templates import (
    DIRECTORIES,
    FILES,
    SCRIPTS,
    TemplateFile,
)

__all__ = [
    "DIRECTORIES",
    "DescriptorError",
    "FILES",
    "SCRIPTS",
    "ScaffoldError",
    "Scaffolder",
    "TemplateFile",
    "patch_descriptor",
    "read_descriptor",
    "resolve_entry_path",
    "resolve_output_path",
]
