"""Template set for the generated TypeScript + Express project.

Payload files live in ``scaffolder/templates/`` and are copied verbatim.
Only template *paths* and npm *script commands* go through Jinja2, where the
``{{entryFile}}`` and ``{{outputFile}}`` placeholders are resolved.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from jinja2 import Environment, StrictUndefined

_DEFAULT_TEMPLATE_DIR = Path(__file__).parent / "templates"

ENTRY_PLACEHOLDER = "{{entryFile}}"
OUTPUT_PLACEHOLDER = "{{outputFile}}"


@dataclass(frozen=True)
class TemplateFile:
    """One file of the template set.

    Attributes:
        key: Stable identifier used by tests and callers.
        path: Destination relative to the project root; may contain
            placeholders.
        source: Payload file name inside the template directory.
    """

    key: str
    path: str
    source: str

    def read(self, template_dir: Path | None = None) -> str:
        """Return the payload content."""
        base = template_dir or _DEFAULT_TEMPLATE_DIR
        return (base / self.source).read_text(encoding="utf-8")


DIRECTORIES: tuple[str, ...] = (
    "dist",
    "src/classes",
    "src/functions",
    "src/routers",
    "src/controllers",
)

FILES: tuple[TemplateFile, ...] = (
    TemplateFile("entryFile", ENTRY_PLACEHOLDER, "index.ts"),
    TemplateFile("types", "src/types.ts", "types.ts"),
    TemplateFile("indexRouter", "src/routers/index.ts", "router.ts"),
    TemplateFile("env", "src/functions/env.ts", "env.ts"),
    TemplateFile("responseErrorClass", "src/classes/ResponseError.ts", "ResponseError.ts"),
    TemplateFile("dotenv", "src/.env", "dotenv"),
    TemplateFile("dotenvjs", "dist/.env", "dotenv"),
    TemplateFile("indexController", "src/controllers/index.ts", "controller.ts"),
)

SCRIPTS: dict[str, str] = {
    "dev": f"npx nodemon {ENTRY_PLACEHOLDER}",
    "build": "npx tsc",
    "start": f"npm run build && node {OUTPUT_PLACEHOLDER}",
}


_env = Environment(
    undefined=StrictUndefined,
    autoescape=False,
    keep_trailing_newline=True,
)


def render_placeholders(text: str, entry_path: str, output_path: str | None = None) -> str:
    """Resolve ``{{entryFile}}`` / ``{{outputFile}}`` inside *text*.

    Raises:
        jinja2.UndefinedError: If *text* references any other placeholder.
    """
    context = {"entryFile": entry_path}
    if output_path is not None:
        context["outputFile"] = output_path
    return _env.from_string(text).render(**context)
