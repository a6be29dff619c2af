"""Project name validation.

A project name must be publishable as a new npm package and must not shadow
any of the packages the scaffolder installs into it (npm refuses to install a
dependency with the same name as the package being developed).
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from urllib.parse import quote

MAX_NAME_LENGTH = 214

BLACKLISTED_NAMES = frozenset({"node_modules", "favicon.ico"})

NODE_BUILTINS = frozenset({
    "assert", "async_hooks", "buffer", "child_process", "cluster", "console",
    "constants", "crypto", "dgram", "diagnostics_channel", "dns", "domain",
    "events", "fs", "http", "http2", "https", "inspector", "module", "net",
    "os", "path", "perf_hooks", "process", "punycode", "querystring",
    "readline", "repl", "stream", "string_decoder", "sys", "timers", "tls",
    "trace_events", "tty", "url", "util", "v8", "vm", "wasi",
    "worker_threads", "zlib",
})

_SCOPED_RE = re.compile(r"^@([^/]+)/([^/]+)$")
_SPECIAL_CHARS_RE = re.compile(r"[~'!()*]")
# Characters encodeURIComponent leaves untouched.
_URI_SAFE = "-_.!~*'()"


def _url_safe(part: str) -> bool:
    return quote(part, safe=_URI_SAFE) == part


def npm_name_problems(name: str) -> list[str]:
    """Return every reason *name* is not valid for a new npm package.

    An empty list means the name is acceptable.
    """
    problems: list[str] = []

    if not name:
        return ["name length must be greater than zero"]

    if name.startswith("."):
        problems.append("name cannot start with a period")
    if name.startswith("_"):
        problems.append("name cannot start with an underscore")
    if name.strip() != name:
        problems.append("name cannot contain leading or trailing spaces")
    if name.lower() in BLACKLISTED_NAMES:
        problems.append(f"{name} is a blacklisted name")
    if name in NODE_BUILTINS:
        problems.append(f"{name} is a core module name")
    if len(name) > MAX_NAME_LENGTH:
        problems.append(f"name can no longer contain more than {MAX_NAME_LENGTH} characters")
    if name.lower() != name:
        problems.append("name can no longer contain capital letters")
    if _SPECIAL_CHARS_RE.search(name.split("/")[-1]):
        problems.append('name can no longer contain special characters ("~\'!()*")')

    if not _url_safe(name):
        scoped = _SCOPED_RE.match(name)
        if not (scoped and _url_safe(scoped.group(1)) and _url_safe(scoped.group(2))):
            problems.append("name can only contain URL-friendly characters")

    return problems


def validate_project_name(name: str, reserved: Iterable[str]) -> bool:
    """Return ``True`` if *name* may be used for a new project.

    Rejects names that break npm naming rules and names that exactly
    (case-sensitively) match one of *reserved*.
    """
    if npm_name_problems(name):
        return False
    return name not in set(reserved)
