"""Path expansion and containment checks shared by scanners and the detector."""

from __future__ import annotations

import os
import re
import sys
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Literal, Optional

OsName = Literal["windows", "linux", "macos"]

# Companion tools that install inside a game's folder (e.g. Wallpaper Engine's
# bundled helper) but must not count as the game itself.
DEFAULT_IGNORED_PATH_FRAGMENTS = ("wallpaper_engine",)

_WIN_ENV_RE = re.compile(r"%([^%]+)%")


def current_os() -> OsName:
    if sys.platform.startswith("win"):
        return "windows"
    if sys.platform == "darwin":
        return "macos"
    return "linux"


def expand_path(path: str) -> str:
    """Expand ``%VAR%``, ``$VAR``/``${VAR}`` and a leading ``~``."""
    result = _WIN_ENV_RE.sub(lambda m: os.environ.get(m.group(1), m.group(0)), path)
    result = os.path.expandvars(result)
    if result.startswith("~"):
        rest = result[1:].lstrip("/\\")
        result = str(Path.home() / rest) if rest else str(Path.home())
    return result


@lru_cache(maxsize=4096)
def normalize_path(path: str) -> str:
    """Absolute with symlinks resolved, case-folded on Windows."""
    normalized = os.path.normcase(os.path.realpath(path))
    stripped = normalized.rstrip("/\\")
    # Keep filesystem roots ("/", "C:\") intact
    return stripped or normalized


def is_path_within_directory(file_path: str, directory: str) -> bool:
    """True only for strict descendants of ``directory``."""
    if not file_path or not directory:
        return False
    root = normalize_path(directory)
    candidate = normalize_path(file_path)
    prefix = root if root.endswith(os.sep) else root + os.sep
    return candidate.startswith(prefix)


def is_ignored(path: str, fragments: Iterable[str]) -> bool:
    lowered = path.lower()
    return any(f and f.lower() in lowered for f in fragments)


def paths_equal(a: str, b: str) -> bool:
    if a.lower() == b.lower():
        return True
    return normalize_path(a).lower() == normalize_path(b).lower()


def command_line_references(command_line: Optional[str], directory: str) -> bool:
    """
    True when ``command_line`` names a path inside ``directory``.

    Wine and Proton run games through a loader binary, so the game's own
    path only shows up in the arguments.
    """
    if not command_line or not directory:
        return False
    haystack = command_line.lower().replace("\\", "/")
    for root in {directory, normalize_path(directory)}:
        needle = root.lower().replace("\\", "/").rstrip("/")
        if needle and needle + "/" in haystack:
            return True
    return False
