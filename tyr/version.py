"""Build and version information."""

from __future__ import annotations

import json
import platform
import sys
from pathlib import Path
from typing import Tuple

MAJOR = 0
MINOR = 0
PATCH = 0

DEV = True
USER_AGENT = "Tyr/development"

DIAL_TIMEOUT = 60.0

IS_MACOS = sys.platform == "darwin"
IS_WINDOWS = sys.platform == "win32"
IS_LINUX = sys.platform.startswith("linux")

# Set by the release build; empty in development.
VERSION = ""
REVISION = ""
REF = ""
BUILD_DATE = ""

PYTHON_VERSION = platform.python_version()

_ARCH_NAMES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
}

OS = platform.system().lower() or sys.platform
ARCH = _ARCH_NAMES.get(platform.machine().lower(), platform.machine().lower())

# Optional file written by the build, holding settings such as
# {"vcs.revision": "...", "vcs.modified": "true", "-tags": "..."}.
_BUILD_INFO_FILE = Path(__file__).with_name("build_info.json")


def _compute_revision() -> Tuple[str, str]:
    rev = "unknown"
    tags = "unknown"
    try:
        raw = _BUILD_INFO_FILE.read_text(encoding="utf-8")
        info = json.loads(raw)
    except (OSError, ValueError):
        return rev, tags
    if not isinstance(info, dict):
        return rev, tags

    modified = False
    if info.get("vcs.revision"):
        rev = str(info["vcs.revision"])
    if str(info.get("vcs.modified", "")) == "true":
        modified = True
    if "-tags" in info:
        tags = str(info["-tags"])
    if modified:
        return rev + "-modified", tags
    return rev, tags


_COMPUTED_REVISION, _COMPUTED_TAGS = _compute_revision()


def get_revision() -> str:
    """The build-time revision, or the one found in the build info file."""
    return REVISION or _COMPUTED_REVISION


def get_tags() -> str:
    return _COMPUTED_TAGS


def print_info() -> str:
    """Return a multi-line description of this build."""
    lines = [
        f"ref:        {REF}",
        f"revision:   {get_revision()}",
        f"build date: {BUILD_DATE}",
        f"platform:   {OS}/{ARCH}",
        f"build tags: {get_tags()}",
    ]
    return "\n".join(lines).strip()


def peer_id_prefix() -> str:
    """The Azureus-style peer id prefix for this client version."""
    return f"-TY{MAJOR:x}{MINOR:x}{PATCH:x}0-"