import os
import re
import secrets
import time
from pathlib import Path

from .errors import InvalidFilename

MAX_FILENAME_LENGTH = 255
MAX_STORED_PART_LENGTH = 120

_SEPARATORS = re.compile(r"[/\\]")
_DOT_RUNS = re.compile(r"\.\.+")
_UNSAFE_RUNS = re.compile(r"[^A-Za-z0-9._-]+")


def is_valid_filename(name: object) -> bool:
    if not name or not isinstance(name, str):
        return False

    # no separators, no parent directory traversal
    if "/" in name or "\\" in name or ".." in name:
        return False

    # hidden/system files
    if name.startswith("."):
        return False

    return len(name) <= MAX_FILENAME_LENGTH


def sanitize_part(name: str | None) -> str:
    base = name or "file"
    base = _SEPARATORS.sub("-", base)
    base = _DOT_RUNS.sub(".", base)
    base = _UNSAFE_RUNS.sub("_", base)
    return base[:MAX_STORED_PART_LENGTH] or "file"


def generate_stored_name(display_name: str | None) -> str:
    """
    Build a fresh on-disk name for an upload.

    The nanosecond timestamp plus a random suffix keeps two uploads of the
    same file (even in the same instant) from colliding.
    """
    return f"{time.time_ns()}-{secrets.token_hex(6)}-{sanitize_part(display_name)}"


def resolve_inside(root: str | os.PathLike, name: object) -> Path:
    if not is_valid_filename(name):
        raise InvalidFilename()

    resolved_root = os.path.realpath(root)
    resolved = os.path.realpath(os.path.join(resolved_root, name))

    # symlinks can still point outside the root after the string checks
    if not resolved.startswith(resolved_root + os.sep):
        raise InvalidFilename()

    return Path(resolved_root) / name
