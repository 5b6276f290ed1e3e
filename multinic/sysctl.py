"""Read and write kernel parameters under /proc/sys."""

from __future__ import annotations

import os

DEFAULT_ROOT = "/proc/sys"

_INTERCHANGE = str.maketrans({".": "/", "/": "."})


def to_normal_name(name: str) -> str:
    """Normalise a sysctl name to use slashes as separators.

    The separator in use is decided by whichever of '.' or '/' appears first.
    If it is a dot, dots and slashes are swapped; otherwise the name is kept.
    """
    for ch in name:
        if ch == ".":
            return name.translate(_INTERCHANGE)
        if ch == "/":
            break
    return name


def _full_path(name: str, root: str) -> str:
    return os.path.normpath(os.path.join(root, to_normal_name(name)))


def _get(name: str, root: str) -> str:
    with open(_full_path(name, root), encoding="utf-8") as handle:
        data = handle.read()
    return data[:-1]


def _set(name: str, value: str, root: str) -> str:
    with open(_full_path(name, root), "w", encoding="utf-8") as handle:
        handle.write(value)
    return _get(name, root)


def sysctl(name: str, value: str | None = None, root: str = DEFAULT_ROOT) -> str:
    """Return the value of ``name``, first setting it to ``value`` when one is given.

    The trailing newline the kernel appends is removed from the value read back.
    """
    if value is None:
        return _get(name, root)
    return _set(name, value, root)