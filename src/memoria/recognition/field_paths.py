"""
Field-Path Walker

Reads and writes values inside nested JSON-like records by dotted path.

Path rules:
- ``a.b.c`` descends through mappings
- a numeric segment indexes a list (``items.0.name``)
- a non-numeric segment applied to a list reads the first element
- ``a[]`` expands the list at ``a`` (only meaningful for ``expand_values``)

Malformed data never raises: a missing value is reported as ``MISSING``.
"""

from typing import Any, List


class _Missing:
    """Sentinel for "no value at path"."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()

EXPAND = "[]"


def split_path(path: str) -> List[str]:
    """Split a dotted path, keeping ``[]`` expansion markers as own segments."""
    segments: List[str] = []
    for part in path.split("."):
        if not part:
            continue
        while part.endswith(EXPAND):
            part = part[: -len(EXPAND)]
            if part:
                segments.append(part)
            segments.append(EXPAND)
            part = ""
        if part:
            segments.append(part)
    return segments


def _step(current: Any, key: str) -> Any:
    if isinstance(current, list):
        if key.isdigit():
            index = int(key)
            return current[index] if index < len(current) else MISSING
        if not current:
            return MISSING
        current = current[0]
    if isinstance(current, dict):
        return current.get(key, MISSING)
    return MISSING


def get_value(data: Any, path: str) -> Any:
    """Value at ``path`` or ``MISSING``. ``[]`` reads the first element."""
    current = data
    for key in split_path(path):
        if current is MISSING or current is None:
            return MISSING
        if key == EXPAND:
            if isinstance(current, list):
                current = current[0] if current else MISSING
            continue
        current = _step(current, key)
    return current


def expand_values(data: Any, path: str) -> List[Any]:
    """
    All values reachable at ``path``, expanding every ``[]`` segment.

    A scalar found where ``[]`` expects a list is treated as a
    one-element list, so ``titles[]`` compares a single stored title
    against several candidate titles.
    """
    frontier: List[Any] = [data]
    for key in split_path(path):
        following: List[Any] = []
        for current in frontier:
            if current is MISSING or current is None:
                continue
            if key == EXPAND:
                if isinstance(current, list):
                    following.extend(current)
                else:
                    following.append(current)
            else:
                following.append(_step(current, key))
        frontier = following
    return [value for value in frontier if value is not MISSING and value is not None]


def has_value(data: Any, path: str) -> bool:
    return bool(expand_values(data, path))


def all_field_paths(data: Any, prefix: str = "") -> List[str]:
    """
    Every field path of ``data``, intermediate objects included.

    Lists are walked through their first element and keep the parent's
    path, so paths stay type-generic rather than per-index.
    """
    paths: List[str] = []
    if isinstance(data, list):
        if data:
            paths.extend(all_field_paths(data[0], prefix))
    elif isinstance(data, dict):
        for key, value in data.items():
            current = f"{prefix}.{key}" if prefix else str(key)
            paths.append(current)
            if isinstance(value, (dict, list)) and value:
                paths.extend(all_field_paths(value, current))
    return paths


def set_value(data: Any, path: str, value: Any) -> bool:
    """
    Write ``value`` at ``path`` in place, creating intermediate mappings.

    Lists on the way are entered through their first element (or an
    explicit numeric index). Returns False when the path cannot be
    written, e.g. because it runs through a scalar.
    """
    keys = [key for key in split_path(path) if key != EXPAND]
    if not keys:
        return False

    current = data
    for key in keys[:-1]:
        if isinstance(current, list):
            if key.isdigit() and int(key) < len(current):
                current = current[int(key)]
                continue
            if not current:
                return False
            current = current[0]
        if not isinstance(current, dict):
            return False
        if key not in current:
            current[key] = {}
        current = current[key]

    last = keys[-1]
    if isinstance(current, list):
        if last.isdigit() and int(last) < len(current):
            current[int(last)] = value
            return True
        if not current:
            return False
        current = current[0]
    if not isinstance(current, dict):
        return False
    current[last] = value
    return True


def flatten_text(data: Any) -> str:
    """Concatenate every scalar leaf of ``data`` into one string."""
    if data is None:
        return ""
    if isinstance(data, dict):
        return " ".join(flatten_text(value) for value in data.values())
    if isinstance(data, list):
        return " ".join(flatten_text(value) for value in data)
    return str(data)



def as_text(value: Any) -> Any:
    """Flatten mappings and lists to their leaf text; scalars are returned as-is."""
    return flatten_text(value) if isinstance(value, (dict, list)) else value
