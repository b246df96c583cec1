"""
Path and key arithmetic for the virtual directory tree.

Paths are absolute and "/"-delimited ("/", "/docs", "/docs/2024").
Keys are "<owner>/<path without leading slash>", and a folder is represented by a
marker object whose key is the folder prefix itself (ending in the delimiter).
"""

import re

DELIMITER = "/"


def normalize_path(path: str | None) -> str:
    """
    Collapse duplicate slashes, add a leading slash and drop the trailing one

    >>> normalize_path("docs//2024/")
    '/docs/2024'
    """
    if not path:
        return "/"
    path = re.sub(r"/+", "/", "/" + path.strip())
    if len(path) > 1:
        path = path.rstrip("/")
    return path or "/"


def join_path(parent: str, name: str) -> str:
    parent = normalize_path(parent)
    return f"/{name}" if parent == "/" else f"{parent}/{name}"


def parent_path(path: str) -> str:
    path = normalize_path(path)
    if path == "/":
        return "/"
    return path.rsplit("/", 1)[0] or "/"


def path_name(path: str) -> str:
    return normalize_path(path).rsplit("/", 1)[-1]


def path_segments(path: str) -> list[str]:
    return [segment for segment in normalize_path(path).split("/") if segment]


def ancestor_paths(path: str) -> list[str]:
    """All folder paths from the first level down to (and including) path, root excluded"""
    result = []
    current = "/"
    for segment in path_segments(path):
        current = join_path(current, segment)
        result.append(current)
    return result


def is_same_or_below(path: str, folder: str) -> bool:
    path, folder = normalize_path(path), normalize_path(folder)
    return folder == "/" or path == folder or path.startswith(folder + "/")


def owner_prefix(owner: str) -> str:
    return f"{owner}{DELIMITER}"


def folder_prefix(owner: str, path: str) -> str:
    """The key prefix of all objects in a folder, which is also the key of its marker"""
    path = normalize_path(path)
    if path == "/":
        return owner_prefix(owner)
    return f"{owner}{path}{DELIMITER}"


def key_to_path(owner: str, key: str) -> str:
    """
    Translate a store key back to a path in the owner's tree.
    Marker keys translate to the folder path.
    """
    prefix = owner_prefix(owner)
    if not key.startswith(prefix):
        raise ValueError(f"Key {key} is not in the namespace of {owner}")
    return normalize_path(key[len(prefix) - 1 :])


def is_marker(key: str) -> bool:
    return key.endswith(DELIMITER)


def breadcrumbs(path: str) -> list[tuple[str, str]]:
    crumbs = [("Home", "/")]
    for folder in ancestor_paths(path):
        crumbs.append((path_name(folder), folder))
    return crumbs
