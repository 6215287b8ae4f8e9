"""Folder keys: hierarchical virtual categories derived from save paths.

Backends without native categories only report an absolute download
directory per torrent. The folder key is that directory expressed relative
to the daemon's default download directory, so ``/data/dl/movies/hd`` under
``/data/dl`` becomes ``movies/hd`` and ``/data/dl`` itself becomes ``""``.
Torrents stored elsewhere are grouped under the :data:`EXTERNAL_ROOT` marker
so they never collide with a real root-relative folder of the same name.

All path handling is lexical; the filesystem is never touched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Final, Iterable

logger = logging.getLogger(__name__)

EXTERNAL_ROOT: Final[str] = "<EXTERNAL>"
EXTERNAL_PREFIX: Final[str] = f"{EXTERNAL_ROOT}/"


def split_segments(path: str | None) -> list[str]:
    """Split *path* into normalized segments.

    Backslashes become slashes, empty segments and ``.`` are dropped, and
    ``..`` removes the previous segment (it is ignored at the root).
    """
    if not path:
        return []
    segments: list[str] = []
    for part in str(path).strip().replace("\\", "/").split("/"):
        if part in ("", "."):
            continue
        if part == "..":
            if segments:
                segments.pop()
            continue
        segments.append(part)
    return segments


def is_external_key(key: str) -> bool:
    """Return True if *key* lives under the external virtual root."""
    return key == EXTERNAL_ROOT or key.startswith(EXTERNAL_PREFIX)


def strip_external_prefix(key: str) -> str:
    """Remove the external marker from *key*, returning the bare path part."""
    if key == EXTERNAL_ROOT:
        return ""
    if key.startswith(EXTERNAL_PREFIX):
        return key[len(EXTERNAL_PREFIX):]
    return key


class FolderKeyMapper:
    """Maps absolute save paths to folder keys under a default root.

    The default root is usually learned from the daemon's session settings
    and may change at runtime via :meth:`set_default_dir`. Case-only
    mismatches against the root are tolerated and reported once per
    distinct mismatching prefix.
    """

    def __init__(self, default_dir: str | None = None) -> None:
        self._raw_root: str | None = None
        self._root: list[str] | None = None
        self._root_folded: list[str] = []
        self._warned: set[tuple[str, str]] = set()
        self.set_default_dir(default_dir)

    @property
    def default_dir(self) -> str | None:
        """The current default root, or None when not yet known."""
        return self._raw_root

    def set_default_dir(self, default_dir: str | None) -> None:
        """Set (or clear, with ``None``/empty) the default download directory."""
        if default_dir is None or not str(default_dir).strip():
            self._raw_root = None
            self._root = None
            self._root_folded = []
            return
        self._raw_root = str(default_dir).strip()
        self._root = split_segments(default_dir)
        self._root_folded = [s.casefold() for s in self._root]

    def folder_key(self, path: str | None) -> str:
        """Return the folder key for *path*."""
        segments = split_segments(path)
        root = self._root
        if root is None:
            return "/".join(segments)

        depth = len(root)
        head = segments[:depth]
        if len(head) == depth:
            if head == root:
                return "/".join(segments[depth:])
            if [s.casefold() for s in head] == self._root_folded:
                self._warn_case_mismatch(head)
                return "/".join(segments[depth:])

        if not segments:
            return EXTERNAL_ROOT
        return EXTERNAL_PREFIX + "/".join(segments)

    def resolve_save_path(self, key: str) -> str | None:
        """Turn a root-relative folder key back into an absolute directory.

        Returns None when the default root is unknown.
        """
        if self._raw_root is None:
            return None
        if is_external_key(key):
            return "/" + strip_external_prefix(key)
        rel = "/".join(split_segments(key))
        base = self._raw_root.rstrip("/\\") or "/"
        if not rel:
            return base
        return f"{base.rstrip('/')}/{rel}"

    def _warn_case_mismatch(self, head: list[str]) -> None:
        warn_key = ("/".join(self._root or []), "/".join(head))
        if warn_key in self._warned:
            return
        self._warned.add(warn_key)
        logger.warning(
            "Save path prefix /%s matches default directory /%s only case-insensitively",
            warn_key[1],
            warn_key[0],
        )


@dataclass
class FolderNode:
    """One node of a folder-key tree."""

    name: str
    path: str
    children: list[FolderNode] = field(default_factory=list)


@dataclass
class FolderTree:
    """Folder-key tree; ``has_root`` is True if any key was the root ``""``."""

    has_root: bool
    nodes: list[FolderNode]


def build_folder_tree(keys: Iterable[str]) -> FolderTree:
    """Build a name-sorted tree from a collection of folder keys."""
    root: dict[str, tuple[str, dict]] = {}
    has_root = False

    for key in keys:
        parts = [p for p in str(key or "").strip().replace("\\", "/").split("/") if p]
        if not parts:
            has_root = True
            continue
        level = root
        path = ""
        for part in parts:
            path = f"{path}/{part}" if path else part
            if part not in level:
                level[part] = (path, {})
            level = level[part][1]

    def _to_nodes(level: dict[str, tuple[str, dict]]) -> list[FolderNode]:
        return [
            FolderNode(name=name, path=level[name][0], children=_to_nodes(level[name][1]))
            for name in sorted(level)
        ]

    return FolderTree(has_root=has_root, nodes=_to_nodes(root))
