"""Backend adapters behind one async contract."""

from __future__ import annotations

from unitorrent.adapter.base import BaseAdapter
from unitorrent.adapter.detect import detect_backend
from unitorrent.adapter.factory import (
    clear_version_cache,
    create_adapter,
    save_version_cache,
)
from unitorrent.adapter.transmission import TransmissionAdapter

__all__ = [
    "BaseAdapter",
    "TransmissionAdapter",
    "clear_version_cache",
    "create_adapter",
    "detect_backend",
    "save_version_cache",
]
