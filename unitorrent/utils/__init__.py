"""Shared utilities: logging, task tracking, version parsing and folder keys."""

from __future__ import annotations

from unitorrent.utils.folder_key import EXTERNAL_ROOT, FolderKeyMapper
from unitorrent.utils.logging_config import get_logger, setup_logging
from unitorrent.utils.tasks import BackgroundTaskGroup
from unitorrent.utils.version import parse_version

__all__ = [
    "EXTERNAL_ROOT",
    "BackgroundTaskGroup",
    "FolderKeyMapper",
    "get_logger",
    "parse_version",
    "setup_logging",
]
