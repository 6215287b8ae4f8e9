"""Backend adapter contract.

Every daemon adapter exposes the same async operations and returns the
unified models from :mod:`unitorrent.models`. Identifiers are the daemon's
own stable torrent ids (info-hash strings); an empty id list means "all
torrents" for bulk operations.

Operations a backend family cannot support at all raise
:class:`~unitorrent.exceptions.UnsupportedOperationError` immediately.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from unitorrent.exceptions import UnsupportedOperationError
from unitorrent.models import (
    AddTorrentParams,
    BackendCapabilities,
    BackendPreferences,
    BandwidthPriority,
    Category,
    FetchListResult,
    FilePriority,
    TagMode,
    TransferSettings,
    TransferSettingsPatch,
    UnifiedTorrentDetail,
)


def _unsupported(operation: str) -> UnsupportedOperationError:
    return UnsupportedOperationError(
        f"Operation not supported by this backend: {operation}",
        {"operation": operation},
    )


class BaseAdapter(ABC):
    """Uniform async interface over one torrent daemon."""

    name: str = "base"

    # Listing

    @abstractmethod
    async def fetch_list(self) -> FetchListResult:
        """Fetch a fresh snapshot of every torrent."""

    @abstractmethod
    async def fetch_detail(self, torrent_id: str) -> UnifiedTorrentDetail:
        """Fetch one torrent with files, trackers and peers."""

    # Lifecycle

    @abstractmethod
    async def add_torrent(self, params: AddTorrentParams) -> None:
        """Add torrents by URL/magnet and/or metainfo upload."""

    @abstractmethod
    async def pause(self, ids: Sequence[str]) -> None: ...

    @abstractmethod
    async def resume(self, ids: Sequence[str]) -> None: ...

    @abstractmethod
    async def delete(self, ids: Sequence[str], delete_files: bool) -> None: ...

    async def recheck(self, ids: Sequence[str]) -> None:
        raise _unsupported("recheck")

    async def reannounce(self, ids: Sequence[str]) -> None:
        raise _unsupported("reannounce")

    async def force_start(self, ids: Sequence[str], value: bool) -> None:
        raise _unsupported("force_start")

    # Session

    @abstractmethod
    async def login(self, username: str, password: str) -> None:
        """Authenticate; raises if the daemon refuses the credentials."""

    @abstractmethod
    async def logout(self) -> None: ...

    @abstractmethod
    async def check_session(self) -> bool:
        """Silently verify the current session. Never raises."""

    async def close(self) -> None:
        """Release connections and background work."""

    async def __aenter__(self) -> BaseAdapter:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # Limits, placement, files

    async def set_download_limit(self, ids: Sequence[str], limit: int) -> None:
        raise _unsupported("set_download_limit")

    async def set_upload_limit(self, ids: Sequence[str], limit: int) -> None:
        raise _unsupported("set_upload_limit")

    async def set_location(self, ids: Sequence[str], location: str, move: bool = True) -> None:
        raise _unsupported("set_location")

    async def set_file_priority(
        self, torrent_id: str, file_ids: Sequence[int], priority: FilePriority
    ) -> None:
        raise _unsupported("set_file_priority")

    async def set_bandwidth_priority(
        self, ids: Sequence[str], priority: BandwidthPriority
    ) -> None:
        raise _unsupported("set_bandwidth_priority")

    # Trackers

    async def add_trackers(self, torrent_id: str, urls: Sequence[str]) -> None:
        raise _unsupported("add_trackers")

    async def remove_trackers(self, torrent_id: str, urls: Sequence[str]) -> None:
        raise _unsupported("remove_trackers")

    async def edit_tracker(self, torrent_id: str, old_url: str, new_url: str) -> None:
        raise _unsupported("edit_tracker")

    # Renames

    async def rename_torrent(self, torrent_id: str, new_name: str) -> None:
        raise _unsupported("rename_torrent")

    async def rename_file(self, torrent_id: str, old_path: str, new_path: str) -> None:
        raise _unsupported("rename_file")

    async def rename_folder(self, torrent_id: str, old_path: str, new_path: str) -> None:
        raise _unsupported("rename_folder")

    # Categories

    async def get_categories(self) -> dict[str, Category]:
        raise _unsupported("get_categories")

    async def create_category(self, name: str, save_path: str = "") -> None:
        raise _unsupported("create_category")

    async def edit_category(self, name: str, save_path: str) -> None:
        raise _unsupported("edit_category")

    async def delete_categories(self, names: Sequence[str]) -> None:
        raise _unsupported("delete_categories")

    async def set_category(self, ids: Sequence[str], category: str) -> None:
        raise _unsupported("set_category")

    async def set_category_save_path(self, name: str, save_path: str) -> None:
        raise _unsupported("set_category_save_path")

    # Tags

    async def get_tags(self) -> list[str]:
        raise _unsupported("get_tags")

    async def set_tags(
        self, ids: Sequence[str], tags: Sequence[str], mode: TagMode = TagMode.SET
    ) -> None:
        raise _unsupported("set_tags")

    async def create_tags(self, tags: Sequence[str]) -> None:
        raise _unsupported("create_tags")

    async def delete_tags(self, tags: Sequence[str]) -> None:
        raise _unsupported("delete_tags")

    # Settings

    @abstractmethod
    async def get_transfer_settings(self) -> TransferSettings: ...

    @abstractmethod
    async def set_transfer_settings(self, patch: TransferSettingsPatch) -> None: ...

    async def get_preferences(self) -> BackendPreferences:
        raise _unsupported("get_preferences")

    async def set_preferences(self, patch: BackendPreferences) -> None:
        raise _unsupported("set_preferences")

    @abstractmethod
    def get_capabilities(self) -> BackendCapabilities: ...

    async def get_free_space(self, path: str | None = None) -> int | None:
        raise _unsupported("get_free_space")
