"""Transmission adapter.

Implements :class:`~unitorrent.adapter.base.BaseAdapter` over the
Transmission RPC in either dialect. Identity is the info-hash
(``hashString``), which survives daemon restarts; numeric ids do not.

Transmission has no native categories. The category of a torrent is its
folder key (save path relative to the daemon's default download
directory), and labels serve as tags.
"""

from __future__ import annotations

import asyncio
import base64
import itertools
import logging
import posixpath
from typing import Any, Mapping, Sequence

import aiohttp

from unitorrent.adapter.base import BaseAdapter
from unitorrent.adapter.transmission.capabilities import LABELS, CapabilityNegotiator
from unitorrent.adapter.transmission.dialect import ProtocolConfig, select_protocol
from unitorrent.adapter.transmission.normalize import (
    DETAIL_FIELDS,
    LIST_FIELDS,
    normalize_detail,
    normalize_torrent,
)
from unitorrent.adapter.transmission.settings_cache import (
    FALLBACK_SPEED_BYTES,
    SpeedUnitDetector,
    TransferSettingsCache,
    from_backend,
    to_backend,
)
from unitorrent.adapter.transmission.tags import (
    DEFAULT_CHUNK_SIZE,
    TagMutationSerializer,
    plan_label_updates,
)
from unitorrent.adapter.transmission.transport import RPCTransport
from unitorrent.exceptions import (
    AdapterError,
    AuthenticationError,
    TorrentNotFoundError,
    UnitorrentError,
    UnsupportedOperationError,
)
from unitorrent.models import (
    AddTorrentParams,
    BackendCapabilities,
    BackendConfig,
    BackendPreferences,
    BackendVersion,
    BandwidthPriority,
    Category,
    EncryptionMode,
    FetchListResult,
    FilePriority,
    ServerState,
    TagMode,
    TransferSettings,
    TransferSettingsPatch,
    UnifiedTorrent,
    UnifiedTorrentDetail,
    normalize_tags,
)
from unitorrent.utils.folder_key import FolderKeyMapper

logger = logging.getLogger(__name__)

# Multiple of 3 so chunk encodings concatenate into one valid base64 string
METAINFO_CHUNK_SIZE = 3 * 8192

TRANSMISSION_CAPABILITIES = BackendCapabilities(
    has_separate_seed_queue=True,
    has_stalled_queue=True,
    has_lsd=True,
    has_encryption=True,
    encryption_modes=(
        EncryptionMode.TOLERATE,
        EncryptionMode.PREFER,
        EncryptionMode.REQUIRE,
    ),
    has_seeding_ratio_limit=True,
    has_seeding_time_limit=True,
    seeding_time_limit_mode="idle",
    has_default_save_path=True,
    has_incomplete_dir=True,
    has_create_subfolder=False,
    has_incomplete_files_suffix=True,
    has_proxy=False,
    has_scheduler=False,
    has_ip_filter=False,
    has_scripts=True,
    has_blocklist=True,
    has_trash_torrent_files=True,
    has_native_categories=False,
)

_ENCRYPTION_FROM_WIRE = {
    "required": EncryptionMode.REQUIRE,
    "preferred": EncryptionMode.PREFER,
    "tolerated": EncryptionMode.TOLERATE,
}
_ENCRYPTION_TO_WIRE = {
    EncryptionMode.REQUIRE: "required",
    EncryptionMode.PREFER: "preferred",
    EncryptionMode.TOLERATE: "tolerated",
}

_BANDWIDTH_TO_WIRE = {
    BandwidthPriority.LOW: -1,
    BandwidthPriority.NORMAL: 0,
    BandwidthPriority.HIGH: 1,
}

# BackendPreferences field -> session key
_PREFERENCE_KEYS: dict[str, str] = {
    "max_connections": "peer_limit_global",
    "max_connections_per_torrent": "peer_limit_per_torrent",
    "queue_download_enabled": "download_queue_enabled",
    "queue_download_max": "download_queue_size",
    "queue_seed_enabled": "seed_queue_enabled",
    "queue_seed_max": "seed_queue_size",
    "queue_stalled_enabled": "queue_stalled_enabled",
    "queue_stalled_minutes": "queue_stalled_minutes",
    "listen_port": "peer_port",
    "random_port": "peer_port_random_on_start",
    "upnp_enabled": "port_forwarding_enabled",
    "dht_enabled": "dht_enabled",
    "pex_enabled": "pex_enabled",
    "lsd_enabled": "lpd_enabled",
    "share_ratio_limit": "seed_ratio_limit",
    "share_ratio_limited": "seed_ratio_limited",
    "seeding_time_limit": "seed_idle_limit",
    "seeding_time_limited": "seed_idle_limited",
    "save_path": "download_dir",
    "incomplete_dir_enabled": "incomplete_dir_enabled",
    "incomplete_dir": "incomplete_dir",
    "incomplete_files_suffix": "rename_partial_files",
}


def encode_metainfo(data: bytes, chunk_size: int = METAINFO_CHUNK_SIZE) -> str:
    """Base64-encode a .torrent body chunk by chunk.

    Args:
        data: Raw metainfo bytes
        chunk_size: Bytes per chunk; must be a multiple of 3

    Returns:
        The same string as encoding *data* in one piece

    """
    if chunk_size <= 0 or chunk_size % 3:
        msg = f"chunk_size must be a positive multiple of 3, got {chunk_size}"
        raise ValueError(msg)
    return "".join(
        base64.b64encode(data[i:i + chunk_size]).decode("ascii")
        for i in range(0, len(data), chunk_size)
    )


def map_encryption(value: Any) -> EncryptionMode | None:
    if not value:
        return None
    return _ENCRYPTION_FROM_WIRE.get(str(value).lower(), EncryptionMode.TOLERATE)


class TransmissionAdapter(BaseAdapter):
    """Adapter for Transmission's RPC (legacy and JSON-RPC 2.0 dialects)."""

    name = "trans"

    def __init__(
        self,
        url: str,
        rpc_semver: str | None = None,
        username: str | None = None,
        password: str | None = None,
        timeout: float = 10.0,
        settings_ttl: float = 5.0,
        tag_chunk_size: int = DEFAULT_CHUNK_SIZE,
        version: BackendVersion | None = None,
        session: aiohttp.ClientSession | None = None,
        transport: RPCTransport | None = None,
    ):
        """Initialize adapter.

        Args:
            url: RPC endpoint URL
            rpc_semver: Server ``rpc-version-semver``; selects the dialect
            username: HTTP Basic username (optional)
            password: HTTP Basic password (optional)
            timeout: Request timeout in seconds
            settings_ttl: Transfer settings cache lifetime in seconds
            tag_chunk_size: Maximum torrent ids per label write
            version: Detected daemon version, reported in server state
            session: Shared aiohttp session
            transport: Pre-built transport (mainly for tests)

        """
        self.protocol: ProtocolConfig = select_protocol(rpc_semver)
        self.accessor = self.protocol.accessor
        self.transport = transport or RPCTransport(
            url,
            self.accessor,
            username=username,
            password=password,
            timeout=timeout,
            session=session,
        )
        self.version = version
        self.tag_chunk_size = tag_chunk_size
        self._static_capabilities = TRANSMISSION_CAPABILITIES.model_copy(
            update={"has_labels": self.protocol.labels_supported}
        )

        self.capabilities = CapabilityNegotiator({LABELS: self.protocol.labels_supported})
        self.folder_keys = FolderKeyMapper()
        self.speed_unit = SpeedUnitDetector()
        self.settings = TransferSettingsCache(self._load_transfer_settings, ttl=settings_ttl)
        self.tag_serializer = TagMutationSerializer()
        self._sequence = itertools.count(1)

        logger.debug(
            "Transmission adapter: dialect=%s labels=%s",
            self.protocol.dialect.value,
            self.protocol.labels_supported,
        )

    @classmethod
    def from_config(
        cls,
        config: BackendConfig,
        version: BackendVersion | None = None,
        session: aiohttp.ClientSession | None = None,
    ) -> TransmissionAdapter:
        """Build an adapter from a :class:`BackendConfig`."""
        rpc_semver = config.rpc_semver or (version.rpc_semver if version else None)
        return cls(
            config.url,
            rpc_semver=rpc_semver,
            username=config.username,
            password=config.password,
            timeout=config.timeout,
            settings_ttl=config.settings_ttl,
            tag_chunk_size=config.tag_chunk_size,
            version=version,
            session=session,
        )

    # Plumbing

    async def _call(self, operation: str, params: dict[str, Any] | None = None) -> Any:
        return await self.transport.call(operation, params)

    @staticmethod
    def _ids(ids: Sequence[str] | None) -> dict[str, Any]:
        """Empty selection means every torrent, expressed by omitting ``ids``."""
        return {"ids": list(ids)} if ids else {}

    async def _session_get(self) -> dict[str, Any]:
        args = await self._call("session-get") or {}
        self._observe_session(args)
        return args

    def _observe_session(self, args: Mapping[str, Any]) -> None:
        units = self.accessor.session_get(args, "units")
        if isinstance(units, Mapping):
            self.speed_unit.adopt(self.accessor.session_get(units, "speed_bytes"))
        else:
            self.speed_unit.adopt(None)
        default_dir = self.accessor.session_get(args, "download_dir")
        if default_dir:
            self.folder_keys.set_default_dir(str(default_dir))

    async def _speed_bytes(self) -> int:
        return await self.speed_unit.resolve(self._fetch_speed_unit)

    async def _fetch_speed_unit(self) -> object:
        args = await self._session_get()
        units = self.accessor.session_get(args, "units")
        if isinstance(units, Mapping):
            return self.accessor.session_get(units, "speed_bytes")
        return None

    async def _ensure_default_dir(self) -> str | None:
        if self.folder_keys.default_dir is None:
            await self._session_get()
        return self.folder_keys.default_dir

    async def _get_torrents(
        self,
        fields: Sequence[str],
        ids: Sequence[str] | None = None,
    ) -> list[Mapping[str, Any]]:
        """``torrent-get`` with labels negotiated as an optional field."""

        async def attempt(include_labels: bool) -> list[Mapping[str, Any]]:
            names = list(fields)
            if include_labels:
                names.append("labels")
            params = {**self._ids(ids), "fields": self.accessor.names(names)}
            result = await self._call("torrent-get", params)
            return list(self.accessor.get(result, "torrents") or [])

        return await self.capabilities.negotiate(LABELS, attempt)

    # Listing

    async def fetch_list(self) -> FetchListResult:
        """Fetch every torrent and rebuild the full map."""
        sequence = next(self._sequence)
        raw_torrents, settings = await asyncio.gather(
            self._get_torrents(LIST_FIELDS),
            self._poll_transfer_settings(),
        )

        torrents: dict[str, UnifiedTorrent] = {}
        for raw in raw_torrents:
            torrent = normalize_torrent(raw, self.accessor, self.folder_keys)
            if torrent.id:
                torrents[torrent.id] = torrent

        tags: dict[str, None] = {}
        for torrent in torrents.values():
            for tag in torrent.tags:
                tags.setdefault(tag, None)

        return FetchListResult(
            torrents=torrents,
            categories=self._derive_categories(torrents.values()),
            tags=sorted(tags),
            server_state=self._server_state(torrents.values(), settings),
            sequence=sequence,
        )

    async def _poll_transfer_settings(self) -> TransferSettings | None:
        try:
            return await self.settings.get()
        except UnitorrentError as e:
            logger.debug("Transfer settings unavailable for this poll: %s", e)
            return None

    def _derive_categories(self, torrents: Any) -> dict[str, Category]:
        categories: dict[str, Category] = {}
        default_dir = self.folder_keys.default_dir
        if default_dir is not None:
            categories[""] = Category(name="", save_path=default_dir)
        for torrent in torrents:
            if torrent.category not in categories:
                categories[torrent.category] = Category(
                    name=torrent.category, save_path=torrent.save_path
                )
        return categories

    def _server_state(
        self, torrents: Any, settings: TransferSettings | None
    ) -> ServerState:
        dl = up = peers = 0
        for torrent in torrents:
            dl += torrent.dlspeed
            up += torrent.upspeed
            peers += (torrent.num_seeds or 0) + (torrent.num_peers or 0)
        state = ServerState(
            dl_info_speed=dl,
            up_info_speed=up,
            peers=peers,
            backend_name="Transmission",
            backend_version=self.version.version if self.version else "",
        )
        if settings is not None:
            state.dl_rate_limit = settings.download_limit
            state.up_rate_limit = settings.upload_limit
            state.use_alt_speed = settings.alt_enabled
            state.alt_dl_limit = settings.alt_download_limit
            state.alt_up_limit = settings.alt_upload_limit
        return state

    async def fetch_detail(self, torrent_id: str) -> UnifiedTorrentDetail:
        """Fetch one torrent with files, trackers and peers."""
        sequence = next(self._sequence)
        speed_bytes = await self._speed_bytes()
        raws = await self._get_torrents(DETAIL_FIELDS, ids=[torrent_id])
        if not raws:
            msg = f"Torrent not found: {torrent_id}"
            raise TorrentNotFoundError(msg, {"id": torrent_id})
        return normalize_detail(
            raws[0],
            self.accessor,
            self.folder_keys,
            speed_bytes=speed_bytes,
            sequence=sequence,
        )

    # Lifecycle

    async def add_torrent(self, params: AddTorrentParams) -> None:
        """Add each URL and each metainfo body with one ``torrent-add``."""
        base: dict[str, Any] = {}
        if params.paused is not None:
            base["paused"] = params.paused

        save_path = params.save_path
        if not save_path and params.category:
            await self._ensure_default_dir()
            save_path = self.folder_keys.resolve_save_path(params.category)
            if save_path is None:
                logger.warning(
                    "Default download directory unknown; adding without category %r",
                    params.category,
                )
        if save_path:
            base[self.accessor.arg("download_dir")] = save_path
        if params.skip_checking:
            logger.debug("Transmission does not support skipping the hash check on add")

        labels = normalize_tags(params.tags)
        for url in params.urls:
            await self._add_one({**base, "filename": url}, labels)
        for body in params.files:
            await self._add_one({**base, "metainfo": encode_metainfo(body)}, labels)

    async def _add_one(self, params: dict[str, Any], labels: list[str]) -> None:
        async def attempt(include_labels: bool) -> Any:
            request = dict(params)
            if include_labels:
                request["labels"] = labels
            return await self._call("torrent-add", request)

        if labels:
            result = await self.capabilities.negotiate(LABELS, attempt)
        else:
            result = await attempt(False)

        if self.accessor.arg_get(result, "torrent_duplicate"):
            logger.info("Torrent already present: %s", params.get("filename", "<metainfo>"))

    async def pause(self, ids: Sequence[str]) -> None:
        await self._call("torrent-stop", self._ids(ids))

    async def resume(self, ids: Sequence[str]) -> None:
        await self._call("torrent-start", self._ids(ids))

    async def delete(self, ids: Sequence[str], delete_files: bool) -> None:
        await self._call(
            "torrent-remove",
            {**self._ids(ids), self.accessor.arg("delete_local_data"): bool(delete_files)},
        )

    async def recheck(self, ids: Sequence[str]) -> None:
        await self._call("torrent-verify", self._ids(ids))

    async def reannounce(self, ids: Sequence[str]) -> None:
        await self._call("torrent-reannounce", self._ids(ids))

    async def force_start(self, ids: Sequence[str], value: bool) -> None:
        """Start bypassing the queue, or back to a normal queued start."""
        await self._call("torrent-start-now" if value else "torrent-start", self._ids(ids))

    # Session

    async def login(self, username: str, password: str) -> None:
        """Store Basic credentials and verify them with ``session-get``."""
        self.transport.set_credentials(username, password)
        try:
            await self._session_get()
        except AuthenticationError:
            self.transport.clear_credentials()
            raise

    async def logout(self) -> None:
        self.transport.clear_credentials()

    async def check_session(self) -> bool:
        try:
            await self._session_get()
        except (UnitorrentError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.debug("Session check failed: %s", e)
            return False
        return True

    async def close(self) -> None:
        await self.tag_serializer.aclose()
        await self.settings.aclose()
        await self.transport.close()

    # Limits, placement, files

    async def _set_limit(
        self, ids: Sequence[str], limit: int, limited_field: str, value_field: str
    ) -> None:
        limited = limit > 0
        value = max(1, to_backend(limit, await self._speed_bytes())) if limited else 0
        await self._call(
            "torrent-set",
            {
                **self._ids(ids),
                self.accessor.name(limited_field): limited,
                self.accessor.name(value_field): value,
            },
        )

    async def set_download_limit(self, ids: Sequence[str], limit: int) -> None:
        """Per-torrent download limit in bytes/s; 0 or less removes it."""
        await self._set_limit(ids, limit, "download_limited", "download_limit")

    async def set_upload_limit(self, ids: Sequence[str], limit: int) -> None:
        """Per-torrent upload limit in bytes/s; 0 or less removes it."""
        await self._set_limit(ids, limit, "upload_limited", "upload_limit")

    async def set_location(self, ids: Sequence[str], location: str, move: bool = True) -> None:
        await self._call(
            "torrent-set-location",
            {**self._ids(ids), "location": location, "move": move},
        )

    async def set_file_priority(
        self, torrent_id: str, file_ids: Sequence[int], priority: FilePriority
    ) -> None:
        priority = FilePriority(priority)
        indices = [int(i) for i in file_ids]
        params: dict[str, Any] = {"ids": [torrent_id]}
        if priority is FilePriority.DO_NOT_DOWNLOAD:
            params[self.accessor.arg("files_unwanted")] = indices
        else:
            params[self.accessor.arg("files_wanted")] = indices
            params[self.accessor.arg(f"priority_{priority.value}")] = indices
        await self._call("torrent-set", params)

    async def set_bandwidth_priority(
        self, ids: Sequence[str], priority: BandwidthPriority
    ) -> None:
        await self._call(
            "torrent-set",
            {
                **self._ids(ids),
                self.accessor.name("bandwidth_priority"): _BANDWIDTH_TO_WIRE[
                    BandwidthPriority(priority)
                ],
            },
        )

    # Trackers

    async def _tracker_ids(self, torrent_id: str) -> dict[str, int]:
        result = await self._call(
            "torrent-get",
            {"ids": [torrent_id], "fields": self.accessor.names(["hash_string", "trackers"])},
        )
        torrents = self.accessor.get(result, "torrents") or []
        if not torrents:
            msg = f"Torrent not found: {torrent_id}"
            raise TorrentNotFoundError(msg, {"id": torrent_id})
        return {
            str(self.accessor.get(t, "announce")): int(self.accessor.get(t, "id"))
            for t in self.accessor.get(torrents[0], "trackers") or []
            if self.accessor.get(t, "id") is not None
        }

    async def add_trackers(self, torrent_id: str, urls: Sequence[str]) -> None:
        clean = [u.strip() for u in urls if u and u.strip()]
        if not clean:
            return
        await self._call(
            "torrent-set",
            {"ids": [torrent_id], self.accessor.name("tracker_add"): clean},
        )

    async def remove_trackers(self, torrent_id: str, urls: Sequence[str]) -> None:
        known = await self._tracker_ids(torrent_id)
        tracker_ids = [known[u] for u in urls if u in known]
        if not tracker_ids:
            logger.debug("No matching trackers to remove on %s", torrent_id)
            return
        await self._call(
            "torrent-set",
            {"ids": [torrent_id], self.accessor.name("tracker_remove"): tracker_ids},
        )

    async def edit_tracker(self, torrent_id: str, old_url: str, new_url: str) -> None:
        known = await self._tracker_ids(torrent_id)
        if old_url not in known:
            msg = f"Tracker not found on torrent: {old_url}"
            raise AdapterError(msg, {"id": torrent_id})
        await self._call(
            "torrent-set",
            {
                "ids": [torrent_id],
                self.accessor.name("tracker_replace"): [known[old_url], new_url],
            },
        )

    # Renames

    async def _rename_path(self, torrent_id: str, path: str, name: str) -> None:
        await self._call(
            "torrent-rename-path",
            {"ids": [torrent_id], "path": path, "name": name},
        )

    async def rename_torrent(self, torrent_id: str, new_name: str) -> None:
        """Rename the torrent's top-level file or folder."""
        result = await self._call(
            "torrent-get",
            {"ids": [torrent_id], "fields": self.accessor.names(["hash_string", "name"])},
        )
        torrents = self.accessor.get(result, "torrents") or []
        if not torrents:
            msg = f"Torrent not found: {torrent_id}"
            raise TorrentNotFoundError(msg, {"id": torrent_id})
        await self._rename_path(torrent_id, str(self.accessor.get(torrents[0], "name")), new_name)

    async def rename_file(self, torrent_id: str, old_path: str, new_path: str) -> None:
        """Rename the last component of *old_path*; moving is not possible."""
        old_dir, _old_name = posixpath.split(old_path.strip("/"))
        new_dir, new_name = posixpath.split(new_path.strip("/"))
        if old_dir != new_dir or not new_name:
            msg = "Transmission can only rename the last path component"
            raise UnsupportedOperationError(msg, {"old": old_path, "new": new_path})
        await self._rename_path(torrent_id, old_path.strip("/"), new_name)

    async def rename_folder(self, torrent_id: str, old_path: str, new_path: str) -> None:
        await self.rename_file(torrent_id, old_path, new_path)

    # Categories (derived; never set directly)

    async def get_categories(self) -> dict[str, Category]:
        return (await self.fetch_list()).categories

    # Tags

    async def get_tags(self) -> list[str]:
        """Union of all labels; empty when the server has no label support."""

        async def attempt(include_labels: bool) -> list[str]:
            if not include_labels:
                return []
            result = await self._call(
                "torrent-get",
                {"fields": self.accessor.names(["hash_string", "labels"])},
            )
            seen: dict[str, None] = {}
            for torrent in self.accessor.get(result, "torrents") or []:
                for tag in normalize_tags(self.accessor.get(torrent, "labels")):
                    seen.setdefault(tag, None)
            return sorted(seen)

        return await self.capabilities.negotiate(LABELS, attempt)

    async def set_tags(
        self, ids: Sequence[str], tags: Sequence[str], mode: TagMode = TagMode.SET
    ) -> None:
        """Queue a label mutation; runs after every earlier one finished."""
        mode = TagMode(mode)
        targets = list(ids)
        wanted = normalize_tags(list(tags))

        async def job() -> None:
            await self.capabilities.require(
                LABELS, lambda: self._apply_tags(targets, wanted, mode)
            )

        await self.tag_serializer.submit(job)

    async def _apply_tags(self, ids: list[str], tags: list[str], mode: TagMode) -> None:
        if mode is TagMode.SET:
            await self._call("torrent-set", {**self._ids(ids), "labels": tags})
            return

        result = await self._call(
            "torrent-get",
            {**self._ids(ids), "fields": self.accessor.names(["hash_string", "labels"])},
        )
        current: dict[str, list[str]] = {}
        for torrent in self.accessor.get(result, "torrents") or []:
            torrent_id = self.accessor.get(torrent, "hash_string")
            if torrent_id:
                current[str(torrent_id)] = normalize_tags(self.accessor.get(torrent, "labels"))

        for labels, chunk in plan_label_updates(current, tags, mode, self.tag_chunk_size):
            await self._call("torrent-set", {"ids": chunk, "labels": labels})

    # Settings

    async def _load_transfer_settings(self) -> TransferSettings:
        args = await self._session_get()
        unit = self.speed_unit.value or FALLBACK_SPEED_BYTES

        def get(field: str, default: Any = None) -> Any:
            return self.accessor.session_get(args, field, default)

        dl_enabled = bool(get("speed_limit_down_enabled", False))
        up_enabled = bool(get("speed_limit_up_enabled", False))
        return TransferSettings(
            download_limit=from_backend(get("speed_limit_down"), unit) if dl_enabled else 0,
            upload_limit=from_backend(get("speed_limit_up"), unit) if up_enabled else 0,
            alt_enabled=bool(get("alt_speed_enabled", False)),
            alt_download_limit=from_backend(get("alt_speed_down"), unit),
            alt_upload_limit=from_backend(get("alt_speed_up"), unit),
            speed_bytes=unit,
        )

    async def get_transfer_settings(self) -> TransferSettings:
        return await self.settings.get()

    async def set_transfer_settings(self, patch: TransferSettingsPatch) -> None:
        """Apply a partial settings update; unset fields are left alone."""
        unit = await self._speed_bytes()
        key = self.accessor.session
        args: dict[str, Any] = {}

        if patch.download_limit is not None:
            value = to_backend(patch.download_limit, unit)
            args[key("speed_limit_down_enabled")] = value > 0
            args[key("speed_limit_down")] = value
        if patch.upload_limit is not None:
            value = to_backend(patch.upload_limit, unit)
            args[key("speed_limit_up_enabled")] = value > 0
            args[key("speed_limit_up")] = value
        if patch.alt_enabled is not None:
            args[key("alt_speed_enabled")] = patch.alt_enabled
        if patch.alt_download_limit is not None:
            args[key("alt_speed_down")] = to_backend(patch.alt_download_limit, unit)
        if patch.alt_upload_limit is not None:
            args[key("alt_speed_up")] = to_backend(patch.alt_upload_limit, unit)

        if not args:
            return
        await self._call("session-set", args)
        self.settings.clear()

    async def get_preferences(self) -> BackendPreferences:
        args = await self._session_get()
        values: dict[str, Any] = {
            field: self.accessor.session_get(args, key)
            for field, key in _PREFERENCE_KEYS.items()
        }
        values["encryption"] = map_encryption(self.accessor.session_get(args, "encryption"))
        return BackendPreferences(**values)

    async def set_preferences(self, patch: BackendPreferences) -> None:
        args: dict[str, Any] = {}
        for field, value in patch.model_dump(exclude_none=True).items():
            if field == "encryption":
                mode = EncryptionMode(value)
                args[self.accessor.session("encryption")] = _ENCRYPTION_TO_WIRE.get(
                    mode, "tolerated"
                )
            elif field in _PREFERENCE_KEYS:
                args[self.accessor.session(_PREFERENCE_KEYS[field])] = value
        if not args:
            return
        await self._call("session-set", args)
        if patch.save_path is not None:
            self.folder_keys.set_default_dir(patch.save_path)

    def get_capabilities(self) -> BackendCapabilities:
        return self._static_capabilities

    async def get_free_space(self, path: str | None = None) -> int | None:
        """Free bytes at *path* (default: the default download directory)."""
        target = path or await self._ensure_default_dir()
        if not target:
            return None
        result = await self._call("free-space", {"path": target})
        size = self.accessor.arg_get(result, "size_bytes")
        return None if size is None else int(size)
