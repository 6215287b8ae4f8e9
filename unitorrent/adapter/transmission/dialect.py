"""Transmission RPC dialects and their naming tables.

Transmission speaks two wire formats on the same endpoint:

* the modern JSON-RPC 2.0 dialect (``rpc-version-semver`` 6 and later),
  with snake_case method and field names, and
* the legacy dialect, with kebab-case methods, camelCase torrent fields and
  kebab-case session keys.

The dialect is chosen once per adapter by :func:`select_protocol`. Code
never spells wire names directly; it asks a :class:`DialectAccessor` for
them, and reads records through the accessor so either spelling in a
response is accepted.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Final, Iterable, Mapping

from unitorrent.utils.version import parse_semver

_MISSING = object()


class Dialect(str, Enum):
    """Wire format variant."""

    JSONRPC2 = "json-rpc2"
    LEGACY = "legacy"


def _pairs(table: dict[str, tuple[str, str]]) -> Mapping[str, tuple[str, str]]:
    return MappingProxyType(table)


# Logical operation -> (modern, legacy) method name
METHODS: Final = _pairs(
    {
        op: (op.replace("-", "_"), op)
        for op in (
            "session-get",
            "session-set",
            "torrent-get",
            "torrent-set",
            "torrent-set-location",
            "torrent-add",
            "torrent-remove",
            "torrent-start",
            "torrent-start-now",
            "torrent-stop",
            "torrent-verify",
            "torrent-reannounce",
            "torrent-rename-path",
            "free-space",
        )
    }
)

# Torrent record fields and torrent-set arguments (legacy camelCase)
TORRENT_FIELDS: Final = _pairs(
    {
        "id": ("id", "id"),
        "hash_string": ("hash_string", "hashString"),
        "name": ("name", "name"),
        "status": ("status", "status"),
        "error": ("error", "error"),
        "error_string": ("error_string", "errorString"),
        "percent_done": ("percent_done", "percentDone"),
        "total_size": ("total_size", "totalSize"),
        "rate_download": ("rate_download", "rateDownload"),
        "rate_upload": ("rate_upload", "rateUpload"),
        "eta": ("eta", "eta"),
        "upload_ratio": ("upload_ratio", "uploadRatio"),
        "added_date": ("added_date", "addedDate"),
        "done_date": ("done_date", "doneDate"),
        "download_dir": ("download_dir", "downloadDir"),
        "labels": ("labels", "labels"),
        "downloaded_ever": ("downloaded_ever", "downloadedEver"),
        "uploaded_ever": ("uploaded_ever", "uploadedEver"),
        "download_limit": ("download_limit", "downloadLimit"),
        "download_limited": ("download_limited", "downloadLimited"),
        "upload_limit": ("upload_limit", "uploadLimit"),
        "upload_limited": ("upload_limited", "uploadLimited"),
        "seconds_seeding": ("seconds_seeding", "secondsSeeding"),
        "peers_connected": ("peers_connected", "peersConnected"),
        "peers_getting_from_us": ("peers_getting_from_us", "peersGettingFromUs"),
        "peers_sending_to_us": ("peers_sending_to_us", "peersSendingToUs"),
        "bandwidth_priority": ("bandwidth_priority", "bandwidthPriority"),
        "files": ("files", "files"),
        "priorities": ("priorities", "priorities"),
        "wanted": ("wanted", "wanted"),
        "trackers": ("trackers", "trackers"),
        "tracker_stats": ("tracker_stats", "trackerStats"),
        "peers": ("peers", "peers"),
        "tracker_add": ("tracker_add", "trackerAdd"),
        "tracker_remove": ("tracker_remove", "trackerRemove"),
        "tracker_replace": ("tracker_replace", "trackerReplace"),
        # files[]
        "length": ("length", "length"),
        "bytes_completed": ("bytes_completed", "bytesCompleted"),
        # trackers[] / trackerStats[]
        "announce": ("announce", "announce"),
        "tier": ("tier", "tier"),
        "has_announced": ("has_announced", "hasAnnounced"),
        "last_announce_succeeded": ("last_announce_succeeded", "lastAnnounceSucceeded"),
        "last_announce_result": ("last_announce_result", "lastAnnounceResult"),
        "last_announce_peer_count": ("last_announce_peer_count", "lastAnnouncePeerCount"),
        "announce_state": ("announce_state", "announceState"),
        "seeder_count": ("seeder_count", "seederCount"),
        "leecher_count": ("leecher_count", "leecherCount"),
        # peers[]
        "address": ("address", "address"),
        "port": ("port", "port"),
        "client_name": ("client_name", "clientName"),
        "progress": ("progress", "progress"),
        "rate_to_client": ("rate_to_client", "rateToClient"),
        "rate_to_peer": ("rate_to_peer", "rateToPeer"),
    }
)

# session-get / session-set keys (legacy kebab-case, with camelCase exceptions)
SESSION_FIELDS: Final = _pairs(
    {
        "version": ("version", "version"),
        "rpc_version": ("rpc_version", "rpc-version"),
        "rpc_version_semver": ("rpc_version_semver", "rpc-version-semver"),
        "units": ("units", "units"),
        "speed_bytes": ("speed_bytes", "speed-bytes"),
        "download_dir": ("download_dir", "download-dir"),
        "speed_limit_down": ("speed_limit_down", "speed-limit-down"),
        "speed_limit_down_enabled": ("speed_limit_down_enabled", "speed-limit-down-enabled"),
        "speed_limit_up": ("speed_limit_up", "speed-limit-up"),
        "speed_limit_up_enabled": ("speed_limit_up_enabled", "speed-limit-up-enabled"),
        "alt_speed_enabled": ("alt_speed_enabled", "alt-speed-enabled"),
        "alt_speed_down": ("alt_speed_down", "alt-speed-down"),
        "alt_speed_up": ("alt_speed_up", "alt-speed-up"),
        "peer_limit_global": ("peer_limit_global", "peer-limit-global"),
        "peer_limit_per_torrent": ("peer_limit_per_torrent", "peer-limit-per-torrent"),
        "download_queue_enabled": ("download_queue_enabled", "download-queue-enabled"),
        "download_queue_size": ("download_queue_size", "download-queue-size"),
        "seed_queue_enabled": ("seed_queue_enabled", "seed-queue-enabled"),
        "seed_queue_size": ("seed_queue_size", "seed-queue-size"),
        "queue_stalled_enabled": ("queue_stalled_enabled", "queue-stalled-enabled"),
        "queue_stalled_minutes": ("queue_stalled_minutes", "queue-stalled-minutes"),
        "peer_port": ("peer_port", "peer-port"),
        "peer_port_random_on_start": ("peer_port_random_on_start", "peer-port-random-on-start"),
        "port_forwarding_enabled": ("port_forwarding_enabled", "port-forwarding-enabled"),
        "dht_enabled": ("dht_enabled", "dht-enabled"),
        "pex_enabled": ("pex_enabled", "pex-enabled"),
        "lpd_enabled": ("lpd_enabled", "lpd-enabled"),
        "encryption": ("encryption", "encryption"),
        "seed_ratio_limit": ("seed_ratio_limit", "seedRatioLimit"),
        "seed_ratio_limited": ("seed_ratio_limited", "seedRatioLimited"),
        "seed_idle_limit": ("idle_seeding_limit", "idle-seeding-limit"),
        "seed_idle_limited": ("idle_seeding_limit_enabled", "idle-seeding-limit-enabled"),
        "incomplete_dir_enabled": ("incomplete_dir_enabled", "incomplete-dir-enabled"),
        "incomplete_dir": ("incomplete_dir", "incomplete-dir"),
        "rename_partial_files": ("rename_partial_files", "rename-partial-files"),
    }
)

# Mutator arguments that keep kebab-case in the legacy dialect
ARGUMENT_FIELDS: Final = _pairs(
    {
        "download_dir": ("download_dir", "download-dir"),
        "delete_local_data": ("delete_local_data", "delete-local-data"),
        "files_wanted": ("files_wanted", "files-wanted"),
        "files_unwanted": ("files_unwanted", "files-unwanted"),
        "priority_high": ("priority_high", "priority-high"),
        "priority_normal": ("priority_normal", "priority-normal"),
        "priority_low": ("priority_low", "priority-low"),
        "size_bytes": ("size_bytes", "size-bytes"),
        "torrent_added": ("torrent_added", "torrent-added"),
        "torrent_duplicate": ("torrent_duplicate", "torrent-duplicate"),
    }
)


def resolve(record: Mapping[str, Any] | None, *keys: str, default: Any = None) -> Any:
    """Return the value of the first of *keys* present on *record*.

    Keys whose value is ``None`` count as absent.
    """
    if not record:
        return default
    for key in keys:
        value = record.get(key, _MISSING)
        if value is not _MISSING and value is not None:
            return value
    return default


class DialectAccessor:
    """Per-dialect naming strategy.

    ``name`` and ``names`` give wire spellings for requests; ``get`` reads a
    logical field from a response record, trying this dialect's spelling
    first and the other dialect's second.
    """

    def __init__(self, dialect: Dialect) -> None:
        self.dialect = dialect
        self._index = 0 if dialect is Dialect.JSONRPC2 else 1

    def __repr__(self) -> str:
        return f"DialectAccessor({self.dialect.value})"

    def method(self, operation: str) -> str:
        """Return the wire method name for a logical operation."""
        try:
            return METHODS[operation][self._index]
        except KeyError:
            msg = f"Unknown RPC operation: {operation}"
            raise ValueError(msg) from None

    def name(
        self, field: str, table: Mapping[str, tuple[str, str]] = TORRENT_FIELDS
    ) -> str:
        """Return the wire spelling of *field* from *table*."""
        pair = table.get(field)
        if pair is None:
            return field
        return pair[self._index]

    def names(
        self,
        fields: Iterable[str],
        table: Mapping[str, tuple[str, str]] = TORRENT_FIELDS,
    ) -> list[str]:
        """Return wire spellings for a ``fields`` request list."""
        return [self.name(f, table) for f in fields]

    def candidates(
        self, field: str, table: Mapping[str, tuple[str, str]] = TORRENT_FIELDS
    ) -> tuple[str, ...]:
        """Return lookup keys for *field*: preferred spelling first."""
        pair = table.get(field)
        if pair is None:
            return (field,)
        preferred = pair[self._index]
        alternate = pair[1 - self._index]
        if preferred == alternate:
            return (preferred,)
        return (preferred, alternate)

    def get(
        self,
        record: Mapping[str, Any] | None,
        field: str,
        default: Any = None,
        table: Mapping[str, tuple[str, str]] = TORRENT_FIELDS,
    ) -> Any:
        """Read logical *field* from *record* in either spelling."""
        return resolve(record, *self.candidates(field, table), default=default)

    def session(self, field: str) -> str:
        """Wire spelling of a session key."""
        return self.name(field, SESSION_FIELDS)

    def session_get(
        self, record: Mapping[str, Any] | None, field: str, default: Any = None
    ) -> Any:
        """Read a session key from a session-get payload."""
        return self.get(record, field, default, SESSION_FIELDS)

    def arg(self, field: str) -> str:
        """Wire spelling of a kebab-case mutator argument."""
        return self.name(field, ARGUMENT_FIELDS)

    def arg_get(
        self, record: Mapping[str, Any] | None, field: str, default: Any = None
    ) -> Any:
        """Read a kebab-case argument key from a response payload."""
        return self.get(record, field, default, ARGUMENT_FIELDS)


@dataclass(frozen=True)
class ProtocolConfig:
    """Immutable per-adapter protocol choice."""

    dialect: Dialect
    labels_supported: bool
    rpc_semver: str | None = None
    version: tuple[int, int, int] | None = None

    @property
    def accessor(self) -> DialectAccessor:
        return ACCESSORS[self.dialect]


ACCESSORS: Final = MappingProxyType(
    {dialect: DialectAccessor(dialect) for dialect in Dialect}
)


def select_protocol(rpc_semver: str | None) -> ProtocolConfig:
    """Choose the dialect and initial label support from the RPC version.

    An unparsable version selects the legacy dialect, which every server
    still accepts, and assumes labels are supported; the capability
    negotiator corrects that on first rejection.
    """
    parsed = parse_semver(rpc_semver)
    if parsed is None:
        return ProtocolConfig(
            dialect=Dialect.LEGACY,
            labels_supported=True,
            rpc_semver=rpc_semver,
        )
    major, minor, _patch = parsed
    return ProtocolConfig(
        dialect=Dialect.JSONRPC2 if major >= 6 else Dialect.LEGACY,
        labels_supported=(major, minor) >= (5, 2),
        rpc_semver=rpc_semver,
        version=parsed,
    )
