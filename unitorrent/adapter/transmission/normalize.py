"""Normalization of raw Transmission records into the unified model.

Every function here is pure: the same raw record always yields an equal
model. Field access goes through a :class:`DialectAccessor` so records in
either naming convention are accepted.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Sequence

from unitorrent.adapter.transmission.dialect import DialectAccessor, resolve
from unitorrent.models import (
    BandwidthPriority,
    FilePriority,
    Peer,
    TorrentFile,
    TorrentState,
    Tracker,
    TrackerStatus,
    UnifiedTorrent,
    UnifiedTorrentDetail,
    normalize_tags,
)
from unitorrent.utils.folder_key import FolderKeyMapper, split_segments

__all__ = [
    "LIST_FIELDS",
    "DETAIL_FIELDS",
    "RATIO_INFINITE",
    "RATIO_NOT_AVAILABLE",
    "STATUS_MAP",
    "aggregate_swarm",
    "map_file",
    "map_peer",
    "map_state",
    "map_tracker",
    "normalize_detail",
    "normalize_torrent",
    "resolve",
]

# tr_torrent_activity
STATUS_MAP: dict[int, TorrentState] = {
    0: TorrentState.PAUSED,  # stopped
    1: TorrentState.QUEUED,  # check wait
    2: TorrentState.CHECKING,
    3: TorrentState.QUEUED,  # download wait
    4: TorrentState.DOWNLOADING,
    5: TorrentState.QUEUED,  # seed wait
    6: TorrentState.SEEDING,
}

# tr_ratio sentinels, passed through unchanged
RATIO_NOT_AVAILABLE = -1.0
RATIO_INFINITE = -2.0

# tr_tracker_state
_ANNOUNCE_INACTIVE = 0
_ANNOUNCE_QUEUED = 2
_ANNOUNCE_ACTIVE = 3

_BANDWIDTH_PRIORITY = {
    -1: BandwidthPriority.LOW,
    0: BandwidthPriority.NORMAL,
    1: BandwidthPriority.HIGH,
}

LIST_FIELDS: tuple[str, ...] = (
    "hash_string",
    "id",
    "name",
    "status",
    "error",
    "error_string",
    "percent_done",
    "total_size",
    "rate_download",
    "rate_upload",
    "eta",
    "upload_ratio",
    "added_date",
    "download_dir",
    "peers_getting_from_us",
    "peers_sending_to_us",
    "peers_connected",
    "tracker_stats",
)

DETAIL_FIELDS: tuple[str, ...] = (
    *LIST_FIELDS,
    "downloaded_ever",
    "uploaded_ever",
    "download_limit",
    "download_limited",
    "upload_limit",
    "upload_limited",
    "seconds_seeding",
    "done_date",
    "bandwidth_priority",
    "files",
    "priorities",
    "wanted",
    "trackers",
    "peers",
)


def _int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _ratio(value: Any) -> float:
    """Upload ratio; other negative or missing values become not-available."""
    ratio = _float(value, RATIO_NOT_AVAILABLE)
    if ratio in (RATIO_NOT_AVAILABLE, RATIO_INFINITE) or ratio >= 0:
        return ratio
    return RATIO_NOT_AVAILABLE


def map_state(status: Any, error: Any) -> TorrentState:
    """Map a status code; a non-zero error code always wins."""
    if _int(error) != 0:
        return TorrentState.ERROR
    return STATUS_MAP.get(_int(status, -1), TorrentState.ERROR)


def aggregate_swarm(
    stats: Iterable[Mapping[str, Any]] | None, accessor: DialectAccessor
) -> tuple[int | None, int | None]:
    """Estimate swarm size as the maximum seeder/leecher count over trackers.

    Each tracker reports the same swarm, so counts are not summed. Negative
    counts mean "unknown" and are ignored. A side no tracker reported on
    is None.
    """
    seeds: int | None = None
    leechers: int | None = None
    for stat in stats or ():
        s = _int(accessor.get(stat, "seeder_count"), -1)
        leech = _int(accessor.get(stat, "leecher_count"), -1)
        if s >= 0:
            seeds = s if seeds is None else max(seeds, s)
        if leech >= 0:
            leechers = leech if leechers is None else max(leechers, leech)
    return seeds, leechers


def map_tracker(
    tracker: Mapping[str, Any],
    stat: Mapping[str, Any] | None,
    accessor: DialectAccessor,
) -> Tracker:
    """Build a :class:`Tracker` from a ``trackers`` entry and its stats."""
    status = TrackerStatus.NOT_WORKING
    if stat:
        announce_state = _int(accessor.get(stat, "announce_state"))
        has_announced = bool(accessor.get(stat, "has_announced", False))
        succeeded = bool(accessor.get(stat, "last_announce_succeeded", False))
        if announce_state in (_ANNOUNCE_QUEUED, _ANNOUNCE_ACTIVE):
            status = TrackerStatus.UPDATING
        elif has_announced and succeeded:
            status = TrackerStatus.WORKING
        elif announce_state == _ANNOUNCE_INACTIVE and not has_announced:
            status = TrackerStatus.DISABLED

    tracker_id = accessor.get(tracker, "id")
    if tracker_id is None:
        tracker_id = accessor.get(stat, "id")
    return Tracker(
        url=str(accessor.get(tracker, "announce") or accessor.get(stat, "announce", "")),
        tier=_int(accessor.get(tracker, "tier", accessor.get(stat, "tier"))),
        status=status,
        msg=str(accessor.get(stat, "last_announce_result", "") or ""),
        peers=max(0, _int(accessor.get(stat, "last_announce_peer_count"))),
        id=None if tracker_id is None else _int(tracker_id),
    )


def map_peer(peer: Mapping[str, Any], accessor: DialectAccessor) -> Peer:
    return Peer(
        ip=str(accessor.get(peer, "address", "")),
        port=_int(accessor.get(peer, "port")),
        client=str(accessor.get(peer, "client_name", "") or ""),
        progress=_float(accessor.get(peer, "progress")),
        dl_speed=_int(accessor.get(peer, "rate_to_client")),
        up_speed=_int(accessor.get(peer, "rate_to_peer")),
    )


def map_file(
    index: int,
    entry: Mapping[str, Any],
    priorities: Sequence[Any] | None,
    wanted: Sequence[Any] | None,
    accessor: DialectAccessor,
) -> TorrentFile:
    """Build a :class:`TorrentFile`; unwanted files become do_not_download."""
    length = max(0, _int(accessor.get(entry, "length")))
    done = max(0, _int(accessor.get(entry, "bytes_completed")))
    is_wanted = True
    if wanted is not None and index < len(wanted):
        is_wanted = bool(wanted[index])
    level = _int(priorities[index]) if priorities and index < len(priorities) else 0

    if not is_wanted:
        priority = FilePriority.DO_NOT_DOWNLOAD
    elif level > 0:
        priority = FilePriority.HIGH
    elif level < 0:
        priority = FilePriority.LOW
    else:
        priority = FilePriority.NORMAL

    return TorrentFile(
        id=index,
        name=str(accessor.get(entry, "name", "")),
        size=length,
        progress=min(1.0, done / length) if length > 0 else 0.0,
        priority=priority,
    )


def _summary_fields(
    raw: Mapping[str, Any],
    accessor: DialectAccessor,
    folder_keys: FolderKeyMapper | None,
) -> dict[str, Any]:
    save_path = str(accessor.get(raw, "download_dir", "") or "")
    if folder_keys is not None:
        category = folder_keys.folder_key(save_path)
    else:
        category = "/".join(split_segments(save_path))
    total_seeds, total_peers = aggregate_swarm(accessor.get(raw, "tracker_stats"), accessor)

    sending = accessor.get(raw, "peers_sending_to_us")
    getting = accessor.get(raw, "peers_getting_from_us")
    return {
        "id": str(accessor.get(raw, "hash_string", "")),
        "name": str(accessor.get(raw, "name", "") or ""),
        "state": map_state(accessor.get(raw, "status"), accessor.get(raw, "error")),
        "progress": accessor.get(raw, "percent_done", 0.0),
        "size": max(0, _int(accessor.get(raw, "total_size"))),
        "dlspeed": max(0, _int(accessor.get(raw, "rate_download"))),
        "upspeed": max(0, _int(accessor.get(raw, "rate_upload"))),
        "eta": _int(accessor.get(raw, "eta"), -1),
        "ratio": _ratio(accessor.get(raw, "upload_ratio")),
        "added_time": _int(accessor.get(raw, "added_date")),
        "save_path": save_path,
        "category": category,
        "tags": normalize_tags(accessor.get(raw, "labels")),
        "num_seeds": None if sending is None else _int(sending),
        "num_peers": None if getting is None else _int(getting),
        "total_seeds": total_seeds,
        "total_peers": total_peers,
    }


def normalize_torrent(
    raw: Mapping[str, Any],
    accessor: DialectAccessor,
    folder_keys: FolderKeyMapper | None = None,
) -> UnifiedTorrent:
    """Normalize one ``torrent-get`` record into a :class:`UnifiedTorrent`."""
    return UnifiedTorrent(**_summary_fields(raw, accessor, folder_keys))


def normalize_detail(
    raw: Mapping[str, Any],
    accessor: DialectAccessor,
    folder_keys: FolderKeyMapper | None = None,
    speed_bytes: int = 1000,
    sequence: int = 0,
) -> UnifiedTorrentDetail:
    """Normalize a detail record, including files, trackers and peers.

    Per-torrent limits are reported in backend kilo-units and are converted
    to bytes/s with *speed_bytes*; a disabled limit becomes -1.
    """
    fields = _summary_fields(raw, accessor, folder_keys)

    stats = list(accessor.get(raw, "tracker_stats") or [])
    trackers = []
    for index, entry in enumerate(accessor.get(raw, "trackers") or []):
        stat = _match_stat(entry, stats, index, accessor)
        trackers.append(map_tracker(entry, stat, accessor))

    peers = [map_peer(p, accessor) for p in accessor.get(raw, "peers") or []]
    if peers:
        fields["num_seeds"] = sum(1 for p in peers if p.progress >= 1.0)
        fields["num_peers"] = len(peers) - fields["num_seeds"]

    priorities = accessor.get(raw, "priorities")
    wanted = accessor.get(raw, "wanted")
    files = [
        map_file(i, entry, priorities, wanted, accessor)
        for i, entry in enumerate(accessor.get(raw, "files") or [])
    ]

    return UnifiedTorrentDetail(
        **fields,
        completed=max(0, _int(accessor.get(raw, "downloaded_ever"))),
        uploaded=max(0, _int(accessor.get(raw, "uploaded_ever"))),
        dl_limit=_limit(raw, "download_limited", "download_limit", accessor, speed_bytes),
        up_limit=_limit(raw, "upload_limited", "upload_limit", accessor, speed_bytes),
        seeding_time=_int(accessor.get(raw, "seconds_seeding")),
        completion_on=_int(accessor.get(raw, "done_date")),
        connections=_int(accessor.get(raw, "peers_connected"), len(peers)),
        bandwidth_priority=_BANDWIDTH_PRIORITY.get(
            _int(accessor.get(raw, "bandwidth_priority")), BandwidthPriority.NORMAL
        ),
        files=files,
        trackers=trackers,
        peers=peers,
        sequence=sequence,
    )


def _limit(
    raw: Mapping[str, Any],
    enabled_field: str,
    value_field: str,
    accessor: DialectAccessor,
    speed_bytes: int,
) -> int:
    if not accessor.get(raw, enabled_field, False):
        return -1
    return max(0, _int(accessor.get(raw, value_field))) * speed_bytes


def _match_stat(
    tracker: Mapping[str, Any],
    stats: list[Mapping[str, Any]],
    index: int,
    accessor: DialectAccessor,
) -> Mapping[str, Any] | None:
    """Find the stats entry for *tracker*: by id, then by URL, then by position."""
    tracker_id = accessor.get(tracker, "id")
    if tracker_id is not None:
        for stat in stats:
            if accessor.get(stat, "id") == tracker_id:
                return stat
    url = accessor.get(tracker, "announce")
    if url:
        for stat in stats:
            if accessor.get(stat, "announce") == url:
                return stat
    return stats[index] if index < len(stats) else None
