"""Backend-agnostic data models for unitorrent.

Every adapter produces these records, and the UI consumes them. Speeds are
bytes per second, sizes are bytes, and timestamps are epoch seconds.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

ETA_INFINITE = -1


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class TorrentState(str, Enum):
    """Unified torrent states."""

    DOWNLOADING = "downloading"
    SEEDING = "seeding"
    PAUSED = "paused"
    CHECKING = "checking"
    QUEUED = "queued"
    ERROR = "error"


class FilePriority(str, Enum):
    """Per-file download priority."""

    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"
    DO_NOT_DOWNLOAD = "do_not_download"


class TrackerStatus(str, Enum):
    """Tracker announce status."""

    WORKING = "working"
    UPDATING = "updating"
    NOT_WORKING = "not_working"
    DISABLED = "disabled"


class BandwidthPriority(str, Enum):
    """Per-torrent bandwidth priority."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


class ConnectionStatus(str, Enum):
    """Daemon connectivity as seen by the peers it serves."""

    CONNECTED = "connected"
    FIREWALLED = "firewalled"
    DISCONNECTED = "disconnected"


class EncryptionMode(str, Enum):
    """Peer connection encryption policy."""

    TOLERATE = "tolerate"
    PREFER = "prefer"
    REQUIRE = "require"
    DISABLE = "disable"


class BackendType(str, Enum):
    """Known daemon families."""

    QBIT = "qbit"
    TRANS = "trans"
    UNKNOWN = "unknown"


class TagMode(str, Enum):
    """How a tag write combines with a torrent's existing labels."""

    SET = "set"
    ADD = "add"
    REMOVE = "remove"


def normalize_tags(values: Any) -> list[str]:
    """Trim, drop empties and de-duplicate tags, keeping first-seen order."""
    if values is None:
        return []
    if isinstance(values, str):
        values = values.split(",")
    seen: dict[str, None] = {}
    for value in values:
        if value is None:
            continue
        tag = str(value).strip()
        if tag:
            seen.setdefault(tag, None)
    return list(seen)


class UnifiedTorrent(BaseModel):
    """Backend-agnostic torrent summary."""

    id: str = Field(..., description="Daemon-stable torrent identifier")
    name: str = Field(default="", description="Display name")
    state: TorrentState = Field(..., description="Unified state")
    progress: float = Field(default=0.0, description="Completion in [0, 1]")
    size: int = Field(default=0, ge=0, description="Total size in bytes")
    dlspeed: int = Field(default=0, ge=0, description="Download rate (B/s)")
    upspeed: int = Field(default=0, ge=0, description="Upload rate (B/s)")
    eta: int = Field(
        default=ETA_INFINITE,
        description="Seconds remaining, -1 when unbounded",
    )
    ratio: float = Field(
        default=0.0, description="Upload ratio; -1 not available, -2 infinite"
    )
    added_time: int = Field(default=0, description="Added timestamp (epoch s)")
    save_path: str = Field(default="", description="Absolute save directory")
    category: str = Field(default="", description="Folder key, '' is the root")
    tags: list[str] = Field(default_factory=list, description="Unique labels")

    num_seeds: int | None = Field(None, description="Connected seeds")
    num_peers: int | None = Field(None, description="Connected leechers")
    total_seeds: int | None = Field(None, description="Seeds in the swarm")
    total_peers: int | None = Field(None, description="Leechers in the swarm")

    @field_validator("progress", mode="before")
    @classmethod
    def _clamp_progress(cls, v: Any) -> float:
        try:
            value = float(v)
        except (TypeError, ValueError):
            return 0.0
        if value != value:  # NaN
            return 0.0
        return min(1.0, max(0.0, value))

    @field_validator("eta", mode="before")
    @classmethod
    def _coerce_eta(cls, v: Any) -> int:
        if v is None:
            return ETA_INFINITE
        value = int(v)
        return ETA_INFINITE if value < 0 else value

    @field_validator("tags", mode="before")
    @classmethod
    def _clean_tags(cls, v: Any) -> list[str]:
        return normalize_tags(v)


class TorrentFile(BaseModel):
    """A file inside a torrent."""

    id: int = Field(..., description="Index within the torrent")
    name: str = Field(..., description="Path relative to the torrent root")
    size: int = Field(default=0, ge=0, description="Size in bytes")
    progress: float = Field(default=0.0, ge=0.0, le=1.0, description="Completion")
    priority: FilePriority = Field(default=FilePriority.NORMAL)


class Tracker(BaseModel):
    """Tracker attached to a torrent."""

    url: str = Field(..., description="Announce URL")
    tier: int = Field(default=0, description="Announce tier")
    status: TrackerStatus = Field(default=TrackerStatus.NOT_WORKING)
    msg: str = Field(default="", description="Last announce message")
    peers: int = Field(default=0, description="Peers from last announce")
    id: int | None = Field(None, description="Backend tracker id")


class Peer(BaseModel):
    """Connected peer."""

    ip: str = Field(..., description="Peer address")
    port: int = Field(default=0, description="Peer port")
    client: str = Field(default="", description="Client name")
    progress: float = Field(default=0.0, description="Peer completion")
    dl_speed: int = Field(default=0, description="Rate from peer (B/s)")
    up_speed: int = Field(default=0, description="Rate to peer (B/s)")
    downloaded: int = Field(default=0, description="Bytes from peer")
    uploaded: int = Field(default=0, description="Bytes to peer")


class UnifiedTorrentDetail(UnifiedTorrent):
    """Torrent detail: the summary plus files, trackers, peers and limits."""

    completed: int = Field(default=0, description="Bytes downloaded ever")
    uploaded: int = Field(default=0, description="Bytes uploaded ever")
    dl_limit: int = Field(default=-1, description="Download limit (B/s), -1 unlimited")
    up_limit: int = Field(default=-1, description="Upload limit (B/s), -1 unlimited")
    seeding_time: int = Field(default=0, description="Seconds spent seeding")
    completion_on: int = Field(default=0, description="Completion timestamp")
    connections: int = Field(default=0, description="Connected peer count")
    bandwidth_priority: BandwidthPriority = Field(default=BandwidthPriority.NORMAL)
    files: list[TorrentFile] = Field(default_factory=list)
    trackers: list[Tracker] = Field(default_factory=list)
    peers: list[Peer] = Field(default_factory=list)
    sequence: int = Field(default=0, description="Fetch sequence stamp")


class Category(BaseModel):
    """Category (or derived folder key) with its save path."""

    name: str = Field(..., description="Category name, '' for the root")
    save_path: str = Field(default="", description="Declared save path")


class ServerState(BaseModel):
    """Aggregate daemon state."""

    dl_info_speed: int = Field(default=0, description="Total download rate (B/s)")
    up_info_speed: int = Field(default=0, description="Total upload rate (B/s)")
    dl_rate_limit: int = Field(default=0, description="Global download limit, 0 unlimited")
    up_rate_limit: int = Field(default=0, description="Global upload limit, 0 unlimited")
    use_alt_speed: bool = Field(default=False, description="Alternate speed active")
    alt_dl_limit: int = Field(default=0, description="Alternate download limit")
    alt_up_limit: int = Field(default=0, description="Alternate upload limit")
    connection_status: ConnectionStatus = Field(default=ConnectionStatus.CONNECTED)
    peers: int = Field(default=0, description="Connected peers across torrents")
    free_space_on_disk: int | None = Field(None, description="Free bytes in default dir")
    backend_name: str = Field(default="", description="Daemon family")
    backend_version: str = Field(default="", description="Daemon version")


class TransferSettings(BaseModel):
    """Global and alternate speed limits in bytes/s (0 means unlimited)."""

    download_limit: int = Field(default=0, ge=0)
    upload_limit: int = Field(default=0, ge=0)
    alt_enabled: bool = Field(default=False)
    alt_download_limit: int = Field(default=0, ge=0)
    alt_upload_limit: int = Field(default=0, ge=0)
    speed_bytes: int = Field(default=1000, description="Backend kilo-unit size")
    partial: bool = Field(default=False, description="Some values are fallbacks")

    @field_validator("speed_bytes")
    @classmethod
    def _check_unit(cls, v: int) -> int:
        if v not in (1000, 1024):
            msg = f"speed_bytes must be 1000 or 1024, got {v}"
            raise ValueError(msg)
        return v


class TransferSettingsPatch(BaseModel):
    """Partial update of :class:`TransferSettings`."""

    download_limit: int | None = None
    upload_limit: int | None = None
    alt_enabled: bool | None = None
    alt_download_limit: int | None = None
    alt_upload_limit: int | None = None


class BackendCapabilities(BaseModel):
    """Static feature flags of one backend family."""

    model_config = ConfigDict(frozen=True)

    has_separate_seed_queue: bool = False
    has_stalled_queue: bool = False
    has_lsd: bool = False
    has_encryption: bool = False
    encryption_modes: tuple[EncryptionMode, ...] = ()
    has_seeding_ratio_limit: bool = False
    has_seeding_time_limit: bool = False
    seeding_time_limit_mode: str = Field(default="duration", pattern="^(duration|idle)$")
    has_default_save_path: bool = False
    has_incomplete_dir: bool = False
    has_create_subfolder: bool = False
    has_incomplete_files_suffix: bool = False
    has_proxy: bool = False
    has_scheduler: bool = False
    has_ip_filter: bool = False
    has_scripts: bool = False
    has_blocklist: bool = False
    has_trash_torrent_files: bool = False
    has_native_categories: bool = False
    has_labels: bool = False


class BackendPreferences(BaseModel):
    """Normalized daemon preferences; unset fields are unknown or unchanged."""

    max_connections: int | None = None
    max_connections_per_torrent: int | None = None
    queue_download_enabled: bool | None = None
    queue_download_max: int | None = None
    queue_seed_enabled: bool | None = None
    queue_seed_max: int | None = None
    queue_stalled_enabled: bool | None = None
    queue_stalled_minutes: int | None = None
    listen_port: int | None = None
    random_port: bool | None = None
    upnp_enabled: bool | None = None
    dht_enabled: bool | None = None
    pex_enabled: bool | None = None
    lsd_enabled: bool | None = None
    encryption: EncryptionMode | None = None
    share_ratio_limit: float | None = None
    share_ratio_limited: bool | None = None
    seeding_time_limit: int | None = None
    seeding_time_limited: bool | None = None
    save_path: str | None = None
    incomplete_dir_enabled: bool | None = None
    incomplete_dir: str | None = None
    incomplete_files_suffix: bool | None = None


class AddTorrentParams(BaseModel):
    """Parameters for adding torrents by URL/magnet or by metainfo upload."""

    urls: list[str] = Field(default_factory=list, description="Magnets or URLs")
    files: list[bytes] = Field(default_factory=list, description="Raw .torrent bodies")
    save_path: str | None = Field(None, description="Target directory")
    category: str | None = Field(None, description="Category (folder key)")
    tags: list[str] = Field(default_factory=list, description="Initial labels")
    paused: bool | None = Field(None, description="Add in paused state")
    skip_checking: bool = Field(default=False, description="Skip hash check")

    @field_validator("urls", mode="before")
    @classmethod
    def _split_urls(cls, v: Any) -> list[str]:
        if v is None:
            return []
        if isinstance(v, str):
            v = v.splitlines()
        return [u.strip() for u in v if u and u.strip()]

    @field_validator("tags", mode="before")
    @classmethod
    def _clean_tags(cls, v: Any) -> list[str]:
        return normalize_tags(v)


class FetchListResult(BaseModel):
    """Full snapshot returned by a list fetch."""

    torrents: dict[str, UnifiedTorrent] = Field(default_factory=dict)
    categories: dict[str, Category] = Field(default_factory=dict)
    tags: list[str] = Field(default_factory=list)
    server_state: ServerState | None = None
    sequence: int = Field(default=0, description="Fetch sequence stamp")


class BackendVersion(BaseModel):
    """Detected daemon family and version."""

    type: BackendType = BackendType.UNKNOWN
    version: str = "unknown"
    major: int = 0
    minor: int = 0
    patch: int = 0
    api_version: str | None = None
    rpc_semver: str | None = None
    is_unknown: bool = False


class BackendConfig(BaseModel):
    """Connection settings for one daemon."""

    url: str = Field(
        default="http://127.0.0.1:9091/transmission/rpc",
        description="RPC endpoint URL",
    )
    username: str | None = Field(None, description="HTTP Basic username")
    password: str | None = Field(None, description="HTTP Basic password")
    timeout: float = Field(default=10.0, gt=0, le=300, description="Request timeout (s)")
    rpc_semver: str | None = Field(
        None, description="Override the server-reported RPC version"
    )
    settings_ttl: float = Field(
        default=5.0, gt=0, le=3600, description="Transfer settings cache TTL (s)"
    )
    tag_chunk_size: int = Field(
        default=100, ge=1, le=10000, description="Max ids per label write"
    )
    backend_type: str = Field(
        default="auto",
        pattern="^(auto|trans|qbit)$",
        description="Force a backend family instead of probing",
    )


class ObservabilityConfig(BaseModel):
    """Observability configuration."""

    log_level: LogLevel = Field(default=LogLevel.INFO, description="Log level")
    log_file: str | None = Field(None, description="Log file path")
    structured_logging: bool = Field(default=False, description="Use structured logging")
    log_correlation_id: bool = Field(
        default=True,
        description="Include correlation IDs",
    )


class Config(BaseModel):
    """Top-level configuration."""

    backend: BackendConfig = Field(default_factory=BackendConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)
