"""Adapter construction from configuration.

Detection costs one or two HTTP round-trips, so the detected version is
cached in memory for an hour. A version the daemon did not reveal (for
example behind authentication) is never cached; the next call probes again.
"""

from __future__ import annotations

import logging
import time

import aiohttp

from unitorrent.adapter.base import BaseAdapter
from unitorrent.adapter.detect import detect_backend
from unitorrent.adapter.transmission import TransmissionAdapter
from unitorrent.exceptions import UnsupportedOperationError
from unitorrent.models import BackendConfig, BackendType, BackendVersion

logger = logging.getLogger(__name__)

VERSION_CACHE_TTL = 3600.0

_version_cache: tuple[BackendVersion, float] | None = None


def save_version_cache(version: BackendVersion) -> None:
    """Remember *version* for :data:`VERSION_CACHE_TTL` seconds."""
    global _version_cache
    _version_cache = (version, time.monotonic())


def load_version_cache() -> BackendVersion | None:
    """Return the cached version if it is known and still fresh."""
    if _version_cache is None:
        return None
    version, saved_at = _version_cache
    if version.is_unknown or time.monotonic() - saved_at >= VERSION_CACHE_TTL:
        return None
    return version


def clear_version_cache() -> None:
    global _version_cache
    _version_cache = None


async def resolve_version(
    config: BackendConfig,
    session: aiohttp.ClientSession | None = None,
) -> BackendVersion:
    """Cached version, or a fresh detection (cached when known).

    A forced ``backend_type`` bypasses the cache in both directions.
    """
    forced = None if config.backend_type == "auto" else BackendType(config.backend_type)
    if forced is None:
        cached = load_version_cache()
        if cached is not None:
            return cached

    version = await detect_backend(
        config.url,
        session=session,
        timeout=min(config.timeout, 3.0),
        forced=forced,
        username=config.username,
        password=config.password,
    )
    if forced is None and not version.is_unknown:
        save_version_cache(version)
    return version


async def create_adapter(
    config: BackendConfig,
    version: BackendVersion | None = None,
    session: aiohttp.ClientSession | None = None,
) -> BaseAdapter:
    """Create the adapter for the daemon described by *config*.

    Args:
        config: Backend connection settings
        version: Already detected version; skips detection
        session: Shared aiohttp session for detection and the adapter

    Raises:
        UnsupportedOperationError: The daemon family has no adapter here
        BackendDetectionError: Nothing answered and no family is forced

    """
    if version is None:
        version = await resolve_version(config, session=session)

    if version.type is BackendType.TRANS:
        return TransmissionAdapter.from_config(config, version=version, session=session)

    msg = f"No adapter available for backend type: {version.type.value}"
    raise UnsupportedOperationError(msg, {"backend": version.type.value})
