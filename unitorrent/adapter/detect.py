"""Backend detection.

Probes a URL to find out which daemon family answers there, and which
version it runs. qBittorrent is recognised by its WebUI API, Transmission by
its RPC endpoint's answer to ``session-get``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any
from urllib.parse import urlsplit

import aiohttp

from unitorrent.adapter.transmission.dialect import resolve
from unitorrent.exceptions import BackendDetectionError
from unitorrent.models import BackendType, BackendVersion
from unitorrent.utils.version import parse_version

logger = logging.getLogger(__name__)

__all__ = ["detect_backend", "parse_version"]

QBIT_VERSION_PATH = "/api/v2/app/version"
QBIT_API_VERSION_PATH = "/api/v2/app/webapiVersion"
DEFAULT_PROBE_TIMEOUT = 3.0

_PROBE_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError)


def _origin(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}"


def _version(
    backend: BackendType,
    version: str,
    is_unknown: bool,
    **extra: Any,
) -> BackendVersion:
    major, minor, patch = parse_version(version)
    return BackendVersion(
        type=backend,
        version=version,
        major=major,
        minor=minor,
        patch=patch,
        is_unknown=is_unknown or version == "unknown",
        **extra,
    )


async def _probe_qbit(
    session: aiohttp.ClientSession, origin: str, timeout: aiohttp.ClientTimeout
) -> BackendVersion | None:
    try:
        async with session.get(origin + QBIT_VERSION_PATH, timeout=timeout) as resp:
            if resp.status not in (200, 403):
                return None
            version = (await resp.text()).strip() if resp.status == 200 else "unknown"
            authenticated = resp.status == 200
    except _PROBE_ERRORS as e:
        logger.debug("qBittorrent probe failed at %s: %s", origin, e)
        return None

    api_version = None
    if authenticated:
        try:
            async with session.get(origin + QBIT_API_VERSION_PATH, timeout=timeout) as resp:
                if resp.status == 200:
                    api_version = (await resp.text()).strip() or None
        except _PROBE_ERRORS as e:
            logger.debug("qBittorrent API version unavailable: %s", e)

    return _version(
        BackendType.QBIT,
        version or "unknown",
        not authenticated,
        api_version=api_version,
    )


async def _probe_transmission(
    session: aiohttp.ClientSession, url: str, timeout: aiohttp.ClientTimeout
) -> BackendVersion | None:
    try:
        async with session.post(url, json={"method": "session-get"}, timeout=timeout) as resp:
            if resp.status == 409:
                # Token handshake: it is Transmission, version unknown until authorized
                return _version(BackendType.TRANS, "unknown", True)
            if resp.status != 200:
                return None
            body = await resp.json(content_type=None)
    except _PROBE_ERRORS as e:
        logger.debug("Transmission probe failed at %s: %s", url, e)
        return None
    except ValueError as e:
        logger.debug("Transmission probe got a non-JSON answer at %s: %s", url, e)
        return None

    args: Any = {}
    if isinstance(body, dict):
        args = body.get("arguments")
        if not isinstance(args, dict):
            args = body.get("result")
    if not isinstance(args, dict):
        args = {}

    version = str(resolve(args, "version", default="unknown"))
    rpc_semver = resolve(
        args, "rpc-version-semver", "rpc_version_semver", "rpcVersionSemver"
    )
    return _version(
        BackendType.TRANS,
        version,
        False,
        rpc_semver=None if rpc_semver is None else str(rpc_semver),
    )


async def detect_backend(
    url: str,
    session: aiohttp.ClientSession | None = None,
    timeout: float = DEFAULT_PROBE_TIMEOUT,
    forced: BackendType | None = None,
    username: str | None = None,
    password: str | None = None,
) -> BackendVersion:
    """Detect the daemon family and version behind *url*.

    Args:
        url: Transmission RPC URL; qBittorrent is probed at its origin
        session: Shared aiohttp session (a private one is used otherwise)
        timeout: Per-probe timeout in seconds
        forced: Family to use regardless of what answers. The qBittorrent
            probe is skipped; a forced Transmission is still asked for
            its version.
        username: Optional HTTP Basic username for the probes
        password: Optional HTTP Basic password for the probes

    Returns:
        Detected version. ``is_unknown`` is set when the daemon answered
        without revealing its version.

    Raises:
        BackendDetectionError: Nothing answered and *forced* is not set

    """
    if forced is BackendType.QBIT:
        logger.info("Backend forced to %s at %s", forced.value, url)
        return _version(forced, "unknown", True)

    auth = None
    if username or password:
        auth = aiohttp.BasicAuth(username or "", password or "")
    probe_timeout = aiohttp.ClientTimeout(total=timeout)
    client = session or aiohttp.ClientSession(timeout=probe_timeout, auth=auth)
    try:
        detected = None
        if forced is None:
            detected = await _probe_qbit(client, _origin(url), probe_timeout)
        if detected is None:
            detected = await _probe_transmission(client, url, probe_timeout)
    finally:
        if session is None:
            await client.close()

    if detected is not None:
        logger.info(
            "Detected %s %s at %s", detected.type.value, detected.version, url
        )
        return detected
    if forced is not None:
        logger.warning("No backend answered at %s, assuming %s", url, forced.value)
        return _version(forced, "unknown", True)
    msg = f"No supported backend answered at {url}"
    raise BackendDetectionError(msg, {"url": url})
