"""unitorrent - a unified adapter layer for torrent daemon RPC APIs."""

from __future__ import annotations

__version__ = "0.1.0"
