"""Transmission RPC adapter (legacy and JSON-RPC 2.0 dialects)."""

from __future__ import annotations

from unitorrent.adapter.transmission.adapter import (
    TRANSMISSION_CAPABILITIES,
    TransmissionAdapter,
    encode_metainfo,
)
from unitorrent.adapter.transmission.capabilities import CapabilityNegotiator
from unitorrent.adapter.transmission.dialect import (
    Dialect,
    DialectAccessor,
    ProtocolConfig,
    select_protocol,
)
from unitorrent.adapter.transmission.transport import RPCTransport

__all__ = [
    "TRANSMISSION_CAPABILITIES",
    "CapabilityNegotiator",
    "Dialect",
    "DialectAccessor",
    "ProtocolConfig",
    "RPCTransport",
    "TransmissionAdapter",
    "encode_metainfo",
    "select_protocol",
]
