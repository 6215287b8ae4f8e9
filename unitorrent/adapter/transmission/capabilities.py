"""Runtime negotiation of optional request features.

Some request fields (``labels`` today) only exist on newer servers. The
adapter starts from the optimistic flags chosen by the dialect selector and
downgrades a feature the first time the live server rejects it. A downgrade
lasts for the adapter's lifetime; the feature is never probed again.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Awaitable, Callable, Mapping, TypeVar

from unitorrent.exceptions import RPCError, UnsupportedOperationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

LABELS = "labels"

# JSON-RPC 2.0 "Invalid params"
JSONRPC_INVALID_PARAMS = -32602

_INVALID_ARGUMENT = re.compile(r"invalid\s+argument", re.IGNORECASE)


def is_invalid_argument(error: BaseException) -> bool:
    """Return True if *error* looks like a rejected request argument.

    The structured JSON-RPC code is authoritative when present. Otherwise
    this falls back to matching the human-readable message, which is a
    best-effort heuristic: it cannot tell an unsupported argument from one
    that was malformed for some other reason.
    """
    if not isinstance(error, RPCError):
        return False
    if error.code == JSONRPC_INVALID_PARAMS:
        return True
    return bool(_INVALID_ARGUMENT.search(error.message))


class CapabilityNegotiator:
    """Owns the mutable per-adapter feature flags."""

    def __init__(self, initial: Mapping[str, bool] | None = None) -> None:
        self._flags: dict[str, bool] = dict(initial or {})

    def __repr__(self) -> str:
        return f"CapabilityNegotiator({self._flags!r})"

    def supports(self, feature: str) -> bool:
        """Return the current flag; unknown features are assumed supported."""
        return self._flags.get(feature, True)

    def disable(self, feature: str) -> None:
        if self._flags.get(feature, True):
            logger.info("Backend rejected optional feature %r, disabling it", feature)
        self._flags[feature] = False

    def snapshot(self) -> dict[str, bool]:
        return dict(self._flags)

    async def negotiate(
        self,
        feature: str,
        attempt: Callable[[bool], Awaitable[T]],
    ) -> T:
        """Run *attempt* with the optional field, degrading once on rejection.

        Args:
            feature: Feature flag name
            attempt: Coroutine factory; called with ``True`` to include the
                optional field and ``False`` to strip it

        Returns:
            Result of whichever attempt succeeded

        Raises:
            Exception: The original error when it is not a rejection, or
                when the stripped retry fails as well

        """
        if not self.supports(feature):
            return await attempt(False)

        try:
            return await attempt(True)
        except Exception as original:
            if not is_invalid_argument(original):
                raise
            self.disable(feature)
            try:
                result = await attempt(False)
            except Exception:
                # The rejection was about something else; undo the downgrade
                self._flags[feature] = True
                logger.debug("Retry without %r failed too, keeping feature", feature)
                raise original from None
            return result

    async def require(
        self,
        feature: str,
        action: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Run a write that cannot be expressed without *feature*.

        A disabled feature fails fast. A rejection disables the feature and
        is reported as :class:`UnsupportedOperationError`.
        """
        if not self.supports(feature):
            msg = f"Backend does not support {feature}"
            raise UnsupportedOperationError(msg)
        try:
            return await action()
        except Exception as e:
            if not is_invalid_argument(e):
                raise
            self.disable(feature)
            msg = f"Backend does not support {feature}"
            raise UnsupportedOperationError(msg) from e
