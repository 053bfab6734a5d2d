"""Cooperative cancellation shared by the registry, merger and generator."""

from __future__ import annotations

import threading

from fest_gates.errors import CancelledError


class CancelToken:
    """Cancellation signal checked by entry points before substantial work."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def check_cancelled(token: CancelToken | None, op: str) -> None:
    """Raise ``CancelledError`` when the token has been cancelled."""

    if token is not None and token.cancelled:
        raise CancelledError("operation cancelled", op=op)
