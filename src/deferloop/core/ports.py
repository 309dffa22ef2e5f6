# src/deferloop/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The run-loop depends on Protocols instead of concrete implementations.
This keeps error routing and the host timer swappable and makes testing easier.
"""

from collections.abc import Hashable
from typing import Any, Callable, Protocol, Sequence

HostCallback = Callable[[], Any]


class ErrorStrategy(Protocol):
    """
    Invocation boundary for scheduled work.

    invoke() calls the task; errors are either routed to a handler or propagate,
    depending on the strategy. debug_info is whatever was captured at scheduling time.
    """

    def invoke(
            self,
            target: Any,
            method: Callable[..., Any],
            args: Sequence[Any] | None,
            debug_info: Any = None,
    ) -> Any: ...

    def handle_error(self, error: BaseException, debug_info: Any = None) -> None: ...

    @property
    def has_handler(self) -> bool: ...


class TimerPlatform(Protocol):
    """
    Host timer primitive: fire-once callbacks at a future instant.

    Times are milliseconds. now() must use the same clock that set_timeout() waits on.
    """

    def set_timeout(self, callback: HostCallback, delay_ms: float = 0) -> Any: ...
    def clear_timeout(self, handle: Any) -> None: ...
    def now(self) -> float: ...


IdentityMap = Callable[[Any], Hashable | None]
# Owner -> stable identity tag (or None when the owner has none).
