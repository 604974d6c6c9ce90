from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import Any, Protocol


class TransportError(RuntimeError):
    pass


class Outbound(Protocol):
    """What the selection engine needs from a chat channel.

    `send` returns an opaque handle for the sent message, or raises TransportError.
    """

    def latest_message_id(self) -> int | None: ...

    async def send(self, text: str, *, reply_to: Any | None = None) -> Any: ...

    def typing(self) -> AbstractAsyncContextManager: ...

    def handle_id(self, handle: Any) -> int | None: ...
