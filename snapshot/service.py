from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable

from config.defaults import SNAPSHOT_INTERVAL_SECONDS
from corpus.models import GlobalState
from snapshot.codec import deserialize
from snapshot.codec import serialize


class SnapshotService:
    def __init__(
        self,
        *,
        state: GlobalState,
        lock: asyncio.Lock,
        upload: Callable[[bytes], Awaitable[None]],
        interval_seconds: int = SNAPSHOT_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.state = state
        self.lock = lock
        self.upload = upload
        self.interval_seconds = max(0, int(interval_seconds))
        self.clock = clock

    def seconds_since_snapshot(self) -> float:
        return max(0.0, self.clock() - self.state.last_snapshot_time)

    def is_due(self) -> bool:
        return self.seconds_since_snapshot() >= self.interval_seconds

    async def snapshot_now(self) -> bool:
        async with self.lock:
            try:
                data = serialize(self.state)
            except Exception as e:
                print(f"[Snapshot] failed to back up: serialisation unsuccessful: {e}")
                return False

        try:
            await self.upload(data)
        except Exception as e:
            print(f"[Snapshot] failed to back up: upload unsuccessful: {e}")
            return False

        print(f"[Snapshot] backup successful ({len(data)} bytes)")
        return True

    async def maybe_auto_snapshot(self) -> bool:
        """Checked lazily on qualifying events; no background timer.

        The timestamp advances before the upload, whether or not it succeeds.
        """
        async with self.lock:
            if not self.is_due():
                return False
            self.state.last_snapshot_time = self.clock()
        return await self.snapshot_now()

    async def restore(self, data: bytes) -> GlobalState:
        # Decode outside the lock; a DeserializationError leaves state untouched.
        loaded = deserialize(data)
        async with self.lock:
            self.state.replace_with(loaded, now=self.clock())
        print(
            f"[Snapshot] restored {len(self.state.scopes)} scopes "
            f"whitelist={len(self.state.whitelist)} blacklist={len(self.state.blacklist)} "
            f"modlist={len(self.state.moderators)}"
        )
        return self.state
