from __future__ import annotations

import asyncio
import io
import random

import discord

from access.registry import AccessRegistry
from config.defaults import BACKUP_FILENAME
from config.settings import EchoSettings
from corpus.models import GlobalState
from misc.chunking import send_chunked
from misc.commands.command_deps import CommandDeps
from misc.commands.command_deps import CommandGates
from misc.commands.commands_moderator import register as register_moderator
from misc.commands.commands_owner import register as register_owner
from misc.commands.commands_user import register as register_user
from misc.events_runtime import register_runtime_events
from misc.runtime_deps import RuntimeDeps
from selection.engine import SelectionEngine
from snapshot.service import SnapshotService


def make_snapshot_uploader(bot, channel_id: int):
    async def upload_snapshot(data: bytes) -> None:
        channel = bot.get_channel(int(channel_id))
        if channel is None:
            channel = await bot.fetch_channel(int(channel_id))
        await channel.send(file=discord.File(io.BytesIO(data), filename=BACKUP_FILENAME))

    return upload_snapshot


def wire_bot_runtime(
    bot,
    *,
    settings: EchoSettings,
    state: GlobalState | None = None,
    state_lock: asyncio.Lock | None = None,
    rng: random.Random | None = None,
) -> RuntimeDeps:
    state = state if state is not None else GlobalState()
    state_lock = state_lock or asyncio.Lock()
    rng = rng or random.Random()

    registry = AccessRegistry(state, owner_id=settings.owner_id)
    engine = SelectionEngine(
        state=state,
        lock=state_lock,
        rng=rng,
        max_burst=settings.max_burst,
        per_word_delay_seconds=settings.per_word_delay_seconds,
    )
    snapshot_service = SnapshotService(
        state=state,
        lock=state_lock,
        upload=make_snapshot_uploader(bot, settings.backup_channel_id),
        interval_seconds=settings.snapshot_interval_seconds,
    )

    command_deps = CommandDeps(
        state=state,
        state_lock=state_lock,
        registry=registry,
        rng=rng,
        send_chunked=send_chunked,
        snapshot_service=snapshot_service,
    )
    command_gates = CommandGates(
        user_is_owner=registry.is_owner,
        user_is_moderator=registry.is_moderator,
        user_is_permitted=registry.is_permitted,
    )

    register_user(
        bot,
        deps=command_deps,
        gates=command_gates,
    )

    register_moderator(
        bot,
        deps=command_deps,
        gates=command_gates,
    )

    register_owner(
        bot,
        deps=command_deps,
        gates=command_gates,
    )

    deps = RuntimeDeps(
        state=state,
        state_lock=state_lock,
        registry=registry,
        rng=rng,
        settings=settings,
        engine=engine,
        snapshot_service=snapshot_service,
    )
    register_runtime_events(bot, deps=deps)
    return deps
