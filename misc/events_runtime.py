from __future__ import annotations

from typing import Any

import discord
from discord.ext import commands

from corpus.models import InboundEvent
from corpus.store import admit
from corpus.store import get_or_create_scope
from misc.discord_gates import is_command_message
from misc.discord_gates import should_observe_message
from misc.runtime_deps import RuntimeDeps
from mutation.mutators import MutationContext
from selection.engine import BurstResult
from selection.engine import plan_reactions
from selection.outbound import TransportError


def build_inbound_event(message: discord.Message) -> InboundEvent:
    referenced_author_id: int | None = None
    reference = getattr(message, "reference", None)
    resolved = getattr(reference, "resolved", None) if reference is not None else None
    if resolved is not None and getattr(resolved, "author", None) is not None:
        referenced_author_id = int(resolved.author.id)

    return InboundEvent(
        scope_id=int(message.guild.id),
        channel_id=int(message.channel.id),
        message_id=int(message.id),
        author_id=int(message.author.id),
        author_is_bot=bool(message.author.bot),
        text=message.content or "",
        mentions=tuple(int(u.id) for u in (message.mentions or [])),
        is_reply=reference is not None,
        referenced_author_id=referenced_author_id,
    )


def guild_emotes(guild: Any) -> tuple[str, ...]:
    return tuple(str(e) for e in (getattr(guild, "emojis", None) or ()))


class _GuardedTyping:
    def __init__(self, channel):
        self._cm = channel.typing()

    async def __aenter__(self):
        try:
            return await self._cm.__aenter__()
        except discord.HTTPException as e:
            raise TransportError(f"typing failed: {e}") from e

    async def __aexit__(self, exc_type, exc, tb):
        return await self._cm.__aexit__(exc_type, exc, tb)


class DiscordOutbound:
    def __init__(self, channel) -> None:
        self.channel = channel
        self.last_sent_id: int | None = None

    def latest_message_id(self) -> int | None:
        # The gateway cache can lag behind our own sends; snowflakes grow with time.
        last = getattr(self.channel, "last_message_id", None)
        ids = [int(v) for v in (last, self.last_sent_id) if v is not None]
        return max(ids) if ids else None

    def handle_id(self, handle: Any) -> int | None:
        hid = getattr(handle, "id", None)
        return int(hid) if hid is not None else None

    def typing(self):
        return _GuardedTyping(self.channel)

    async def send(self, text: str, *, reply_to: Any | None = None) -> Any:
        try:
            if reply_to is not None:
                sent = await reply_to.reply(text, mention_author=False)
            else:
                sent = await self.channel.send(text)
        except discord.HTTPException as e:
            raise TransportError(str(e)) from e

        sent_id = self.handle_id(sent)
        if sent_id is not None:
            self.last_sent_id = sent_id
        return sent


async def react_randomly(message, emotes: tuple[str, ...], deps: RuntimeDeps) -> int:
    added = 0
    for emote in plan_reactions(emotes, deps.rng, max_reactions=deps.settings.max_reactions):
        try:
            await message.add_reaction(emote)
            added += 1
        except discord.HTTPException as e:
            print(f"[React] failed to react: {e}")
    return added


async def handle_observed_message(message, *, deps: RuntimeDeps, bot_user_id: int | None) -> BurstResult:
    await deps.snapshot_service.maybe_auto_snapshot()

    event = build_inbound_event(message)
    async with deps.state_lock:
        scope = get_or_create_scope(deps.state, event.scope_id, deps.rng)
        asleep = scope.asleep
    if asleep:
        return BurstResult()

    emotes = guild_emotes(message.guild)
    await react_randomly(message, emotes, deps)

    result = await deps.engine.handle_event(
        event,
        DiscordOutbound(message.channel),
        bot_user_id=bot_user_id,
        ctx=MutationContext(emotes=emotes),
        anchor=message,
    )

    async with deps.state_lock:
        scope = get_or_create_scope(deps.state, event.scope_id, deps.rng)
        admit(
            scope,
            event,
            deps.registry,
            rng=deps.rng,
            cap=deps.settings.corpus_cap,
            evict_floor=deps.settings.evict_floor,
        )
    return result


def register_runtime_events(
    bot: commands.Bot,
    *,
    deps: RuntimeDeps,
) -> None:
    @bot.event
    async def on_ready():
        print(f"[Echo] online as {bot.user} (guilds={len(bot.guilds)})")

    @bot.event
    async def on_message(message: discord.Message):
        if message.author.bot:
            return

        if is_command_message(message, deps.settings.command_prefix):
            await bot.process_commands(message)
            return

        if not should_observe_message(
            message,
            command_prefix=deps.settings.command_prefix,
            ignore_markers=deps.settings.ignore_markers,
        ):
            return

        bot_user_id = int(bot.user.id) if bot.user else None
        await handle_observed_message(message, deps=deps, bot_user_id=bot_user_id)
