from __future__ import annotations

import time

import discord
from discord.ext import commands

from config.defaults import APP_VERSION
from config.defaults import CONTINUATION_MARKER
from corpus.store import delete_by_content_substring
from corpus.store import find_by_content_substring
from corpus.store import get_or_create_scope
from misc.commands.command_deps import CommandDeps
from misc.commands.command_deps import CommandGates


def referenced_message(ctx: commands.Context):
    reference = getattr(ctx.message, "reference", None)
    if reference is None:
        return None
    return getattr(reference, "resolved", None)


def emitted_content(text: str) -> str:
    """Content of an echoed message with the continuation marker removed."""
    return (text or "").removesuffix(CONTINUATION_MARKER)


def register(
    bot: commands.Bot,
    *,
    deps: CommandDeps,
    gates: CommandGates,
) -> None:
    @bot.command(name="delete_content")
    @commands.guild_only()
    async def cmd_delete_content(ctx: commands.Context):
        if not gates.user_is_permitted(ctx.author.id):
            return

        ref = referenced_message(ctx)
        if ref is None or not getattr(ref, "content", None):
            await ctx.send("Reply to a message to delete its content from memory.")
            return

        needle = emitted_content(ref.content)
        if bot.user is not None and getattr(ref.author, "id", None) == bot.user.id:
            try:
                await ref.delete()
            except discord.HTTPException as e:
                print(f"[Echo] could not delete message {ref.id}: {e}")

        async with deps.state_lock:
            scope = get_or_create_scope(deps.state, ctx.guild.id, deps.rng)
            removed = delete_by_content_substring(scope, needle)

        await ctx.send(f"Deleted {removed} stored message(s) with that content.")

    @bot.command(name="info_content")
    @commands.guild_only()
    async def cmd_info_content(ctx: commands.Context):
        if not gates.user_is_permitted(ctx.author.id):
            return

        ref = referenced_message(ctx)
        if ref is None or not getattr(ref, "content", None):
            await ctx.send("Reply to an echoed message to look up who said it.")
            return

        async with deps.state_lock:
            scope = get_or_create_scope(deps.state, ctx.guild.id, deps.rng)
            matches = find_by_content_substring(scope, emitted_content(ref.content))

        if not matches:
            await ctx.send("No stored messages match that content.")
            return

        lines = ["Message originally sent by:"]
        for author_id in dict.fromkeys(u.author_id for u in matches):
            lines.append(f"<@{author_id}>")
        await deps.send_chunked(ctx.channel, "\n".join(lines))

    @bot.command(name="info_proc")
    @commands.guild_only()
    async def cmd_info_proc(ctx: commands.Context):
        if not gates.user_is_permitted(ctx.author.id):
            return

        async with deps.state_lock:
            scope = get_or_create_scope(deps.state, ctx.guild.id, deps.rng)
            min_proc, max_proc, out_of = scope.min_proc, scope.max_proc, scope.proc_out_of
            mutators = sorted(k.value for k in scope.allowed_mutators)

        await ctx.send(
            f"MIN_PROC: {min_proc}\nMAX_PROC: {max_proc}\nPROC_OUT_OF: {out_of}\n"
            f"Chance of random reply: [{min_proc}..{max_proc}) out of {out_of} messages\n"
            f"Mutators: {', '.join(mutators) if mutators else '(none)'}"
        )

    @bot.command(name="info")
    @commands.guild_only()
    async def cmd_info(ctx: commands.Context):
        if not gates.user_is_permitted(ctx.author.id):
            return

        now = time.time()
        async with deps.state_lock:
            running_h = int(max(0.0, now - deps.state.started_at) // 3600)
            backup_h = int(max(0.0, now - deps.state.last_snapshot_time) // 3600)
            scope_count = len(deps.state.scopes)
            scope = get_or_create_scope(deps.state, ctx.guild.id, deps.rng)
            stored = len(scope.corpus)

        await ctx.send(
            f"chatecho v{APP_VERSION}\nRunning for: {running_h}h\nTime since backup: {backup_h}h\n"
            f"On {scope_count} guild(s)\nStoring {stored} message(s) in this one"
        )

    @bot.command(name="whitelist")
    @commands.guild_only()
    async def cmd_whitelist(ctx: commands.Context):
        if not gates.user_is_permitted(ctx.author.id):
            return

        async with deps.state_lock:
            action = deps.registry.toggle_whitelist(ctx.author.id)

        if action == "added":
            await ctx.send(f"Added user <@{ctx.author.id}>; your messages can now be echoed.")
        else:
            await ctx.send(f"Removed user <@{ctx.author.id}>; your messages will no longer be stored.")
