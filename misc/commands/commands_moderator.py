from __future__ import annotations

import discord
from discord.ext import commands

from corpus.models import MutatorKind
from corpus.store import InvalidProcConfig
from corpus.store import configure_proc
from corpus.store import delete_by_author
from corpus.store import get_or_create_scope
from corpus.store import toggle_mutator
from corpus.store import toggle_sleep
from misc.commands.command_deps import CommandDeps
from misc.commands.command_deps import CommandGates


def register(
    bot: commands.Bot,
    *,
    deps: CommandDeps,
    gates: CommandGates,
) -> None:
    @bot.command(name="delete_user")
    @commands.guild_only()
    async def cmd_delete_user(ctx: commands.Context, user: discord.User):
        if not gates.user_is_moderator(ctx.author.id):
            await ctx.send("This command is moderator-only.")
            return

        async with deps.state_lock:
            scope = get_or_create_scope(deps.state, ctx.guild.id, deps.rng)
            removed = delete_by_author(scope, user.id)

        await ctx.send(f"Deleted {removed} stored message(s) sent by <@{user.id}>.")

    @bot.command(name="proc")
    @commands.guild_only()
    async def cmd_proc(ctx: commands.Context, min_proc: int, max_proc: int, out_of: int):
        if not gates.user_is_moderator(ctx.author.id):
            await ctx.send("This command is moderator-only.")
            return

        async with deps.state_lock:
            scope = get_or_create_scope(deps.state, ctx.guild.id, deps.rng)
            try:
                configure_proc(scope, min_proc, max_proc, out_of, rng=deps.rng)
            except InvalidProcConfig as e:
                err = str(e)
            else:
                err = None

        if err:
            await ctx.send(f"Proc vars rejected: {err}. Usage: `proc <min> <max> <out_of>`")
            return
        await ctx.send(f"Proc vars set: [{min_proc}..{max_proc}) out of {out_of}.")

    @bot.command(name="sleep")
    @commands.guild_only()
    async def cmd_sleep(ctx: commands.Context):
        if not gates.user_is_moderator(ctx.author.id):
            await ctx.send("This command is moderator-only.")
            return

        async with deps.state_lock:
            scope = get_or_create_scope(deps.state, ctx.guild.id, deps.rng)
            asleep = toggle_sleep(scope)

        await ctx.send("Going to sleep." if asleep else "Good morning!")

    @bot.command(name="mutator")
    @commands.guild_only()
    async def cmd_mutator(ctx: commands.Context, name: str = ""):
        if not gates.user_is_moderator(ctx.author.id):
            await ctx.send("This command is moderator-only.")
            return

        names = ", ".join(k.value for k in MutatorKind)
        try:
            kind = MutatorKind.parse(name)
        except ValueError:
            await ctx.send(f"Usage: `mutator <name>` where name is one of: {names}")
            return

        async with deps.state_lock:
            scope = get_or_create_scope(deps.state, ctx.guild.id, deps.rng)
            action = toggle_mutator(scope, kind)

        verb = "Enabled" if action == "added" else "Disabled"
        await ctx.send(f"{verb} mutator {kind.value}.")
