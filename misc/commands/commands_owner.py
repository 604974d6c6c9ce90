from __future__ import annotations

import discord
from discord.ext import commands

from misc.commands.command_deps import CommandDeps
from misc.commands.command_deps import CommandGates
from snapshot.codec import DeserializationError


def register(
    bot: commands.Bot,
    *,
    deps: CommandDeps,
    gates: CommandGates,
) -> None:
    @bot.command(name="moderator")
    @commands.guild_only()
    async def cmd_moderator(ctx: commands.Context, user: discord.User):
        if not gates.user_is_owner(ctx.author.id):
            await ctx.send("This command is owner-only.")
            return

        async with deps.state_lock:
            action = deps.registry.toggle_moderator(user.id)

        await ctx.send(f"{'Added' if action == 'added' else 'Removed'} moderator <@{user.id}>.")

    @bot.command(name="blacklist")
    @commands.guild_only()
    async def cmd_blacklist(ctx: commands.Context, user: discord.User):
        if not gates.user_is_owner(ctx.author.id):
            await ctx.send("This command is owner-only.")
            return

        async with deps.state_lock:
            action = deps.registry.toggle_blacklist(user.id)

        await ctx.send(f"{'Blacklisted' if action == 'added' else 'Unblacklisted'} <@{user.id}>.")

    @bot.command(name="backup_send")
    @commands.guild_only()
    async def cmd_backup_send(ctx: commands.Context):
        if not gates.user_is_owner(ctx.author.id):
            await ctx.send("This command is owner-only.")
            return

        ok = await deps.snapshot_service.snapshot_now()
        if ok:
            await ctx.send("Backup sent to the backup channel.")
        else:
            await ctx.send("Backup failed. Check logs.")

    @bot.command(name="backup_load")
    @commands.guild_only()
    async def cmd_backup_load(ctx: commands.Context):
        if not gates.user_is_owner(ctx.author.id):
            await ctx.send("This command is owner-only.")
            return

        attachments = list(getattr(ctx.message, "attachments", None) or [])
        if not attachments:
            await ctx.send("Attach a backup file to load.")
            return

        try:
            data = await attachments[0].read()
        except discord.HTTPException as e:
            await ctx.send(f"File couldn't be downloaded: {e}")
            return

        try:
            state = await deps.snapshot_service.restore(data)
        except DeserializationError as e:
            print(f"[Snapshot] restore rejected: {e}")
            await ctx.send(f"File couldn't be deserialized: {e}")
            return

        await ctx.send(f"Backup loaded: {len(state.scopes)} guild(s).")
