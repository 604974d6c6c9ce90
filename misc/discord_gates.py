from __future__ import annotations

import discord

OBSERVED_MESSAGE_TYPES = (discord.MessageType.default, discord.MessageType.reply)


def is_command_message(message: discord.Message, command_prefix: str) -> bool:
    return (message.content or "").lstrip().startswith(command_prefix)


def should_observe_message(
    message: discord.Message,
    *,
    command_prefix: str,
    ignore_markers: tuple[str, ...] = (),
) -> bool:
    # Echoing is per guild; DMs have no scope.
    if getattr(message, "guild", None) is None:
        return False
    if message.author.bot:
        return False
    if getattr(message, "type", discord.MessageType.default) not in OBSERVED_MESSAGE_TYPES:
        return False

    content = message.content or ""
    if command_prefix and command_prefix in content:
        return False
    return not any(marker and marker in content for marker in ignore_markers)
