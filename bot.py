import os

import discord
from discord.ext import commands

from config.settings import apply_env_overrides
from config.settings import load_echo_settings
from misc.runtime_wiring import wire_bot_runtime

# =========================
# ENV
# =========================
DISCORD_TOKEN = os.getenv("DISCORD_TOKEN")

if not DISCORD_TOKEN:
    raise RuntimeError("Missing DISCORD_TOKEN env var")

# Optional YAML settings file; CHATECHO_* env vars override individual keys.
#   CHATECHO_SETTINGS_PATH = path/to/chatecho.yml (default: config/chatecho.yml)
#   CHATECHO_OWNER_ID, CHATECHO_COMMAND_PREFIX, CHATECHO_CORPUS_CAP, CHATECHO_EVICT_FLOOR,
#   CHATECHO_SNAPSHOT_INTERVAL_SECONDS, CHATECHO_BACKUP_CHANNEL_ID, CHATECHO_MAX_BURST,
#   CHATECHO_MAX_REACTIONS, CHATECHO_PER_WORD_DELAY_SECONDS, CHATECHO_IGNORE_MARKERS
SETTINGS_PATH = os.getenv(
    "CHATECHO_SETTINGS_PATH",
    os.path.join(os.path.dirname(os.path.abspath(__file__)), "config", "chatecho.yml"),
)
SETTINGS, SETTINGS_WARNING = load_echo_settings(SETTINGS_PATH)
if SETTINGS_WARNING:
    print(f"[CFG] {SETTINGS_WARNING}")
SETTINGS = apply_env_overrides(SETTINGS)

print(
    f"[CFG] prefix={SETTINGS.command_prefix!r} cap={SETTINGS.corpus_cap} "
    f"evict_floor={SETTINGS.evict_floor} snapshot_interval_s={SETTINGS.snapshot_interval_seconds} "
    f"backup_channel={SETTINGS.backup_channel_id} max_burst={SETTINGS.max_burst} "
    f"max_reactions={SETTINGS.max_reactions} word_delay_s={SETTINGS.per_word_delay_seconds}"
)

# =========================
# DISCORD BOT
# =========================
intents = discord.Intents.default()
intents.message_content = True

bot = commands.Bot(command_prefix=SETTINGS.command_prefix, intents=intents, help_command=None)

wire_bot_runtime(bot, settings=SETTINGS)

bot.run(DISCORD_TOKEN)
