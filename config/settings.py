from __future__ import annotations

import os
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping

import yaml

from config.defaults import CORPUS_CAP
from config.defaults import DEFAULT_BACKUP_CHANNEL_ID
from config.defaults import DEFAULT_COMMAND_PREFIX
from config.defaults import DEFAULT_IGNORE_MARKERS
from config.defaults import DEFAULT_OWNER_ID
from config.defaults import EVICT_FLOOR
from config.defaults import MAX_BURST
from config.defaults import MAX_REACTIONS
from config.defaults import PER_WORD_DELAY_SECONDS
from config.defaults import SNAPSHOT_INTERVAL_SECONDS

ENV_PREFIX = "CHATECHO_"


@dataclass(slots=True)
class EchoSettings:
    owner_id: int = DEFAULT_OWNER_ID
    command_prefix: str = DEFAULT_COMMAND_PREFIX
    ignore_markers: tuple[str, ...] = field(default_factory=lambda: tuple(DEFAULT_IGNORE_MARKERS))
    corpus_cap: int = CORPUS_CAP
    evict_floor: int = EVICT_FLOOR
    snapshot_interval_seconds: int = SNAPSHOT_INTERVAL_SECONDS
    backup_channel_id: int = DEFAULT_BACKUP_CHANNEL_ID
    max_burst: int = MAX_BURST
    max_reactions: int = MAX_REACTIONS
    per_word_delay_seconds: float = PER_WORD_DELAY_SECONDS

    def validate(self) -> None:
        if self.corpus_cap < 1:
            raise ValueError(f"corpus_cap must be positive, got {self.corpus_cap}")
        if not 0 <= self.evict_floor <= self.corpus_cap:
            raise ValueError(
                f"evict_floor must be within [0, corpus_cap], got {self.evict_floor} (cap={self.corpus_cap})"
            )
        if self.max_burst < 1:
            raise ValueError(f"max_burst must be at least 1, got {self.max_burst}")
        if self.max_reactions < 0:
            raise ValueError(f"max_reactions must not be negative, got {self.max_reactions}")
        if self.snapshot_interval_seconds < 0:
            raise ValueError("snapshot_interval_seconds must not be negative")
        if self.per_word_delay_seconds < 0:
            raise ValueError("per_word_delay_seconds must not be negative")
        if not self.command_prefix.strip():
            raise ValueError("command_prefix must not be empty")


_INT_KEYS = (
    "owner_id",
    "corpus_cap",
    "evict_floor",
    "snapshot_interval_seconds",
    "backup_channel_id",
    "max_burst",
    "max_reactions",
)


def _as_markers(value: Any) -> tuple[str, ...] | None:
    if isinstance(value, str):
        items = [tok for tok in re.split(r"[\s,;]+", value) if tok]
    elif isinstance(value, list):
        items = [str(item).strip() for item in value if str(item or "").strip()]
    else:
        return None
    return tuple(items)


def _coerce(settings: EchoSettings, payload: Mapping[str, Any]) -> EchoSettings:
    updates: dict[str, Any] = {}
    for key in _INT_KEYS:
        if payload.get(key) is not None:
            updates[key] = int(payload[key])
    if payload.get("per_word_delay_seconds") is not None:
        updates["per_word_delay_seconds"] = float(payload["per_word_delay_seconds"])
    if payload.get("command_prefix") is not None:
        updates["command_prefix"] = str(payload["command_prefix"]).strip()
    markers = _as_markers(payload.get("ignore_markers"))
    if markers is not None:
        updates["ignore_markers"] = markers
    return replace(settings, **updates)


def load_echo_settings(path: str | Path | None) -> tuple[EchoSettings, str | None]:
    """
    Returns (settings, warning_message). warning_message is None on clean load.
    """
    defaults = EchoSettings()
    if not path:
        return (defaults, None)

    p = Path(path)
    if not p.exists():
        return (defaults, f"Settings file not found at {p}; using built-in defaults.")

    try:
        payload = yaml.safe_load(p.read_text(encoding="utf-8"))
    except Exception as exc:
        return (defaults, f"Failed to read settings from {p}: {exc}; using built-in defaults.")

    if payload is None:
        return (defaults, None)
    if not isinstance(payload, dict):
        return (defaults, f"Invalid settings format in {p}; using built-in defaults.")

    try:
        settings = _coerce(defaults, payload)
        settings.validate()
    except (TypeError, ValueError) as exc:
        return (defaults, f"Invalid settings in {p}: {exc}; using built-in defaults.")
    return (settings, None)


def apply_env_overrides(
    settings: EchoSettings,
    environ: Mapping[str, str] | None = None,
) -> EchoSettings:
    env = os.environ if environ is None else environ
    payload: dict[str, Any] = {}
    for key in (*_INT_KEYS, "per_word_delay_seconds", "command_prefix", "ignore_markers"):
        raw = env.get(ENV_PREFIX + key.upper())
        if raw is None or not raw.strip():
            continue
        payload[key] = raw.strip()
    if not payload:
        return settings
    updated = _coerce(settings, payload)
    updated.validate()
    return updated
