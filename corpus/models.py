from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field

from config.defaults import DEFAULT_MAX_PROC
from config.defaults import DEFAULT_MIN_PROC
from config.defaults import DEFAULT_PROC_OUT_OF


class MutatorKind(enum.Enum):
    APPEND_EMOTE = "AppendEmote"
    MESSAGE_SPLICER = "MessageSplicer"
    MISGENDERING = "Misgendering"

    @classmethod
    def parse(cls, raw: str) -> "MutatorKind":
        """Accepts the wire name (`AppendEmote`) or the member name (`append_emote`)."""
        text = str(raw or "").strip()
        for kind in cls:
            if text == kind.value or text.upper() == kind.name:
                return kind
        lowered = text.replace("_", "").lower()
        for kind in cls:
            if lowered == kind.value.lower():
                return kind
        raise ValueError(f"unknown mutator: {raw!r}")


DEFAULT_MUTATORS: frozenset[MutatorKind] = frozenset(MutatorKind)


@dataclass(frozen=True, slots=True)
class Utterance:
    author_id: int
    content: str


@dataclass(slots=True)
class ScopeState:
    scope_id: int
    corpus: list[Utterance] = field(default_factory=list)
    asleep: bool = False
    allowed_mutators: set[MutatorKind] = field(default_factory=lambda: set(DEFAULT_MUTATORS))
    min_proc: int = DEFAULT_MIN_PROC
    max_proc: int = DEFAULT_MAX_PROC
    proc_out_of: int = DEFAULT_PROC_OUT_OF
    current_proc: int = DEFAULT_MIN_PROC


@dataclass(slots=True)
class GlobalState:
    scopes: dict[int, ScopeState] = field(default_factory=dict)
    whitelist: set[int] = field(default_factory=set)
    blacklist: set[int] = field(default_factory=set)
    moderators: set[int] = field(default_factory=set)
    started_at: float = field(default_factory=time.time)
    last_snapshot_time: float = field(default_factory=time.time)

    def replace_with(self, other: "GlobalState", *, now: float | None = None) -> None:
        # Callers hold the state lock; process start time survives a restore.
        self.scopes = other.scopes
        self.whitelist = other.whitelist
        self.blacklist = other.blacklist
        self.moderators = other.moderators
        self.last_snapshot_time = time.time() if now is None else now


@dataclass(frozen=True, slots=True)
class InboundEvent:
    scope_id: int
    channel_id: int
    message_id: int
    author_id: int
    text: str
    author_is_bot: bool = False
    mentions: tuple[int, ...] = ()
    is_reply: bool = False
    referenced_author_id: int | None = None

    @property
    def word_count(self) -> int:
        return len(self.text.split())
