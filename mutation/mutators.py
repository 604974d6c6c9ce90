from __future__ import annotations

import random
import re
from dataclasses import dataclass
from typing import Callable

from corpus.models import MutatorKind
from corpus.models import ScopeState
from corpus.store import pick_uniform_random

APPEND_EMOTE_RATIO = (1, 16)
MESSAGE_SPLICER_RATIO = (1, 16)
MISGENDERING_RATIO = (1, 9)

# Paradigm order matters for ambiguous forms: "it" reads as subject, "her" as object.
PRONOUN_PARADIGMS: tuple[tuple[str, ...], ...] = (
    ("he", "she", "it", "they"),
    ("him", "her", "it", "them"),
    ("his", "her", "its", "their"),
)
MISGENDER_SPREAD_RATIO = (3, 4)

_EDGE_PUNCT_RE = re.compile(r"^(\W*)(.*?)(\W*)$", re.S)


@dataclass(frozen=True, slots=True)
class MutationContext:
    emotes: tuple[str, ...] = ()


def gen_ratio(rng: random.Random, ratio: tuple[int, int]) -> bool:
    numerator, denominator = ratio
    return rng.randrange(denominator) < numerator


def append_emote(text: str, emotes: tuple[str, ...], rng: random.Random) -> str | None:
    if not emotes:
        return None
    return f"{text} {rng.choice(emotes)}"


def splice_messages(text: str, other: str, rng: random.Random) -> str | None:
    own_tokens = text.split()
    other_tokens = other.split()
    if not own_tokens or not other_tokens:
        return None

    if len(own_tokens) >= len(other_tokens):
        longer, shorter = own_tokens, other_tokens
    else:
        longer, shorter = other_tokens, own_tokens

    ratio = rng.uniform(0.2, 0.8)
    head = longer[: max(1, round(len(longer) * ratio))]
    tail = shorter[min(len(shorter) - 1, round(len(shorter) * ratio)) :]
    return " ".join(head + tail)


def _paradigm_for(word: str) -> tuple[str, ...] | None:
    lowered = word.lower()
    for paradigm in PRONOUN_PARADIGMS:
        if lowered in paradigm:
            return paradigm
    return None


def _split_edges(token: str) -> tuple[str, str, str]:
    m = _EDGE_PUNCT_RE.match(token)
    if m is None:
        return ("", token, "")
    return (m.group(1), m.group(2), m.group(3))


def _swap_pronoun(token: str, paradigm: tuple[str, ...], rng: random.Random) -> str:
    lead, word, trail = _split_edges(token)
    replacement = rng.choice(paradigm)
    if word[:1].isupper():
        replacement = replacement.capitalize()
    return f"{lead}{replacement}{trail}"


def pronoun_positions(tokens: list[str]) -> list[tuple[int, tuple[str, ...]]]:
    hits: list[tuple[int, tuple[str, ...]]] = []
    for idx, token in enumerate(tokens):
        _lead, word, _trail = _split_edges(token)
        paradigm = _paradigm_for(word)
        if paradigm is not None:
            hits.append((idx, paradigm))
    return hits


def misgender(text: str, rng: random.Random) -> str | None:
    tokens = text.split()
    hits = pronoun_positions(tokens)
    if not hits:
        return None

    chosen_idx, chosen_paradigm = rng.choice(hits)
    tokens[chosen_idx] = _swap_pronoun(tokens[chosen_idx], chosen_paradigm, rng)
    for idx, paradigm in hits:
        if idx == chosen_idx:
            continue
        if gen_ratio(rng, MISGENDER_SPREAD_RATIO):
            tokens[idx] = _swap_pronoun(tokens[idx], paradigm, rng)
    return " ".join(tokens)


def attempt_append_emote(
    text: str, scope: ScopeState, ctx: MutationContext, rng: random.Random
) -> str | None:
    if not gen_ratio(rng, APPEND_EMOTE_RATIO):
        return None
    return append_emote(text, ctx.emotes, rng)


def attempt_message_splicer(
    text: str, scope: ScopeState, ctx: MutationContext, rng: random.Random
) -> str | None:
    if not gen_ratio(rng, MESSAGE_SPLICER_RATIO):
        return None
    other = pick_uniform_random(scope, rng)
    if other is None:
        return None
    return splice_messages(text, other.content, rng)


def attempt_misgendering(
    text: str, scope: ScopeState, ctx: MutationContext, rng: random.Random
) -> str | None:
    if not pronoun_positions(text.split()):
        return None
    if not gen_ratio(rng, MISGENDERING_RATIO):
        return None
    return misgender(text, rng)


Mutator = Callable[[str, ScopeState, MutationContext, random.Random], "str | None"]

MUTATORS: dict[MutatorKind, Mutator] = {
    MutatorKind.APPEND_EMOTE: attempt_append_emote,
    MutatorKind.MESSAGE_SPLICER: attempt_message_splicer,
    MutatorKind.MISGENDERING: attempt_misgendering,
}

if set(MUTATORS) != set(MutatorKind):  # pragma: no cover - import-time guard
    raise RuntimeError("every MutatorKind needs a mutator function")


def attempt(
    kind: MutatorKind,
    text: str,
    scope: ScopeState,
    ctx: MutationContext,
    rng: random.Random,
) -> str | None:
    return MUTATORS[kind](text, scope, ctx, rng)
