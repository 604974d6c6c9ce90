from __future__ import annotations

import random

from access.registry import AccessRegistry
from config.defaults import CORPUS_CAP
from config.defaults import EVICT_FLOOR
from config.defaults import MAX_CONTENT_BYTES
from config.defaults import MAX_CONTENT_WORDS
from corpus.models import GlobalState
from corpus.models import InboundEvent
from corpus.models import MutatorKind
from corpus.models import ScopeState
from corpus.models import Utterance


class EmptyCorpus(LookupError):
    pass


class InvalidProcConfig(ValueError):
    pass


def get_or_create_scope(state: GlobalState, scope_id: int, rng: random.Random) -> ScopeState:
    sid = int(scope_id)
    scope = state.scopes.get(sid)
    if scope is None:
        scope = ScopeState(scope_id=sid)
        resample_proc(scope, rng)
        state.scopes[sid] = scope
        print(f"[Corpus] new scope registered: {sid}")
    return scope


def is_admissible(event: InboundEvent, registry: AccessRegistry) -> bool:
    content = event.text or ""
    if not content or event.author_is_bot:
        return False
    # Discord's limit is in characters; the corpus limit is in UTF-8 bytes.
    if len(content.encode("utf-8")) >= MAX_CONTENT_BYTES:
        return False
    if event.word_count >= MAX_CONTENT_WORDS:
        return False
    if event.mentions:
        return False
    return registry.is_subscribed(event.author_id) and registry.is_permitted(event.author_id)


def evict_one(scope: ScopeState, *, cap: int, evict_floor: int, rng: random.Random) -> Utterance:
    """Approximate random eviction: uniform over the trailing window [evict_floor, cap],
    removed by swap-with-last. Reorders the corpus and biases toward the tail."""
    corpus = scope.corpus
    hi = min(int(cap), len(corpus) - 1)
    lo = min(max(0, int(evict_floor)), hi)
    idx = rng.randint(lo, hi)
    removed = corpus[idx]
    corpus[idx] = corpus[-1]
    corpus.pop()
    return removed


def admit(
    scope: ScopeState,
    event: InboundEvent,
    registry: AccessRegistry,
    *,
    rng: random.Random,
    cap: int = CORPUS_CAP,
    evict_floor: int = EVICT_FLOOR,
) -> bool:
    if not is_admissible(event, registry):
        return False

    scope.corpus.append(Utterance(author_id=int(event.author_id), content=event.text))
    # One pass per admission in steady state; more only after restoring an oversized corpus.
    while len(scope.corpus) > cap:
        evict_one(scope, cap=cap, evict_floor=evict_floor, rng=rng)
    return True


def pick_uniform_random(scope: ScopeState, rng: random.Random) -> Utterance | None:
    if not scope.corpus:
        return None
    return rng.choice(scope.corpus)


def require_random(scope: ScopeState, rng: random.Random) -> Utterance:
    picked = pick_uniform_random(scope, rng)
    if picked is None:
        raise EmptyCorpus(f"scope {scope.scope_id} has no recorded messages")
    return picked


def find_by_content_substring(scope: ScopeState, needle: str) -> list[Utterance]:
    return [u for u in scope.corpus if needle in u.content]


def find_by_author(scope: ScopeState, author_id: int) -> list[Utterance]:
    aid = int(author_id)
    return [u for u in scope.corpus if u.author_id == aid]


def delete_by_author(scope: ScopeState, author_id: int) -> int:
    aid = int(author_id)
    before = len(scope.corpus)
    scope.corpus = [u for u in scope.corpus if u.author_id != aid]
    return before - len(scope.corpus)


def delete_by_content_substring(scope: ScopeState, needle: str) -> int:
    before = len(scope.corpus)
    scope.corpus = [u for u in scope.corpus if needle not in u.content]
    return before - len(scope.corpus)


def validate_proc(min_proc: int, max_proc: int, proc_out_of: int) -> None:
    if proc_out_of <= 0:
        raise InvalidProcConfig(f"out_of must be positive, got {proc_out_of}")
    if min_proc < 0:
        raise InvalidProcConfig(f"min must not be negative, got {min_proc}")
    if min_proc > max_proc:
        raise InvalidProcConfig(f"min ({min_proc}) must not exceed max ({max_proc})")


def resample_proc(scope: ScopeState, rng: random.Random) -> int:
    if scope.max_proc > scope.min_proc:
        scope.current_proc = rng.randrange(scope.min_proc, scope.max_proc)
    else:
        scope.current_proc = scope.min_proc
    return scope.current_proc


def configure_proc(
    scope: ScopeState,
    min_proc: int,
    max_proc: int,
    proc_out_of: int,
    *,
    rng: random.Random,
) -> None:
    validate_proc(int(min_proc), int(max_proc), int(proc_out_of))
    scope.min_proc = int(min_proc)
    scope.max_proc = int(max_proc)
    scope.proc_out_of = int(proc_out_of)
    resample_proc(scope, rng)


def toggle_sleep(scope: ScopeState) -> bool:
    scope.asleep = not scope.asleep
    return scope.asleep


def toggle_mutator(scope: ScopeState, kind: MutatorKind) -> str:
    if kind in scope.allowed_mutators:
        scope.allowed_mutators.discard(kind)
        return "removed"
    scope.allowed_mutators.add(kind)
    return "added"
