from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from config.defaults import CONTINUATION_MARKER
from config.defaults import CONTINUE_RATIO
from config.defaults import MAX_BURST
from config.defaults import MAX_REACTIONS
from config.defaults import PER_WORD_DELAY_SECONDS
from config.defaults import REACT_CONTINUE_RATIO
from config.defaults import REACT_START_RATIO
from corpus.models import GlobalState
from corpus.models import InboundEvent
from corpus.models import ScopeState
from corpus.store import EmptyCorpus
from corpus.store import get_or_create_scope
from corpus.store import require_random
from corpus.store import resample_proc
from mutation.mutators import MutationContext
from mutation.mutators import gen_ratio
from mutation.pipeline import apply_mutators
from selection.outbound import Outbound
from selection.outbound import TransportError


def roll_emission(scope: ScopeState, rng: random.Random) -> bool:
    """Weighted coin with probability current_proc / proc_out_of (capped at 1)."""
    if scope.proc_out_of <= 0:
        return False
    return rng.randrange(scope.proc_out_of) < scope.current_proc


def is_forced(event: InboundEvent, bot_user_id: int | None) -> bool:
    if bot_user_id is None:
        return False
    if int(bot_user_id) in event.mentions:
        return True
    return bool(event.is_reply and event.referenced_author_id == int(bot_user_id))


def plan_reactions(
    emotes: tuple[str, ...],
    rng: random.Random,
    *,
    max_reactions: int = MAX_REACTIONS,
) -> list[str]:
    if not emotes or max_reactions <= 0:
        return []
    picked: list[str] = []
    keep_going = gen_ratio(rng, REACT_START_RATIO)
    while keep_going and len(picked) < max_reactions:
        keep_going = gen_ratio(rng, REACT_CONTINUE_RATIO)
        picked.append(rng.choice(emotes))
    return picked


@dataclass(frozen=True, slots=True)
class EmissionDecision:
    emit: bool
    forced: bool
    rolled: bool


@dataclass(slots=True)
class BurstResult:
    sent: int = 0
    failed: int = 0
    steps: int = 0
    empty_corpus: bool = False


class SelectionEngine:
    def __init__(
        self,
        *,
        state: GlobalState,
        lock: asyncio.Lock,
        rng: random.Random | None = None,
        max_burst: int = MAX_BURST,
        per_word_delay_seconds: float = PER_WORD_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.state = state
        self.lock = lock
        self.rng = rng or random.Random()
        self.max_burst = max(1, int(max_burst))
        self.per_word_delay_seconds = max(0.0, float(per_word_delay_seconds))
        self._sleep = sleep

    def decide(self, scope: ScopeState, event: InboundEvent, bot_user_id: int | None) -> EmissionDecision:
        # Caller holds the lock.
        if scope.asleep:
            return EmissionDecision(emit=False, forced=False, rolled=False)
        rolled = roll_emission(scope, self.rng)
        forced = is_forced(event, bot_user_id)
        return EmissionDecision(emit=rolled or forced, forced=forced, rolled=rolled)

    async def handle_event(
        self,
        event: InboundEvent,
        outbound: Outbound,
        *,
        bot_user_id: int | None,
        ctx: MutationContext,
        anchor: Any | None = None,
    ) -> BurstResult:
        async with self.lock:
            scope = get_or_create_scope(self.state, event.scope_id, self.rng)
            decision = self.decide(scope, event, bot_user_id)
        if not decision.emit:
            return BurstResult()

        result = await self.emit_burst(event.scope_id, outbound, ctx=ctx, anchor=anchor)

        if decision.rolled and not decision.forced and result.sent > 0:
            async with self.lock:
                scope = self.state.scopes.get(int(event.scope_id))
                if scope is not None:
                    resample_proc(scope, self.rng)
        return result

    async def _next_text(self, scope_id: int, ctx: MutationContext) -> str | None:
        async with self.lock:
            scope = self.state.scopes.get(int(scope_id))
            if scope is None or scope.asleep:
                return None
            picked = require_random(scope, self.rng)
            return apply_mutators(picked.content, scope, ctx, self.rng)

    async def emit_burst(
        self,
        scope_id: int,
        outbound: Outbound,
        *,
        ctx: MutationContext,
        anchor: Any | None = None,
    ) -> BurstResult:
        """Continuation loop: one message, then another with probability 1/4, up to max_burst.

        The state lock is only held while picking; typing delays and sends run unlocked.
        """
        result = BurstResult()
        keep_going = True
        while keep_going and result.steps < self.max_burst:
            result.steps += 1
            keep_going = gen_ratio(self.rng, CONTINUE_RATIO) and result.steps < self.max_burst

            try:
                text = await self._next_text(scope_id, ctx)
            except EmptyCorpus as e:
                print(f"[Echo] failed to send random response: {e}")
                result.empty_corpus = True
                break
            if text is None:
                break

            if keep_going:
                text += CONTINUATION_MARKER

            delay = self.per_word_delay_seconds * len(text.split())
            reply_to = None
            if anchor is not None and outbound.latest_message_id() != outbound.handle_id(anchor):
                reply_to = anchor

            try:
                async with outbound.typing():
                    await self._sleep(delay)
                    sent = await outbound.send(text, reply_to=reply_to)
            except TransportError as e:
                print(f"[Echo] failed to send random response: {e}")
                result.failed += 1
                continue

            result.sent += 1
            if sent is not None:
                anchor = sent
        return result
