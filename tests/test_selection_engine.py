from __future__ import annotations

import asyncio
import random
import unittest
from types import SimpleNamespace

from corpus.models import GlobalState
from corpus.models import InboundEvent
from corpus.models import ScopeState
from corpus.models import Utterance
from mutation.mutators import MutationContext
from selection.engine import SelectionEngine
from selection.engine import is_forced
from selection.engine import plan_reactions
from selection.engine import roll_emission
from selection.outbound import TransportError

BOT_ID = 999
SCOPE_ID = 100


class _PinnedRandom(random.Random):
    """randrange always returns the lowest (low=True) or highest value of its range."""

    def __init__(self, low: bool):
        super().__init__(0)
        self.low = low

    def randrange(self, start, stop=None, step=1):
        if stop is None:
            start, stop = 0, start
        return start if self.low else stop - 1


class _NullTyping:
    async def __aenter__(self):
        return None

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeOutbound:
    def __init__(self, *, latest=None, fail_on=()):
        self.latest = latest
        self.fail_on = set(fail_on)
        self.sent: list[tuple[str, object]] = []
        self.calls = 0
        self._next_id = 1000

    def latest_message_id(self):
        return self.latest

    def handle_id(self, handle):
        return getattr(handle, "id", None)

    def typing(self):
        return _NullTyping()

    async def send(self, text, *, reply_to=None):
        call = self.calls
        self.calls += 1
        if call in self.fail_on:
            raise TransportError("boom")
        self._next_id += 1
        handle = SimpleNamespace(id=self._next_id)
        self.sent.append((text, reply_to))
        self.latest = handle.id
        return handle


def _event(*, mentions=(), is_reply=False, referenced_author_id=None) -> InboundEvent:
    return InboundEvent(
        scope_id=SCOPE_ID,
        channel_id=5,
        message_id=1,
        author_id=42,
        text="hello",
        mentions=mentions,
        is_reply=is_reply,
        referenced_author_id=referenced_author_id,
    )


def _state(*contents: str) -> GlobalState:
    scope = ScopeState(
        scope_id=SCOPE_ID,
        corpus=[Utterance(author_id=42, content=c) for c in contents],
        allowed_mutators=set(),
        current_proc=3,
    )
    return GlobalState(scopes={SCOPE_ID: scope})


class RollTests(unittest.TestCase):
    def test_roll_frequency_matches_proc_ratio(self):
        scope = ScopeState(scope_id=1, current_proc=3, proc_out_of=18)
        rng = random.Random(1234)
        trials = 30000
        hits = sum(roll_emission(scope, rng) for _ in range(trials))
        self.assertAlmostEqual(hits / trials, 3 / 18, delta=0.011)

    def test_roll_never_fires_with_zero_proc(self):
        scope = ScopeState(scope_id=1, current_proc=0, proc_out_of=18)
        rng = random.Random(1)
        self.assertFalse(any(roll_emission(scope, rng) for _ in range(1000)))

    def test_forced_by_mention_or_reply_to_bot(self):
        self.assertTrue(is_forced(_event(mentions=(BOT_ID,)), BOT_ID))
        self.assertTrue(is_forced(_event(is_reply=True, referenced_author_id=BOT_ID), BOT_ID))
        self.assertFalse(is_forced(_event(is_reply=True, referenced_author_id=7), BOT_ID))
        self.assertFalse(is_forced(_event(mentions=(BOT_ID,)), None))

    def test_plan_reactions_is_bounded(self):
        self.assertEqual(plan_reactions(("a",), _PinnedRandom(low=False)), [])
        self.assertEqual(plan_reactions((), _PinnedRandom(low=True)), [])
        picked = plan_reactions(("a", "b"), _PinnedRandom(low=True), max_reactions=4)
        self.assertEqual(len(picked), 4)


class BurstTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.delays: list[float] = []
        self.lock = asyncio.Lock()
        self.lock_held_during_sleep: list[bool] = []

    async def _sleep(self, delay):
        self.delays.append(delay)
        self.lock_held_during_sleep.append(self.lock.locked())

    def _engine(self, state, rng, *, max_burst=50):
        return SelectionEngine(
            state=state,
            lock=self.lock,
            rng=rng,
            max_burst=max_burst,
            per_word_delay_seconds=0.1,
            sleep=self._sleep,
        )

    async def test_burst_stops_at_cap_with_marker_on_all_but_last(self):
        engine = self._engine(_state("two words"), _PinnedRandom(low=True), max_burst=5)
        outbound = FakeOutbound()

        result = await engine.emit_burst(SCOPE_ID, outbound, ctx=MutationContext())

        self.assertEqual(result.sent, 5)
        texts = [text for text, _ in outbound.sent]
        self.assertEqual(texts[:4], ["two words ..."] * 4)
        self.assertEqual(texts[4], "two words")
        self.assertAlmostEqual(self.delays[0], 0.3)
        self.assertAlmostEqual(self.delays[4], 0.2)
        self.assertEqual(self.lock_held_during_sleep, [False] * 5)

    async def test_single_message_without_continuation(self):
        engine = self._engine(_state("hi"), _PinnedRandom(low=False))
        outbound = FakeOutbound()

        result = await engine.emit_burst(SCOPE_ID, outbound, ctx=MutationContext())

        self.assertEqual((result.sent, result.steps), (1, 1))
        self.assertEqual(outbound.sent[0][0], "hi")

    async def test_empty_corpus_ends_burst(self):
        engine = self._engine(_state(), _PinnedRandom(low=True))
        outbound = FakeOutbound()

        result = await engine.emit_burst(SCOPE_ID, outbound, ctx=MutationContext())

        self.assertTrue(result.empty_corpus)
        self.assertEqual(result.sent, 0)
        self.assertEqual(outbound.sent, [])

    async def test_transport_failure_skips_step_and_continues(self):
        engine = self._engine(_state("hi"), _PinnedRandom(low=True), max_burst=3)
        outbound = FakeOutbound(fail_on={0})

        result = await engine.emit_burst(SCOPE_ID, outbound, ctx=MutationContext())

        self.assertEqual((result.sent, result.failed, result.steps), (2, 1, 3))

    async def test_replies_only_when_anchor_is_not_latest(self):
        engine = self._engine(_state("hi"), _PinnedRandom(low=True), max_burst=2)
        trigger = SimpleNamespace(id=1)
        outbound = FakeOutbound(latest=5)

        await engine.emit_burst(SCOPE_ID, outbound, ctx=MutationContext(), anchor=trigger)

        self.assertIs(outbound.sent[0][1], trigger)
        self.assertIsNone(outbound.sent[1][1])

    async def test_no_reply_when_trigger_is_latest(self):
        engine = self._engine(_state("hi"), _PinnedRandom(low=False))
        trigger = SimpleNamespace(id=1)
        outbound = FakeOutbound(latest=1)

        await engine.emit_burst(SCOPE_ID, outbound, ctx=MutationContext(), anchor=trigger)

        self.assertIsNone(outbound.sent[0][1])

    async def test_rolled_emission_resamples_proc(self):
        state = _state("hi")
        engine = self._engine(state, _PinnedRandom(low=True), max_burst=1)

        result = await engine.handle_event(
            _event(), FakeOutbound(), bot_user_id=BOT_ID, ctx=MutationContext()
        )

        self.assertEqual(result.sent, 1)
        self.assertEqual(state.scopes[SCOPE_ID].current_proc, 1)

    async def test_forced_emission_keeps_proc(self):
        state = _state("hi")
        engine = self._engine(state, _PinnedRandom(low=True), max_burst=1)

        await engine.handle_event(
            _event(mentions=(BOT_ID,)), FakeOutbound(), bot_user_id=BOT_ID, ctx=MutationContext()
        )

        self.assertEqual(state.scopes[SCOPE_ID].current_proc, 3)

    async def test_failed_roll_sends_nothing(self):
        engine = self._engine(_state("hi"), _PinnedRandom(low=False))
        outbound = FakeOutbound()

        result = await engine.handle_event(
            _event(), outbound, bot_user_id=BOT_ID, ctx=MutationContext()
        )

        self.assertEqual(result.sent, 0)
        self.assertEqual(outbound.sent, [])

    async def test_asleep_scope_ignores_mentions(self):
        state = _state("hi")
        state.scopes[SCOPE_ID].asleep = True
        engine = self._engine(state, _PinnedRandom(low=True))
        outbound = FakeOutbound()

        await engine.handle_event(
            _event(mentions=(BOT_ID,)), outbound, bot_user_id=BOT_ID, ctx=MutationContext()
        )

        self.assertEqual(outbound.sent, [])


if __name__ == "__main__":
    unittest.main()
