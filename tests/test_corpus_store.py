from __future__ import annotations

import dataclasses
import random
import unittest

from access.registry import AccessRegistry
from corpus.models import GlobalState
from corpus.models import InboundEvent
from corpus.models import MutatorKind
from corpus.models import ScopeState
from corpus.models import Utterance
from corpus.store import EmptyCorpus
from corpus.store import InvalidProcConfig
from corpus.store import admit
from corpus.store import configure_proc
from corpus.store import delete_by_author
from corpus.store import delete_by_content_substring
from corpus.store import find_by_author
from corpus.store import find_by_content_substring
from corpus.store import get_or_create_scope
from corpus.store import is_admissible
from corpus.store import require_random
from corpus.store import resample_proc
from corpus.store import toggle_mutator
from corpus.store import toggle_sleep

OWNER_ID = 1
AUTHOR_ID = 42


def _event(text: str, *, author_id: int = AUTHOR_ID, mentions: tuple[int, ...] = ()) -> InboundEvent:
    return InboundEvent(
        scope_id=100,
        channel_id=200,
        message_id=300,
        author_id=author_id,
        text=text,
        mentions=mentions,
    )


class AdmissionTests(unittest.TestCase):
    def setUp(self):
        self.state = GlobalState(whitelist={AUTHOR_ID})
        self.registry = AccessRegistry(self.state, owner_id=OWNER_ID)
        self.scope = ScopeState(scope_id=100)
        self.rng = random.Random(7)

    def test_accepts_short_message_from_subscribed_author(self):
        self.assertTrue(admit(self.scope, _event("hello there"), self.registry, rng=self.rng))
        self.assertEqual(self.scope.corpus, [Utterance(author_id=AUTHOR_ID, content="hello there")])

    def test_rejects_unsubscribed_blacklisted_and_mentions(self):
        self.assertFalse(is_admissible(_event("hi", author_id=9), self.registry))
        self.state.blacklist.add(AUTHOR_ID)
        self.assertFalse(is_admissible(_event("hi"), self.registry))
        self.state.blacklist.clear()
        self.assertFalse(is_admissible(_event("hi", mentions=(5,)), self.registry))
        self.assertFalse(is_admissible(_event(""), self.registry))

    def test_rejects_long_messages(self):
        self.assertFalse(is_admissible(_event(" ".join(["w"] * 30)), self.registry))
        self.assertTrue(is_admissible(_event(" ".join(["w"] * 29)), self.registry))
        self.assertFalse(is_admissible(_event("x" * 2000), self.registry))

    def test_length_limit_counts_utf8_bytes(self):
        accented = "é" * 1500
        self.assertEqual(len(accented.encode("utf-8")), 3000)
        self.assertFalse(is_admissible(_event(accented), self.registry))
        self.assertTrue(is_admissible(_event("é" * 999), self.registry))
        self.assertFalse(is_admissible(_event("é" * 1000), self.registry))

    def test_rejects_bot_authors(self):
        event = dataclasses.replace(_event("beep boop"), author_is_bot=True)
        self.assertFalse(is_admissible(event, self.registry))

    def test_corpus_never_exceeds_cap(self):
        cap = 10
        for i in range(40):
            admit(self.scope, _event(f"m{i}"), self.registry, rng=self.rng, cap=cap, evict_floor=4)
            self.assertEqual(len(self.scope.corpus), min(i + 1, cap))

    def test_eviction_draws_from_trailing_window(self):
        for seed in range(200):
            scope = ScopeState(scope_id=100)
            rng = random.Random(seed)
            for i in range(4):
                admit(scope, _event(f"m{i}"), self.registry, rng=rng, cap=4, evict_floor=2)
            before = list(scope.corpus) + [Utterance(author_id=AUTHOR_ID, content="m4")]

            admit(scope, _event("m4"), self.registry, rng=rng, cap=4, evict_floor=2)

            self.assertEqual(len(scope.corpus), 4)
            missing = [u for u in before if u not in scope.corpus]
            self.assertEqual(len(missing), 1)
            self.assertIn(before.index(missing[0]), {2, 3, 4})
            self.assertEqual(scope.corpus[:2], before[:2])

    def test_oversized_corpus_is_trimmed_on_next_admission(self):
        self.scope.corpus = [Utterance(author_id=AUTHOR_ID, content=f"old{i}") for i in range(12)]
        admit(self.scope, _event("fresh"), self.registry, rng=self.rng, cap=5, evict_floor=2)
        self.assertEqual(len(self.scope.corpus), 5)


class LookupAndDeleteTests(unittest.TestCase):
    def setUp(self):
        self.scope = ScopeState(
            scope_id=100,
            corpus=[
                Utterance(author_id=1, content="good morning"),
                Utterance(author_id=2, content="morning all"),
                Utterance(author_id=1, content="see ya"),
            ],
        )

    def test_find_by_substring_and_author(self):
        self.assertEqual(len(find_by_content_substring(self.scope, "morning")), 2)
        self.assertEqual(len(find_by_author(self.scope, 1)), 2)
        self.assertEqual(find_by_author(self.scope, 3), [])

    def test_delete_returns_counts(self):
        self.assertEqual(delete_by_content_substring(self.scope, "morning"), 2)
        self.assertEqual(delete_by_content_substring(self.scope, "morning"), 0)
        self.assertEqual(delete_by_author(self.scope, 1), 1)
        self.assertEqual(self.scope.corpus, [])

    def test_require_random_raises_on_empty(self):
        with self.assertRaises(EmptyCorpus):
            require_random(ScopeState(scope_id=5), random.Random(1))
        self.assertIn(require_random(self.scope, random.Random(1)), self.scope.corpus)


class ProcTests(unittest.TestCase):
    def test_configure_rejects_invalid_values(self):
        scope = ScopeState(scope_id=1)
        rng = random.Random(3)
        with self.assertRaises(InvalidProcConfig):
            configure_proc(scope, 5, 1, 18, rng=rng)
        with self.assertRaises(InvalidProcConfig):
            configure_proc(scope, 1, 4, 0, rng=rng)
        with self.assertRaises(InvalidProcConfig):
            configure_proc(scope, -1, 4, 18, rng=rng)
        self.assertEqual((scope.min_proc, scope.max_proc, scope.proc_out_of), (1, 4, 18))

    def test_resample_stays_in_half_open_range(self):
        scope = ScopeState(scope_id=1)
        rng = random.Random(11)
        configure_proc(scope, 2, 6, 20, rng=rng)
        seen = {resample_proc(scope, rng) for _ in range(500)}
        self.assertEqual(seen, {2, 3, 4, 5})

    def test_resample_with_equal_bounds_uses_min(self):
        scope = ScopeState(scope_id=1)
        configure_proc(scope, 3, 3, 10, rng=random.Random(0))
        self.assertEqual(scope.current_proc, 3)

    def test_new_scope_gets_sampled_proc(self):
        state = GlobalState()
        scope = get_or_create_scope(state, 77, random.Random(5))
        self.assertIs(state.scopes[77], scope)
        self.assertTrue(scope.min_proc <= scope.current_proc < scope.max_proc)
        self.assertIs(get_or_create_scope(state, 77, random.Random(5)), scope)


class ToggleTests(unittest.TestCase):
    def test_sleep_and_mutator_toggles(self):
        scope = ScopeState(scope_id=1)
        self.assertTrue(toggle_sleep(scope))
        self.assertFalse(toggle_sleep(scope))
        self.assertEqual(toggle_mutator(scope, MutatorKind.MISGENDERING), "removed")
        self.assertNotIn(MutatorKind.MISGENDERING, scope.allowed_mutators)
        self.assertEqual(toggle_mutator(scope, MutatorKind.MISGENDERING), "added")

    def test_mutator_parse_accepts_several_spellings(self):
        self.assertIs(MutatorKind.parse("AppendEmote"), MutatorKind.APPEND_EMOTE)
        self.assertIs(MutatorKind.parse("message_splicer"), MutatorKind.MESSAGE_SPLICER)
        self.assertIs(MutatorKind.parse("misgendering"), MutatorKind.MISGENDERING)
        with self.assertRaises(ValueError):
            MutatorKind.parse("Shouting")


if __name__ == "__main__":
    unittest.main()
