from __future__ import annotations

import random

from corpus.models import ScopeState
from mutation.mutators import MutationContext
from mutation.mutators import attempt


def apply_mutators(
    text: str,
    scope: ScopeState,
    ctx: MutationContext,
    rng: random.Random,
) -> str:
    # Sorted first so a seeded rng gives the same order regardless of set iteration.
    kinds = sorted(scope.allowed_mutators, key=lambda k: k.value)
    rng.shuffle(kinds)
    for kind in kinds:
        mutated = attempt(kind, text, scope, ctx, rng)
        if mutated is not None:
            return mutated
    return text
