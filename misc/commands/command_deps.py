from __future__ import annotations

import random
from dataclasses import dataclass
from dataclasses import field
from typing import Any
from typing import Callable


def _default_false(*args, **kwargs) -> bool:
    return False


@dataclass(frozen=True)
class CommandDeps:
    # Core/shared
    state: Any = None
    state_lock: Any = None
    registry: Any = None
    rng: random.Random = field(default_factory=random.Random)
    send_chunked: Callable | None = None

    # Snapshots
    snapshot_service: Any = None


@dataclass(frozen=True)
class CommandGates:
    user_is_owner: Callable[[int], bool] = _default_false
    user_is_moderator: Callable[[int], bool] = _default_false
    user_is_permitted: Callable[[int], bool] = _default_false
