from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Any

from access.registry import AccessRegistry
from config.settings import EchoSettings
from corpus.models import GlobalState
from selection.engine import SelectionEngine
from snapshot.service import SnapshotService


@dataclass(frozen=True)
class RuntimeDeps:
    # core state
    state: GlobalState
    state_lock: Any
    registry: AccessRegistry
    rng: random.Random
    settings: EchoSettings

    # services
    engine: SelectionEngine
    snapshot_service: SnapshotService
