"""Versioned CBOR snapshots of the whole GlobalState.

Layout (map):
    schema_version  int (absent in legacy blobs)
    guilds_keys     [id, ...]
    guilds_values   [scope, ...] parallel to guilds_keys
    whitelist, blacklist, modlist   [id, ...]

Scope map: guild_id, messages[{user_id, content}], asleep, min_proc, max_proc,
proc_out_of, proc, allowed_mutators[name, ...]. Legacy scopes lack allowed_mutators.

Ids are written as decimal strings and accepted as str or int on read.
"""
from __future__ import annotations

import dataclasses
from typing import Any

import cbor2

from corpus.models import DEFAULT_MUTATORS
from corpus.models import GlobalState
from corpus.models import MutatorKind
from corpus.models import ScopeState
from corpus.models import Utterance

CURRENT_SCHEMA_VERSION = 2
LEGACY_SCHEMA_VERSION = 1


class DeserializationError(ValueError):
    pass


class _SchemaMismatch(ValueError):
    pass


@dataclasses.dataclass(frozen=True, slots=True)
class LegacyScope:
    scope_id: int
    corpus: tuple[Utterance, ...]
    asleep: bool
    min_proc: int
    max_proc: int
    proc_out_of: int
    current_proc: int


@dataclasses.dataclass(frozen=True, slots=True)
class LegacySnapshot:
    scopes: tuple[LegacyScope, ...]
    whitelist: frozenset[int]
    blacklist: frozenset[int]
    modlist: frozenset[int]


# =========================
# ENCODE
# =========================
def _encode_id(value: int) -> str:
    return str(int(value))


def _encode_scope(scope: ScopeState) -> dict[str, Any]:
    return {
        "guild_id": _encode_id(scope.scope_id),
        "messages": [
            {"user_id": _encode_id(u.author_id), "content": u.content}
            for u in scope.corpus
        ],
        "asleep": bool(scope.asleep),
        "min_proc": int(scope.min_proc),
        "max_proc": int(scope.max_proc),
        "proc_out_of": int(scope.proc_out_of),
        "proc": int(scope.current_proc),
        "allowed_mutators": sorted(kind.value for kind in scope.allowed_mutators),
    }


def serialize(state: GlobalState) -> bytes:
    keys = list(state.scopes.keys())
    payload = {
        "schema_version": CURRENT_SCHEMA_VERSION,
        "guilds_keys": [_encode_id(k) for k in keys],
        "guilds_values": [_encode_scope(state.scopes[k]) for k in keys],
        "whitelist": sorted(_encode_id(u) for u in state.whitelist),
        "blacklist": sorted(_encode_id(u) for u in state.blacklist),
        "modlist": sorted(_encode_id(u) for u in state.moderators),
    }
    return cbor2.dumps(payload)


# =========================
# DECODE
# =========================
def _decode_id(value: Any) -> int:
    if isinstance(value, bool):
        raise _SchemaMismatch(f"expected id, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise _SchemaMismatch(f"expected id, got {value!r}")


def _decode_int(value: Any, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise _SchemaMismatch(f"{field}: expected int, got {value!r}")
    return value


def _decode_ids(raw: Any, field: str) -> frozenset[int]:
    if not isinstance(raw, list):
        raise _SchemaMismatch(f"{field}: expected list")
    return frozenset(_decode_id(v) for v in raw)


def _require_map(raw: Any, what: str) -> dict:
    if not isinstance(raw, dict):
        raise _SchemaMismatch(f"{what}: expected map")
    return raw


def _decode_messages(raw: Any) -> tuple[Utterance, ...]:
    if not isinstance(raw, list):
        raise _SchemaMismatch("messages: expected list")
    out: list[Utterance] = []
    for item in raw:
        item = _require_map(item, "message")
        content = item.get("content")
        if not isinstance(content, str):
            raise _SchemaMismatch("message.content: expected text")
        out.append(Utterance(author_id=_decode_id(item.get("user_id")), content=content))
    return tuple(out)


def _decode_scope_fields(raw: dict) -> LegacyScope:
    asleep = raw.get("asleep")
    if not isinstance(asleep, bool):
        raise _SchemaMismatch("asleep: expected bool")
    return LegacyScope(
        scope_id=_decode_id(raw.get("guild_id")),
        corpus=_decode_messages(raw.get("messages")),
        asleep=asleep,
        min_proc=_decode_int(raw.get("min_proc"), "min_proc"),
        max_proc=_decode_int(raw.get("max_proc"), "max_proc"),
        proc_out_of=_decode_int(raw.get("proc_out_of"), "proc_out_of"),
        current_proc=_decode_int(raw.get("proc"), "proc"),
    )


def _decode_mutators(raw: Any) -> set[MutatorKind]:
    if not isinstance(raw, list):
        raise _SchemaMismatch("allowed_mutators: expected list")
    kinds: set[MutatorKind] = set()
    for name in raw:
        if not isinstance(name, str):
            raise _SchemaMismatch(f"allowed_mutators: expected names, got {name!r}")
        try:
            kinds.add(MutatorKind(name))
        except ValueError as exc:
            raise _SchemaMismatch(str(exc)) from exc
    return kinds


def _check_version(payload: dict, expected: int, *, optional: bool) -> None:
    if "schema_version" not in payload:
        if optional:
            return
        raise _SchemaMismatch("schema_version missing")
    version = payload["schema_version"]
    if version != expected:
        raise _SchemaMismatch(f"schema_version {version!r} != {expected}")


def _parallel_scopes(payload: dict) -> list[tuple[int, dict]]:
    keys = payload.get("guilds_keys")
    values = payload.get("guilds_values")
    if not isinstance(keys, list) or not isinstance(values, list):
        raise _SchemaMismatch("guilds_keys/guilds_values: expected lists")
    if len(keys) != len(values):
        raise _SchemaMismatch("guilds_keys/guilds_values length mismatch")
    return [(_decode_id(k), _require_map(v, "guild")) for k, v in zip(keys, values)]


def _sanitize_proc(scope: ScopeState) -> None:
    # Decoded proc values never reach the probability roll unchecked.
    if scope.proc_out_of <= 0 or scope.min_proc < 0 or scope.min_proc > scope.max_proc:
        print(
            f"[Snapshot] clamping invalid proc config for scope {scope.scope_id}: "
            f"min={scope.min_proc} max={scope.max_proc} out_of={scope.proc_out_of}"
        )
        scope.proc_out_of = max(1, scope.proc_out_of)
        scope.min_proc = max(0, scope.min_proc)
        scope.max_proc = max(scope.min_proc, scope.max_proc)
    scope.current_proc = max(0, scope.current_proc)


def _decode_current(payload: dict) -> GlobalState:
    _check_version(payload, CURRENT_SCHEMA_VERSION, optional=True)
    state = GlobalState(
        whitelist=set(_decode_ids(payload.get("whitelist"), "whitelist")),
        blacklist=set(_decode_ids(payload.get("blacklist"), "blacklist")),
        moderators=set(_decode_ids(payload.get("modlist"), "modlist")),
    )
    for key, raw in _parallel_scopes(payload):
        if "allowed_mutators" not in raw:
            raise _SchemaMismatch("allowed_mutators missing")
        fields = _decode_scope_fields(raw)
        scope = ScopeState(
            scope_id=key,
            corpus=list(fields.corpus),
            asleep=fields.asleep,
            allowed_mutators=_decode_mutators(raw["allowed_mutators"]),
            min_proc=fields.min_proc,
            max_proc=fields.max_proc,
            proc_out_of=fields.proc_out_of,
            current_proc=fields.current_proc,
        )
        _sanitize_proc(scope)
        state.scopes[key] = scope
    return state


def _decode_legacy(payload: dict) -> LegacySnapshot:
    _check_version(payload, LEGACY_SCHEMA_VERSION, optional=True)
    scopes: list[LegacyScope] = []
    for key, raw in _parallel_scopes(payload):
        fields = _decode_scope_fields(raw)
        scopes.append(dataclasses.replace(fields, scope_id=key))
    return LegacySnapshot(
        scopes=tuple(scopes),
        whitelist=_decode_ids(payload.get("whitelist"), "whitelist"),
        blacklist=_decode_ids(payload.get("blacklist"), "blacklist"),
        modlist=_decode_ids(payload.get("modlist"), "modlist"),
    )


def migrate_legacy(legacy: LegacySnapshot) -> GlobalState:
    """Total upgrade: every legacy scope gets the default mutator set."""
    state = GlobalState(
        whitelist=set(legacy.whitelist),
        blacklist=set(legacy.blacklist),
        moderators=set(legacy.modlist),
    )
    for old in legacy.scopes:
        scope = ScopeState(
            scope_id=old.scope_id,
            corpus=list(old.corpus),
            asleep=old.asleep,
            allowed_mutators=set(DEFAULT_MUTATORS),
            min_proc=old.min_proc,
            max_proc=old.max_proc,
            proc_out_of=old.proc_out_of,
            current_proc=old.current_proc,
        )
        _sanitize_proc(scope)
        state.scopes[old.scope_id] = scope
    return state


def deserialize(data: bytes) -> GlobalState:
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise DeserializationError(f"snapshot must be bytes, got {type(data).__name__}")

    try:
        payload = cbor2.loads(bytes(data))
    except Exception as e:
        raise DeserializationError(f"snapshot is not valid CBOR: {e}") from e
    if not isinstance(payload, dict):
        raise DeserializationError("snapshot root is not a map")

    try:
        return _decode_current(payload)
    except _SchemaMismatch as current_err:
        try:
            legacy = _decode_legacy(payload)
        except _SchemaMismatch as legacy_err:
            raise DeserializationError(
                f"snapshot matches no known schema (current: {current_err}; legacy: {legacy_err})"
            ) from legacy_err
    print(f"[Snapshot] legacy snapshot detected; migrated {len(legacy.scopes)} scopes")
    return migrate_legacy(legacy)
