"""JSON snapshots of the ledger state.

Layout:

    {
        "version": 1,
        "last_provider_id": 3,
        "last_subscriber_id": 1,
        "providers": [{"id": 1, "owner": "alice", ...}],
        "subscribers": [{"id": 1, "owner": "bob", ...}],
        "provider_subscribers": {"1": [1]},
        "subscriber_providers": {"1": [1, 2, 3]},
        "last_settled": [[1, 1, "2024-06-15T12:00:00+00:00"]],
        "register_keys": ["9b1c..."]
    }

Index lists are stored in their current (swap-delete) order so a reloaded
state is position-for-position identical. Registration keys are stored so a
reloaded ledger keeps refusing keys that were already used; pass the new
service's registry to ``load_state`` to seed it.
"""

from __future__ import annotations

import json
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

from ..exceptions import ValidationError
from ..models.ledger import Provider, Subscriber
from .collaborators import KeyRegistry
from .pairing_index import PairingIndex
from .state import LedgerState

SNAPSHOT_VERSION = 1


def dump_state(st: LedgerState) -> Dict[str, Any]:
    pairings = st.pairings
    return {
        "version": SNAPSHOT_VERSION,
        "last_provider_id": st.last_provider_id,
        "last_subscriber_id": st.last_subscriber_id,
        "providers": [asdict(p) for p in st.providers.values()],
        "subscribers": [asdict(s) for s in st.subscribers.values()],
        "provider_subscribers": {
            str(p): pairings.subscribers_of(p) for p in pairings.provider_ids()
        },
        "subscriber_providers": {
            str(s): pairings.providers_of(s) for s in pairings.subscriber_ids()
        },
        "last_settled": [[p, s, at.isoformat()] for p, s, at in pairings.pairs()],
        "register_keys": sorted({p.register_key for p in st.providers.values() if p.register_key}),
    }


def load_state(data: Dict[str, Any], keys: Optional[KeyRegistry] = None) -> LedgerState:
    """Rebuild a ``LedgerState``; used registration keys are marked in ``keys``."""
    version = data.get("version")
    if version != SNAPSHOT_VERSION:
        raise ValidationError("unsupported snapshot version", details={"version": version})

    try:
        providers = {p["id"]: Provider(**p) for p in data["providers"]}
        subscribers = {s["id"]: Subscriber(**s) for s in data["subscribers"]}
        pairings = PairingIndex.from_lists(
            {int(k): list(v) for k, v in data["provider_subscribers"].items()},
            {int(k): list(v) for k, v in data["subscriber_providers"].items()},
            {(int(p), int(s)): datetime.fromisoformat(at) for p, s, at in data["last_settled"]},
        )
        used_keys = [str(k) for k in data.get("register_keys", [])]
        used_keys.extend(p.register_key for p in providers.values() if p.register_key)
        st = LedgerState(
            providers=providers,
            subscribers=subscribers,
            pairings=pairings,
            last_provider_id=int(data["last_provider_id"]),
            last_subscriber_id=int(data["last_subscriber_id"]),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ValidationError("malformed snapshot", details={"cause": str(e)}) from e

    if keys is not None:
        for key in used_keys:
            keys.mark_used(key)
    return st


def save_snapshot(st: LedgerState, path: Union[str, Path]) -> Path:
    path = Path(path)
    with open(path, "w") as f:
        json.dump(dump_state(st), f, indent=2)
    return path


def load_snapshot(path: Union[str, Path], keys: Optional[KeyRegistry] = None) -> LedgerState:
    with open(Path(path)) as f:
        return load_state(json.load(f), keys)
