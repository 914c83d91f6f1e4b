"""Resumable batch state persisted between ``run()`` invocations."""

from __future__ import annotations

import json
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Protocol

from stocksync.domain.models import reason_lists
from stocksync.infrastructure.observability.logging import get_logger

from .errors import StateCorruption

logger = get_logger(__name__)

STATE_KEY_PREFIX = "sync_batch_state"

_REQUIRED_FIELDS: dict[str, type | tuple[type, ...]] = {
    "target_id": str,
    "total_items": int,
    "processed_items": int,
    "current_index": int,
    "full_item_list": list,
    "processed_local_ids": list,
    "totals": dict,
    "existing_local_ids_snapshot": list,
    "start_time": (int, float),
}


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str | None) -> None: ...

    def delete(self, key: str) -> None: ...


def state_key(target_id: str) -> str:
    return f"{STATE_KEY_PREFIX}:{target_id}"


@dataclass
class BatchState:
    """Progress of one multi-invocation sync run.

    ``current_index`` only moves forward and always equals the number of
    items consumed from ``full_item_list``.
    """

    target_id: str
    trigger_type: str
    start_time: float
    full_item_list: list[dict[str, Any]]
    existing_local_ids_snapshot: list[int]
    total_items: int = 0
    processed_items: int = 0
    current_index: int = 0
    processed_local_ids: list[int] = field(default_factory=list)
    totals: dict[str, int] = field(
        default_factory=lambda: {"created": 0, "updated": 0, "unchanged": 0, "skipped": 0}
    )
    skipped_reasons: dict[str, list[str]] = field(default_factory=dict)
    media_errors: dict[str, list[str]] = field(default_factory=dict)
    failed_items: list[str] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return self.processed_items >= self.total_items

    @property
    def remaining(self) -> int:
        return max(0, self.total_items - self.current_index)

    def next_slice(self, batch_size: int) -> list[dict[str, Any]]:
        return self.full_item_list[self.current_index : self.current_index + batch_size]

    def advance(self, consumed: int) -> None:
        """Move past ``consumed`` items of ``full_item_list``."""
        if consumed < 0:
            raise ValueError("consumed must not be negative")
        if consumed > self.remaining:
            raise ValueError(
                f"cannot consume {consumed} items, only {self.remaining} remain"
            )
        self.current_index += consumed
        self.processed_items = self.current_index

    def increment(self, counter: str, amount: int = 1) -> None:
        self.totals[counter] = int(self.totals.get(counter, 0)) + amount

    def record_processed(self, listing_id: int) -> None:
        if listing_id not in self.processed_local_ids:
            self.processed_local_ids.append(listing_id)

    def delete_set(self) -> list[int]:
        """Ids present before the run that no processed item accounted for."""
        processed = set(self.processed_local_ids)
        return [i for i in self.existing_local_ids_snapshot if i not in processed]

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Any) -> "BatchState":
        if not isinstance(data, dict):
            raise StateCorruption("Stored batch state is not an object")
        for name, expected in _REQUIRED_FIELDS.items():
            if name not in data:
                raise StateCorruption(f"Stored batch state is missing '{name}'")
            value = data[name]
            if isinstance(value, bool) or not isinstance(value, expected):
                raise StateCorruption(f"Stored batch state has an invalid '{name}'")
        state = cls(
            target_id=data["target_id"],
            trigger_type=str(data.get("trigger_type") or "manual"),
            start_time=float(data["start_time"]),
            full_item_list=list(data["full_item_list"]),
            existing_local_ids_snapshot=[int(i) for i in data["existing_local_ids_snapshot"]],
            total_items=data["total_items"],
            processed_items=data["processed_items"],
            current_index=data["current_index"],
            processed_local_ids=[int(i) for i in data["processed_local_ids"]],
            totals={k: int(v) for k, v in data["totals"].items()},
            skipped_reasons=reason_lists(data.get("skipped_reasons")),
            media_errors={k: list(v) for k, v in (data.get("media_errors") or {}).items()},
            failed_items=list(data.get("failed_items") or []),
        )
        if state.total_items != len(state.full_item_list):
            raise StateCorruption("Stored batch state item count does not match its item list")
        if not 0 <= state.current_index <= state.total_items:
            raise StateCorruption("Stored batch state index is out of range")
        if state.processed_items != state.current_index:
            raise StateCorruption("Stored batch state progress counters disagree")
        return state


class BatchCheckpoint:
    """Loads and stores :class:`BatchState` documents in a key-value store."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def load(self, target_id: str) -> BatchState | None:
        """Return the saved state for ``target_id``.

        Raises:
            StateCorruption: If a document exists but cannot be resumed.
        """
        raw = self.store.get(state_key(target_id))
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as exc:
            raise StateCorruption(f"Stored batch state is not valid JSON: {exc}") from exc
        state = BatchState.from_dict(data)
        if state.target_id != target_id:
            raise StateCorruption(
                f"Stored batch state belongs to target {state.target_id}, not {target_id}"
            )
        return state

    def save(self, state: BatchState) -> None:
        self.store.set(state_key(state.target_id), json.dumps(state.to_dict(), default=str))

    def clear(self, target_id: str) -> None:
        self.store.delete(state_key(target_id))
        logger.debug("Cleared batch state for %s", target_id)

    def exists(self, target_id: str) -> bool:
        return self.store.get(state_key(target_id)) is not None

    def begin(
        self,
        target_id: str,
        trigger_type: str,
        items: list[dict[str, Any]],
        existing_ids: list[int],
        start_time: float | None = None,
    ) -> BatchState:
        state = BatchState(
            target_id=target_id,
            trigger_type=trigger_type,
            start_time=time.time() if start_time is None else start_time,
            full_item_list=list(items),
            existing_local_ids_snapshot=list(existing_ids),
            total_items=len(items),
        )
        self.save(state)
        return state
