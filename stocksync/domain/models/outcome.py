"""Per-item processing outcomes.

A reconciliation pass turns every remote item into exactly one of these
values, so expected skip conditions never travel as exceptions:

* :class:`Ok` - the item was created, updated or matched unchanged.
* :class:`Skipped` - the item was deliberately left alone (e.g. unpublished).
* :class:`Failed` - mapping or persisting the item raised; the run continues.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Union

OkAction = Literal["created", "updated", "unchanged"]


@dataclass(frozen=True)
class Ok:
    listing_id: int
    action: OkAction
    natural_key: str
    media_errors: tuple[str, ...] = field(default=())


@dataclass(frozen=True)
class Skipped:
    natural_key: str
    reason: str


@dataclass(frozen=True)
class Failed:
    natural_key: str
    error: str

    @property
    def reason(self) -> str:
        return f"Processing error: {self.error}"


ItemOutcome = Union[Ok, Skipped, Failed]
