"""
drawer_engines.denominations -- The fixed, ordered set of notes in the drawer.

Responsibility:
    Holds the denomination table every other engine indexes into: one
    currency, a handful of face values, largest first.

Architecture position:
    Engines -- pure data, zero I/O.  Built once at configuration time.

Invariants enforced:
    - Non-empty.
    - Face values are positive integers, strictly descending.
    - Ids are unique.

Failure modes:
    - InvalidDenominationTableError on construction with a table that breaks
      any invariant above.
    - UnknownDenominationError when an id outside the table is looked up.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass

from drawer_kernel.exceptions import (
    InvalidDenominationTableError,
    UnknownDenominationError,
)


@dataclass(frozen=True, slots=True)
class Denomination:
    """One note face value and its stable identifier (e.g. ``d500k``)."""

    id: str
    face_value: int


@dataclass(frozen=True)
class DenominationTable:
    """
    Immutable, descending denomination table.

    Contract:
        Iteration order is descending face value; index 0 is the largest
        note.  Allocation passes rely on that order.

    Non-goals:
        - Multiple currencies.  One table per drawer.
    """

    denominations: tuple[Denomination, ...]

    def __post_init__(self) -> None:
        denoms = tuple(self.denominations)
        if not denoms:
            raise InvalidDenominationTableError("table is empty")
        seen: set[str] = set()
        previous: int | None = None
        for denom in denoms:
            if not denom.id:
                raise InvalidDenominationTableError("denomination id is empty")
            if denom.id in seen:
                raise InvalidDenominationTableError(f"duplicate id {denom.id}")
            seen.add(denom.id)
            if isinstance(denom.face_value, bool) or not isinstance(denom.face_value, int):
                raise InvalidDenominationTableError(
                    f"face value of {denom.id} is not an integer"
                )
            if denom.face_value <= 0:
                raise InvalidDenominationTableError(
                    f"face value of {denom.id} must be positive"
                )
            if previous is not None and denom.face_value >= previous:
                raise InvalidDenominationTableError(
                    "face values must be strictly descending"
                )
            previous = denom.face_value
        object.__setattr__(self, "denominations", denoms)
        object.__setattr__(
            self, "_index", {denom.id: i for i, denom in enumerate(denoms)}
        )

    @classmethod
    def of(cls, pairs: Iterable[tuple[str, int]]) -> DenominationTable:
        """Build a table from ``(id, face_value)`` pairs, largest first."""
        return cls(tuple(Denomination(id=str(i), face_value=v) for i, v in pairs))

    def __iter__(self) -> Iterator[Denomination]:
        return iter(self.denominations)

    def __len__(self) -> int:
        return len(self.denominations)

    def __getitem__(self, index: int) -> Denomination:
        return self.denominations[index]

    def __contains__(self, denomination_id: object) -> bool:
        return denomination_id in self._index

    @property
    def ids(self) -> tuple[str, ...]:
        return tuple(d.id for d in self.denominations)

    def index_of(self, denomination_id: str) -> int:
        try:
            return self._index[denomination_id]
        except KeyError:
            raise UnknownDenominationError(denomination_id) from None

    def face_value(self, denomination_id: str) -> int:
        return self.denominations[self.index_of(denomination_id)].face_value

    def zero_counts(self) -> dict[str, int]:
        return {d.id: 0 for d in self.denominations}

    def value_of(self, counts: Mapping[str, int]) -> int:
        """Sum of ``count * face`` for the ids of this table; other keys ignored."""
        return sum(counts.get(d.id, 0) * d.face_value for d in self.denominations)


VND_DENOMINATIONS = DenominationTable.of(
    [
        ("d500k", 500_000),
        ("d200k", 200_000),
        ("d100k", 100_000),
        ("d50k", 50_000),
        ("d20k", 20_000),
        ("d10k", 10_000),
        ("d5k", 5_000),
        ("d2k", 2_000),
        ("d1k", 1_000),
    ]
)
