from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any

from cellcraft.content.rules import GameRules
from cellcraft.sim.rng import cell_luck, spawn_key, value_key

LuckFn = Callable[[str], float]


@dataclass(frozen=True, order=True)
class CellCoord:
    """Grid cell coordinate (i, j); i follows latitude, j follows longitude."""

    i: int
    j: int

    def __post_init__(self) -> None:
        if isinstance(self.i, bool) or not isinstance(self.i, int):
            raise ValueError("cell.i must be an integer")
        if isinstance(self.j, bool) or not isinstance(self.j, int):
            raise ValueError("cell.j must be an integer")

    def to_key(self) -> str:
        return f"{self.i},{self.j}"

    @classmethod
    def from_key(cls, key: str) -> "CellCoord":
        if not isinstance(key, str):
            raise ValueError("cell key must be a string")
        parts = key.split(",")
        if len(parts) != 2:
            raise ValueError(f"cell key must look like 'i,j': {key!r}")
        try:
            coord = cls(i=int(parts[0]), j=int(parts[1]))
        except ValueError as exc:
            raise ValueError(f"cell key must look like 'i,j': {key!r}") from exc
        if coord.to_key() != key:
            raise ValueError(f"cell key must be canonical: {key!r}")
        return coord

    def to_dict(self) -> dict[str, int]:
        return {"i": self.i, "j": self.j}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CellCoord":
        return cls(i=int(data["i"]), j=int(data["j"]))

    def offset(self, di: int, dj: int) -> "CellCoord":
        return CellCoord(self.i + di, self.j + dj)


@dataclass(frozen=True)
class CellContent:
    token: int | None = None

    def __post_init__(self) -> None:
        if self.token is None:
            return
        if isinstance(self.token, bool) or not isinstance(self.token, int):
            raise ValueError("cell.token must be an integer or None")
        if self.token <= 0:
            raise ValueError("cell.token must be > 0")

    @property
    def is_empty(self) -> bool:
        return self.token is None

    def to_dict(self) -> dict[str, int | None]:
        return {"token": self.token}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CellContent":
        return cls(token=data.get("token"))


EMPTY_CELL = CellContent(None)


def generate_cell(coord: CellCoord, *, rules: GameRules, luck: LuckFn = cell_luck) -> CellContent:
    """Procedural content for a cell that has never been touched."""
    if luck(spawn_key(coord.i, coord.j)) >= rules.spawn_probability:
        return EMPTY_CELL
    return CellContent(rules.spawn_value_for(luck(value_key(coord.i, coord.j))))


class OverrideStore:
    """Sparse record of every cell the player changed.

    An entry holding ``CellContent(None)`` means the token was removed; a
    missing entry means the generator decides.
    """

    def __init__(self) -> None:
        self._entries: dict[CellCoord, CellContent] = {}

    def get(self, coord: CellCoord) -> CellContent | None:
        return self._entries.get(coord)

    def set(self, coord: CellCoord, content: CellContent) -> None:
        if not isinstance(content, CellContent):
            raise ValueError("override content must be a CellContent")
        self._entries[coord] = content

    def clear(self) -> None:
        self._entries.clear()

    def items(self) -> list[tuple[CellCoord, CellContent]]:
        return sorted(self._entries.items())

    def __contains__(self, coord: object) -> bool:
        return coord in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[CellCoord]:
        return iter(sorted(self._entries))

    def to_dict(self) -> dict[str, dict[str, int | None]]:
        return {coord.to_key(): content.to_dict() for coord, content in self.items()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OverrideStore":
        store = cls()
        for key in sorted(data):
            store.set(CellCoord.from_key(key), CellContent.from_dict(data[key]))
        return store


class WorldView:
    """Effective cell contents: an override when recorded, otherwise generation."""

    def __init__(self, overrides: OverrideStore, rules: GameRules, *, luck: LuckFn = cell_luck) -> None:
        self.overrides = overrides
        self.rules = rules
        self._luck = luck

    def effective_content(self, coord: CellCoord) -> CellContent:
        override = self.overrides.get(coord)
        if override is not None:
            return override
        return generate_cell(coord, rules=self.rules, luck=self._luck)

    def apply(self, coord: CellCoord, content: CellContent) -> None:
        self.overrides.set(coord, content)

    def cells_around(self, center: CellCoord, radius: int) -> list[tuple[CellCoord, CellContent]]:
        if radius < 0:
            raise ValueError("radius must be >= 0")
        cells: list[tuple[CellCoord, CellContent]] = []
        for i in range(center.i - radius, center.i + radius + 1):
            for j in range(center.j - radius, center.j + radius + 1):
                coord = CellCoord(i, j)
                cells.append((coord, self.effective_content(coord)))
        return cells
