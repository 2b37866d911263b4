"""
Garden grid geometry.

Fields are numbered from 1 in reading order on a rows x columns grid. Every
field is either grass or pond; the pond set is fixed for the lifetime of the
process.
"""

from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, List, Optional

from domain.value_objects.enums import FieldKind


def default_pond_fields(rows: int, columns: int) -> FrozenSet[int]:
    """Pond area of the classic garden: rows 1..rows-2, columns 1..columns-2 (0-based)."""
    ponds = set()
    for row in range(1, rows - 1):
        for col in range(1, columns - 1):
            ponds.add(row * columns + col + 1)
    return frozenset(ponds)


def parse_field_ranges(spec: str) -> FrozenSet[int]:
    """
    Parse a field list such as "12-19,22-29,35".

    Raises:
        ValueError: On malformed entries
    """
    fields = set()
    for part in spec.split(","):
        part = part.strip()
        if not part:
            continue
        if "-" in part:
            start, end = (int(p) for p in part.split("-", 1))
            if end < start:
                raise ValueError(f"Invalid field range: {part!r}")
            fields.update(range(start, end + 1))
        else:
            fields.add(int(part))
    return frozenset(fields)


@dataclass(frozen=True)
class FieldLayout:
    """Classifies fields and answers adjacency questions."""

    rows: int = 5
    columns: int = 10
    pond_fields: FrozenSet[int] = field(default_factory=frozenset)

    @classmethod
    def build(cls, rows: int, columns: int, pond_fields: Optional[Iterable[int]] = None) -> "FieldLayout":
        ponds = frozenset(pond_fields) if pond_fields is not None else default_pond_fields(rows, columns)
        return cls(rows=rows, columns=columns, pond_fields=ponds)

    @classmethod
    def from_settings(cls, settings) -> "FieldLayout":
        ponds = parse_field_ranges(settings.pond_fields) if settings.pond_fields.strip() else None
        return cls.build(settings.garden_rows, settings.garden_columns, ponds)

    @property
    def size(self) -> int:
        return self.rows * self.columns

    def contains(self, field_index: int) -> bool:
        return 1 <= field_index <= self.size

    def kind_of(self, field_index: int) -> Optional[FieldKind]:
        """Field kind, or None for an index outside the grid."""
        if not self.contains(field_index):
            return None
        return FieldKind.POND if field_index in self.pond_fields else FieldKind.GRASS

    def is_grass(self, field_index: int) -> bool:
        return self.kind_of(field_index) == FieldKind.GRASS

    def is_pond(self, field_index: int) -> bool:
        return self.kind_of(field_index) == FieldKind.POND

    def neighbors(self, field_index: int) -> List[int]:
        """The up to 8 fields touching this one, in reading order."""
        if not self.contains(field_index):
            return []
        row, col = divmod(field_index - 1, self.columns)
        result = []
        for dr in (-1, 0, 1):
            for dc in (-1, 0, 1):
                if dr == 0 and dc == 0:
                    continue
                r, c = row + dr, col + dc
                if 0 <= r < self.rows and 0 <= c < self.columns:
                    result.append(r * self.columns + c + 1)
        return result

    def grass_neighbors(self, field_index: int) -> List[int]:
        return [i for i in self.neighbors(field_index) if self.is_grass(i)]

    def all_fields(self) -> range:
        return range(1, self.size + 1)
