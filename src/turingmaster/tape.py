from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Self

BLANK = "_"


class Direction(IntEnum):
    L = -1
    N = 0
    R = 1

    @classmethod
    def parse(cls, val: str) -> Self:
        match val:
            case "L" | "N" | "R":
                return getattr(cls, val)
            case _:
                raise ValueError(f"Unknown move direction {val!r}")


@dataclass
class Configuration:
    state: str
    left: str
    right: str

    def __post_init__(self) -> None:
        self.left = self.left.lstrip(BLANK)
        self.right = self.right.rstrip(BLANK)

    def __str__(self) -> str:
        return f"...{self.left}[{self.state}]{self.right}..."

    def __format__(self, format: str) -> str:
        if not format:
            return str(self)
        elif format == ">":
            return self.pretty()
        else:
            raise ValueError

    def pretty(self) -> str:
        left = [f"[grey58]{BLANK}[/]" if char == BLANK else char for char in self.left]
        state = f"[cyan]\\[{self.state}][/]"
        right = [f"[grey58]{BLANK}[/]" if char == BLANK else char for char in self.right]
        return f"...[grey58]{BLANK}[/]{"".join(left)}{state}{"".join(right)}[grey58]{BLANK}[/]..."


@dataclass
class Tape:
    """Sparse, two-way unbounded tape. Blank cells are never stored."""

    _cells: dict[int, str] = field(default_factory=dict)

    @classmethod
    def parse(cls, data: str) -> Self:
        tape = cls()
        for pos, char in enumerate(data):
            tape.write(pos, char)
        return tape

    def read(self, pos: int) -> str:
        return self._cells.get(pos, BLANK)

    def write(self, pos: int, symbol: str) -> None:
        if symbol == BLANK:
            self._cells.pop(pos, None)
        else:
            self._cells[pos] = symbol

    def bounds(self) -> tuple[int, int] | None:
        if not self._cells:
            return None
        return min(self._cells), max(self._cells)

    def cells(self) -> Iterator[tuple[int, str]]:
        return iter(sorted(self._cells.items()))

    def __len__(self) -> int:
        return len(self._cells)

    def __str__(self) -> str:
        match self.bounds():
            case None:
                return ""
            case (low, high):
                return "".join(self.read(pos) for pos in range(low, high + 1)).strip(BLANK)

    def configuration(self, head: int, state: str) -> Configuration:
        low, high = self.bounds() or (head, head)
        low, high = min(low, head), max(high, head)
        return Configuration(
            state=state,
            left="".join(self.read(pos) for pos in range(low, head)),
            right="".join(self.read(pos) for pos in range(head, high + 1)),
        )
