from collections import deque
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Self

from turingmaster.engine import MachineState

DEFAULT_CAPACITY = 100


@dataclass(frozen=True)
class LogEntry:
    step: int
    state: str
    tape_snippet: str
    halted: bool = False

    @classmethod
    def snapshot(cls, state: MachineState) -> Self:
        """Entry for the step about to be executed, capturing the tape before it is written."""
        return cls(state.step_count + 1, state.current_state, str(state.tape))

    def __str__(self) -> str:
        return f"#{self.step: <4} {self.state: <12} {self.tape_snippet}{"  (halt)" if self.halted else ""}"


class ExecutionLog:
    """Ring buffer of the most recent steps, oldest entries are dropped first."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError(f"Log capacity must be positive, got {capacity}")
        self._entries: deque[LogEntry] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._entries.maxlen or 0

    def append(self, entry: LogEntry) -> None:
        self._entries.append(entry)

    def clear(self) -> None:
        self._entries.clear()

    def tail(self, count: int) -> list[LogEntry]:
        if count <= 0:
            return []
        return list(self._entries)[-count:]

    def __iter__(self) -> Iterator[LogEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, index: int) -> LogEntry:
        return self._entries[index]
