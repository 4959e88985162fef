import logging
from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import StrEnum

from turingmaster.tape import Configuration, Direction, Tape

logger = logging.getLogger(__name__)


class Status(StrEnum):
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    PAUSED = "PAUSED"
    HALTED = "HALTED"


class Verdict(StrEnum):
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


@dataclass(frozen=True)
class TransitionRule:
    current_state: str
    read_symbol: str
    write_symbol: str
    move: Direction
    next_state: str

    def __str__(self) -> str:
        return f"{self.current_state} {self.read_symbol} {self.write_symbol} {self.move.name} {self.next_state}"


@dataclass
class MachineState:
    tape: Tape = field(default_factory=Tape)
    head: int = 0
    current_state: str = "start"
    status: Status = Status.IDLE
    step_count: int = 0

    @property
    def symbol(self) -> str:
        return self.tape.read(self.head)

    def configuration(self) -> Configuration:
        return self.tape.configuration(self.head, self.current_state)


@dataclass(frozen=True)
class Applied:
    rule_index: int


@dataclass(frozen=True)
class Halted:
    pass


type StepOutcome = Applied | Halted


def find_rule(rules: Sequence[TransitionRule], state: str, symbol: str) -> int | None:
    """Index of the first rule matching ``(state, symbol)``. Earlier rules shadow later duplicates."""
    return next(
        (i for i, rule in enumerate(rules) if rule.current_state == state and rule.read_symbol == symbol),
        None,
    )


def step(state: MachineState, rules: Sequence[TransitionRule]) -> StepOutcome:
    index = find_rule(rules, state.current_state, state.symbol)
    if index is None:
        state.status = Status.HALTED
        logger.info("Halted in state %r reading %r after %d steps", state.current_state, state.symbol, state.step_count)
        return Halted()
    rule = rules[index]
    state.tape.write(state.head, rule.write_symbol)
    state.current_state = rule.next_state
    state.head += rule.move
    state.step_count += 1
    logger.debug("Step %d applied rule %d: %s", state.step_count, index, rule)
    return Applied(index)


@dataclass(frozen=True)
class RuleConflict:
    state: str
    symbol: str
    indices: tuple[int, ...]

    @property
    def winner(self) -> int:
        return self.indices[0]


def find_conflicts(rules: Sequence[TransitionRule]) -> list[RuleConflict]:
    seen: defaultdict[tuple[str, str], list[int]] = defaultdict(list)
    for i, rule in enumerate(rules):
        seen[rule.current_state, rule.read_symbol].append(i)
    return [
        RuleConflict(state, symbol, tuple(indices)) for (state, symbol), indices in seen.items() if len(indices) > 1
    ]


def interpret(tape: str) -> Verdict | None:
    if "Y" in tape:
        return Verdict.ACCEPTED
    elif "N" in tape:
        return Verdict.REJECTED
    else:
        return None
