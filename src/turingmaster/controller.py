import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from turingmaster import arithmetic, engine
from turingmaster.engine import Applied, Halted, MachineState, Status, StepOutcome, TransitionRule, Verdict
from turingmaster.generator import RuleGenerator
from turingmaster.history import DEFAULT_CAPACITY, ExecutionLog, LogEntry
from turingmaster.presets import Preset
from turingmaster.tape import Tape

logger = logging.getLogger(__name__)


class ControllerError(RuntimeError):
    pass


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], object], /) -> TimerHandle: ...


@dataclass(frozen=True)
class RunResult:
    tape: str
    verdict: Verdict | None = None
    decoded: arithmetic.Decoded | None = None

    def __str__(self) -> str:
        if self.decoded is not None:
            return str(self.decoded)
        if self.verdict is not None:
            return self.verdict.value
        return f"'{self.tape}'"


class RunController:
    """Owns one machine and drives it, either step by step or from a timer.

    Only one step ever runs at a time and every timer firing reads the current
    machine state, so loading or resetting while running is safe as long as it
    goes through the controller. ``max_steps`` bounds each timed run: every
    ``start()`` may apply up to that many steps before the guard pauses it again.
    """

    def __init__(
        self,
        program: Preset | None = None,
        *,
        interval_ms: int = 200,
        log_capacity: int = DEFAULT_CAPACITY,
        max_steps: int | None = None,
        scheduler: Scheduler | None = None,
    ) -> None:
        self.interval_ms = interval_ms
        self.max_steps = max_steps
        self.log = ExecutionLog(log_capacity)
        self.program = program or Preset("empty", "", "", "start", [])
        self.rules: list[TransitionRule] = []
        self.state = MachineState()
        self.active_rule: int | None = None
        self._scheduler = scheduler
        self._timer: TimerHandle | None = None
        self._stepping = False
        self._math = False
        self._run_origin = 0
        self.reset()

    @property
    def status(self) -> Status:
        return self.state.status

    @property
    def interval_ms(self) -> int:
        return self._interval_ms

    @interval_ms.setter
    def interval_ms(self, value: int) -> None:
        if value <= 0:
            raise ValueError(f"Step interval must be positive, got {value}")
        self._interval_ms = value

    def load(self, program: Preset) -> None:
        self.program = program
        self._math = False
        self.reset()
        logger.info("Loaded program %r with %d rules", program.name, len(program.rules))

    def load_math(self, a: int, op: str, b: int) -> None:
        self.load(arithmetic.encode(a, op, b))
        self._math = True

    def generate(self, generator: RuleGenerator, prompt: str) -> Preset:
        program = generator.generate(prompt)
        self.load(program)
        return program

    def reset(self) -> None:
        self._cancel_timer()
        self.rules = list(self.program.rules)
        self.state = MachineState(
            tape=Tape.parse(self.program.initial_tape),
            current_state=self.program.initial_state,
        )
        self.active_rule = None
        self.log.clear()

    def start(self) -> None:
        match self.state.status:
            case Status.IDLE | Status.PAUSED:
                pass
            case status:
                raise ControllerError(f"Cannot start a machine that is {status.value.lower()}")
        self._arm()
        self._run_origin = self.state.step_count
        self.state.status = Status.RUNNING

    def pause(self) -> None:
        if self.state.status is not Status.RUNNING:
            return
        self._cancel_timer()
        self.state.status = Status.PAUSED
        logger.debug("Paused after %d steps", self.state.step_count)

    def step(self) -> StepOutcome:
        match self.state.status:
            case Status.IDLE | Status.PAUSED:
                pass
            case status:
                raise ControllerError(f"Cannot single-step a machine that is {status.value.lower()}")
        outcome = self._execute()
        if isinstance(outcome, Applied):
            self.state.status = Status.PAUSED
        return outcome

    def run(self, max_steps: int | None = None) -> Status:
        """Steps synchronously until the machine halts or ``max_steps`` further steps have been applied."""
        limit = max_steps if max_steps is not None else self.max_steps
        match self.state.status:
            case Status.HALTED:
                return Status.HALTED
            case Status.RUNNING:
                raise ControllerError("Machine is already running on a timer")
        applied = 0
        self.state.status = Status.RUNNING
        while limit is None or applied < limit:
            if isinstance(self._execute(), Halted):
                return Status.HALTED
            applied += 1
        self.state.status = Status.PAUSED
        logger.warning("Stopped after %d steps without halting", applied)
        return Status.PAUSED

    def result(self) -> RunResult | None:
        if self.state.status is not Status.HALTED:
            return None
        tape = str(self.state.tape)
        if self._math:
            return RunResult(tape, decoded=arithmetic.decode(tape))
        return RunResult(tape, verdict=engine.interpret(tape))

    def tail(self, count: int) -> list[LogEntry]:
        return self.log.tail(count)

    def _execute(self) -> StepOutcome:
        if self._stepping:
            raise ControllerError("A step is already in progress")
        self._stepping = True
        try:
            entry = LogEntry.snapshot(self.state)
            outcome = engine.step(self.state, self.rules)
            match outcome:
                case Applied(index):
                    self.active_rule = index
                    self.log.append(entry)
                case Halted():
                    self._cancel_timer()
                    self.log.append(LogEntry(entry.step, entry.state, entry.tape_snippet, halted=True))
            return outcome
        finally:
            self._stepping = False

    def _tick(self) -> None:
        self._timer = None
        if self.state.status is not Status.RUNNING:
            return
        if isinstance(self._execute(), Halted):
            return
        if self.max_steps is not None and self.state.step_count - self._run_origin >= self.max_steps:
            logger.warning("Step limit of %d reached, pausing", self.max_steps)
            self.state.status = Status.PAUSED
            return
        self._arm()

    def _arm(self) -> None:
        scheduler = self._scheduler or asyncio.get_running_loop()
        self._cancel_timer()
        self._timer = scheduler.call_later(self._interval_ms / 1000, self._tick)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
