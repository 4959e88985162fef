from dataclasses import dataclass, replace
from typing import Literal, get_args

from turingmaster.presets import Preset
from turingmaster.tape import BLANK

type Operator = Literal["+", "-"]

OPERATOR_PRESETS: dict[Operator, str] = {
    "+": "unary_addition",
    "-": "unary_subtraction",
}


def parse_operator(val: str) -> Operator:
    match val:
        case "+" | "-":
            return val
        case "−":
            return "-"
        case _:
            raise ValueError(f"Unsupported operator {val!r}, expected one of {", ".join(get_args(Operator.__value__))}")


def unary(value: int) -> str:
    return "1" * max(value, 0)


def encode(a: int, op: str, b: int) -> Preset:
    op = parse_operator(op)
    preset = Preset.get(OPERATOR_PRESETS[op])
    return replace(
        preset,
        name=f"{max(a, 0)} {op} {max(b, 0)}",
        initial_tape=f"{unary(a)}{op}{unary(b)}",
        rules=list(preset.rules),
    )


@dataclass(frozen=True)
class Decoded:
    value: int | None
    raw: str

    @property
    def ok(self) -> bool:
        return self.value is not None

    def __str__(self) -> str:
        return str(self.value) if self.value is not None else f"undecodable tape '{self.raw}'"


def decode(tape: str) -> Decoded:
    if all(char in ("1", BLANK) for char in tape):
        return Decoded(tape.count("1"), tape)
    return Decoded(None, tape)


def expected(a: int, op: str, b: int) -> int:
    a, b = max(a, 0), max(b, 0)
    return a + b if parse_operator(op) == "+" else max(a - b, 0)
