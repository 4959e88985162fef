import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, ClassVar, Self

from turingmaster.engine import TransitionRule
from turingmaster.tape import Direction

PRESET_FOLDER = Path(__file__).parent / "presets"

logger = logging.getLogger(__name__)


class PresetFormatError(ValueError):
    pass


def parse_symbol(value: str, what: str) -> str:
    if len(value) != 1:
        raise PresetFormatError(f"{what} must be a single character, got {value!r}")
    return value


def parse_rule(data: object, index: int = 0) -> TransitionRule:
    match data:
        case {
            "currentState": str(current),
            "readSymbol": str(read),
            "writeSymbol": str(write),
            "moveDirection": str(move),
            "nextState": str(next_state),
        }:
            pass
        case _:
            raise PresetFormatError(f"Rule {index} is missing a field or has a non-string value: {data!r}")
    try:
        direction = Direction.parse(move)
    except ValueError as e:
        raise PresetFormatError(f"Rule {index} has invalid move direction {move!r}") from e
    return TransitionRule(
        current_state=current,
        read_symbol=parse_symbol(read, f"Read symbol of rule {index}"),
        write_symbol=parse_symbol(write, f"Write symbol of rule {index}"),
        move=direction,
        next_state=next_state,
    )


@dataclass
class Preset:
    name: str
    description: str
    initial_tape: str
    initial_state: str
    rules: list[TransitionRule]

    _cache: ClassVar[dict[str, Self]] = {}

    @classmethod
    def from_dict(cls, data: object, name: str = "") -> Self:
        match data:
            case {"rules": list(rules), "initialTape": str(tape), "initialState": str(state)}:
                pass
            case dict():
                raise PresetFormatError(
                    "Preset needs a 'rules' list and string 'initialTape' and 'initialState' entries"
                )
            case _:
                raise PresetFormatError(f"Preset must be a JSON object, got {type(data).__name__}")
        description = data.get("description", "")
        if not isinstance(description, str):
            raise PresetFormatError("Preset description must be a string")
        return cls(
            name=str(data.get("name", name)),
            description=description,
            initial_tape=tape,
            initial_state=state,
            rules=[parse_rule(rule, i) for i, rule in enumerate(rules)],
        )

    @classmethod
    def from_spec(cls, spec: str, name: str = "") -> Self:
        try:
            initial_state, initial_tape, *rule_lines = spec.splitlines()
        except ValueError as e:
            raise PresetFormatError("Program needs an initial state line and an initial tape line") from e
        rules: list[TransitionRule] = []
        for line in rule_lines:
            if line.startswith(("#", "/")) or not line.strip():
                continue
            try:
                state, read, write, move, next_state, *_ = line.split()
            except ValueError as e:
                raise PresetFormatError(f"Could not parse rule line {line!r}") from e
            rules.append(
                parse_rule(
                    {
                        "currentState": state,
                        "readSymbol": read,
                        "writeSymbol": write,
                        "moveDirection": move,
                        "nextState": next_state,
                    },
                    len(rules),
                )
            )
        return cls(name, "", initial_tape.strip(), initial_state.strip(), rules)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "initialTape": self.initial_tape,
            "initialState": self.initial_state,
            "rules": [
                {
                    "currentState": rule.current_state,
                    "readSymbol": rule.read_symbol,
                    "writeSymbol": rule.write_symbol,
                    "moveDirection": rule.move.name,
                    "nextState": rule.next_state,
                }
                for rule in self.rules
            ],
        }

    @classmethod
    def load(cls, path: Path) -> Self:
        text = path.read_text(encoding="utf-8")
        if path.suffix == ".json":
            try:
                data = json.loads(text)
            except json.JSONDecodeError as e:
                raise PresetFormatError(f"{path.name} is not valid JSON: {e}") from e
            return cls.from_dict(data, path.stem)
        else:
            return cls.from_spec(text, path.stem)

    @classmethod
    def get(cls, name: str) -> Self:
        if name not in cls._cache:
            path = PRESET_FOLDER.joinpath(f"{name}.json")
            if not path.is_file():
                raise KeyError(name)
            cls._cache[name] = cls.load(path)
            logger.debug("Loaded preset %r with %d rules", name, len(cls._cache[name].rules))
        return cls._cache[name]

    @classmethod
    def available(cls) -> list[str]:
        return sorted(path.stem for path in PRESET_FOLDER.glob("*.json"))

    @classmethod
    def resolve(cls, name_or_path: str) -> Self:
        path = Path(name_or_path)
        if path.suffix and path.is_file():
            return cls.load(path)
        return cls.get(name_or_path)
