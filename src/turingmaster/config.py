import logging
import os
import tomllib
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Self

CONFIG_ENV = "TURINGMASTER_CONFIG"
CONFIG_FILE = Path("turingmaster.toml")

logger = logging.getLogger(__name__)


@dataclass
class Settings:
    interval_ms: int = 200
    log_capacity: int = 100
    max_steps: int = 0
    generator_api: str = "http://localhost:11434"
    generator_model: str = "llama3.1"
    generator_timeout: float = 120.0

    def __post_init__(self) -> None:
        assert self.interval_ms > 0, f"interval_ms must be positive, got {self.interval_ms}"
        assert self.log_capacity > 0, f"log_capacity must be positive, got {self.log_capacity}"
        assert self.max_steps >= 0, f"max_steps must not be negative, got {self.max_steps}"

    @property
    def step_limit(self) -> int | None:
        return self.max_steps or None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        types = {f.name: f.type for f in fields(cls)}
        for key, value in data.items():
            if key not in types:
                raise ValueError(f"Unknown configuration key: {key}")
            expected = types[key]
            if expected is float and isinstance(value, int) and not isinstance(value, bool):
                value = float(value)
            if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
                raise TypeError(f"Config key '{key}' expected {expected.__name__}, got {type(value).__name__}.")
        return cls(**{key: float(v) if types[key] is float else v for key, v in data.items()})

    @classmethod
    def load(cls, path: Path | None = None) -> Self:
        if path is None:
            path = Path(env) if (env := os.environ.get(CONFIG_ENV)) else CONFIG_FILE
            if not path.exists():
                return cls()
        elif not path.exists():
            raise FileNotFoundError(f"Configuration file not found at: {path}")
        with path.open("rb") as f:
            data = tomllib.load(f)
        settings = cls.from_dict(data.get("turingmaster", data))
        logger.debug("Loaded settings from %s: %s", path, settings)
        return settings
