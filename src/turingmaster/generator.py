import json
import logging
from dataclasses import dataclass
from typing import Protocol

import requests

from turingmaster.presets import Preset, PresetFormatError
from turingmaster.tape import BLANK

logger = logging.getLogger(__name__)

SCHEMA_HINT = {
    "rules": [
        {
            "currentState": "string",
            "readSymbol": "single character",
            "writeSymbol": "single character",
            "moveDirection": "L | R | N",
            "nextState": "string",
        }
    ],
    "initialTape": "sample input string for the tape",
    "initialState": "name of the starting state",
    "description": "brief explanation of how the algorithm works",
}


class GenerationError(Exception):
    pass


class RuleGenerator(Protocol):
    def generate(self, prompt: str) -> Preset: ...


def build_prompt(task: str) -> str:
    schema = json.dumps(SCHEMA_HINT, indent=2)
    return (
        f'Create a standard deterministic Turing Machine configuration for the following task: "{task}".\n\n'
        "Requirements:\n"
        f"1. Use '{BLANK}' as the empty symbol/blank character.\n"
        "2. The 'moveDirection' must be one of 'L' (Left), 'R' (Right), or 'N' (No Move).\n"
        "3. Keep state names descriptive but concise (e.g., 'start', 'scan_right', 'carry').\n"
        "4. Provide a sample 'initialTape' string that demonstrates the functionality.\n"
        "5. If the task is a decision problem, write 'Y' on the tape to accept or 'N' to reject before halting.\n\n"
        f"Output strictly JSON with fields:\n{schema}\nNo prose outside JSON."
    )


@dataclass
class OllamaGenerator:
    api: str = "http://localhost:11434"
    model: str = "llama3.1"
    timeout: float = 120.0

    def generate(self, prompt: str) -> Preset:
        if not prompt.strip():
            raise GenerationError("Empty task description")
        url = f"{self.api.rstrip('/')}/api/generate"
        payload = {"model": self.model, "prompt": build_prompt(prompt), "format": "json", "stream": False}
        try:
            resp = requests.post(url, json=payload, timeout=self.timeout)
            resp.raise_for_status()
            body = resp.json()
            text = body.get("response", "") if isinstance(body, dict) else ""
        except (requests.RequestException, ValueError) as e:
            logger.warning("Rule generation request to %s failed: %s", url, e)
            raise GenerationError(f"Could not reach the rule generator at {url}") from e
        if not isinstance(text, str):
            raise GenerationError(f"The rule generator returned a {type(text).__name__} instead of JSON text")
        if not text:
            raise GenerationError("The rule generator returned an empty response")
        try:
            preset = Preset.from_dict(json.loads(text), name=prompt.strip())
        except (json.JSONDecodeError, PresetFormatError) as e:
            logger.warning("Rule generator returned an unusable program: %s", e)
            raise GenerationError(f"The rule generator returned an unusable program: {e}") from e
        logger.info("Generated %d rules for %r", len(preset.rules), prompt)
        return preset
