import json
from typing import Any

import pytest
import requests

from turingmaster import generator
from turingmaster.generator import GenerationError, OllamaGenerator, build_prompt
from turingmaster.presets import Preset

PROGRAM = {
    "rules": [{"currentState": "q", "readSymbol": "1", "writeSymbol": "0", "moveDirection": "N", "nextState": "h"}],
    "initialTape": "1",
    "initialState": "q",
    "description": "Clears a single one.",
}


class FakeResponse:
    def __init__(self, body: Any, status: int = 200) -> None:
        self.body = body
        self.status = status

    def raise_for_status(self) -> None:
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} error")

    def json(self) -> Any:
        if isinstance(self.body, Exception):
            raise self.body
        return self.body


@pytest.fixture()
def calls() -> list[dict[str, Any]]:
    return []


def respond_with(monkeypatch: pytest.MonkeyPatch, calls: list[dict[str, Any]], response: FakeResponse | Exception) -> None:
    def post(url: str, json: dict[str, Any], timeout: float) -> FakeResponse:
        calls.append({"url": url, "json": json, "timeout": timeout})
        if isinstance(response, Exception):
            raise response
        return response

    monkeypatch.setattr(generator.requests, "post", post)


def test_generate_parses_response(monkeypatch: pytest.MonkeyPatch, calls: list[dict[str, Any]]) -> None:
    respond_with(monkeypatch, calls, FakeResponse({"response": json.dumps(PROGRAM)}))
    gen = OllamaGenerator("http://example.test:1234/", "tiny", 5.0)
    preset = gen.generate("clear a bit")
    assert isinstance(preset, Preset)
    assert preset.name == "clear a bit"
    assert preset.initial_state == "q"
    assert len(preset.rules) == 1
    [call] = calls
    assert call["url"] == "http://example.test:1234/api/generate"
    assert call["json"]["model"] == "tiny"
    assert call["json"]["format"] == "json"
    assert call["json"]["stream"] is False
    assert "clear a bit" in call["json"]["prompt"]
    assert call["timeout"] == 5.0


def test_structurally_valid_but_empty_program_is_accepted(
    monkeypatch: pytest.MonkeyPatch, calls: list[dict[str, Any]]
) -> None:
    empty = dict(PROGRAM, rules=[])
    respond_with(monkeypatch, calls, FakeResponse({"response": json.dumps(empty)}))
    assert OllamaGenerator().generate("anything").rules == []


@pytest.mark.parametrize(
    "response",
    [
        FakeResponse({"response": "not json at all"}),
        FakeResponse({"response": json.dumps({"rules": []})}),
        FakeResponse({"response": ""}),
        FakeResponse({"response": {"rules": []}}),
        FakeResponse({"response": ["x"]}),
        FakeResponse({"response": 42}),
        FakeResponse(["unexpected"]),
        FakeResponse(ValueError("bad body")),
        FakeResponse({}, status=500),
        requests.ConnectionError("refused"),
    ],
)
def test_generation_failures(
    monkeypatch: pytest.MonkeyPatch, calls: list[dict[str, Any]], response: FakeResponse | Exception
) -> None:
    respond_with(monkeypatch, calls, response)
    with pytest.raises(GenerationError):
        OllamaGenerator().generate("something")


def test_empty_prompt_is_rejected_without_request(
    monkeypatch: pytest.MonkeyPatch, calls: list[dict[str, Any]]
) -> None:
    respond_with(monkeypatch, calls, FakeResponse({"response": json.dumps(PROGRAM)}))
    with pytest.raises(GenerationError):
        OllamaGenerator().generate("   ")
    assert calls == []


def test_prompt_mentions_blank_and_sentinels() -> None:
    prompt = build_prompt("check balanced parentheses")
    assert "'_'" in prompt
    assert "'Y'" in prompt
    assert "moveDirection" in prompt
