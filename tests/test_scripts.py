from pathlib import Path

import pytest
from typer.testing import CliRunner

from turingmaster import scripts
from turingmaster.generator import GenerationError
from turingmaster.presets import Preset

runner = CliRunner()


def test_presets_lists_bundled_programs() -> None:
    result = runner.invoke(scripts.app, ["presets"])
    assert result.exit_code == 0
    for name in Preset.available():
        assert name in result.output


def test_run_binary_increment() -> None:
    result = runner.invoke(scripts.app, ["run", "binary_increment"])
    assert result.exit_code == 0, result.output
    assert "Halted with tape '1100'" in result.output
    assert "Execution log" in result.output


def test_run_palindrome_verdicts() -> None:
    accepted = runner.invoke(scripts.app, ["run", "palindrome"])
    assert "accepted" in accepted.output
    rejected = runner.invoke(scripts.app, ["run", "palindrome", "--tape", "10"])
    assert rejected.exit_code == 0
    assert "rejected" in rejected.output


def test_run_stops_non_halting_program() -> None:
    result = runner.invoke(scripts.app, ["run", "ping_pong", "--max-steps", "100", "--trace", "0"])
    assert result.exit_code == 1
    assert "did not halt" in result.output


def test_run_max_steps_zero_means_unlimited(tmp_path: Path) -> None:
    config = tmp_path / "tm.toml"
    config.write_text("max_steps = 3\n")
    limited = runner.invoke(scripts.app, ["--config", str(config), "run", "binary_increment", "--trace", "0"])
    assert limited.exit_code == 1
    unlimited = runner.invoke(
        scripts.app, ["--config", str(config), "run", "binary_increment", "--max-steps", "0", "--trace", "0"]
    )
    assert unlimited.exit_code == 0, unlimited.output
    assert "Halted with tape '1100'" in unlimited.output


def test_run_unknown_program() -> None:
    result = runner.invoke(scripts.app, ["run", "no_such_machine"])
    assert result.exit_code == 1
    assert "Unknown preset" in result.output


def test_math_commands() -> None:
    added = runner.invoke(scripts.app, ["math", "3", "+", "2"])
    assert added.exit_code == 0, added.output
    assert "111+11" in added.output
    assert "Result: 5" in added.output
    subtracted = runner.invoke(scripts.app, ["math", "3", "-", "2"])
    assert subtracted.exit_code == 0, subtracted.output
    assert "Result: 1" in subtracted.output


def test_math_rejects_unknown_operator() -> None:
    result = runner.invoke(scripts.app, ["math", "3", "x", "2"])
    assert result.exit_code == 1
    assert "Unsupported operator" in result.output


def test_check_reports_conflicts(tmp_path: Path) -> None:
    program = tmp_path / "dup.tm"
    program.write_text("start\n0\nstart 0 1 R start\nstart 0 0 L start\n")
    result = runner.invoke(scripts.app, ["check", str(program)])
    assert result.exit_code == 1
    assert "has rules 0, 1" in result.output
    clean = runner.invoke(scripts.app, ["check", "palindrome"])
    assert clean.exit_code == 0
    assert "No conflicting rules" in clean.output


def test_watch_runs_until_halt() -> None:
    result = runner.invoke(scripts.app, ["watch", "binary_increment", "--interval", "1"])
    assert result.exit_code == 0, result.output
    assert "Halted with tape '1100'" in result.output


def test_config_option(tmp_path: Path) -> None:
    config = tmp_path / "tm.toml"
    config.write_text("max_steps = 10\n")
    result = runner.invoke(scripts.app, ["--config", str(config), "run", "ping_pong", "--trace", "0"])
    assert result.exit_code == 1
    assert "after 10 steps" in result.output
    bad = tmp_path / "bad.toml"
    bad.write_text("nonsense = 1\n")
    assert runner.invoke(scripts.app, ["--config", str(bad), "presets"]).exit_code == 1


class FakeGenerator:
    program: Preset | None = Preset("flip", "Flips one bit.", "0", "start", Preset.from_spec("start\n0\nstart 0 1 N done\n").rules)

    def __init__(self, *args: object) -> None:
        pass

    def generate(self, prompt: str) -> Preset:
        if self.program is None:
            raise GenerationError("offline")
        return self.program


def test_generate_saves_and_runs(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(scripts, "OllamaGenerator", FakeGenerator)
    target = tmp_path / "flip.json"
    result = runner.invoke(scripts.app, ["generate", "flip a bit", "--save", str(target), "--run"])
    assert result.exit_code == 0, result.output
    assert "Generated 1 rules" in result.output
    assert Preset.load(target).rules == FakeGenerator.program.rules
    assert "Halted with tape '1'" in result.output


def test_generate_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(FakeGenerator, "program", None)
    monkeypatch.setattr(scripts, "OllamaGenerator", FakeGenerator)
    result = runner.invoke(scripts.app, ["generate", "anything"])
    assert result.exit_code == 1
    assert "Failed to generate rules" in result.output
