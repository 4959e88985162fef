import asyncio
import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import Annotated

from rich.console import Console, Group
from rich.live import Live
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table
from rich.text import Text
from rich.theme import Theme
from typer import Abort, Argument, Context, Exit, Option, Typer

from turingmaster import arithmetic, engine
from turingmaster.config import Settings
from turingmaster.controller import RunController
from turingmaster.engine import Status
from turingmaster.generator import GenerationError, OllamaGenerator
from turingmaster.history import LogEntry
from turingmaster.presets import Preset, PresetFormatError

app = Typer(pretty_exceptions_show_locals=False, no_args_is_help=True)
theme = Theme({
    "success": "green",
    "warning": "orange3",
    "error": "red",
    "attention": "magenta2",
    "heading": "blue",
    "info": "dim cyan",
})
console = Console(theme=theme)


def format_log(entries: list[LogEntry], total: int) -> str:
    offset = max(0, total - len(entries))
    out = [
        "Execution log:\n",
        "[heading]step  state        tape[/]\n",
        "  ⋮\n" if offset else "",
        *(f"{'[attention]' if e.halted else ''}{escape(str(e))}{'[/]' if e.halted else ''}\n" for e in entries),
    ]
    return "".join(out)


def load_program(name_or_path: str, tape: str | None = None, state: str | None = None) -> Preset:
    try:
        program = Preset.resolve(name_or_path)
    except KeyError as e:
        console.print(f"[error]Unknown preset '{name_or_path}'. Available: {", ".join(Preset.available())}")
        raise Abort from e
    except (PresetFormatError, OSError) as e:
        console.print(f"[error]Could not load program '{name_or_path}':[/]\n{e}")
        raise Abort from e
    if tape is not None:
        program = replace(program, initial_tape=tape)
    if state is not None:
        program = replace(program, initial_state=state)
    return program


def report(controller: RunController, trace: int) -> None:
    if trace:
        console.print(format_log(controller.tail(trace), controller.log[-1].step if len(controller.log) else 0))
    console.print(f"Final configuration after {controller.state.step_count} steps: {controller.state.configuration():>}")
    match controller.result():
        case None:
            console.print(f"[warning]The machine did not halt, it is {controller.status.value.lower()}.")
        case result if result.decoded is not None:
            style = "success" if result.decoded.ok else "warning"
            console.print(f"[{style}]Result: {result.decoded}")
        case result if result.verdict is engine.Verdict.ACCEPTED:
            console.print("[success]The machine accepted the input.")
        case result if result.verdict is engine.Verdict.REJECTED:
            console.print("[error]The machine rejected the input.")
        case result:
            console.print(f"[success]Halted with tape '{result.tape}'.")


@app.callback()
def main(
    ctx: Context,
    *,
    config: Annotated[
        Path | None, Option("--config", "-C", help="TOML file with settings, defaults to ./turingmaster.toml.")
    ] = None,
    verbose: Annotated[bool, Option("--verbose", "-v", help="Log every step.")] = False,
):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False, show_time=False)],
        force=True,
    )
    try:
        ctx.obj = Settings.load(config)
    except (OSError, ValueError, TypeError, AssertionError) as e:
        console.print(f"[error]Invalid configuration:[/] {e}")
        raise Abort from e


@app.command()
def presets():
    table = Table("name", "title", "rules", "initial tape", "description", header_style="heading")
    for name in Preset.available():
        preset = Preset.get(name)
        table.add_row(name, preset.name, str(len(preset.rules)), preset.initial_tape, preset.description)
    console.print(table)


@app.command()
def run(
    ctx: Context,
    program: Annotated[str, Argument(help="Name of a bundled preset or path to a .json or .tm program.")],
    *,
    tape: Annotated[str | None, Option("--tape", "-t", help="Initial tape overriding the program's.")] = None,
    state: Annotated[str | None, Option("--state", "-s", help="Initial state overriding the program's.")] = None,
    max_steps: Annotated[
        int | None,
        Option("--max-steps", "-m", help="Stop after this many steps if the machine has not halted, 0 for no limit."),
    ] = None,
    trace: Annotated[int, Option("--trace", "-n", help="Number of log entries to show.")] = 20,
):
    settings: Settings = ctx.obj
    controller = RunController(load_program(program, tape, state), log_capacity=settings.log_capacity)
    status = controller.run(settings.step_limit if max_steps is None else max_steps or None)
    report(controller, trace)
    if status is not Status.HALTED:
        raise Exit(1)


@app.command(name="math")
def math_(
    ctx: Context,
    a: Annotated[int, Argument(help="Left operand.")],
    op: Annotated[str, Argument(help="Either '+' or '-'.")],
    b: Annotated[int, Argument(help="Right operand.")],
    *,
    trace: Annotated[int, Option("--trace", "-n", help="Number of log entries to show.")] = 0,
):
    settings: Settings = ctx.obj
    controller = RunController(log_capacity=settings.log_capacity)
    try:
        controller.load_math(a, op, b)
    except ValueError as e:
        console.print(f"[error]{e}")
        raise Abort from e
    console.print(f"TM input: [attention]{controller.program.initial_tape}")
    controller.run(settings.step_limit)
    report(controller, trace)
    result = controller.result()
    if result is None or result.decoded is None or result.decoded.value != arithmetic.expected(a, op, b):
        raise Exit(1)


def render(controller: RunController, trace: int) -> Group:
    machine = controller.state
    header = Text.from_markup(
        f"[heading]{controller.program.name}[/]  state [cyan]{machine.current_state}[/]  "
        f"steps {machine.step_count}  [attention]{machine.status.value}"
    )
    log = Text.from_markup(format_log(controller.tail(trace), machine.step_count + 1))
    return Group(header, Text.from_markup(f"{machine.configuration():>}"), log)


async def watch_machine(controller: RunController, live: Live, trace: int) -> None:
    controller.start()
    try:
        while controller.status is Status.RUNNING:
            live.update(render(controller, trace))
            await asyncio.sleep(controller.interval_ms / 1000)
    finally:
        controller.pause()
        live.update(render(controller, trace))


@app.command()
def watch(
    ctx: Context,
    program: Annotated[str, Argument(help="Name of a bundled preset or path to a .json or .tm program.")],
    *,
    tape: Annotated[str | None, Option("--tape", "-t", help="Initial tape overriding the program's.")] = None,
    state: Annotated[str | None, Option("--state", "-s", help="Initial state overriding the program's.")] = None,
    interval: Annotated[int | None, Option("--interval", "-i", help="Milliseconds per step.")] = None,
    trace: Annotated[int, Option("--trace", "-n", help="Number of log entries to show.")] = 10,
):
    settings: Settings = ctx.obj
    controller = RunController(
        load_program(program, tape, state),
        interval_ms=interval or settings.interval_ms,
        log_capacity=settings.log_capacity,
        max_steps=settings.step_limit,
    )
    with Live(render(controller, trace), console=console, refresh_per_second=20) as live:
        try:
            asyncio.run(watch_machine(controller, live, trace))
        except KeyboardInterrupt:
            console.print("[warning]Paused.")
    report(controller, 0)


@app.command()
def check(
    program: Annotated[str, Argument(help="Name of a bundled preset or path to a .json or .tm program.")],
):
    rules = load_program(program).rules
    conflicts = engine.find_conflicts(rules)
    if not conflicts:
        console.print(f"[success]No conflicting rules among {len(rules)} transitions.")
        return
    for conflict in conflicts:
        console.print(
            f"[warning]State '{conflict.state}' reading '{conflict.symbol}' has rules "
            f"{", ".join(map(str, conflict.indices))}[/], rule {conflict.winner} is used: {rules[conflict.winner]}"
        )
    raise Exit(1)


@app.command()
def generate(
    ctx: Context,
    prompt: Annotated[str, Argument(help="Description of what the machine should do.")],
    *,
    save: Annotated[Path | None, Option("--save", "-o", help="Write the generated program to this JSON file.")] = None,
    run_it: Annotated[bool, Option("--run", "-r", help="Run the generated program right away.")] = False,
):
    settings: Settings = ctx.obj
    generator = OllamaGenerator(settings.generator_api, settings.generator_model, settings.generator_timeout)
    controller = RunController(log_capacity=settings.log_capacity)
    try:
        with console.status("[info]Generating rules, this might take a bit."):
            program = controller.generate(generator, prompt)
    except GenerationError as e:
        console.print(f"[error]Failed to generate rules:[/] {e}")
        raise Abort from e
    console.print(f"[success]Generated {len(program.rules)} rules.[/] {program.description}")
    for i, rule in enumerate(program.rules):
        console.print(f"{i: >3}    {rule}", highlight=False)
    if save is not None:
        save.write_text(json.dumps(program.to_dict(), indent=2), encoding="utf-8")
        console.print(f"Saved program to '{save}'.")
    if run_it:
        controller.run(settings.step_limit)
        report(controller, 20)


if __name__ == "__main__":
    app()
