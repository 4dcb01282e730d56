"""Typer CLI application."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.logging import RichHandler

app = typer.Typer(
    name="dice-roller",
    help="Roll dice notation, tables and note sections from the terminal",
    no_args_is_help=True,
)

_state: dict = {"config": None}


@app.callback()
def main(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to a config.toml"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Dice roller."""
    _state["config"] = config
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        )


def _app():
    from dice_roller.app import DiceApp

    return DiceApp(config_path=_state["config"])


@app.command()
def roll(
    notations: List[str] = typer.Argument(..., help="One or more notations to roll"),
    seed: Optional[int] = typer.Option(None, "--seed", "-s", help="Seed for repeatable rolls"),
    breakdown: bool = typer.Option(False, "--breakdown", "-b", help="Show every die"),
) -> None:
    """Roll dice notation such as '4d6kh3 + 2' or '[[Loot#^table]]'."""
    from dice_roller.cli.display import Display
    from dice_roller.engine.random_source import SystemRandomSource

    outcomes = _app().roll_many(notations, SystemRandomSource(seed))
    display = Display()
    display.show_outcomes(outcomes, breakdown=breakdown)
    if not any(o.ok for o in outcomes):
        raise typer.Exit(code=1)


@app.command()
def lex(notation: str = typer.Argument(..., help="Notation to tokenize")) -> None:
    """Show the lexemes a notation breaks into."""
    from dice_roller.cli.display import Display
    from dice_roller.engine.errors import DiceError

    display = Display()
    dice_app = _app()
    text, _, _ = dice_app.prepare(notation)
    try:
        lexemes = dice_app.lexer.tokenize(text)
    except DiceError as e:
        display.show_error(str(e))
        raise typer.Exit(code=1)
    display.show_lexemes(text, lexemes)


@app.command()
def scan(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Markdown file"),
    reroll: bool = typer.Option(False, "--reroll", "-r", help="Ignore saved results"),
    render: bool = typer.Option(False, "--render", help="Print the file with dice-mod codes replaced"),
    seed: Optional[int] = typer.Option(None, "--seed", "-s", help="Seed for repeatable rolls"),
) -> None:
    """Roll every inline `dice:` code in a markdown file."""
    from dice_roller.cli.display import Display
    from dice_roller.engine.random_source import SystemRandomSource

    dice_app = _app()
    entries = dice_app.scan_document(file, reroll=reroll, random_source=SystemRandomSource(seed))
    display = Display()
    if render:
        display.console.print(dice_app.render_document(file, entries), markup=False)
    else:
        display.show_scan(file.as_posix(), entries)


@app.command()
def formulas() -> None:
    """List the named formulas from config."""
    from dice_roller.cli.display import Display

    Display().show_formulas(_app().settings.formulas)


@app.command()
def results(
    path: str = typer.Argument(..., help="Document path the results were saved under"),
    clear: bool = typer.Option(False, "--clear", help="Delete the saved results"),
    line: Optional[int] = typer.Option(None, "--line", "-l", help="Only this line"),
) -> None:
    """Show or clear results saved for a document."""
    from dice_roller.cli.display import Display

    dice_app = _app()
    display = Display()
    if clear:
        removed = dice_app.clear_results(path, line)
        display.show_success(f"Cleared {removed} saved result(s) from {path}")
        return
    saved = dice_app.saved_results(path)
    if line is not None:
        saved = {line: saved[line]} if line in saved else {}
    display.show_saved_results(path, saved)


if __name__ == "__main__":
    app()
