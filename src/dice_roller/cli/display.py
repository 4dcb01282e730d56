"""Rich terminal display manager."""
from __future__ import annotations

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from dice_roller.app import RollOutcome, ScanEntry
from dice_roller.models.lexeme import Lexeme

console = Console()


class Display:
    def __init__(self, width: int = 80):
        self.console = console
        self.width = width

    def show_outcomes(self, outcomes: list[RollOutcome], breakdown: bool = False) -> None:
        for outcome in outcomes:
            if not outcome.ok:
                self.show_error(f"{outcome.notation}: {outcome.error}")
                continue
            self.console.print(Text(outcome.text, style="bold"))
            if breakdown and outcome.kind == "dice":
                self.show_breakdown(outcome)

    def show_breakdown(self, outcome: RollOutcome) -> None:
        result = outcome.result or {}
        table = Table(box=box.SIMPLE, border_style="cyan", show_edge=False)
        table.add_column("Group", style="cyan bold")
        table.add_column("Die", justify="right")
        table.add_column("Value", justify="right")
        table.add_column("Notes", style="dim")
        for group in result.get("groups", []):
            for i, die in enumerate(group.get("dice", []), 1):
                notes = []
                if die.get("dropped"):
                    notes.append("dropped")
                if die.get("rerolled"):
                    notes.append("rerolled " + ", ".join(str(v) for v in die.get("history", [])))
                if die.get("exploded"):
                    notes.append("exploded")
                if die.get("combined"):
                    notes.append("combined " + ", ".join(str(v) for v in die["combined"]))
                if die.get("matched"):
                    notes.append("success")
                if die.get("stunt"):
                    notes.append("stunt")
                table.add_row(group.get("notation", "?"), f"d{die.get('faces')} #{i}", str(die.get("value")), "; ".join(notes))
        self.console.print(table)

    def show_lexemes(self, notation: str, lexemes: list[Lexeme]) -> None:
        table = Table(title=notation, box=box.ROUNDED, border_style="cyan")
        table.add_column("Type", style="bold")
        table.add_column("Data")
        table.add_column("Original", style="dim")
        table.add_column("Conditionals")
        for lx in lexemes:
            conds = " ".join(str(c) for c in lx.conditionals or [])
            table.add_row(lx.type.value, lx.data, lx.original, conds)
        self.console.print(table)

    def show_scan(self, path: str, entries: list[ScanEntry]) -> None:
        if not entries:
            self.console.print(f"[dim]No inline rolls found in {path}.[/dim]")
            return
        table = Table(title=path, box=box.ROUNDED, border_style="cyan")
        table.add_column("Line", justify="right")
        table.add_column("#", justify="right")
        table.add_column("Mode", style="dim")
        table.add_column("Result")
        for e in entries:
            if e.outcome.ok:
                text = Text(e.outcome.text)
                if e.restored:
                    text.append(" (saved)", style="dim")
            else:
                text = Text(f"{e.outcome.notation}: {e.outcome.error}", style="red")
            table.add_row(str(e.line + 1), str(e.index), e.mode.value, text)
        self.console.print(table)

    def show_formulas(self, formulas: dict[str, str]) -> None:
        if not formulas:
            self.console.print("[dim]No formulas configured.[/dim]")
            return
        table = Table(title="Formulas", box=box.ROUNDED, border_style="cyan")
        table.add_column("Name", style="bold")
        table.add_column("Notation")
        for name, notation in sorted(formulas.items()):
            table.add_row(name, notation)
        self.console.print(table)

    def show_saved_results(self, path: str, saved: dict[int, dict[int, dict]]) -> None:
        if not saved:
            self.console.print(f"[dim]No saved results for {path}.[/dim]")
            return
        content = Text()
        for line in sorted(saved):
            for index, payload in sorted(saved[line].items()):
                content.append(f"{line + 1:>4}:{index} ", style="cyan bold")
                content.append(f"{payload.get('notation', '?')} ", style="bold")
                content.append(f"→ {payload.get('display', '')}\n")
        self.console.print(Panel(content, title=path, border_style="cyan", box=box.ROUNDED, width=self.width))

    def show_error(self, message: str) -> None:
        # Notation may contain [[links]], so keep it out of rich markup.
        text = Text("Error: ", style="bold red")
        text.append(message)
        self.console.print(text)

    def show_success(self, message: str) -> None:
        self.console.print(Text(message, style="bold green"))
