"""Terminal prompts for model selection, setup and interactive mode.

WHY: Several commands fall back to asking the user when an option is
missing (which voice model, which blend weights). Keeping the prompts in
one module keeps the command code readable and gives tests a single
input() to feed.

HOW: rich.prompt does the asking and the re-asking: Prompt for text and
numbered choices, Confirm for yes/no, FloatPrompt for numbers. Everything
is drawn on a stderr Console so stdout stays clean for listings. Labels
and messages are escaped because model names are vendor text, not markup.

RULES:
- Every prompt re-asks on invalid input instead of raising
- EOF (Ctrl-D) propagates as EOFError; callers treat it as cancel
- is_interactive() gates every prompt; non-TTY runs must pass flags
"""

from __future__ import annotations

import sys
from typing import List, Optional, Sequence, Tuple, TypeVar

from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm, FloatPrompt, Prompt

T = TypeVar("T")

console = Console(stderr=True)


def is_interactive() -> bool:
    return sys.stdin.isatty()


def ask_secret(message: str) -> str:
    return Prompt.ask(escape(message), password=True, console=console)


def _list(choices: Sequence[Tuple[str, object]]) -> None:
    for i, (label, _) in enumerate(choices, 1):
        console.print(f"  {i}. {escape(label)}")


def prompt_text(message: str, default: Optional[str] = None, required: bool = True) -> str:
    while True:
        if default is not None:
            answer = Prompt.ask(escape(message), default=default, console=console)
        else:
            answer = Prompt.ask(escape(message), console=console)
        answer = answer.strip()
        if answer or not required:
            return answer
        console.print("  [red]A value is required.[/red]")


def prompt_confirm(message: str, default: bool = True) -> bool:
    return Confirm.ask(escape(message), default=default, console=console)


def prompt_float(
    message: str,
    default: Optional[float] = None,
    minimum: Optional[float] = None,
    maximum: Optional[float] = None,
) -> float:
    while True:
        if default is not None:
            value = float(FloatPrompt.ask(escape(message), default=default, console=console))
        else:
            value = FloatPrompt.ask(escape(message), console=console)
        if minimum is not None and value < minimum:
            console.print(f"  [red]Value must be at least {minimum:g}.[/red]")
            continue
        if maximum is not None and value > maximum:
            console.print(f"  [red]Value must be at most {maximum:g}.[/red]")
            continue
        return value


def prompt_choice(message: str, choices: Sequence[Tuple[str, T]]) -> T:
    """Show a numbered list and return the value of the picked entry."""
    _list(choices)
    picked = Prompt.ask(
        f"{escape(message)} (1-{len(choices)})",
        choices=[str(i) for i in range(1, len(choices) + 1)],
        show_choices=False,
        console=console,
    )
    return choices[int(picked) - 1][1]


def prompt_multi_choice(
    message: str,
    choices: Sequence[Tuple[str, T]],
    min_count: int = 1,
    max_count: Optional[int] = None,
) -> List[T]:
    """Pick several entries by comma-separated numbers, e.g. ``1,3``."""
    _list(choices)
    upper = max_count or len(choices)
    while True:
        raw = Prompt.ask(
            f"{escape(message)} (comma-separated, {min_count}-{upper})", console=console
        )
        parts = [p.strip() for p in raw.split(",") if p.strip()]
        if not all(p.isdigit() and 1 <= int(p) <= len(choices) for p in parts):
            console.print("  [red]Invalid selection.[/red]")
            continue
        picked = list(dict.fromkeys(int(p) for p in parts))
        if not min_count <= len(picked) <= upper:
            console.print(f"  [red]Please select between {min_count} and {upper} entries.[/red]")
            continue
        return [choices[i - 1][1] for i in picked]
