"""Interactive prompt helpers built on InquirerPy."""

from __future__ import annotations

import sys
from typing import Any, Sequence

import typer
from InquirerPy import inquirer
from InquirerPy.base.control import Choice

from pull_request_opener.exceptions import ProError, UserAbort


def _ensure_tty() -> None:
    if not sys.stdin.isatty():
        raise ProError("Interactive selection requires a TTY.")


def fuzzy_select(message: str, choices: Sequence[Choice]) -> Any:
    """Return the value of the chosen entry. Ctrl-C raises UserAbort."""
    _ensure_tty()
    try:
        result = inquirer.fuzzy(
            message=message,
            choices=list(choices),
            mandatory=False,
            raise_keyboard_interrupt=False,
        ).execute()
    except KeyboardInterrupt as e:
        raise UserAbort("Selection cancelled.") from e
    if result is None:
        raise UserAbort("Selection cancelled.")
    return result


def build_choices(entries: Sequence[tuple[str, str]]) -> list[Choice]:
    """Build Choice objects from ``(label, url)`` pairs."""
    return [Choice(value=url, name=label) for label, url in entries]


def read_secret(message: str) -> str:
    """Prompt for a value without echoing it to the terminal."""
    return typer.prompt(message, hide_input=True, default="", show_default=False).strip()
