"""Hand a URL to the user: browser, clipboard or stdout."""

from __future__ import annotations

import enum
import logging
import shutil
import subprocess
import sys
import webbrowser

import typer

from pull_request_opener.exceptions import DeliveryError

logger = logging.getLogger(__name__)

# First available command wins
CLIPBOARD_COMMANDS: dict[str, list[list[str]]] = {
    "darwin": [["pbcopy"]],
    "win32": [["clip"]],
    "linux": [
        ["wl-copy"],
        ["xclip", "-selection", "clipboard"],
        ["xsel", "--clipboard", "--input"],
    ],
}


class Mode(enum.Enum):
    BROWSER = "browser"
    PRINT = "print"
    COPY = "copy"

    @classmethod
    def from_flags(cls, print_url: bool, copy: bool) -> Mode:
        if print_url:
            return cls.PRINT
        if copy:
            return cls.COPY
        return cls.BROWSER


def open_in_browser(url: str) -> None:
    if not webbrowser.open(url, new=2):
        raise DeliveryError(f"Unable to open browser. URL: {url}")


def _clipboard_command() -> list[str] | None:
    platform = "linux" if sys.platform.startswith("linux") else sys.platform
    for command in CLIPBOARD_COMMANDS.get(platform, []):
        if shutil.which(command[0]):
            return command
    return None


def copy_to_clipboard(text: str) -> None:
    command = _clipboard_command()
    if command is None:
        raise DeliveryError("Unable to copy to clipboard: no clipboard utility found")

    logger.info(f"Copying with {command[0]}")
    try:
        subprocess.run(command, input=text, text=True, check=True, capture_output=True)
    except (OSError, subprocess.CalledProcessError) as e:
        raise DeliveryError(f"Unable to copy to clipboard: {e}") from e


def print_url(url: str) -> None:
    typer.secho(url, fg=typer.colors.BLUE)
