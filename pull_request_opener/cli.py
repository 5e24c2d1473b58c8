"""Typer CLI entry point."""

from __future__ import annotations

import enum
import logging
from typing import Annotated, Callable

import typer
from rich.console import Console
from rich.markup import escape

from pull_request_opener import __version__
from pull_request_opener.commands import cmd_auth, cmd_list, cmd_open
from pull_request_opener.config import Config, load_config
from pull_request_opener.delivery import Mode
from pull_request_opener.exceptions import (
    ConfigError,
    GitFileError,
    NoRemoteOriginError,
    ProError,
    ProjectNotFoundError,
    RemoteUrlError,
    RepositoryNotFoundError,
    TokenNotSetError,
    UnauthorizedError,
    UnsupportedHostError,
)
from pull_request_opener.providers import PROVIDERS

logging.basicConfig(level=logging.WARNING, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)

app = typer.Typer(
    name="pro",
    help="Pull Request opener - open the pull/merge request for the current branch.",
    add_completion=False,
)
console = Console(stderr=True, soft_wrap=True)


class ProviderName(str, enum.Enum):
    github = "github"
    gitlab = "gitlab"


PrintOption = Annotated[
    bool, typer.Option("--print", "-p", help="Print the URL instead of opening the browser")
]
CopyOption = Annotated[bool, typer.Option("--copy", "-c", help="Copy the URL to the clipboard")]


def _hint(message: str, hint: str | None = None) -> None:
    console.print(f"[red]{escape(message)}[/red]")
    if hint:
        console.print(f"[dim]{escape(hint)}[/dim]")


def report_error(error: ProError) -> None:
    """Print a user-facing message (and what to do about it) for *error*."""
    if isinstance(error, RepositoryNotFoundError):
        _hint(
            "Unable to find git repository in given directory or any of parent directories.",
            "Please make sure you are in the project directory.",
        )
    elif isinstance(error, NoRemoteOriginError):
        _hint(
            'No remote named "origin" found.',
            'Please make sure you have a remote named "origin".',
        )
    elif isinstance(error, GitFileError):
        _hint(f"Unable to read repository metadata: {error}")
    elif isinstance(error, RemoteUrlError):
        _hint(f"Unable to parse origin URL: {error}")
    elif isinstance(error, UnsupportedHostError):
        _hint(f"Unknown remote type: {error.host}", "Only GitHub and GitLab remotes are supported.")
    elif isinstance(error, TokenNotSetError):
        display = PROVIDERS[error.provider].display_name
        _hint(
            f"{display} token is not set.",
            f"Run `pro auth {error.provider}` to set it.",
        )
    elif isinstance(error, UnauthorizedError):
        target = error.provider or "github|gitlab"
        _hint(
            f"Unable to get requests: {error}",
            f"Token may be expired or deleted. Run `pro auth {target}` to connect again.",
        )
    elif isinstance(error, ProjectNotFoundError):
        _hint(
            f"Project not found: {error.project_path}",
            "Maybe it was renamed or deleted? Change remote URL and try again.",
        )
    elif isinstance(error, ConfigError):
        _hint(str(error), "Fix or remove the config file and run `pro auth` again.")
    else:
        _hint(str(error))


def _run(action: Callable[[], int]) -> None:
    try:
        code = action()
    except ProError as e:
        logger.debug("Command failed", exc_info=True)
        report_error(e)
        raise typer.Exit(1) from e
    except OSError as e:
        _hint(f"Unexpected I/O error: {e}")
        raise typer.Exit(1) from e
    raise typer.Exit(code)


def _config() -> Config:
    try:
        return load_config()
    except ConfigError as e:
        report_error(e)
        raise typer.Exit(1) from e


def version_callback(value: bool) -> None:
    if value:
        console.print(f"pro v{__version__}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Enable verbose output")
    ] = False,
    version: Annotated[
        bool,
        typer.Option("--version", callback=version_callback, is_eager=True, help="Show version"),
    ] = False,
) -> None:
    """Open the pull/merge request for the current branch (same as `pro open`)."""
    if verbose:
        logging.getLogger().setLevel(logging.INFO)

    if ctx.invoked_subcommand is None:
        config = _config()
        _run(lambda: cmd_open(config))


@app.command("open")
def open_(print_: PrintOption = False, copy: CopyOption = False) -> None:
    """Open the pull/merge request for the current branch."""
    config = _config()
    _run(lambda: cmd_open(config, Mode.from_flags(print_, copy)))


@app.command("list")
def list_(print_: PrintOption = False, copy: CopyOption = False) -> None:
    """Fuzzy-select one of the open pull/merge requests."""
    config = _config()
    _run(lambda: cmd_list(config, Mode.from_flags(print_, copy)))


@app.command()
def auth(
    provider: Annotated[ProviderName, typer.Argument(help="Provider to connect")],
    host: Annotated[
        str | None,
        typer.Option("--host", help="GitHub Enterprise or self-hosted GitLab host name"),
    ] = None,
) -> None:
    """Store a personal access token for GitLab or GitHub."""
    _run(lambda: cmd_auth(provider.value, host))


if __name__ == "__main__":
    app()
