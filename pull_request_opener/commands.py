"""open / list / auth flows."""

from __future__ import annotations

import logging
from pathlib import Path

import httpx
from rich.console import Console
from rich.markup import escape

from pull_request_opener.config import Config, load_config, save_config
from pull_request_opener.delivery import Mode, copy_to_clipboard, open_in_browser, print_url
from pull_request_opener.exceptions import NoActiveBranchError, UnauthorizedError, UserAbort
from pull_request_opener.interactive import build_choices, fuzzy_select, read_secret
from pull_request_opener.providers import PROVIDERS, Provider, resolve_provider
from pull_request_opener.remote import RemoteInfo, parse_remote_url
from pull_request_opener.repository import Repository, find_in_parents

logger = logging.getLogger(__name__)
console = Console(stderr=True, soft_wrap=True)

MAIN_BRANCHES = ("master", "main", "trunk", "develop")


def locate(start: Path | None = None) -> tuple[Repository, RemoteInfo]:
    """Find the repository around *start* and parse its origin remote."""
    repository = find_in_parents(start or Path.cwd())
    remote = parse_remote_url(repository.origin_url())
    logger.info(f"Origin: {remote.host} {remote.project_path}")
    return repository, remote


def deliver(url: str, mode: Mode) -> None:
    """Open, print or copy *url*."""
    if mode is Mode.PRINT:
        print_url(url)
    elif mode is Mode.COPY:
        copy_to_clipboard(url)
        console.print(f"Copied to clipboard: [blue]{escape(url)}[/blue]")
    else:
        console.print(f"Opening [blue]{escape(url)}[/blue]")
        open_in_browser(url)


def _report_missing_request(
    provider: Provider, remote: RemoteInfo, branch: str, mode: Mode
) -> int:
    kind = provider.request_kind

    # "no request yet" vs "branch never pushed"
    if branch not in provider.list_remote_branches(remote, search=branch):
        console.print(f"[yellow]Branch {escape(branch)} has not been pushed to origin yet.[/yellow]")
        console.print(f"[dim]Push it first: git push -u origin {escape(branch)}[/dim]")
        return 0

    url = provider.new_request_url(remote, branch)
    console.print(f"No open {kind} found for current branch")
    console.print(f"Create {kind} at:")
    print_url(url)
    if mode is Mode.COPY:
        copy_to_clipboard(url)
        console.print("URL copied to clipboard.")
    return 0


def cmd_open(
    config: Config,
    mode: Mode = Mode.BROWSER,
    start: Path | None = None,
    client: httpx.Client | None = None,
) -> int:
    """Open the request for the current branch, or say how to create one."""
    repository, remote = locate(start)

    try:
        branch = repository.current_branch_name()
    except NoActiveBranchError:
        console.print("[red]No active branch found.[/red]")
        console.print("[dim]Switch to a branch and try again.[/dim]")
        return 0

    console.print(f"Current branch: [green]{escape(branch)}[/green]")

    if branch in MAIN_BRANCHES:
        console.print("Looks like you are on the main branch. Opening home page.")
        deliver(remote.homepage_url, mode)
        return 0

    with resolve_provider(remote, config, client=client) as provider:
        with console.status(f"Looking up {provider.request_kind}..."):
            request = provider.find_request_for_branch(remote, branch)
        if request is None:
            return _report_missing_request(provider, remote, branch, mode)

    logger.info(f"Matched {request.label}")
    deliver(request.web_url, mode)
    return 0


def cmd_list(
    config: Config,
    mode: Mode = Mode.BROWSER,
    start: Path | None = None,
    client: httpx.Client | None = None,
) -> int:
    """Pick one of the open requests (or the homepage) and deliver its URL."""
    _, remote = locate(start)
    entries = [(f"Repository homepage ({remote.project_path})", remote.homepage_url)]

    with resolve_provider(remote, config, client=client) as provider:
        kind = provider.request_kind
        with console.status(f"Fetching open {kind}s..."):
            requests = provider.list_open_requests(remote)

    if not requests:
        console.print(f"[dim]No open {kind}s found.[/dim]")
    entries.extend((request.label, request.web_url) for request in requests)

    try:
        url = fuzzy_select(f"Select {kind}:", build_choices(entries))
    except UserAbort:
        logger.info("Selection cancelled")
        return 0

    deliver(url, mode)
    return 0


def cmd_auth(
    provider_name: str, host: str | None = None, client: httpx.Client | None = None
) -> int:
    """Ask for a token, check it against *host* (or the public instance) and store it."""
    provider_cls = PROVIDERS[provider_name]
    host = (host or provider_cls.default_host).lower()
    console.print(f"Generate your token at [blue]{escape(provider_cls.token_url(host))}[/blue]")
    console.print(f"The only required scope is '{provider_cls.token_scope}'")

    token = read_secret("Token")
    if not token:
        console.print("[red]Token is empty. Try again[/red]")
        return 1

    with provider_cls(host=host, token=token, client=client) as provider:
        try:
            username = provider.verify_user()
        except UnauthorizedError:
            console.print("[red]Token is invalid. Try again[/red]")
            return 1

    # stored values only; env overrides must not be persisted
    config = load_config(use_env=False).with_token(provider_name, token)
    save_config(config)

    console.print(f"[green]Saved.[/green] Authenticated as {escape(username)}")
    return 0
