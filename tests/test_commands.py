"""Tests for the open / list / auth flows."""

from __future__ import annotations

from pathlib import Path
from subprocess import CompletedProcess
from typing import Callable

import httpx
import pytest

import pull_request_opener.commands as commands
import pull_request_opener.repository as repository
from pull_request_opener.config import Config, load_config, save_config
from pull_request_opener.delivery import Mode
from pull_request_opener.exceptions import TokenNotSetError, UserAbort

GITLAB_ORIGIN = "git@gitlab.com:acme/widgets.git\n"
GITHUB_ORIGIN = "https://github.com/octo/repo.git\n"
MR_URL = "https://gitlab.com/acme/widgets/-/merge_requests/7"
CREATE_URL = (
    "https://gitlab.com/acme/widgets/-/merge_requests/new"
    "?merge_request%5Bsource_branch%5D=fix-1"
)
CONFIG = Config(github_token="gh-token", gitlab_token="gl-token")


def _ok(stdout: str = "") -> CompletedProcess[str]:
    return CompletedProcess(args=["git"], returncode=0, stdout=stdout, stderr="")


def _client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def _gitlab_api(
    requests: list[dict] | None = None, branches: list[str] | None = None
) -> Callable[[httpx.Request], httpx.Response]:
    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.raw_path.split(b"?")[0]
        if path.endswith(b"/merge_requests"):
            return httpx.Response(200, json=requests or [])
        if path.endswith(b"/repository/branches"):
            return httpx.Response(200, json=[{"name": name} for name in branches or []])
        return httpx.Response(404, json={"message": "404 Not Found"})

    return handler


def _mr(iid: int, branch: str, title: str = "Fix widgets") -> dict:
    return {
        "iid": iid,
        "title": title,
        "state": "opened",
        "source_branch": branch,
        "web_url": f"https://gitlab.com/acme/widgets/-/merge_requests/{iid}",
    }


def _set_head(project: Path, head: str) -> None:
    (project / ".git" / "HEAD").write_text(head)


@pytest.fixture
def project(tmp_path: Path, monkeypatch) -> Path:
    """A repository on branch fix-1 whose origin is a GitLab project."""
    root = tmp_path / "widgets"
    git_dir = root / ".git"
    (git_dir / "objects").mkdir(parents=True)
    (git_dir / "refs" / "heads").mkdir(parents=True)
    (git_dir / "HEAD").write_text("ref: refs/heads/fix-1\n")
    monkeypatch.setattr(repository, "run_git", lambda args: _ok(GITLAB_ORIGIN))
    return root


@pytest.fixture
def opened(monkeypatch) -> list[str]:
    urls: list[str] = []
    monkeypatch.setattr(commands, "open_in_browser", urls.append)
    return urls


@pytest.fixture
def copied(monkeypatch) -> list[str]:
    texts: list[str] = []
    monkeypatch.setattr(commands, "copy_to_clipboard", texts.append)
    return texts


# --- open ---


def test_open_existing_merge_request(project: Path, opened: list[str], capsys) -> None:
    client = _client(_gitlab_api(requests=[_mr(7, "fix-1")]))

    code = commands.cmd_open(CONFIG, start=project, client=client)

    assert code == 0
    assert opened == [MR_URL]
    err = capsys.readouterr().err
    assert "Current branch: fix-1" in err
    assert f"Opening {MR_URL}" in err


def test_open_print_mode_writes_url_to_stdout(project: Path, opened: list[str], capsys) -> None:
    client = _client(_gitlab_api(requests=[_mr(7, "fix-1")]))

    code = commands.cmd_open(CONFIG, Mode.PRINT, start=project, client=client)

    assert code == 0
    assert opened == []
    assert capsys.readouterr().out.strip() == MR_URL


def test_open_copy_mode(project: Path, opened: list[str], copied: list[str], capsys) -> None:
    client = _client(_gitlab_api(requests=[_mr(7, "fix-1")]))

    commands.cmd_open(CONFIG, Mode.COPY, start=project, client=client)

    assert copied == [MR_URL]
    assert opened == []
    assert "Copied to clipboard" in capsys.readouterr().err


@pytest.mark.parametrize("branch", ["master", "main", "trunk", "develop"])
def test_open_main_branch_opens_homepage(
    project: Path, opened: list[str], branch: str, capsys
) -> None:
    _set_head(project, f"ref: refs/heads/{branch}\n")

    # no tokens: the API is never consulted
    code = commands.cmd_open(Config(), start=project)

    assert code == 0
    assert opened == ["https://gitlab.com/acme/widgets"]
    assert "Opening home page" in capsys.readouterr().err


def test_open_detached_head(project: Path, opened: list[str], capsys) -> None:
    _set_head(project, "3f786850e387550fdab836ed7e6dc881de23001b\n")

    code = commands.cmd_open(CONFIG, start=project)

    assert code == 0
    assert opened == []
    assert "No active branch found." in capsys.readouterr().err


def test_open_without_request_prints_create_url(
    project: Path, opened: list[str], capsys
) -> None:
    client = _client(_gitlab_api(requests=[_mr(3, "other")], branches=["fix-1"]))

    code = commands.cmd_open(CONFIG, start=project, client=client)

    assert code == 0
    assert opened == []
    captured = capsys.readouterr()
    assert "No open merge request found for current branch" in captured.err
    assert "Create merge request at:" in captured.err
    assert captured.out.strip() == CREATE_URL


def test_open_without_request_copy_mode_copies_create_url(
    project: Path, copied: list[str], capsys
) -> None:
    client = _client(_gitlab_api(branches=["fix-1"]))

    commands.cmd_open(CONFIG, Mode.COPY, start=project, client=client)

    assert copied == [CREATE_URL]
    assert "URL copied to clipboard." in capsys.readouterr().err


def test_open_branch_not_pushed(project: Path, opened: list[str], capsys) -> None:
    client = _client(_gitlab_api(branches=["fix-10"]))

    code = commands.cmd_open(CONFIG, start=project, client=client)

    assert code == 0
    assert opened == []
    captured = capsys.readouterr()
    assert "has not been pushed to origin yet" in captured.err
    assert "git push -u origin fix-1" in captured.err
    assert captured.out == ""


def test_open_finds_pushed_branch_on_second_page(project: Path, capsys) -> None:
    next_url = (
        "https://gitlab.com/api/v4/projects/acme%2Fwidgets/repository/branches"
        "?page=2&per_page=100&search=fix-1"
    )

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.raw_path.split(b"?")[0]
        if path.endswith(b"/merge_requests"):
            return httpx.Response(200, json=[])
        if request.url.params.get("page") == "2":
            return httpx.Response(200, json=[{"name": "fix-1"}])
        return httpx.Response(
            200,
            json=[{"name": f"fix-1-{n:03d}"} for n in range(100)],
            headers={"Link": f'<{next_url}>; rel="next"'},
        )

    code = commands.cmd_open(CONFIG, Mode.PRINT, start=project, client=_client(handler))

    assert code == 0
    captured = capsys.readouterr()
    assert "has not been pushed" not in captured.err
    assert captured.out.strip() == CREATE_URL


def test_open_without_token(project: Path) -> None:
    with pytest.raises(TokenNotSetError) as excinfo:
        commands.cmd_open(Config(github_token="gh-token"), start=project)

    assert excinfo.value.provider == "gitlab"


def test_open_github_pull_request(project: Path, opened: list[str], monkeypatch) -> None:
    monkeypatch.setattr(repository, "run_git", lambda args: _ok(GITHUB_ORIGIN))
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json=[
                {
                    "number": 5,
                    "title": "Fix",
                    "state": "open",
                    "head": {"ref": "fix-1"},
                    "html_url": "https://github.com/octo/repo/pull/5",
                }
            ],
        )

    commands.cmd_open(CONFIG, start=project, client=_client(handler))

    assert opened == ["https://github.com/octo/repo/pull/5"]
    assert seen[0].url.params["head"] == "octo:fix-1"


# --- list ---


def test_list_offers_homepage_first(project: Path, opened: list[str], monkeypatch) -> None:
    offered = []

    def select(message, choices):
        offered.extend(choices)
        return choices[1].value

    monkeypatch.setattr(commands, "fuzzy_select", select)
    client = _client(_gitlab_api(requests=[_mr(7, "fix-1"), _mr(9, "other", title="Other")]))

    code = commands.cmd_list(CONFIG, start=project, client=client)

    assert code == 0
    assert [choice.name for choice in offered] == [
        "Repository homepage (acme/widgets)",
        "Fix widgets (!7)",
        "Other (!9)",
    ]
    assert opened == [MR_URL]


def test_list_print_mode(project: Path, opened: list[str], monkeypatch, capsys) -> None:
    monkeypatch.setattr(commands, "fuzzy_select", lambda message, choices: choices[0].value)

    commands.cmd_list(CONFIG, Mode.PRINT, start=project, client=_client(_gitlab_api()))

    captured = capsys.readouterr()
    assert captured.out.strip() == "https://gitlab.com/acme/widgets"
    assert "No open merge requests found." in captured.err
    assert opened == []


def test_list_cancelled(project: Path, opened: list[str], monkeypatch) -> None:
    def select(message, choices):
        raise UserAbort("Selection cancelled.")

    monkeypatch.setattr(commands, "fuzzy_select", select)
    client = _client(_gitlab_api(requests=[_mr(7, "fix-1")]))

    assert commands.cmd_list(CONFIG, start=project, client=client) == 0
    assert opened == []


# --- auth ---


def _user_api(status: int = 200) -> Callable[[httpx.Request], httpx.Response]:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/v4/user"
        if status != 200:
            return httpx.Response(status, json={"message": "401 Unauthorized"})
        return httpx.Response(200, json={"id": 1, "username": "alice"})

    return handler


def test_auth_saves_token(config_path: Path, monkeypatch, capsys) -> None:
    save_config(Config(github_token="gh-token"))
    monkeypatch.setattr(commands, "read_secret", lambda message: "gl-new")

    code = commands.cmd_auth("gitlab", client=_client(_user_api()))

    assert code == 0
    assert load_config() == Config(github_token="gh-token", gitlab_token="gl-new")
    err = capsys.readouterr().err
    assert "scope is 'api'" in err
    assert "Saved." in err
    assert "alice" in err


def test_auth_does_not_persist_env_override(config_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("PRO_GITHUB_TOKEN", "from-env")
    monkeypatch.setattr(commands, "read_secret", lambda message: "gl-new")

    commands.cmd_auth("gitlab", client=_client(_user_api()))

    assert load_config(use_env=False) == Config(gitlab_token="gl-new")


def test_auth_empty_token(config_path: Path, monkeypatch, capsys) -> None:
    monkeypatch.setattr(commands, "read_secret", lambda message: "")

    code = commands.cmd_auth("gitlab", client=_client(_user_api()))

    assert code == 1
    assert not config_path.exists()
    assert "Token is empty" in capsys.readouterr().err


def test_auth_rejected_token(config_path: Path, monkeypatch, capsys) -> None:
    monkeypatch.setattr(commands, "read_secret", lambda message: "bad")

    code = commands.cmd_auth("gitlab", client=_client(_user_api(status=401)))

    assert code == 1
    assert not config_path.exists()
    assert "Token is invalid" in capsys.readouterr().err


def test_auth_against_enterprise_host(config_path: Path, monkeypatch, capsys) -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(200, json={"login": "octocat"})

    monkeypatch.setattr(commands, "read_secret", lambda message: "ghe-token")

    code = commands.cmd_auth("github", host="GitHub.MyCorp.com", client=_client(handler))

    assert code == 0
    assert seen == ["https://github.mycorp.com/api/v3/user"]
    assert "https://github.mycorp.com/settings/tokens/new" in capsys.readouterr().err
    assert load_config().github_token == "ghe-token"
