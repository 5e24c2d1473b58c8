"""GitHub and GitLab REST clients."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from pull_request_opener.config import Config
from pull_request_opener.exceptions import (
    ProjectNotFoundError,
    ProviderError,
    TokenExpiredError,
    TokenNotSetError,
    UnauthorizedError,
    UnexpectedStatusError,
    UnsupportedHostError,
)
from pull_request_opener.remote import RemoteInfo

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
PER_PAGE = 100


@dataclass(frozen=True)
class PullRequest:
    """An open pull request (GitHub) or merge request (GitLab)."""

    title: str
    number: int
    state: str
    source_branch: str
    web_url: str
    reference_prefix: str = "#"

    @property
    def label(self) -> str:
        return f"{self.title} ({self.reference_prefix}{self.number})"


class Provider:
    """Read-only access to one hosting provider's REST API."""

    name: str
    display_name: str
    default_host: str
    request_kind: str
    open_state: str
    token_path: str
    token_scope: str

    def __init__(
        self,
        host: str,
        token: str,
        client: httpx.Client | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        scheme: str = "https",
    ) -> None:
        self.host = host
        self.scheme = scheme
        self._token = token
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout, follow_redirects=True)

    def __enter__(self) -> Provider:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    @classmethod
    def token_url(cls, host: str | None = None) -> str:
        """Page where a personal access token for *host* can be created."""
        return f"https://{host or cls.default_host}{cls.token_path}"

    @property
    def api_base(self) -> str:
        raise NotImplementedError

    def auth_headers(self) -> dict[str, str]:
        raise NotImplementedError

    def verify_user(self) -> str:
        """Return the username the token belongs to."""
        raise NotImplementedError

    def find_request_for_branch(self, remote: RemoteInfo, branch: str) -> PullRequest | None:
        raise NotImplementedError

    def list_open_requests(self, remote: RemoteInfo) -> list[PullRequest]:
        raise NotImplementedError

    def list_remote_branches(self, remote: RemoteInfo, search: str | None = None) -> list[str]:
        raise NotImplementedError

    def new_request_url(self, remote: RemoteInfo, branch: str) -> str:
        raise NotImplementedError

    def _matching(self, requests: list[PullRequest], branch: str) -> PullRequest | None:
        for request in requests:
            if request.source_branch == branch and request.state == self.open_state:
                return request
        return None

    def _send(
        self,
        url: str,
        params: dict[str, str | int] | None,
        project_path: str | None,
    ) -> tuple[httpx.Response, Any]:
        logger.info(f"GET {url} {params or ''}".rstrip())
        try:
            resp = self._client.get(url, params=params, headers=self.auth_headers())
        except httpx.HTTPError as e:
            raise ProviderError(f"Request to {url} failed: {e}") from e

        if resp.status_code != httpx.codes.OK:
            self._raise_for_status(resp, project_path)
        try:
            return resp, resp.json()
        except ValueError as e:
            raise ProviderError(f"Invalid JSON from {url}") from e

    def _get(
        self,
        path: str,
        params: dict[str, str | int] | None = None,
        project_path: str | None = None,
    ) -> Any:
        _, data = self._send(f"{self.api_base}{path}", params, project_path)
        return data

    def _get_all(
        self,
        path: str,
        params: dict[str, str | int] | None = None,
        project_path: str | None = None,
    ) -> list[Any]:
        """GET every page of a list endpoint, following ``Link: rel="next"``."""
        url: str | None = f"{self.api_base}{path}"
        items: list[Any] = []
        while url:
            resp, page = self._send(url, params, project_path)
            # GitHub answers with a bare object when exactly one ref matches
            if isinstance(page, dict):
                page = [page]
            items.extend(page)
            # the next link already carries the query string
            url = resp.links.get("next", {}).get("url")
            params = None
        return items

    def _raise_for_status(self, resp: httpx.Response, project_path: str | None) -> None:
        if resp.status_code == httpx.codes.UNAUTHORIZED:
            raise UnauthorizedError(self.name)
        if resp.status_code == httpx.codes.NOT_FOUND and project_path:
            raise ProjectNotFoundError(project_path)
        raise UnexpectedStatusError(resp.status_code, resp.text.strip())


class GitHubProvider(Provider):
    name = "github"
    display_name = "GitHub"
    default_host = "github.com"
    request_kind = "pull request"
    open_state = "open"
    token_path = "/settings/tokens/new"
    token_scope = "repo"

    @property
    def api_base(self) -> str:
        if self.host == "github.com":
            return "https://api.github.com"
        # GitHub Enterprise Server
        return f"{self.scheme}://{self.host}/api/v3"

    def auth_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"token {self._token}",
            "Accept": "application/vnd.github+json",
        }

    def verify_user(self) -> str:
        user = self._get("/user")
        return str(user.get("login") or user.get("id", ""))

    def _to_request(self, raw: dict[str, Any]) -> PullRequest:
        return PullRequest(
            title=raw.get("title", ""),
            number=int(raw.get("number", 0)),
            state=raw.get("state", ""),
            source_branch=(raw.get("head") or {}).get("ref", ""),
            web_url=raw.get("html_url", ""),
            reference_prefix="#",
        )

    def find_request_for_branch(self, remote: RemoteInfo, branch: str) -> PullRequest | None:
        # `head` filter needs "<user or org>:<branch>"
        raw = self._get(
            f"/repos/{remote.project_path}/pulls",
            params={"state": "open", "head": f"{remote.owner}:{branch}"},
            project_path=remote.project_path,
        )
        return self._matching([self._to_request(item) for item in raw], branch)

    def list_open_requests(self, remote: RemoteInfo) -> list[PullRequest]:
        raw = self._get_all(
            f"/repos/{remote.project_path}/pulls",
            params={"state": "open", "per_page": PER_PAGE},
            project_path=remote.project_path,
        )
        return [self._to_request(item) for item in raw]

    def list_remote_branches(self, remote: RemoteInfo, search: str | None = None) -> list[str]:
        git = f"/repos/{remote.project_path}/git"
        path = f"{git}/refs/heads"
        if search:
            # branches whose name starts with `search`
            path = f"{git}/matching-refs/heads/{quote(search, safe='/')}"
        raw = self._get_all(path, params={"per_page": PER_PAGE}, project_path=remote.project_path)
        return [item.get("ref", "").removeprefix("refs/heads/") for item in raw]

    def new_request_url(self, remote: RemoteInfo, branch: str) -> str:
        return f"{remote.homepage_url}/pull/new/{quote(branch, safe='/')}"


class GitLabProvider(Provider):
    name = "gitlab"
    display_name = "GitLab"
    default_host = "gitlab.com"
    request_kind = "merge request"
    open_state = "opened"
    token_path = "/-/profile/personal_access_tokens?name=PR+opener&scopes=api"
    token_scope = "api"

    EXPIRED_MARKER = "Token is expired"

    @property
    def api_base(self) -> str:
        return f"{self.scheme}://{self.host}/api/v4"

    def auth_headers(self) -> dict[str, str]:
        return {"PRIVATE-TOKEN": self._token}

    def _raise_for_status(self, resp: httpx.Response, project_path: str | None) -> None:
        if resp.status_code == httpx.codes.UNAUTHORIZED:
            try:
                body = resp.json()
            except ValueError:
                body = {}
            description = body.get("error_description", "") if isinstance(body, dict) else ""
            if self.EXPIRED_MARKER in str(description):
                raise TokenExpiredError(self.name)
            raise UnauthorizedError(self.name)
        super()._raise_for_status(resp, project_path)

    @staticmethod
    def _project_id(remote: RemoteInfo) -> str:
        return quote(remote.project_path, safe="")

    def verify_user(self) -> str:
        user = self._get("/user")
        return str(user.get("username") or user.get("id", ""))

    def _to_request(self, raw: dict[str, Any]) -> PullRequest:
        return PullRequest(
            title=raw.get("title", ""),
            number=int(raw.get("iid", 0)),
            state=raw.get("state", ""),
            source_branch=raw.get("source_branch", ""),
            web_url=raw.get("web_url", ""),
            reference_prefix="!",
        )

    def find_request_for_branch(self, remote: RemoteInfo, branch: str) -> PullRequest | None:
        raw = self._get(
            f"/projects/{self._project_id(remote)}/merge_requests",
            params={"state": "opened", "source_branch": branch},
            project_path=remote.project_path,
        )
        return self._matching([self._to_request(item) for item in raw], branch)

    def list_open_requests(self, remote: RemoteInfo) -> list[PullRequest]:
        raw = self._get_all(
            f"/projects/{self._project_id(remote)}/merge_requests",
            params={"state": "opened", "per_page": PER_PAGE},
            project_path=remote.project_path,
        )
        return [self._to_request(item) for item in raw]

    def list_remote_branches(self, remote: RemoteInfo, search: str | None = None) -> list[str]:
        params: dict[str, str | int] = {"per_page": PER_PAGE}
        if search:
            params["search"] = search
        raw = self._get_all(
            f"/projects/{self._project_id(remote)}/repository/branches",
            params=params,
            project_path=remote.project_path,
        )
        return [item.get("name", "") for item in raw]

    def new_request_url(self, remote: RemoteInfo, branch: str) -> str:
        return (
            f"{remote.homepage_url}/-/merge_requests/new"
            f"?merge_request%5Bsource_branch%5D={quote(branch, safe='')}"
        )


PROVIDERS: dict[str, type[Provider]] = {
    "github": GitHubProvider,
    "gitlab": GitLabProvider,
}


def provider_name_for_host(host: str) -> str:
    host = host.lower()
    if "github" in host:
        return "github"
    if "gitlab" in host:
        return "gitlab"
    raise UnsupportedHostError(host)


def resolve_provider(
    remote: RemoteInfo, config: Config, client: httpx.Client | None = None
) -> Provider:
    """Pick the provider for the remote's host, authenticated from *config*.

    Raises:
        UnsupportedHostError: host is neither GitHub nor GitLab
        TokenNotSetError: no token stored for the provider
    """
    name = provider_name_for_host(remote.host)
    token = config.token_for(name)
    if not token:
        raise TokenNotSetError(name)

    logger.info(f"Using {name} provider for {remote.host}")
    return PROVIDERS[name](host=remote.host, token=token, client=client, scheme=remote.scheme)
