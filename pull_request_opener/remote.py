"""Parse git remote URLs into host and project path."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlparse

from pull_request_opener.exceptions import RemoteUrlError


@dataclass(frozen=True)
class RemoteInfo:
    host: str
    project_path: str
    scheme: str = "https"

    @property
    def owner(self) -> str:
        """User, organization or (GitLab) group path."""
        return self.project_path.rsplit("/", 1)[0]

    @property
    def homepage_url(self) -> str:
        return f"{self.scheme}://{self.host}/{self.project_path}"


def parse_remote_url(url: str) -> RemoteInfo:
    """Parse SSH (``git@host:path``) and URL (``https://host/path``) remotes."""
    url = url.strip()
    scheme = "https"

    if "://" in url:
        parsed = urlparse(url)
        host = parsed.hostname or ""
        path = parsed.path
        if parsed.scheme == "http":
            scheme = "http"
    else:
        if ":" not in url:
            raise RemoteUrlError(f"Unsupported remote URL format: {url}")
        user_host, path = url.split(":", 1)
        host = user_host.split("@", 1)[-1]

    if not host:
        raise RemoteUrlError(f"Could not parse host from remote URL: {url}")

    path = path.strip("/")
    if path.endswith(".git"):
        path = path[:-4]
    path = path.rstrip("/")

    parts = [part for part in path.split("/") if part]
    if len(parts) < 2:
        raise RemoteUrlError(f"Remote URL does not look like a hosted git repository: {url}")

    return RemoteInfo(host=host.lower(), project_path="/".join(parts), scheme=scheme)
