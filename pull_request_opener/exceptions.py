"""Exception hierarchy for pull-request-opener."""

from __future__ import annotations


class ProError(Exception):
    """Base error for everything the CLI reports to users."""


class RepositoryError(ProError):
    """Raised when repository metadata cannot be resolved."""


class RepositoryNotFoundError(RepositoryError):
    """No git repository in the start directory or any parent."""

    def __init__(self, message: str = "no git repository found") -> None:
        super().__init__(message)


class NoActiveBranchError(RepositoryError):
    """HEAD does not point at a branch (detached HEAD)."""

    def __init__(self, message: str = "no active branch") -> None:
        super().__init__(message)


class NoRemoteOriginError(RepositoryError):
    """The repository has no remote named origin."""

    def __init__(self, message: str = 'no remote named "origin" found') -> None:
        super().__init__(message)


class GitFileError(RepositoryError):
    """A git metadata file (HEAD, .git) could not be read."""


class GitCommandError(RepositoryError):
    """Raised when a git invocation fails."""

    def __init__(self, command: list[str], returncode: int, stderr: str | None = None):
        message = "Git command failed"
        if command:
            message = f"Git command failed: {' '.join(command)}"
        if stderr:
            message = f"{message}: {stderr.strip()}"
        super().__init__(message)
        self.command = command
        self.returncode = returncode
        self.stderr = stderr or ""


class RemoteUrlError(ProError):
    """The origin URL is not a hosted git repository URL."""


class ConfigError(ProError):
    """The config file is unreadable or malformed."""


class ProviderError(ProError):
    """Raised for GitHub/GitLab API failures."""


class UnauthorizedError(ProviderError):
    """The token was rejected."""

    def __init__(self, provider: str = "", message: str = "unauthorized") -> None:
        super().__init__(message)
        self.provider = provider


class TokenExpiredError(UnauthorizedError):
    """GitLab reported the token as expired."""

    def __init__(self, provider: str = "gitlab", message: str = "token expired") -> None:
        super().__init__(provider, message)


class ProjectNotFoundError(ProviderError):
    """The project does not exist or the token cannot see it."""

    def __init__(self, project_path: str) -> None:
        super().__init__(f"project not found: {project_path}")
        self.project_path = project_path


class UnexpectedStatusError(ProviderError):
    """The API answered with a status code we do not handle."""

    def __init__(self, status_code: int, body: str = "") -> None:
        message = f"unknown response code: {status_code}"
        if body:
            message = f"{message} {body}"
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class UnsupportedHostError(ProviderError):
    """The origin host is neither GitHub nor GitLab."""

    def __init__(self, host: str) -> None:
        super().__init__(f"unknown remote type: {host}")
        self.host = host


class TokenNotSetError(ProviderError):
    """No token is configured for the provider."""

    def __init__(self, provider: str) -> None:
        super().__init__(f"{provider} token is not set")
        self.provider = provider


class DeliveryError(ProError):
    """Opening the browser or copying to the clipboard failed."""


class UserAbort(ProError):
    """Raised when the user cancels an interactive flow."""
