"""Git repository discovery and read-only metadata extraction."""

from __future__ import annotations

import logging
import os
import stat
import subprocess
from dataclasses import dataclass
from pathlib import Path

from pull_request_opener.exceptions import (
    GitCommandError,
    GitFileError,
    NoActiveBranchError,
    NoRemoteOriginError,
    RepositoryNotFoundError,
)

logger = logging.getLogger(__name__)

HEAD_REF_PREFIX = "ref: refs/heads/"
GITDIR_PREFIX = "gitdir:"


def run_git(args: list[str]) -> subprocess.CompletedProcess[str]:
    """Run a git command and return the result."""
    return subprocess.run(
        ["git", *args],
        capture_output=True,
        text=True,
        check=False,
    )


@dataclass(frozen=True)
class Repository:
    """A discovered git repository.

    ``worktree_git_directory`` holds the HEAD of the current checkout and
    ``git_directory`` holds the shared config (remotes). They differ only for
    external worktrees, e.g. ``sample-repo/.git/worktrees/sample-external``.
    """

    working_directory: Path
    git_directory: Path
    worktree_git_directory: Path

    @property
    def is_worktree(self) -> bool:
        return self.worktree_git_directory != self.git_directory

    def current_branch_name(self) -> str:
        """Return the checked-out branch, read directly from HEAD.

        Raises:
            GitFileError: HEAD could not be read
            NoActiveBranchError: HEAD is detached
        """
        head_path = self.worktree_git_directory / "HEAD"
        try:
            content = head_path.read_text(encoding="utf-8")
        except OSError as e:
            raise GitFileError("unable to read HEAD") from e

        parts = content.split(HEAD_REF_PREFIX)
        if len(parts) != 2 or parts[0].strip():
            raise NoActiveBranchError()

        branch = parts[1].strip()
        if not branch:
            raise NoActiveBranchError()
        return branch

    def origin_url(self) -> str:
        """Return the first configured URL of the ``origin`` remote.

        Raises:
            NoRemoteOriginError: no remote named origin
            GitCommandError: git could not read the config
        """
        args = [
            "--git-dir",
            str(self.git_directory),
            "config",
            "--local",
            "--get-all",
            "remote.origin.url",
        ]
        result = run_git(args)
        # `git config --get` exits with 1 when the key is missing
        if result.returncode == 1:
            raise NoRemoteOriginError()
        if result.returncode != 0:
            raise GitCommandError(["git", *args], result.returncode, result.stderr)

        urls = [line.strip() for line in result.stdout.splitlines() if line.strip()]
        if not urls:
            raise NoRemoteOriginError()
        return urls[0]


def is_git_directory(path: Path) -> bool:
    """Check if *path* looks like a git directory (bare layout)."""
    return (path / "HEAD").is_file() and (path / "objects").is_dir() and (path / "refs").is_dir()


def read_gitdir_file(dot_git: Path) -> Path:
    """Follow a ``.git`` file (``gitdir: <path>``) to the git directory it names."""
    try:
        content = dot_git.read_text(encoding="utf-8")
    except OSError as e:
        raise GitFileError("unable to read .git file") from e

    for line in content.splitlines():
        line = line.strip()
        if not line.startswith(GITDIR_PREFIX):
            continue
        target = Path(line[len(GITDIR_PREFIX) :].strip())
        if not target.is_absolute():
            target = dot_git.parent / target
        return Path(os.path.normpath(target))

    raise GitFileError("unable to read .git file")


def open_git_directory(directory: Path) -> Path | None:
    """Return the git directory of *directory*, or None if it is not a repository.

    Recognizes a ``.git`` directory, a ``.git`` file pointing elsewhere
    (worktrees, submodules) and a bare repository at *directory* itself.
    Errors other than "does not exist" propagate.
    """
    dot_git = directory / ".git"
    try:
        mode = dot_git.stat().st_mode
    except (FileNotFoundError, NotADirectoryError):
        return directory if is_git_directory(directory) else None

    if stat.S_ISDIR(mode):
        return dot_git if is_git_directory(dot_git) else None

    git_directory = read_gitdir_file(dot_git)
    if not (git_directory / "HEAD").is_file():
        raise GitFileError(f"gitdir has no HEAD: {git_directory}")
    return git_directory


def make_repository(working_directory: Path, git_directory: Path) -> Repository:
    """Classify *git_directory* as a normal repository or an external worktree."""
    # <main>/.git/worktrees/<name> -> HEAD here, remotes in <main>/.git
    if len(git_directory.parts) >= 3 and git_directory.parts[-3:-1] == (".git", "worktrees"):
        return Repository(
            working_directory=working_directory,
            git_directory=git_directory.parent.parent,
            worktree_git_directory=git_directory,
        )

    return Repository(
        working_directory=working_directory,
        git_directory=git_directory,
        worktree_git_directory=git_directory,
    )


def find_in_parents(path: str | Path) -> Repository:
    """Return the git repository in *path* or the nearest parent directory.

    Raises:
        RepositoryNotFoundError: the filesystem root was reached
    """
    current = Path(os.path.abspath(path))

    while True:
        git_directory = open_git_directory(current)
        if git_directory is not None:
            repository = make_repository(current, git_directory)
            logger.info(f"Found repository at {current} (git dir: {repository.git_directory})")
            if repository.is_worktree:
                logger.info(f"Using worktree HEAD from {repository.worktree_git_directory}")
            return repository

        # "/" on POSIX, "C:\" on Windows
        if current.parent == current:
            raise RepositoryNotFoundError()
        current = current.parent
