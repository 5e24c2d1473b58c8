"""Open the pull/merge request for the current git branch."""

__version__ = "0.4.0"
