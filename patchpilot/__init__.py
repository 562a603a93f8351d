"""Anchor AI review comments on pull request diffs."""

__version__ = "0.1.0"
