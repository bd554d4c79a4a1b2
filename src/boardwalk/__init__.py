"""Boardwalk: issue-by-issue development workflow runner."""

__version__ = "0.1.0"
