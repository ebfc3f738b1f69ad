"""Shared FastAPI dependencies."""

from __future__ import annotations

from stocksage.workspace import Workspace

# One in-memory session per process; nothing is persisted.
_workspace = Workspace()


def get_workspace() -> Workspace:
    return _workspace


__all__ = ["get_workspace"]
