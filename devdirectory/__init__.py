"""Core utilities for the developer directory service."""

from __future__ import annotations

from typing import Any

from .store import DeveloperStore, resolve_data_path


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the directory web application."""

    from .service import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "DeveloperStore",
    "resolve_data_path",
    "create_app",
]
