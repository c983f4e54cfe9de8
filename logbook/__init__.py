"""Core package for the logbook activity-logging service."""

from __future__ import annotations

from typing import Any

from .database import Database, resolve_database_path
from .reconcile import reconcile
from .validation import validate


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the logbook HTTP application."""

    from .service import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "Database",
    "create_app",
    "reconcile",
    "resolve_database_path",
    "validate",
]
