from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Any

from visit_notifications.models import Target

TITLE_META_KEY = "vn_title"


class StorageError(RuntimeError):
    """Raised when the metadata or option store cannot be read or written."""


class Store(ABC):
    """Per-target metadata plus site-wide options.

    Values are JSON-compatible. ``lock(name)`` yields an exclusive section for
    read-modify-write sequences on a single key; nested ``lock`` calls from the
    same thread must not deadlock.
    """

    def init_db(self) -> None:
        """Create any required schema."""

    @abstractmethod
    def get_meta(self, target: Target, key: str, default: Any = None) -> Any:
        """Return a target's stored value for ``key`` or ``default``."""

    @abstractmethod
    def set_meta(self, target: Target, key: str, value: Any) -> None:
        """Create or replace a target's value for ``key``."""

    @abstractmethod
    def get_option(self, key: str, default: Any = None) -> Any:
        """Return a site-wide option or ``default``."""

    @abstractmethod
    def set_option(self, key: str, value: Any) -> None:
        """Create or replace a site-wide option."""

    @abstractmethod
    def delete_option(self, key: str) -> None:
        """Remove a site-wide option if present."""

    @abstractmethod
    def find_targets(self, key: str) -> list[Target]:
        """Return targets that have a value stored under meta ``key``, titles filled in."""

    @abstractmethod
    def lock(self, name: str) -> AbstractContextManager[None]:
        """Exclusive section scoped to ``name``."""


def target_lock_name(target: Target, key: str) -> str:
    return f"meta:{target.key}:{key}"


def option_lock_name(key: str) -> str:
    return f"option:{key}"
