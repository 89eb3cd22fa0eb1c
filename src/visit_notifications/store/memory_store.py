from __future__ import annotations

import copy
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from visit_notifications.models import Target

from .base import TITLE_META_KEY, Store


class MemoryStore(Store):
    """Process-local store, used for tests and the ``memory`` storage type."""

    def __init__(self) -> None:
        self._meta: dict[Target, dict[str, Any]] = {}
        self._options: dict[str, Any] = {}
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}
        self.writes = 0

    def get_meta(self, target: Target, key: str, default: Any = None) -> Any:
        with self._guard:
            values = self._meta.get(target, {})
            if key not in values:
                return default
            return copy.deepcopy(values[key])

    def set_meta(self, target: Target, key: str, value: Any) -> None:
        with self._guard:
            self._meta.setdefault(target, {})[key] = copy.deepcopy(value)
            self.writes += 1

    def get_option(self, key: str, default: Any = None) -> Any:
        with self._guard:
            if key not in self._options:
                return default
            return copy.deepcopy(self._options[key])

    def set_option(self, key: str, value: Any) -> None:
        with self._guard:
            self._options[key] = copy.deepcopy(value)
            self.writes += 1

    def delete_option(self, key: str) -> None:
        with self._guard:
            if self._options.pop(key, None) is not None:
                self.writes += 1

    def find_targets(self, key: str) -> list[Target]:
        with self._guard:
            matches = [
                Target(
                    kind=target.kind,
                    object_id=target.object_id,
                    title=str(values.get(TITLE_META_KEY) or ""),
                )
                for target, values in self._meta.items()
                if key in values
            ]
        matches.sort(key=lambda item: (item.kind.value, item.object_id))
        return matches

    @contextmanager
    def lock(self, name: str) -> Iterator[None]:
        with self._guard:
            named_lock = self._locks.setdefault(name, threading.RLock())
        with named_lock:
            yield
