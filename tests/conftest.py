from __future__ import annotations

import pytest

from visit_notifications.batch import VISITORS_KEY
from visit_notifications.config import NotificationSettings
from visit_notifications.models import Target, TargetKind
from visit_notifications.notifiers.base import NotificationError, Notifier, TemplateKind, VisitPayload
from visit_notifications.settings import SettingsStore
from visit_notifications.store import MemoryStore, StorageError

START_TIME = 1_700_000_000


class FakeClock:
    def __init__(self, now: float = START_TIME) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingNotifier(Notifier):
    def __init__(self) -> None:
        self.calls: list[tuple[str, VisitPayload, TemplateKind]] = []
        self.fail = False

    def send(self, subject: str, payload: VisitPayload, template_kind: TemplateKind) -> None:
        if self.fail:
            raise NotificationError("mail server unavailable")
        self.calls.append((subject, payload, template_kind))


class FailingClearStore(MemoryStore):
    """Memory store whose batch writes fail once ``fail_batch_writes`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_batch_writes = False

    def set_meta(self, target: Target, key: str, value: object) -> None:
        if self.fail_batch_writes and key == VISITORS_KEY:
            raise StorageError("disk I/O error")
        super().set_meta(target, key, value)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def post() -> Target:
    return Target(kind=TargetKind.POST, object_id=12, title="About us")


@pytest.fixture
def term() -> Target:
    return Target(kind=TargetKind.TERM, object_id=7, title="News")


def make_settings(store: MemoryStore, **overrides: object) -> SettingsStore:
    settings = NotificationSettings()
    for key, value in overrides.items():
        setattr(settings, key, value)
    return SettingsStore(settings, store)
