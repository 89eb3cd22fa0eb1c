from __future__ import annotations

from pathlib import Path

import pytest

from visit_notifications.config import ConfigError, load_config
from visit_notifications.models import GraceContext


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_defaults_when_sections_missing(tmp_path) -> None:
    config = load_config(_write(tmp_path, "site_name: Demo\n"))

    assert config.site_name == "Demo"
    assert config.settings.enable_notifications is True
    assert config.settings.enable_logged_in_users is True
    assert config.settings.disable_crawlers is True
    assert config.settings.ip_grace_period is False
    assert config.settings.ip_grace_period_context is GraceContext.SITE
    assert config.settings.ip_grace_period_duration == 300
    assert config.storage.path == str((tmp_path / "data" / "visits.sqlite").resolve())
    assert config.location.enabled is False


def test_on_off_strings_are_coerced(tmp_path) -> None:
    config = load_config(
        _write(
            tmp_path,
            """
settings:
  enable_logged_in_users: "off"
  ip_grace_period: "on"
  ip_grace_period_context: post
  ip_grace_period_duration: "60"
""",
        )
    )

    assert config.settings.enable_logged_in_users is False
    assert config.settings.ip_grace_period is True
    assert config.settings.ip_grace_period_context is GraceContext.POST
    assert config.settings.ip_grace_period_duration == 60


def test_unknown_grace_context_falls_back_to_site(tmp_path, caplog) -> None:
    config = load_config(_write(tmp_path, "settings:\n  ip_grace_period_context: galaxy\n"))

    assert config.settings.ip_grace_period_context is GraceContext.SITE
    assert "galaxy" in caplog.text


@pytest.mark.parametrize(
    ("text", "message"),
    [
        ("settings:\n  ip_grace_period_duration: -1\n", "ip_grace_period_duration"),
        ("settings:\n  disable_crawlers: maybe\n", "disable_crawlers"),
        ("settings: [1, 2]\n", "settings must be a mapping"),
        ("storage:\n  type: mysql\n", "Unsupported storage type"),
        ("location:\n  endpoint: https://ipapi.co/json/\n", "{ip}"),
        ("- just\n- a list\n", "root must be a mapping"),
    ],
)
def test_invalid_config_raises(tmp_path, text: str, message: str) -> None:
    with pytest.raises(ConfigError, match=message.replace("{", r"\{").replace("}", r"\}")):
        load_config(_write(tmp_path, text))


def test_missing_file_raises(tmp_path) -> None:
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path / "absent.yaml")
