from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, TypeVar

import yaml

from visit_notifications.models import GraceContext

logger = logging.getLogger(__name__)

EnumT = TypeVar("EnumT", bound=Enum)


class ConfigError(ValueError):
    """Raised when configuration is invalid."""


@dataclass(slots=True)
class NotificationSettings:
    enable_notifications: bool = True
    enable_logged_in_users: bool = True
    disable_crawlers: bool = True
    ip_grace_period: bool = False
    ip_grace_period_context: GraceContext = GraceContext.SITE
    ip_grace_period_duration: int = 300


@dataclass(slots=True)
class StorageSettings:
    type: str = "sqlite"
    path: str = "data/visits.sqlite"


@dataclass(slots=True)
class NotifierSettings:
    type: str = "email"
    recipient: str | None = None
    smtp_host: str = "localhost"
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_password_env_var: str = "SMTP_PASSWORD"
    from_email: str | None = None
    use_tls: bool = True
    webhook_env_var: str = "VISIT_WEBHOOK_URL"
    timeout_seconds: int = 15


@dataclass(slots=True)
class LocationSettings:
    enabled: bool = False
    endpoint: str = "https://ipapi.co/{ip}/json/"
    timeout_seconds: float = 1.0


@dataclass(slots=True)
class AppConfig:
    site_name: str = "WordPress"
    settings: NotificationSettings = field(default_factory=NotificationSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)
    notifier: NotifierSettings = field(default_factory=NotifierSettings)
    location: LocationSettings = field(default_factory=LocationSettings)
    log_level: str = "INFO"


def as_bool(value: Any, *, field_name: str) -> bool:
    if isinstance(value, bool):
        return value

    if isinstance(value, int) and value in {0, 1}:
        return bool(value)

    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"true", "1", "yes", "on"}:
            return True
        if normalized in {"false", "0", "no", "off", ""}:
            return False

    raise ConfigError(f"{field_name} must be a boolean")


def _as_int(value: Any, *, field_name: str, minimum: int | None = None) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{field_name} must be an integer")

    try:
        parsed = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{field_name} must be an integer") from exc

    if minimum is not None and parsed < minimum:
        raise ConfigError(f"{field_name} must be >= {minimum}")
    return parsed


def _as_float(value: Any, *, field_name: str) -> float:
    if isinstance(value, bool):
        raise ConfigError(f"{field_name} must be a number")
    try:
        parsed = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{field_name} must be a number") from exc
    if parsed <= 0:
        raise ConfigError(f"{field_name} must be > 0")
    return parsed


def coerce_enum(value: Any, enum_type: type[EnumT], default: EnumT, *, field_name: str) -> EnumT:
    """Map a raw value onto ``enum_type``; unknown values fall back to ``default``."""
    if isinstance(value, enum_type):
        return value
    if value is None:
        return default

    normalized = str(value).strip().lower()
    try:
        return enum_type(normalized)
    except ValueError:
        logger.warning(
            "Unknown value %r for %s; falling back to %r",
            value,
            field_name,
            default.value,
        )
        return default


def _optional_string(value: Any) -> str | None:
    if value is None:
        return None
    normalized = str(value).strip()
    return normalized or None


def _mapping(parsed: dict[str, Any], name: str) -> dict[str, Any]:
    raw = parsed.get(name, {}) or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"{name} must be a mapping")
    return raw


def _resolve_relative_path(config_path: Path, raw_path: str) -> str:
    candidate = Path(raw_path).expanduser()
    if candidate.is_absolute():
        return str(candidate)
    return str((config_path.parent / candidate).resolve())


def parse_notification_settings(raw: dict[str, Any]) -> NotificationSettings:
    defaults = NotificationSettings()
    return NotificationSettings(
        enable_notifications=as_bool(
            raw.get("enable_notifications", defaults.enable_notifications),
            field_name="settings.enable_notifications",
        ),
        enable_logged_in_users=as_bool(
            raw.get("enable_logged_in_users", defaults.enable_logged_in_users),
            field_name="settings.enable_logged_in_users",
        ),
        disable_crawlers=as_bool(
            raw.get("disable_crawlers", defaults.disable_crawlers),
            field_name="settings.disable_crawlers",
        ),
        ip_grace_period=as_bool(
            raw.get("ip_grace_period", defaults.ip_grace_period),
            field_name="settings.ip_grace_period",
        ),
        ip_grace_period_context=coerce_enum(
            raw.get("ip_grace_period_context"),
            GraceContext,
            defaults.ip_grace_period_context,
            field_name="settings.ip_grace_period_context",
        ),
        ip_grace_period_duration=_as_int(
            raw.get("ip_grace_period_duration", defaults.ip_grace_period_duration),
            field_name="settings.ip_grace_period_duration",
            minimum=0,
        ),
    )


def load_config(path: str | Path) -> AppConfig:
    config_path = Path(path).expanduser().resolve()
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    with config_path.open("r", encoding="utf-8") as handle:
        parsed = yaml.safe_load(handle) or {}

    if not isinstance(parsed, dict):
        raise ConfigError("Config root must be a mapping")

    settings = parse_notification_settings(_mapping(parsed, "settings"))

    raw_storage = _mapping(parsed, "storage")
    storage_type = str(raw_storage.get("type", "sqlite")).strip().lower() or "sqlite"
    if storage_type not in {"sqlite", "memory"}:
        raise ConfigError(f"Unsupported storage type: {storage_type}")
    storage_path = str(raw_storage.get("path", "data/visits.sqlite")).strip() or "data/visits.sqlite"
    storage_settings = StorageSettings(
        type=storage_type,
        path=_resolve_relative_path(config_path, storage_path),
    )

    raw_notifier = _mapping(parsed, "notifier")
    notifier_defaults = NotifierSettings()
    notifier_settings = NotifierSettings(
        type=str(raw_notifier.get("type", notifier_defaults.type)).strip().lower()
        or notifier_defaults.type,
        recipient=_optional_string(raw_notifier.get("recipient")),
        smtp_host=str(raw_notifier.get("smtp_host", notifier_defaults.smtp_host)).strip()
        or notifier_defaults.smtp_host,
        smtp_port=_as_int(
            raw_notifier.get("smtp_port", notifier_defaults.smtp_port),
            field_name="notifier.smtp_port",
            minimum=1,
        ),
        smtp_user=_optional_string(raw_notifier.get("smtp_user")),
        smtp_password_env_var=str(
            raw_notifier.get("smtp_password_env_var", notifier_defaults.smtp_password_env_var)
        ).strip()
        or notifier_defaults.smtp_password_env_var,
        from_email=_optional_string(raw_notifier.get("from_email")),
        use_tls=as_bool(
            raw_notifier.get("use_tls", notifier_defaults.use_tls),
            field_name="notifier.use_tls",
        ),
        webhook_env_var=str(
            raw_notifier.get("webhook_env_var", notifier_defaults.webhook_env_var)
        ).strip()
        or notifier_defaults.webhook_env_var,
        timeout_seconds=_as_int(
            raw_notifier.get("timeout_seconds", notifier_defaults.timeout_seconds),
            field_name="notifier.timeout_seconds",
            minimum=1,
        ),
    )

    raw_location = _mapping(parsed, "location")
    location_defaults = LocationSettings()
    endpoint = str(raw_location.get("endpoint", location_defaults.endpoint)).strip()
    if "{ip}" not in endpoint:
        raise ConfigError("location.endpoint must contain an {ip} placeholder")
    location_settings = LocationSettings(
        enabled=as_bool(
            raw_location.get("enabled", location_defaults.enabled),
            field_name="location.enabled",
        ),
        endpoint=endpoint,
        timeout_seconds=_as_float(
            raw_location.get("timeout_seconds", location_defaults.timeout_seconds),
            field_name="location.timeout_seconds",
        ),
    )

    return AppConfig(
        site_name=str(parsed.get("site_name", "WordPress")).strip() or "WordPress",
        settings=settings,
        storage=storage_settings,
        notifier=notifier_settings,
        location=location_settings,
        log_level=str(parsed.get("log_level", "INFO")).upper(),
    )
