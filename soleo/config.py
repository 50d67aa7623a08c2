"""Runtime configuration loaded from environment variables."""
from __future__ import annotations

import math
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, Mapping, Optional, Tuple


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection settings for the PostgreSQL pool."""

    host: str
    port: int
    dbname: str
    user: str
    password: str
    connect_timeout: int
    min_connections: int
    max_connections: int

    def connect_kwargs(self) -> Dict[str, Any]:
        return {
            "host": self.host,
            "port": self.port,
            "dbname": self.dbname,
            "user": self.user,
            "password": self.password,
            "connect_timeout": self.connect_timeout,
        }


@dataclass(frozen=True)
class AuthConfig:
    jwt_secret_key: str
    jwt_algorithm: str
    jwt_exp_minutes: int


@dataclass(frozen=True)
class PaymentConfig:
    """Settings for the checkout gateway."""

    provider_name: str
    client_id: Optional[str]
    client_secret: Optional[str]
    api_base_url: str
    currency: str
    brand_name: str
    frontend_url: str
    timeout_seconds: float

    @property
    def return_url(self) -> str:
        return f"{self.frontend_url}/payment-success"

    @property
    def cancel_url(self) -> str:
        return f"{self.frontend_url}/payment-cancel"


@dataclass(frozen=True)
class PushConfig:
    """Configuration for outbound push notifications."""

    provider_name: str
    fcm_endpoint: str
    fcm_server_key: Optional[str]
    timeout_seconds: float


@dataclass(frozen=True)
class JobsConfig:
    enabled: bool
    expiry_alert_hour: int
    expiry_alert_minute: int
    expiry_window_days: int
    reminder_interval_minutes: int
    reminder_window_minutes: int


@dataclass(frozen=True)
class Settings:
    app_name: str
    log_level: str
    cors_origins: Tuple[str, ...]
    database: DatabaseConfig
    auth: AuthConfig
    payments: PaymentConfig
    push: PushConfig
    jobs: JobsConfig


def _to_bool(value: Optional[str], *, default: bool) -> bool:
    if value is None:
        return default
    lowered = value.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    return default


def _to_int(value: Optional[str], *, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Expected integer value, got {value!r}") from exc


def _to_float(value: Optional[str], *, default: float) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Expected float value, got {value!r}") from exc


def _parse_connect_timeout(raw_value: Optional[str]) -> int:
    timeout = _to_float(raw_value, default=5.0)
    if timeout < 0:
        raise ValueError("DB_CONNECT_TIMEOUT must be non-negative")
    return int(math.ceil(timeout))


def _strip_secret(value: Optional[str]) -> Optional[str]:
    # Credentials pasted into .env files frequently carry stray whitespace.
    if value is None:
        return None
    cleaned = "".join(value.split())
    return cleaned or None


def _load_database_config(env: Mapping[str, str]) -> DatabaseConfig:
    min_connections = max(1, _to_int(env.get("DB_POOL_MIN"), default=1))
    max_connections = max(min_connections, _to_int(env.get("DB_POOL_MAX"), default=10))
    return DatabaseConfig(
        host=env.get("DB_HOST", "127.0.0.1"),
        port=_to_int(env.get("DB_PORT"), default=5432),
        dbname=env.get("DB_NAME", "soleo"),
        user=env.get("DB_USER", "soleo"),
        password=env.get("DB_PASSWORD", "soleo"),
        connect_timeout=_parse_connect_timeout(env.get("DB_CONNECT_TIMEOUT")),
        min_connections=min_connections,
        max_connections=max_connections,
    )


def _load_payment_config(env: Mapping[str, str]) -> PaymentConfig:
    frontend_url = (env.get("FRONTEND_URL") or "http://localhost:5173").strip().strip("'\"")
    return PaymentConfig(
        provider_name=(env.get("PAYMENT_PROVIDER") or "sandbox").strip().lower() or "sandbox",
        client_id=_strip_secret(env.get("PAYPAL_CLIENT_ID")),
        client_secret=_strip_secret(env.get("PAYPAL_CLIENT_SECRET")),
        api_base_url=(env.get("PAYPAL_API_BASE") or "https://api-m.sandbox.paypal.com").rstrip("/"),
        currency=(env.get("PAYMENT_CURRENCY") or "MXN").upper(),
        brand_name=env.get("PAYMENT_BRAND_NAME", "SÓLEO Fitness"),
        frontend_url=frontend_url.rstrip("/"),
        timeout_seconds=max(1.0, _to_float(env.get("PAYPAL_TIMEOUT_SECONDS"), default=15.0)),
    )


def _load_push_config(env: Mapping[str, str]) -> PushConfig:
    return PushConfig(
        provider_name=(env.get("PUSH_PROVIDER") or "dev").strip().lower() or "dev",
        fcm_endpoint=env.get("FCM_ENDPOINT", "https://fcm.googleapis.com/fcm/send"),
        fcm_server_key=_strip_secret(env.get("FCM_SERVER_KEY")),
        timeout_seconds=max(1.0, _to_float(env.get("FCM_TIMEOUT_SECONDS"), default=10.0)),
    )


def _load_jobs_config(env: Mapping[str, str]) -> JobsConfig:
    hour = _to_int(env.get("EXPIRY_ALERT_HOUR"), default=9)
    minute = _to_int(env.get("EXPIRY_ALERT_MINUTE"), default=0)
    if not 0 <= hour <= 23 or not 0 <= minute <= 59:
        raise ValueError("EXPIRY_ALERT_HOUR/EXPIRY_ALERT_MINUTE must describe a valid time of day")
    return JobsConfig(
        enabled=_to_bool(env.get("JOBS_ENABLED"), default=True),
        expiry_alert_hour=hour,
        expiry_alert_minute=minute,
        expiry_window_days=max(1, _to_int(env.get("EXPIRY_ALERT_WINDOW_DAYS"), default=3)),
        reminder_interval_minutes=max(1, _to_int(env.get("WORKOUT_REMINDER_INTERVAL_MINUTES"), default=5)),
        reminder_window_minutes=max(0, _to_int(env.get("WORKOUT_REMINDER_WINDOW_MINUTES"), default=5)),
    )


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Load :class:`Settings` from environment variables."""

    env_mapping = os.environ if env is None else env

    raw_origins = env_mapping.get("CORS_ORIGINS", "http://localhost:5173")
    cors_origins = tuple(origin.strip() for origin in raw_origins.split(",") if origin.strip())

    auth = AuthConfig(
        jwt_secret_key=env_mapping.get("JWT_SECRET_KEY", "dev-secret-change-me"),
        jwt_algorithm="HS256",
        jwt_exp_minutes=max(1, _to_int(env_mapping.get("JWT_EXP_MINUTES"), default=60 * 24 * 7)),
    )

    return Settings(
        app_name=env_mapping.get("APP_NAME", "Soleo API"),
        log_level=(env_mapping.get("LOG_LEVEL") or "INFO").upper(),
        cors_origins=cors_origins,
        database=_load_database_config(env_mapping),
        auth=auth,
        payments=_load_payment_config(env_mapping),
        push=_load_push_config(env_mapping),
        jobs=_load_jobs_config(env_mapping),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()


__all__ = [
    "AuthConfig",
    "DatabaseConfig",
    "JobsConfig",
    "PaymentConfig",
    "PushConfig",
    "Settings",
    "get_settings",
    "load_settings",
]
