"""Shared configuration for the end-to-end suite.

Every value is resolved in the same order:
1. process environment
2. ``.env.defaults`` at the repository root
3. the fallback hard-coded below

``DATABASE_URL`` is the exception: it is read from the environment only, so a
checkout never points at a database by accident. Without it the suite runs in
UI-only mode and every database step is skipped.
"""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urljoin

from portal_e2e.env_defaults import get_env_default

logger = logging.getLogger(__name__)

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}

DEFAULT_PASSWORD_PATTERN = r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[!@#$%^&*]).+$"


def _lookup(key: str, fallback: str) -> str:
    value = os.getenv(key)
    if value is None:
        value = get_env_default(key)
    return fallback if value is None else value


def _env_int(key: str, fallback: int) -> int:
    raw = _lookup(key, str(fallback)).strip()
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from None


def _env_bool(key: str, fallback: bool) -> bool:
    raw = _lookup(key, "true" if fallback else "false").strip().lower()
    if raw in _TRUE:
        return True
    if raw in _FALSE:
        return False
    raise ValueError(f"{key} must be a boolean (true/false/1/0), got {raw!r}")


@dataclass(frozen=True)
class DatabaseSettings:
    url: Optional[str] = None
    cleanup_on_start: bool = False
    cleanup_on_end: bool = False
    pool_size: int = 10
    connect_timeout: float = 10.0

    @property
    def is_configured(self) -> bool:
        return bool(self.url)


@dataclass(frozen=True)
class TestDataSettings:
    __test__ = False  # not a pytest test class

    email_domain: str = "example.test"
    org_prefix: str = "test-org-"
    password_length: int = 12
    password_min_length: int = 8
    password_pattern: str = DEFAULT_PASSWORD_PATTERN

    def password_regex(self) -> "re.Pattern[str]":
        return re.compile(self.password_pattern)


@dataclass(frozen=True)
class TimeoutTiers:
    """Wait budgets in milliseconds."""

    short: int = 5_000
    medium: int = 10_000
    long: int = 30_000
    extra_long: int = 60_000


@dataclass(frozen=True)
class RetryPolicy:
    flaky: int = 2
    stable: int = 0


@dataclass(frozen=True)
class PollingPolicy:
    interval_ms: int = 100
    max_attempts: int = 50

    @property
    def interval(self) -> float:
        return self.interval_ms / 1000.0


class SuiteConfig:
    """Configuration snapshot taken from the environment at construction time."""

    def __init__(self) -> None:
        database_url = os.getenv("DATABASE_URL") or None
        self.database = DatabaseSettings(
            url=database_url,
            cleanup_on_start=_env_bool("DB_CLEANUP_ON_START", False),
            cleanup_on_end=_env_bool("DB_CLEANUP_ON_END", False),
            pool_size=_env_int("DB_POOL_SIZE", 10),
            connect_timeout=float(_env_int("DB_CONNECT_TIMEOUT", 10)),
        )

        self.test_data = TestDataSettings(
            email_domain=_lookup("TEST_EMAIL_DOMAIN", "example.test").lstrip("@"),
            org_prefix=_lookup("TEST_ORG_PREFIX", "test-org-"),
            password_length=_env_int("PASSWORD_LENGTH", 12),
            password_min_length=_env_int("PASSWORD_MIN_LENGTH", 8),
            password_pattern=_lookup("PASSWORD_PATTERN", DEFAULT_PASSWORD_PATTERN),
        )

        self.timeouts = TimeoutTiers(
            short=_env_int("TIMEOUT_SHORT", 5_000),
            medium=_env_int("TIMEOUT_MEDIUM", 10_000),
            long=_env_int("TIMEOUT_LONG", 30_000),
            extra_long=_env_int("TIMEOUT_EXTRA_LONG", 60_000),
        )
        self.retries = RetryPolicy(
            flaky=_env_int("RETRIES_FLAKY", 2),
            stable=_env_int("RETRIES_STABLE", 0),
        )
        self.polling = PollingPolicy(
            interval_ms=_env_int("POLL_INTERVAL_MS", 100),
            max_attempts=_env_int("POLL_MAX_ATTEMPTS", 50),
        )

        self.base_url: str = _lookup("BASE_URL", "http://localhost:3000")
        self.playwright_headless: bool = _env_bool("PLAYWRIGHT_HEADLESS", True)
        self.browser_type: str = _lookup("PLAYWRIGHT_BROWSER", "chromium")
        self.test_user_email: str = _lookup("TEST_USER_EMAIL", "")
        self.test_user_password: str = _lookup("TEST_USER_PASSWORD", "")

        logger.debug(
            "Suite config loaded (base_url=%s, database=%s)",
            self.base_url,
            "configured" if self.database.is_configured else "not configured",
        )

    def url(self, path: str) -> str:
        """Return an absolute URL for the provided path."""
        return urljoin(self.base_url.rstrip("/") + "/", path.lstrip("/"))

    @property
    def has_test_user(self) -> bool:
        return bool(self.test_user_email and self.test_user_password)


# Singleton instance - initialized on first import
settings = SuiteConfig()
