"""Unique, tagged test data for entities the suite creates through the UI.

Every generated key carries two things:

* a fixed tag (the test email domain, the test organization slug prefix)
  so a suite-level sweep can find all of it with one LIKE pattern, and
* a millisecond timestamp plus a random token, so concurrent workers never
  mint the same key.

Names and passwords come from Faker; nothing here touches the network.
"""
from __future__ import annotations

import re
import secrets
import string
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from faker import Faker

from portal_e2e.config import TestDataSettings, settings

SLUG_MAX_LENGTH = 50
TOKEN_LENGTH = 4
# One special character, one digit, one upper and one lower case letter.
PASSWORD_SUFFIX = "!1Aa"

_TOKEN_ALPHABET = string.ascii_lowercase + string.digits
_SLUG_INVALID = re.compile(r"[^a-z0-9\s-]")
_SLUG_WHITESPACE = re.compile(r"\s+")
_SLUG_HYPHENS = re.compile(r"-+")
_EMAIL_NAME_INVALID = re.compile(r"[^a-z0-9]")

_clock_lock = threading.Lock()
_last_millis = 0


@dataclass(frozen=True)
class UserData:
    first_name: str
    last_name: str
    email: str
    password: str

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


@dataclass(frozen=True)
class OrganizationData:
    name: str
    slug: str


def unique_millis(clock: Callable[[], float] = time.time) -> int:
    """Unix time in milliseconds, strictly increasing within this process."""
    global _last_millis
    with _clock_lock:
        now = int(clock() * 1000)
        if now <= _last_millis:
            now = _last_millis + 1
        _last_millis = now
        return now


def random_token(length: int = TOKEN_LENGTH) -> str:
    return "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(length))


def generate_slug(text: str) -> str:
    """Convert arbitrary text to a URL-safe slug of at most 50 characters.

    >>> generate_slug("My Company Name!")
    'my-company-name'
    """
    slug = _SLUG_INVALID.sub("", text.lower())
    slug = _SLUG_WHITESPACE.sub("-", slug)
    slug = _SLUG_HYPHENS.sub("-", slug).strip("-")
    # Truncation can expose a hyphen at the cut.
    return slug[:SLUG_MAX_LENGTH].strip("-")


class EntityFactory:
    """Mints entity descriptors tagged for the configured test namespace."""

    def __init__(self, config: TestDataSettings, faker: Optional[Faker] = None) -> None:
        if generate_slug(config.org_prefix + "x") != config.org_prefix + "x":
            raise ValueError(f"TEST_ORG_PREFIX must be slug-safe, got {config.org_prefix!r}")
        self.config = config
        self.faker = faker or Faker()
        self._password_regex = config.password_regex()

    def generate_user(self) -> UserData:
        first_name = self.faker.first_name()
        last_name = self.faker.last_name()
        return UserData(
            first_name=first_name,
            last_name=last_name,
            email=self.generate_email(first_name),
            password=self.generate_password(),
        )

    def generate_email(self, first_name: Optional[str] = None) -> str:
        """Tagged address: ``test-<name>-<millis>-<token>@<test domain>``."""
        name = _EMAIL_NAME_INVALID.sub("", (first_name or self.faker.first_name()).lower())
        return f"test-{name or 'user'}-{unique_millis()}-{random_token()}@{self.config.email_domain}"

    def generate_password(self) -> str:
        base = self.faker.password(
            length=self.config.password_length,
            special_chars=True,
            digits=True,
            upper_case=True,
            lower_case=True,
        )
        return base + PASSWORD_SUFFIX

    def validate_password(self, password: str) -> bool:
        return (
            len(password) >= self.config.password_min_length
            and self._password_regex.search(password) is not None
        )

    def generate_organization(self, name: Optional[str] = None) -> OrganizationData:
        company = name if name is not None else self.generate_company_name()
        raw = f"{self.config.org_prefix}{unique_millis()}-{random_token()}-{generate_slug(company)}"
        return OrganizationData(name=company, slug=generate_slug(raw))

    def generate_company_name(self) -> str:
        return self.faker.company()

    def generate_display_name(self, kind: str) -> str:
        """Name for organization-scoped resources (clients, suppliers, ...)."""
        return f"Test {kind} {unique_millis()}-{random_token()}"


factory = EntityFactory(settings.test_data)
