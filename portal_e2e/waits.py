"""Bounded polling for conditions Playwright cannot wait on by itself.

Typical use is waiting for a row to show up after the UI reports success:

    await wait_until(lambda: database.verify_user_exists(user.email))
"""
from __future__ import annotations

import inspect
from typing import Any, Awaitable, Callable, Optional, Union

import anyio

from portal_e2e.config import settings

Probe = Callable[[], Union[Any, Awaitable[Any]]]


class WaitTimeout(AssertionError):
    """The condition stayed false for every allowed attempt."""


async def wait_until(
    probe: Probe,
    interval: Optional[float] = None,
    max_attempts: Optional[int] = None,
    description: str = "condition",
) -> Any:
    """Call ``probe`` until it returns a truthy value and return that value.

    ``probe`` may be a plain callable or return an awaitable. Interval (in
    seconds) and attempt count default to the configured polling policy.
    """
    if interval is None:
        interval = settings.polling.interval
    if max_attempts is None:
        max_attempts = settings.polling.max_attempts
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    last_value: Any = None
    for attempt in range(1, max_attempts + 1):
        last_value = probe()
        if inspect.isawaitable(last_value):
            last_value = await last_value
        if last_value:
            return last_value
        if attempt < max_attempts:
            await anyio.sleep(interval)
    raise WaitTimeout(
        f"Timed out waiting for {description} after {max_attempts} attempts; "
        f"last value={last_value!r}"
    )
