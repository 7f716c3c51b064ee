"""Utilities for spacing out calls to the verification API."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

LOGGER = logging.getLogger(__name__)

Sleeper = Callable[[float], None]


@dataclass
class DelayPolicy:
    """Fixed pause applied after every dispatched verification call."""

    delay_seconds: float = 1.0

    def __post_init__(self) -> None:
        if self.delay_seconds < 0:
            raise ValueError("delay_seconds must not be negative")


class InterCallDelay:
    """Sleeps for the configured delay once a network call has been made.

    Rows that never reach the network (no phone, ledger hit) must not call
    :meth:`wait`.
    """

    def __init__(self, policy: Optional[DelayPolicy] = None, *, sleep: Optional[Sleeper] = None) -> None:
        self._policy = policy or DelayPolicy()
        self._sleep = sleep or time.sleep
        self.waits = 0

    @classmethod
    def seconds(cls, delay_seconds: float, *, sleep: Optional[Sleeper] = None) -> "InterCallDelay":
        return cls(DelayPolicy(delay_seconds=delay_seconds), sleep=sleep)

    @property
    def delay_seconds(self) -> float:
        return self._policy.delay_seconds

    def wait(self) -> None:
        self.waits += 1
        if self._policy.delay_seconds <= 0:
            return
        LOGGER.debug("Sleeping for %s seconds to respect rate limits", self._policy.delay_seconds)
        self._sleep(self._policy.delay_seconds)
