"""
auth/clock.py -- Injectable time source.

Expiry checks read the time through a Clock instead of calling
datetime.now() inline, so tests can move time forward deterministically.

Assumption: issuance and validation hosts share one wall-clock source. The
clock is not monotonic, so skew between hosts shifts expiry accordingly.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        """Return the current time as a timezone-aware UTC datetime."""
        ...


class SystemClock:
    """Wall-clock time from the operating system."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)
