"""
Reference number generation

Format: {prefix}-{local year}-{last 6 digits of epoch millis}-{4-digit random}.
Uniqueness relies on time plus randomness; storage detects collisions.
"""
import re
import secrets
from datetime import datetime, timezone, tzinfo
from typing import Callable, Optional

from ..core.config import settings

REFERENCE_PATTERN = re.compile(r"[A-Z]+-\d{4}-\d{1,6}-\d{4}")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ReferenceGenerator:
    """Produces short, human-readable application reference numbers"""

    def __init__(
        self,
        prefix: str = settings.REFERENCE_PREFIX,
        clock: Callable[[], datetime] = utc_now,
        randbelow: Callable[[int], int] = secrets.randbelow,
        local_zone: Optional[tzinfo] = None,
    ):
        self.prefix = prefix
        self._clock = clock
        self._randbelow = randbelow
        # None means the server's local zone
        self._local_zone = local_zone

    def generate(self) -> str:
        now = self._clock()
        year = now.astimezone(self._local_zone).year
        millis = str(int(now.timestamp() * 1000))[-6:]
        random_part = f"{self._randbelow(10000):04d}"
        return f"{self.prefix}-{year}-{millis}-{random_part}"


def is_reference_number(value: str) -> bool:
    return REFERENCE_PATTERN.fullmatch(value) is not None


reference_generator = ReferenceGenerator()
