"""Ebbinghaus forgetting-curve model for memory retention."""

import math
from datetime import datetime, timedelta, timezone
from typing import Optional

from memkeep.exceptions import InvalidConfigError

DEFAULT_ARCHIVE_THRESHOLD = 0.2


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(dt: datetime) -> datetime:
    # Naive timestamps are treated as UTC
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


class EbbinghausManager:
    """Scores, reinforces and schedules memories along a forgetting curve.

    Pure with respect to storage: callers persist the strengths and
    timestamps this class returns.
    """

    def __init__(self, decay_rate: float = 0.1, reinforcement_factor: float = 0.3):
        if decay_rate <= 0:
            raise InvalidConfigError(f"decay_rate must be > 0, got {decay_rate}")
        if reinforcement_factor <= 0:
            raise InvalidConfigError(f"reinforcement_factor must be > 0, got {reinforcement_factor}")
        self.decay_rate = decay_rate
        self.reinforcement_factor = reinforcement_factor

    def calculate_retention(
        self,
        created_at: datetime,
        last_accessed_at: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> float:
        """Retention strength ``exp(-decay_rate * hours / 24)``.

        Hours are counted from the last access when there was one, otherwise from
        creation. Timestamps in the future count as zero elapsed time.
        """
        now = _aware(now) if now is not None else _utcnow()
        reference = _aware(last_accessed_at if last_accessed_at is not None else created_at)
        hours = max(0.0, (now - reference).total_seconds() / 3600.0)
        return math.exp(-self.decay_rate * hours / 24.0)

    def reinforce(self, current_strength: float) -> float:
        """Boost a strength towards 1.0 by ``reinforcement_factor`` of the remaining gap."""
        new_strength = current_strength + self.reinforcement_factor * (1.0 - current_strength)
        return min(1.0, max(0.0, new_strength))

    def should_archive(self, retention_strength: float, threshold: float = 0.0) -> bool:
        """True when the strength has fallen below ``threshold`` (0 selects the default 0.2)."""
        if threshold == 0:
            threshold = DEFAULT_ARCHIVE_THRESHOLD
        return retention_strength < threshold

    def calculate_next_review(self, retention_strength: float, now: Optional[datetime] = None) -> datetime:
        """Next review time; stronger memories wait longer (24h at 0, 264h at 1)."""
        now = _aware(now) if now is not None else _utcnow()
        hours_until_review = 24.0 * (1.0 + retention_strength * 10.0)
        return now + timedelta(hours=hours_until_review)
