from __future__ import annotations

import datetime
from dataclasses import dataclass
from enum import Enum
from typing import Iterable


class TimeWindow(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    ALL = "all"

    @classmethod
    def parse(cls, value: str | None) -> "TimeWindow":
        """Map a period string to a window; unknown values mean ``ALL``."""
        try:
            return cls((value or "all").lower())
        except ValueError:
            return cls.ALL

    @property
    def days(self) -> int | None:
        return {TimeWindow.WEEKLY: 7, TimeWindow.MONTHLY: 30}.get(self)


@dataclass(frozen=True)
class LeaderboardFilter:
    window: TimeWindow = TimeWindow.ALL
    category: str | None = None

    def cutoff(self, now: datetime.datetime) -> datetime.datetime | None:
        """Earliest qualifying set timestamp, or ``None`` when unbounded."""
        days = self.window.days
        if days is None:
            return None
        return now - datetime.timedelta(days=days)


class Leaderboard:
    """Rank users by aggregate lifted volume."""

    DEFAULT_LIMIT = 10

    @staticmethod
    def rank(
        volumes: Iterable[tuple[int, str, float]], limit: int = DEFAULT_LIMIT
    ) -> list[dict]:
        """Return the top ``limit`` users by volume.

        ``volumes`` holds ``(user_id, username, total_volume_kg)`` rows. Ties
        are ordered by user id ascending and still get distinct ranks.
        Users without positive volume are dropped.
        """
        rows = [(uid, name, float(vol or 0.0)) for uid, name, vol in volumes]
        rows = [r for r in rows if r[2] > 0]
        rows.sort(key=lambda r: (-r[2], r[0]))
        return [
            {"user_id": uid, "username": name, "total_volume_kg": vol, "rank": idx}
            for idx, (uid, name, vol) in enumerate(rows[:limit], start=1)
        ]
