from __future__ import annotations

import datetime
from typing import Iterable


class StreakCalculator:
    """Consecutive-day activity streaks."""

    @staticmethod
    def compute(
        active_dates: Iterable[datetime.date], today: datetime.date | None = None
    ) -> dict[str, int]:
        """Return current and longest run of consecutive active days.

        The current streak survives only while the latest active date is
        today or yesterday.
        """
        dates = sorted(set(active_dates))
        if not dates:
            return {"current": 0, "max": 0}
        today = today or datetime.date.today()
        best = 1
        run = 1
        for prev, cur in zip(dates, dates[1:]):
            if (cur - prev).days == 1:
                run += 1
            else:
                run = 1
            best = max(best, run)
        current = run if (today - dates[-1]).days <= 1 else 0
        return {"current": current, "max": best}
