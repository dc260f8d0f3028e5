class MathTools:
    """Provides essential mathematical utilities for workout calculations."""

    @staticmethod
    def clamp(value: float, min_value: float, max_value: float) -> float:
        """Clamp ``value`` to the inclusive range [min_value, max_value]."""
        if min_value > max_value:
            raise ValueError("min_value must not exceed max_value")
        return max(min_value, min(value, max_value))

    @staticmethod
    def volume(sets: list[tuple[int, float]]) -> float:
        """Compute training volume as the sum of reps times weight."""
        vol = 0.0
        for reps, weight in sets:
            vol += reps * weight
        return vol

    @staticmethod
    def session_density(volume: float, duration_minutes: float) -> float:
        """Return training volume per minute."""
        if duration_minutes <= 0:
            return 0.0
        return volume / duration_minutes

    @staticmethod
    def truncate(value: float) -> int:
        """Drop the fractional part, rounding toward zero."""
        return int(value)
