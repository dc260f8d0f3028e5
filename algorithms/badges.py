class BadgeRules:
    """Threshold rules applied to a finished workout."""

    TITAN_VOLUME = "Titan Volume"
    HEAVY_LIFTER = "Heavy Lifter"
    MARATHONER = "Marathoner"
    SPEED_DEMON = "Speed Demon"
    VOLUME_WARRIOR = "Volume Warrior"

    TITAN_VOLUME_KG = 10000.0
    HEAVY_LIFTER_KG = 5000.0
    MARATHON_MINUTES = 90
    SPEED_MINUTES = 30
    SPEED_VOLUME_KG = 2000.0
    WARRIOR_SETS = 20

    @classmethod
    def determine(
        cls, volume: float, duration_minutes: float, set_count: int
    ) -> list[str]:
        """Return earned badge names in rule order."""
        badges: list[str] = []
        if volume >= cls.TITAN_VOLUME_KG:
            badges.append(cls.TITAN_VOLUME)
        elif volume >= cls.HEAVY_LIFTER_KG:
            badges.append(cls.HEAVY_LIFTER)

        if duration_minutes >= cls.MARATHON_MINUTES:
            badges.append(cls.MARATHONER)
        elif duration_minutes <= cls.SPEED_MINUTES and volume > cls.SPEED_VOLUME_KG:
            badges.append(cls.SPEED_DEMON)

        if set_count >= cls.WARRIOR_SETS:
            badges.append(cls.VOLUME_WARRIOR)
        return badges
