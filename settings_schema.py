from pydantic import BaseModel, ValidationError

class SettingsSchema(BaseModel):
    db_path: str = "workout.db"
    db_timeout: float = 5.0
    streak_lookback_days: int = 365
    leaderboard_limit: int = 10
    default_body_weight: float = 75.0
    default_duration_minutes: int = 60
    log_level: str = "INFO"

def validate_settings(data: dict) -> SettingsSchema:
    try:
        return SettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))
