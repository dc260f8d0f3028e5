from .math_tools import MathTools
from .body_metrics import BodyMetrics
from .energy_estimator import EnergyEstimator
from .records import PersonalRecordEvaluator, SetEvaluation
from .streaks import StreakCalculator
from .badges import BadgeRules
from .leaderboard import Leaderboard, LeaderboardFilter, TimeWindow

__all__ = [
    "MathTools",
    "BodyMetrics",
    "EnergyEstimator",
    "PersonalRecordEvaluator",
    "SetEvaluation",
    "StreakCalculator",
    "BadgeRules",
    "Leaderboard",
    "LeaderboardFilter",
    "TimeWindow",
]
