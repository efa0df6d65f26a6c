from app import db  # noqa: F401 - imported for model imports

from .league import League, LeagueStatus
from .league_member import LeagueMember, MemberRole, MemberStatus
from .pilot import Pilot
from .prediction import Prediction, PredictionStatus
from .prediction_item import PredictionItem, ScoringReason
from .race import Race, RaceStatus
from .race_result import FINISH_STATUSES, RaceResult
from .user import User
from .user_stats import UserStats

__all__ = [
    "User",
    "Pilot",
    "Race",
    "RaceStatus",
    "RaceResult",
    "FINISH_STATUSES",
    "Prediction",
    "PredictionStatus",
    "PredictionItem",
    "ScoringReason",
    "League",
    "LeagueStatus",
    "LeagueMember",
    "MemberRole",
    "MemberStatus",
    "UserStats",
]
