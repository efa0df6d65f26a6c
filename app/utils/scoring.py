"""
Scoring Engine for the F1 Predictions application

Pure functions that turn predicted finishing orders plus official results into
points, streaks and league standings. Nothing here touches the database; the
ScoringService loads rows, calls into this module and persists the outcome.
"""

from dataclasses import dataclass

from flask import current_app

from app.models.prediction_item import ScoringReason
from app.utils.timezone_utils import ensure_utc

PODIUM_POSITIONS = (1, 2, 3)


@dataclass(frozen=True)
class ScoringPolicy:
    """Point values used to score a prediction"""

    exact_points: int = 10
    near_miss_points: int = 5
    in_results_points: int = 1
    podium_bonus: int = 10
    perfect_bonus: int = 25

    @classmethod
    def from_config(cls, config=None):
        """Build the policy from application configuration"""
        if config is None:
            config = current_app.config
        return cls(
            exact_points=config.get("SCORING_EXACT_POINTS", cls.exact_points),
            near_miss_points=config.get(
                "SCORING_NEAR_MISS_POINTS", cls.near_miss_points
            ),
            in_results_points=config.get(
                "SCORING_IN_RESULTS_POINTS", cls.in_results_points
            ),
            podium_bonus=config.get("SCORING_PODIUM_BONUS", cls.podium_bonus),
            perfect_bonus=config.get("SCORING_PERFECT_BONUS", cls.perfect_bonus),
        )

    def points_for(self, reason):
        return {
            ScoringReason.EXACT: self.exact_points,
            ScoringReason.NEAR_MISS: self.near_miss_points,
            ScoringReason.IN_RESULTS: self.in_results_points,
        }.get(reason, 0)


@dataclass
class ItemOutcome:
    actual_position: int
    is_correct: bool
    position_diff: int
    points_awarded: int
    scoring_reason: str

    @property
    def is_near_miss(self):
        return self.scoring_reason == ScoringReason.NEAR_MISS


@dataclass
class PredictionScore:
    items: dict  # pilot_id -> ItemOutcome
    correct_positions: int
    near_misses: int
    total_positions: int
    bonus_points: int
    points_earned: int

    @property
    def is_perfect(self):
        return self.total_positions > 0 and (
            self.correct_positions == self.total_positions
        )


def evaluate_item(predicted_position, actual_position, policy):
    """
    Score one predicted slot against the pilot's actual finishing position.

    Args:
        predicted_position: Position the user put the pilot in
        actual_position: Official finishing position, or None when the pilot
            does not appear in the results
        policy: ScoringPolicy with the point values

    Returns:
        ItemOutcome
    """
    if actual_position is None:
        return ItemOutcome(
            actual_position=None,
            is_correct=False,
            position_diff=None,
            points_awarded=0,
            scoring_reason=ScoringReason.NOT_CLASSIFIED,
        )

    diff = actual_position - predicted_position
    if diff == 0:
        reason = ScoringReason.EXACT
    elif abs(diff) == 1:
        reason = ScoringReason.NEAR_MISS
    else:
        reason = ScoringReason.IN_RESULTS

    return ItemOutcome(
        actual_position=actual_position,
        is_correct=diff == 0,
        position_diff=diff,
        points_awarded=policy.points_for(reason),
        scoring_reason=reason,
    )


def calculate_prediction_score(predicted, actual, policy=None):
    """
    Score a whole prediction.

    Args:
        predicted: Iterable of (pilot_id, predicted_position) pairs
        actual: Mapping of pilot_id -> official finishing position
        policy: ScoringPolicy, defaults to the configured one

    Returns:
        PredictionScore with per-pilot outcomes and aggregates
    """
    policy = policy or ScoringPolicy.from_config()

    outcomes = {}
    exact_positions = set()
    for pilot_id, position in predicted:
        outcome = evaluate_item(position, actual.get(pilot_id), policy)
        outcomes[pilot_id] = outcome
        if outcome.is_correct:
            exact_positions.add(position)

    total = len(outcomes)
    correct = len(exact_positions)
    near_misses = sum(1 for outcome in outcomes.values() if outcome.is_near_miss)

    bonus = 0
    if all(position in exact_positions for position in PODIUM_POSITIONS):
        bonus += policy.podium_bonus
    if total > 0 and correct == total:
        bonus += policy.perfect_bonus

    item_points = sum(outcome.points_awarded for outcome in outcomes.values())

    return PredictionScore(
        items=outcomes,
        correct_positions=correct,
        near_misses=near_misses,
        total_positions=total,
        bonus_points=bonus,
        points_earned=item_points + bonus,
    )


def calculate_streaks(points_newest_first):
    """
    Walk point totals newest-first and return (current_streak, best_streak).

    A prediction extends the running streak when it earned at least one point
    and resets it otherwise. The current streak is the run that starts at the
    newest prediction.
    """
    current_streak = 0
    best_streak = 0
    running = 0
    still_current = True

    for points in points_newest_first:
        if (points or 0) > 0:
            running += 1
            if still_current:
                current_streak = running
            best_streak = max(best_streak, running)
        else:
            still_current = False
            running = 0

    return current_streak, best_streak


def ranking_key(member):
    """Sort key for league standings: points desc, then earliest joiner"""
    return (
        -(member.total_points or 0),
        ensure_utc(member.joined_at),
        member.id or 0,
    )


def rank_members(members):
    """
    Order league members and attach 1-indexed ranks.

    Returns:
        List of (rank, member) tuples
    """
    ordered = sorted(members, key=ranking_key)
    return [(index, member) for index, member in enumerate(ordered, start=1)]


def rank_of(members, user_id):
    """Rank of a user among the given members, or None when absent"""
    for rank, member in rank_members(members):
        if member.user_id == user_id:
            return rank
    return None
