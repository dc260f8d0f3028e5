from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable


@dataclass(frozen=True)
class SetEvaluation:
    is_new_1rm: bool
    is_volume_pr: bool


class PersonalRecordEvaluator:
    """Classify a new set against a user's prior sets for one exercise."""

    MIN_VOLUME_PR_REPS: int = 5

    @staticmethod
    def prior_max_weight(prior_sets: Iterable[tuple[float, int]]) -> float:
        return max((float(w) for w, _r in prior_sets), default=0.0)

    @staticmethod
    def prior_max_reps(prior_sets: Iterable[tuple[float, int]], weight: float) -> int:
        """Most reps ever done at ``weight`` or heavier."""
        return max((int(r) for w, r in prior_sets if w >= weight), default=0)

    @classmethod
    def evaluate(
        cls, weight: float, reps: int, prior_sets: Iterable[tuple[float, int]]
    ) -> SetEvaluation:
        """Return PR flags for a set of ``weight`` x ``reps``.

        ``prior_sets`` holds ``(weight_kg, reps)`` pairs and must not include
        the set being evaluated.
        """
        history = list(prior_sets)
        is_new_1rm = weight > cls.prior_max_weight(history)
        is_volume_pr = (
            not is_new_1rm
            and reps > cls.prior_max_reps(history, weight)
            and reps > cls.MIN_VOLUME_PR_REPS
        )
        return SetEvaluation(is_new_1rm=is_new_1rm, is_volume_pr=is_volume_pr)
