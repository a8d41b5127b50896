"""Helpers for walking a recovery score history by calendar day."""

from datetime import date, timedelta
from typing import Callable, Dict, Iterable, List

from .types import RecoveryScore


def index_by_date(scores: Iterable[RecoveryScore]) -> Dict[date, RecoveryScore]:
    """Map score_date -> score. Later entries win on duplicate dates."""
    return {score.score_date: score for score in scores}


def count_consecutive_days(
    scores: Iterable[RecoveryScore],
    end_date: date,
    predicate: Callable[[RecoveryScore], bool],
) -> int:
    """Count calendar-consecutive days ending at end_date that satisfy predicate.

    A missing day breaks the run just like a day that fails the predicate.
    """
    by_date = index_by_date(scores)
    count = 0
    day = end_date
    while day in by_date and predicate(by_date[day]):
        count += 1
        day -= timedelta(days=1)
    return count


def matching_runs(
    scores: Iterable[RecoveryScore],
    predicate: Callable[[RecoveryScore], bool],
) -> List[List[RecoveryScore]]:
    """Split a history into maximal calendar-consecutive runs satisfying predicate."""
    runs: List[List[RecoveryScore]] = []
    current: List[RecoveryScore] = []

    for score in sorted(index_by_date(scores).values(), key=lambda s: s.score_date):
        if predicate(score) and (
            not current or score.score_date - current[-1].score_date == timedelta(days=1)
        ):
            current.append(score)
            continue

        if current:
            runs.append(current)
        current = [score] if predicate(score) else []

    if current:
        runs.append(current)
    return runs


def days_since_last(
    scores: Iterable[RecoveryScore],
    end_date: date,
    predicate: Callable[[RecoveryScore], bool],
) -> int:
    """Calendar days from the last score satisfying predicate to end_date.

    Unscored days count as elapsed. When no score in the history satisfies
    predicate, the count runs from the day before the earliest score, so it
    equals the number of calendar days the history covers.
    """
    dated = [s for s in scores if s.score_date <= end_date]
    if not dated:
        return 0

    matches = [s.score_date for s in dated if predicate(s)]
    if matches:
        return (end_date - max(matches)).days
    return (end_date - min(s.score_date for s in dated)).days + 1
