"""Word-, set- and multi-set-level views over persisted progress."""
from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from datetime import date, datetime, timezone

from vocab_srs.models import MasteryLevel, SetReviewSummary, WordProgress
from vocab_srs.srs import (
    DEFAULT_MEMORY_SCORE,
    LEARNING_THRESHOLD,
    MASTERED_THRESHOLD,
    STRONG_THRESHOLD,
    round_half_up,
)

MASTERY_LEVELS = {
    "mastered": MasteryLevel("mastered", "Mastered", "green"),
    "strong": MasteryLevel("strong", "Strong", "blue"),
    "learning": MasteryLevel("learning", "Learning", "yellow"),
    "needs-work": MasteryLevel("needs-work", "Needs Work", "red"),
}


def _now(now: datetime | None) -> datetime:
    return now if now is not None else datetime.now(timezone.utc)


def is_due_for_review(progress: WordProgress | None, now: datetime | None = None) -> bool:
    """New words are always due; studied words once their review date passes."""
    if progress is None:
        return True
    return _now(now) >= progress.next_review_date


def get_words_needing_review(
    words: Iterable[tuple[str, WordProgress | None]],
    now: datetime | None = None,
) -> list[str]:
    """Ids of due words, in input order."""
    now = _now(now)
    return [word_id for word_id, progress in words if is_due_for_review(progress, now)]


def calculate_set_memory_score(progress_list: Sequence[WordProgress | None]) -> int:
    """Mean memory score of a set, counting unstudied words as 50."""
    if not progress_list:
        return 0
    total = sum(
        p.memory_score if p is not None else DEFAULT_MEMORY_SCORE
        for p in progress_list
    )
    return round_half_up(total / len(progress_list))


def get_retention_rate(progress: WordProgress | None) -> int:
    """Percentage of reviews answered correctly."""
    if progress is None or progress.review_count == 0:
        return 0
    return round_half_up(progress.correct_count / progress.review_count * 100)


def get_mastery_level(memory_score: int) -> MasteryLevel:
    if memory_score >= MASTERED_THRESHOLD:
        return MASTERY_LEVELS["mastered"]
    if memory_score >= STRONG_THRESHOLD:
        return MASTERY_LEVELS["strong"]
    if memory_score >= LEARNING_THRESHOLD:
        return MASTERY_LEVELS["learning"]
    return MASTERY_LEVELS["needs-work"]


def get_review_interval(memory_score: int) -> str:
    if memory_score >= MASTERED_THRESHOLD:
        return "Review in 7 days"
    if memory_score >= STRONG_THRESHOLD:
        return "Review in 3 days"
    if memory_score >= LEARNING_THRESHOLD:
        return "Review tomorrow"
    return "Review today"


def calculate_set_next_review_date(
    progress_list: Sequence[WordProgress | None],
    now: datetime | None = None,
) -> datetime | None:
    """When a set as a whole is next due.

    The earliest review date among studied words; ``now`` when nothing in
    the set has been studied yet; None for a set with no words.
    """
    if not progress_list:
        return None
    studied = [p.next_review_date for p in progress_list if p is not None]
    if not studied:
        return _now(now)
    return min(studied)


def summarize_set(
    progress_list: Sequence[WordProgress | None],
    now: datetime | None = None,
) -> SetReviewSummary:
    now = _now(now)
    next_review = calculate_set_next_review_date(progress_list, now)
    return SetReviewSummary(
        memory_score=calculate_set_memory_score(progress_list),
        mastered_count=sum(
            1 for p in progress_list
            if p is not None and p.memory_score >= MASTERED_THRESHOLD
        ),
        word_count=len(progress_list),
        studied_count=sum(1 for p in progress_list if p is not None),
        next_review_date=next_review,
        is_due=next_review is None or now >= next_review,
    )


def summarize_sets(
    sets: Mapping[str, Sequence[WordProgress | None]],
    now: datetime | None = None,
) -> dict[str, SetReviewSummary]:
    now = _now(now)
    return {set_id: summarize_set(progress, now) for set_id, progress in sets.items()}


def sets_needing_review(summaries: Mapping[str, SetReviewSummary]) -> list[str]:
    return [set_id for set_id, s in summaries.items() if s.is_due]


def review_calendar(summaries: Mapping[str, SetReviewSummary]) -> dict[date, list[str]]:
    """Group set ids by the UTC calendar day their next review falls on."""
    calendar: dict[date, list[str]] = {}
    for set_id, s in summaries.items():
        if s.next_review_date is None:
            continue
        day = s.next_review_date.astimezone(timezone.utc).date()
        calendar.setdefault(day, []).append(set_id)
    return dict(sorted(calendar.items()))
