"""Memory-score spaced repetition and review recording.

Memory score scale (0-100) and review intervals:
  85-100  mastered    review in 7 days
  70-84   strong      review in 3 days
  50-69   learning    review in 1 day
  0-49    needs work  review in 4 hours
"""
from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from vocab_srs.models import ReviewEvent, UpdatedProgress, WordProgress

if TYPE_CHECKING:
    from vocab_srs.db import Database

_log = logging.getLogger("vocab_srs.srs")

DEFAULT_MEMORY_SCORE = 50
DEFAULT_DIFFICULTY = 0.5

MASTERED_THRESHOLD = 85
STRONG_THRESHOLD = 70
LEARNING_THRESHOLD = 50

# Harder formats earn more on success and lose less on failure
TYPE_DIFFICULTY = {
    "write": 0.8,
    "multiple-choice": 0.3,
    "true-false": 0.2,
    "flashcard": 0.5,
    "matching": 0.5,
}

FAST_RESPONSE_MS = 3000
SLOW_RESPONSE_MS = 10000


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (2.5 -> 3, not 2)."""
    return int(math.floor(value + 0.5))


def calculate_difficulty(
    question_type: str | None = None,
    response_time_ms: float | None = None,
    previous_attempts: int | None = None,
) -> float:
    """Estimate how diagnostic a review was, on a 0 (easy) to 1 (hard) scale."""
    difficulty = TYPE_DIFFICULTY.get(question_type, DEFAULT_DIFFICULTY)

    if response_time_ms is not None:
        if response_time_ms < FAST_RESPONSE_MS:
            difficulty -= 0.1
        elif response_time_ms > SLOW_RESPONSE_MS:
            difficulty += 0.1

    # Earlier misses on the same item earn less credit
    if previous_attempts:
        difficulty -= previous_attempts * 0.1

    return max(0.0, min(1.0, difficulty))


def difficulty_for(event: ReviewEvent) -> float:
    return calculate_difficulty(
        event.question_type,
        event.response_time_ms,
        event.previous_attempts,
    )


def calculate_memory_score(
    current_score: float,
    was_correct: bool,
    difficulty: float = DEFAULT_DIFFICULTY,
) -> int:
    """Apply one review to a memory score.

    Correct answers gain 15-25 points, incorrect ones lose 10-20; a higher
    difficulty widens the gain and narrows the loss.
    """
    if was_correct:
        new_score = min(100, current_score + 15 + difficulty * 10)
    else:
        new_score = max(0, current_score - (20 - difficulty * 10))
    return round_half_up(new_score)


def review_interval(memory_score: int) -> timedelta:
    if memory_score >= MASTERED_THRESHOLD:
        return timedelta(days=7)
    if memory_score >= STRONG_THRESHOLD:
        return timedelta(days=3)
    if memory_score >= LEARNING_THRESHOLD:
        return timedelta(days=1)
    return timedelta(hours=4)


def calculate_next_review_date(memory_score: int, now: datetime | None = None) -> datetime:
    if now is None:
        now = datetime.now(timezone.utc)
    return now + review_interval(memory_score)


def update_learning_progress(
    current: WordProgress | None,
    was_correct: bool,
    difficulty: float | None = None,
    now: datetime | None = None,
) -> UpdatedProgress:
    """Compute a word's progress after one review.

    ``current`` is None for a word that has never been reviewed; it starts
    from the neutral score of 50. The input is never modified.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    if difficulty is None:
        difficulty = DEFAULT_DIFFICULTY

    if current is not None:
        current_score = current.memory_score
        review_count = current.review_count
        correct_count = current.correct_count
        incorrect_count = current.incorrect_count
    else:
        current_score = DEFAULT_MEMORY_SCORE
        review_count = correct_count = incorrect_count = 0

    memory_score = calculate_memory_score(current_score, was_correct, difficulty)
    return UpdatedProgress(
        memory_score=memory_score,
        next_review_date=calculate_next_review_date(memory_score, now),
        review_count=review_count + 1,
        correct_count=correct_count + (1 if was_correct else 0),
        incorrect_count=incorrect_count + (0 if was_correct else 1),
        last_reviewed=now,
    )


def apply_reviews(
    events: Iterable[ReviewEvent],
    progress_map: Mapping[str, WordProgress],
    now: datetime | None = None,
) -> list[WordProgress]:
    """Apply a batch of independent reviews, one per word.

    Words missing from *progress_map* are treated as unseen. A word id may
    appear at most once per batch.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    events = list(events)
    seen: set[str] = set()
    for e in events:
        if e.word_id in seen:
            raise ValueError(f"word {e.word_id!r} appears more than once in one review batch")
        seen.add(e.word_id)

    updated = []
    for e in events:
        result = update_learning_progress(
            progress_map.get(e.word_id),
            e.was_correct,
            difficulty_for(e),
            now,
        )
        updated.append(result.to_progress(e.word_id))
    return updated


def record_review(db: Database, event: ReviewEvent, now: datetime | None = None) -> WordProgress:
    """Update and persist progress for a single reviewed word."""
    current = db.get_progress(event.word_id)
    result = update_learning_progress(current, event.was_correct, difficulty_for(event), now)
    progress = result.to_progress(event.word_id)
    db.upsert_progress(progress)
    _log.info(
        "Review %s: %s -> score %d, next %s",
        event.word_id,
        "correct" if event.was_correct else "wrong",
        progress.memory_score,
        progress.next_review_date.isoformat(),
    )
    return progress


def record_reviews(
    db: Database,
    events: Iterable[ReviewEvent],
    now: datetime | None = None,
) -> list[WordProgress]:
    """Update progress for a whole session and persist it in one write."""
    events = list(events)
    if not events:
        return []
    current = db.get_progress_batch([e.word_id for e in events])
    updated = apply_reviews(events, current, now)
    db.upsert_progress_batch(updated)
    correct = sum(1 for e in events if e.was_correct)
    _log.info("Recorded %d reviews (%d correct)", len(updated), correct)
    return updated
