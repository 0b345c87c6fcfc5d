"""Tests for the memory-score spaced repetition module."""
from __future__ import annotations

from datetime import timedelta

import pytest

from vocab_srs.models import ReviewEvent, WordProgress
from vocab_srs.srs import (
    DEFAULT_MEMORY_SCORE,
    apply_reviews,
    calculate_difficulty,
    calculate_memory_score,
    calculate_next_review_date,
    record_review,
    record_reviews,
    review_interval,
    round_half_up,
    update_learning_progress,
)

DIFFICULTIES = [0.0, 0.1, 0.25, 0.5, 0.75, 0.9, 1.0]


class TestRoundHalfUp:
    def test_half_rounds_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(67.5) == 68

    def test_below_half(self):
        assert round_half_up(66.49) == 66


class TestCalculateDifficulty:
    @pytest.mark.parametrize("qtype,expected", [
        ("write", 0.8),
        ("multiple-choice", 0.3),
        ("true-false", 0.2),
        ("flashcard", 0.5),
        ("matching", 0.5),
        ("something-else", 0.5),
        (None, 0.5),
    ])
    def test_base_by_type(self, qtype, expected):
        assert calculate_difficulty(qtype) == pytest.approx(expected)

    def test_fast_response_easier(self):
        assert calculate_difficulty("write", response_time_ms=1500) == pytest.approx(0.7)

    def test_slow_response_harder(self):
        assert calculate_difficulty("write", response_time_ms=12000) == pytest.approx(0.9)

    def test_normal_response_unchanged(self):
        assert calculate_difficulty("write", response_time_ms=5000) == pytest.approx(0.8)

    def test_previous_attempts_lower_difficulty(self):
        assert calculate_difficulty("flashcard", previous_attempts=2) == pytest.approx(0.3)

    def test_clamped_low(self):
        assert calculate_difficulty("true-false", response_time_ms=100, previous_attempts=5) == 0.0

    def test_clamped_high(self):
        assert calculate_difficulty("write", response_time_ms=60000) <= 1.0


class TestCalculateMemoryScore:
    def test_correct_medium(self):
        assert calculate_memory_score(50, True, 0.5) == 70

    def test_incorrect_medium(self):
        assert calculate_memory_score(50, False, 0.5) == 35

    def test_hard_correct_gains_more(self):
        assert calculate_memory_score(50, True, 1.0) == 75
        assert calculate_memory_score(50, True, 0.0) == 65

    def test_hard_incorrect_loses_less(self):
        assert calculate_memory_score(50, False, 1.0) == 40
        assert calculate_memory_score(50, False, 0.0) == 30

    def test_capped_at_100(self):
        assert calculate_memory_score(95, True, 1.0) == 100

    def test_floored_at_0(self):
        assert calculate_memory_score(5, False, 0.0) == 0

    def test_rounds_half_up(self):
        assert calculate_memory_score(50, True, 0.25) == 68

    @pytest.mark.parametrize("current", [0, 1, 49, 50, 84, 85, 99, 100])
    @pytest.mark.parametrize("difficulty", DIFFICULTIES)
    @pytest.mark.parametrize("was_correct", [True, False])
    def test_bounds(self, current, difficulty, was_correct):
        score = calculate_memory_score(current, was_correct, difficulty)
        assert isinstance(score, int)
        assert 0 <= score <= 100

    @pytest.mark.parametrize("current", [0, 30, 50, 70, 90, 100])
    @pytest.mark.parametrize("difficulty", DIFFICULTIES)
    def test_monotonic(self, current, difficulty):
        assert calculate_memory_score(current, True, difficulty) >= current
        assert calculate_memory_score(current, False, difficulty) <= current


class TestNextReviewDate:
    @pytest.mark.parametrize("score,expected", [
        (100, timedelta(days=7)),
        (85, timedelta(days=7)),
        (84, timedelta(days=3)),
        (70, timedelta(days=3)),
        (69, timedelta(days=1)),
        (50, timedelta(days=1)),
        (49, timedelta(hours=4)),
        (0, timedelta(hours=4)),
    ])
    def test_bands(self, score, expected, now):
        assert calculate_next_review_date(score, now) == now + expected

    def test_intervals_shrink_with_score(self):
        intervals = [review_interval(s) for s in range(100, -1, -1)]
        for higher, lower in zip(intervals, intervals[1:]):
            assert higher >= lower

    def test_never_in_past(self, now):
        for score in (0, 50, 70, 85, 100):
            assert calculate_next_review_date(score, now) > now

    def test_defaults_to_aware_utc(self):
        assert calculate_next_review_date(50).tzinfo is not None


class TestUpdateLearningProgress:
    def test_first_review_correct(self, now):
        r = update_learning_progress(None, True, 0.5, now)
        assert r.memory_score == 70
        assert r.review_count == 1
        assert r.correct_count == 1
        assert r.incorrect_count == 0
        assert r.last_reviewed == now
        assert r.next_review_date == now + timedelta(days=3)

    def test_first_review_wrong(self, now):
        r = update_learning_progress(None, False, 0.5, now)
        assert r.memory_score == 35
        assert r.incorrect_count == 1
        assert r.next_review_date == now + timedelta(hours=4)

    def test_default_difficulty(self, now):
        assert update_learning_progress(None, True, None, now).memory_score == 70

    def test_existing_progress(self, make_progress, now):
        current = make_progress(score=80, reviews=4, correct=3)
        r = update_learning_progress(current, True, 0.5, now)
        assert r.memory_score == 100
        assert r.review_count == 5
        assert r.correct_count == 4
        assert r.incorrect_count == 1
        assert r.review_count == r.correct_count + r.incorrect_count

    def test_input_not_mutated(self, make_progress, now):
        current = make_progress(score=60)
        update_learning_progress(current, False, 0.5, now)
        assert current.memory_score == 60
        assert current.review_count == 1

    def test_deterministic(self, make_progress, now):
        current = make_progress(score=60)
        assert update_learning_progress(current, True, 0.3, now) == \
            update_learning_progress(current, True, 0.3, now)

    def test_next_review_not_before_update(self, now):
        for correct in (True, False):
            r = update_learning_progress(None, correct, 0.5, now)
            assert r.next_review_date >= r.last_reviewed


class TestApplyReviews:
    def test_each_word_updated_independently(self, make_progress, now):
        events = [
            ReviewEvent("w1", True, "write"),
            ReviewEvent("w2", False, "true-false"),
            ReviewEvent("w3", True),
        ]
        current = {"w1": make_progress("w1", score=50), "w2": make_progress("w2", score=80)}
        updated = apply_reviews(events, current, now)

        assert [p.word_id for p in updated] == ["w1", "w2", "w3"]
        assert updated[0].memory_score == 73  # 50 + 15 + 8
        assert updated[1].memory_score == 62  # 80 - (20 - 2)
        assert updated[2].memory_score == 70  # unseen word starts at 50
        assert updated[2].review_count == 1

    def test_duplicate_word_rejected(self, now):
        with pytest.raises(ValueError, match="more than once"):
            apply_reviews([ReviewEvent("w1", True), ReviewEvent("w1", False)], {}, now)

    def test_empty_batch(self, now):
        assert apply_reviews([], {}, now) == []

    def test_replay_is_idempotent(self, make_progress, now):
        current = {"w1": make_progress("w1", score=42)}
        event = ReviewEvent("w1", True, "multiple-choice", response_time_ms=2000)
        assert apply_reviews([event], current, now) == apply_reviews([event], current, now)


class TestRecordReview:
    def test_first_review_persisted(self, populated_db):
        wid = populated_db.sample_word_ids[0]
        p = record_review(populated_db, ReviewEvent(wid, True, "flashcard"))
        stored = populated_db.get_progress(wid)
        assert stored == p
        assert stored.memory_score == 70
        assert stored.review_count == 1

    def test_multiple_reviews_accumulate(self, populated_db):
        wid = populated_db.sample_word_ids[0]
        record_review(populated_db, ReviewEvent(wid, True, "flashcard"))
        record_review(populated_db, ReviewEvent(wid, False, "flashcard"))
        stored = populated_db.get_progress(wid)
        assert stored.review_count == 2
        assert stored.correct_count == 1
        assert stored.incorrect_count == 1
        assert stored.memory_score == 55  # 70 - 15

    def test_batch_persisted(self, populated_db, now):
        ids = populated_db.sample_word_ids[:3]
        events = [ReviewEvent(wid, i != 1, "write") for i, wid in enumerate(ids)]
        updated = record_reviews(populated_db, events, now)
        stored = populated_db.get_progress_batch(ids)
        assert len(updated) == 3
        assert {wid: p.memory_score for wid, p in stored.items()} == {
            ids[0]: 73, ids[1]: 38, ids[2]: 73,
        }

    def test_batch_duplicate_writes_nothing(self, populated_db):
        wid = populated_db.sample_word_ids[0]
        with pytest.raises(ValueError):
            record_reviews(populated_db, [ReviewEvent(wid, True), ReviewEvent(wid, True)])
        assert populated_db.get_progress(wid) is None

    def test_empty_batch(self, populated_db):
        assert record_reviews(populated_db, []) == []

    def test_default_score_constant(self):
        assert DEFAULT_MEMORY_SCORE == 50
