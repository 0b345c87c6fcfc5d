"""Test attempts and session scoring."""
from __future__ import annotations

import enum
import random
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from vocab_srs.models import (
    TEST_QUESTION_TYPES,
    GradedAnswer,
    ReviewEvent,
    TestQuestion,
    VocabWord,
)
from vocab_srs.question_generator import RandomSource, generate_test, grade_answer
from vocab_srs.srs import round_half_up


class AttemptStatus(enum.Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


class AttemptStateError(RuntimeError):
    pass


@dataclass
class TypeBreakdown:
    correct: int = 0
    total: int = 0

    @property
    def percentage(self) -> int:
        return session_score(self.correct, self.total)


def session_score(correct: int, total: int) -> int:
    """Percentage of correct questions, 0 for an empty session."""
    if total <= 0:
        return 0
    return round_half_up(correct / total * 100)


def score_answers(answers: Sequence[GradedAnswer]) -> int:
    return session_score(sum(1 for a in answers if a.is_correct), len(answers))


def breakdown_by_type(answers: Iterable[GradedAnswer]) -> dict[str, TypeBreakdown]:
    result = {qtype: TypeBreakdown() for qtype in TEST_QUESTION_TYPES}
    for a in answers:
        entry = result.setdefault(a.question_type, TypeBreakdown())
        entry.total += 1
        if a.is_correct:
            entry.correct += 1
    return result


class QuizAttempt:
    """One pass through a generated test.

    NOT_STARTED -> IN_PROGRESS -> COMPLETE. Each question is answered
    exactly once, in order; every answer yields review events for the words
    it covered.
    """

    def __init__(self, questions: Sequence[TestQuestion], rng: RandomSource | None = None):
        self.questions = list(questions)
        # Also drives presentation shuffles (matching definitions)
        self.rng = rng if rng is not None else random
        self.answers: list[GradedAnswer] = []
        self.status = AttemptStatus.NOT_STARTED
        self.current_index = 0
        self._events: list[ReviewEvent] = []

    @classmethod
    def from_words(
        cls,
        words: Sequence[VocabWord],
        question_count: int | None = None,
        rng: RandomSource | None = None,
    ) -> QuizAttempt:
        """Build an attempt over *words*; by default the test covers the whole set."""
        if question_count is None:
            question_count = len(words)
        return cls(generate_test(words, question_count, rng=rng), rng=rng)

    def start(self) -> TestQuestion | None:
        if self.status is not AttemptStatus.NOT_STARTED:
            raise AttemptStateError(f"Attempt already {self.status.value}")
        if not self.questions:
            self.status = AttemptStatus.COMPLETE
            return None
        self.status = AttemptStatus.IN_PROGRESS
        return self.current_question

    @property
    def current_question(self) -> TestQuestion | None:
        if self.status is not AttemptStatus.IN_PROGRESS:
            return None
        return self.questions[self.current_index]

    @property
    def is_complete(self) -> bool:
        return self.status is AttemptStatus.COMPLETE

    def answer(self, answer, response_time_ms: int | None = None) -> GradedAnswer:
        """Grade the current question and move on to the next one."""
        question = self.current_question
        if question is None:
            raise AttemptStateError(f"Cannot answer: attempt is {self.status.value}")

        graded = grade_answer(question, answer)
        self.answers.append(graded)
        for word_id in question.word_ids:
            self._events.append(ReviewEvent(
                word_id=word_id,
                was_correct=graded.word_results.get(word_id, graded.is_correct),
                question_type=question.type,
                response_time_ms=response_time_ms,
            ))

        self.current_index += 1
        if self.current_index >= len(self.questions):
            self.status = AttemptStatus.COMPLETE
        return graded

    def review_events(self) -> list[ReviewEvent]:
        return list(self._events)

    def score(self) -> int:
        return score_answers(self.answers)

    def breakdown(self) -> dict[str, TypeBreakdown]:
        return breakdown_by_type(self.answers)

    def incorrect_answers(self) -> list[GradedAnswer]:
        return [a for a in self.answers if not a.is_correct]


# ── Other learning modes ──────────────────────────────────────────────────


def flashcard_events(results: Iterable[tuple[str, bool]]) -> list[ReviewEvent]:
    """Review events for a flashcard run of (word_id, known) swipes."""
    return [
        ReviewEvent(word_id=word_id, was_correct=known, question_type="flashcard")
        for word_id, known in results
    ]


def matching_game_events(word_ids: Iterable[str]) -> list[ReviewEvent]:
    """Every pair in a finished matching game was eventually matched."""
    return [
        ReviewEvent(word_id=word_id, was_correct=True, question_type="matching")
        for word_id in word_ids
    ]


def matching_game_efficiency(pairs: int, attempts: int) -> int:
    """Score a matching game by attempts spent per pair (one each is 100)."""
    if attempts <= 0:
        return 0
    return min(100, round_half_up(pairs / attempts * 100))
