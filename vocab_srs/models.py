from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Union

# Every review source the scheduler accepts
QUESTION_TYPES = ("flashcard", "multiple-choice", "true-false", "write", "matching")

# Formats produced by the test generator
TEST_QUESTION_TYPES = ("true-false", "multiple-choice", "write", "matching")

SESSION_TYPES = ("flashcard", "multiple_choice", "write", "matching", "test")


@dataclass
class VocabWord:
    id: str
    word: str
    definition: str
    set_id: str | None = None
    example_sentence: str | None = None


@dataclass
class WordProgress:
    word_id: str
    memory_score: int
    next_review_date: datetime
    last_reviewed: datetime | None = None
    review_count: int = 0
    correct_count: int = 0
    incorrect_count: int = 0


@dataclass(frozen=True)
class UpdatedProgress:
    memory_score: int
    next_review_date: datetime
    review_count: int
    correct_count: int
    incorrect_count: int
    last_reviewed: datetime

    def to_progress(self, word_id: str) -> WordProgress:
        return WordProgress(
            word_id=word_id,
            memory_score=self.memory_score,
            next_review_date=self.next_review_date,
            last_reviewed=self.last_reviewed,
            review_count=self.review_count,
            correct_count=self.correct_count,
            incorrect_count=self.incorrect_count,
        )


@dataclass
class ReviewEvent:
    word_id: str
    was_correct: bool
    question_type: str | None = None
    response_time_ms: int | None = None
    previous_attempts: int | None = None


@dataclass
class SetReviewSummary:
    memory_score: int
    mastered_count: int
    word_count: int
    studied_count: int
    next_review_date: datetime | None
    is_due: bool


@dataclass(frozen=True)
class MasteryLevel:
    level: str  # mastered | strong | learning | needs-work
    label: str
    color: str


@dataclass(frozen=True)
class MatchResult:
    is_correct: bool
    similarity: float
    feedback: str  # exact | close | wrong
    message: str


@dataclass
class LearningSession:
    id: int
    set_id: str
    session_type: str
    score: int | None
    completed_at: datetime


# ── Test questions ────────────────────────────────────────────────────────
#
# A closed set of variants discriminated by ``type``. Grading dispatches on
# the discriminant (see question_generator.grade_answer).


@dataclass(frozen=True)
class TrueFalseQuestion:
    id: str
    word_id: str
    word: str
    definition: str
    is_correct: bool
    correct_definition: str | None = None
    type: Literal["true-false"] = field(default="true-false", init=False)

    @property
    def word_ids(self) -> list[str]:
        return [self.word_id]


@dataclass(frozen=True)
class MultipleChoiceQuestion:
    id: str
    word_id: str
    word: str
    options: tuple[str, ...]
    correct_answer: str
    type: Literal["multiple-choice"] = field(default="multiple-choice", init=False)

    @property
    def word_ids(self) -> list[str]:
        return [self.word_id]


@dataclass(frozen=True)
class WriteQuestion:
    id: str
    word_id: str
    definition: str
    correct_answer: str
    type: Literal["write"] = field(default="write", init=False)

    @property
    def word_ids(self) -> list[str]:
        return [self.word_id]


@dataclass(frozen=True)
class MatchingPair:
    word_id: str
    word: str
    definition: str


@dataclass(frozen=True)
class MatchingQuestion:
    id: str
    pairs: tuple[MatchingPair, ...]
    type: Literal["matching"] = field(default="matching", init=False)

    @property
    def word_ids(self) -> list[str]:
        return [p.word_id for p in self.pairs]


TestQuestion = Union[
    TrueFalseQuestion,
    MultipleChoiceQuestion,
    WriteQuestion,
    MatchingQuestion,
]


@dataclass
class GradedAnswer:
    question_id: str
    question_type: str
    is_correct: bool
    user_answer: str
    correct_answer: str
    word_results: dict[str, bool] = field(default_factory=dict)  # word_id -> correct
    similarity: float | None = None  # write questions only
    feedback: str | None = None
