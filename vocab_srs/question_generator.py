"""Build mixed-format tests from a word pool and grade answers to them."""
from __future__ import annotations

import logging
import random
from collections.abc import Mapping, Sequence
from typing import NamedTuple, Protocol, TypeVar

from vocab_srs.matcher import match_answer
from vocab_srs.models import (
    GradedAnswer,
    MatchingPair,
    MatchingQuestion,
    MultipleChoiceQuestion,
    TestQuestion,
    TrueFalseQuestion,
    VocabWord,
    WriteQuestion,
)

_log = logging.getLogger("vocab_srs.qgen")

T = TypeVar("T")

MIN_WORDS = 4
MATCHING_GROUP_SIZE = 3
DISTRACTOR_COUNT = 3

# Share of a test given to each single-word format (each floored);
# what is left over goes to matching groups of three.
TYPE_RATIOS = {
    "true-false": 0.25,
    "multiple-choice": 0.35,
    "write": 0.25,
}


class InsufficientWordsError(ValueError):
    pass


class InvalidAnswerError(ValueError):
    """An answer whose shape does not fit its question type."""


class IncompleteMatchingError(InvalidAnswerError):
    pass


class RandomSource(Protocol):
    def random(self) -> float: ...


class QuestionCounts(NamedTuple):
    true_false: int
    multiple_choice: int
    write: int
    matching: int


# ── Randomness ────────────────────────────────────────────────────────────
#
# Everything below draws only from rng.random(), so a seeded
# random.Random gives a reproducible test.


def shuffled(items: Sequence[T], rng: RandomSource) -> list[T]:
    """Fisher-Yates shuffle into a new list."""
    result = list(items)
    for i in range(len(result) - 1, 0, -1):
        j = int(rng.random() * (i + 1))
        result[i], result[j] = result[j], result[i]
    return result


def _pick(items: Sequence[T], rng: RandomSource) -> T:
    return items[int(rng.random() * len(items))]


def _sample(items: Sequence[T], k: int, rng: RandomSource) -> list[T]:
    return shuffled(items, rng)[:k]


# ── Generation ────────────────────────────────────────────────────────────


def distribute_questions(total: int) -> QuestionCounts:
    """Split *total* question slots across the four formats.

    Matching takes the remainder in groups of three. Slots too few to make
    a matching group go to multiple choice so the test keeps its length.
    """
    true_false = int(total * TYPE_RATIOS["true-false"])
    multiple_choice = int(total * TYPE_RATIOS["multiple-choice"])
    write = int(total * TYPE_RATIOS["write"])
    remaining = max(0, total - (true_false + multiple_choice + write))
    matching = remaining // MATCHING_GROUP_SIZE
    multiple_choice += remaining - matching * MATCHING_GROUP_SIZE
    return QuestionCounts(true_false, multiple_choice, write, matching)


def _others(word: VocabWord, words: Sequence[VocabWord]) -> list[VocabWord]:
    return [w for w in words if w.id != word.id]


def generate_true_false(
    word: VocabWord, words: Sequence[VocabWord], rng: RandomSource,
) -> TrueFalseQuestion:
    if rng.random() >= 0.5:
        return TrueFalseQuestion(
            id=f"tf-{word.id}",
            word_id=word.id,
            word=word.word,
            definition=word.definition,
            is_correct=True,
        )
    wrong = _pick(_others(word, words), rng)
    return TrueFalseQuestion(
        id=f"tf-{word.id}",
        word_id=word.id,
        word=word.word,
        definition=wrong.definition,
        is_correct=False,
        correct_definition=word.definition,
    )


def generate_multiple_choice(
    word: VocabWord, words: Sequence[VocabWord], rng: RandomSource,
) -> MultipleChoiceQuestion:
    distractors = [w.definition for w in _sample(_others(word, words), DISTRACTOR_COUNT, rng)]
    options = shuffled([word.definition, *distractors], rng)
    return MultipleChoiceQuestion(
        id=f"mc-{word.id}",
        word_id=word.id,
        word=word.word,
        options=tuple(options),
        correct_answer=word.definition,
    )


def generate_write(word: VocabWord) -> WriteQuestion:
    return WriteQuestion(
        id=f"write-{word.id}",
        word_id=word.id,
        definition=word.definition,
        correct_answer=word.word,
    )


def generate_matching(group: Sequence[VocabWord]) -> MatchingQuestion:
    return MatchingQuestion(
        id="match-" + "-".join(w.id for w in group),
        pairs=tuple(MatchingPair(w.id, w.word, w.definition) for w in group),
    )


def generate_test(
    words: Sequence[VocabWord],
    question_count: int = 10,
    rng: RandomSource | None = None,
) -> list[TestQuestion]:
    """Generate a shuffled mix of true/false, multiple-choice, write and
    matching questions.

    Words are drawn without replacement from one shuffled pool, so no word
    is asked about twice. When the pool runs dry, the remaining slots are
    dropped rather than reusing words.
    """
    if len(words) < MIN_WORDS:
        raise InsufficientWordsError(
            f"Need at least {MIN_WORDS} words to generate a test (got {len(words)})"
        )
    if rng is None:
        rng = random

    counts = distribute_questions(question_count)
    pool = shuffled(words, rng)
    questions: list[TestQuestion] = []

    for _ in range(counts.true_false):
        if not pool:
            break
        questions.append(generate_true_false(pool.pop(0), words, rng))

    for _ in range(counts.multiple_choice):
        if not pool:
            break
        questions.append(generate_multiple_choice(pool.pop(0), words, rng))

    for _ in range(counts.write):
        if not pool:
            break
        questions.append(generate_write(pool.pop(0)))

    for _ in range(counts.matching):
        if len(pool) < MATCHING_GROUP_SIZE:
            break
        group, pool = pool[:MATCHING_GROUP_SIZE], pool[MATCHING_GROUP_SIZE:]
        questions.append(generate_matching(group))

    _log.info(
        "Generated %d questions from %d words (requested %d: %s)",
        len(questions), len(words), question_count, counts,
    )
    return shuffled(questions, rng)


# ── Grading ───────────────────────────────────────────────────────────────


def _check_answer(q: TestQuestion, answer, expected: type, name: str) -> None:
    if not isinstance(answer, expected):
        raise InvalidAnswerError(
            f"Question {q.id} ({q.type}) needs {name} as its answer, "
            f"got {type(answer).__name__}"
        )


def _grade_true_false(q: TrueFalseQuestion, answer: bool) -> GradedAnswer:
    _check_answer(q, answer, bool, "true or false")
    correct = answer == q.is_correct
    return GradedAnswer(
        question_id=q.id,
        question_type=q.type,
        is_correct=correct,
        user_answer="True" if answer else "False",
        correct_answer="True" if q.is_correct else "False",
        word_results={q.word_id: correct},
    )


def _grade_multiple_choice(q: MultipleChoiceQuestion, answer: str) -> GradedAnswer:
    _check_answer(q, answer, str, "an option")
    correct = answer == q.correct_answer
    return GradedAnswer(
        question_id=q.id,
        question_type=q.type,
        is_correct=correct,
        user_answer=answer,
        correct_answer=q.correct_answer,
        word_results={q.word_id: correct},
    )


def _grade_write(q: WriteQuestion, answer: str) -> GradedAnswer:
    _check_answer(q, answer, str, "text")
    result = match_answer(answer, q.correct_answer)
    return GradedAnswer(
        question_id=q.id,
        question_type=q.type,
        is_correct=result.is_correct,
        user_answer=answer,
        correct_answer=q.correct_answer,
        word_results={q.word_id: result.is_correct},
        similarity=result.similarity,
        feedback=result.feedback,
    )


def _grade_matching(q: MatchingQuestion, answer: Mapping[str, str]) -> GradedAnswer:
    _check_answer(q, answer, Mapping, "a word_id -> definition mapping")
    expected = {p.word_id: p.definition for p in q.pairs}
    if len(answer) != len(expected) or set(answer) != set(expected):
        raise IncompleteMatchingError(
            f"Matching question {q.id} needs exactly one definition for each of "
            f"{len(expected)} words (got {len(answer)})"
        )
    word_results = {wid: answer[wid] == definition for wid, definition in expected.items()}
    n_correct = sum(word_results.values())
    return GradedAnswer(
        question_id=q.id,
        question_type=q.type,
        # Partial matches are reported but only a full match scores
        is_correct=n_correct == len(expected),
        user_answer=f"{n_correct}/{len(expected)} correct",
        correct_answer=f"{len(expected)}/{len(expected)} correct",
        word_results=word_results,
    )


def grade_answer(question: TestQuestion, answer) -> GradedAnswer:
    """Grade *answer* for *question*.

    The expected answer shape depends on the question type: a bool for
    true/false, the chosen option for multiple choice, free text for write,
    and a ``{word_id: definition}`` mapping covering the whole group for
    matching.
    Any other shape raises InvalidAnswerError.
    """
    if question.type == "true-false":
        return _grade_true_false(question, answer)
    if question.type == "multiple-choice":
        return _grade_multiple_choice(question, answer)
    if question.type == "write":
        return _grade_write(question, answer)
    if question.type == "matching":
        return _grade_matching(question, answer)
    raise ValueError(f"Unknown question type: {question.type}")
