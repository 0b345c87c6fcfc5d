"""Typo-tolerant comparison of free-text answers."""
from __future__ import annotations

import re

from vocab_srs.models import MatchResult

# Similarity (percent) at or above which a misspelling still counts as correct
CLOSE_THRESHOLD = 85.0

# Lower bound of the "did you mean...?" hint band
HINT_THRESHOLD = 70.0

_WHITESPACE = re.compile(r"\s+")


def normalize(text: str) -> str:
    """Lowercase, trim and collapse internal whitespace runs to one space."""
    return _WHITESPACE.sub(" ", text.lower().strip())


def levenshtein_distance(a: str, b: str) -> int:
    """Single-character insert/delete/substitute edit distance."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        current = [i]
        for j, cb in enumerate(b, 1):
            if ca == cb:
                current.append(previous[j - 1])
            else:
                current.append(1 + min(
                    previous[j - 1],  # substitution
                    current[j - 1],   # insertion
                    previous[j],      # deletion
                ))
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """Percent similarity of two (already normalized) strings, 0-100."""
    max_len = max(len(a), len(b))
    if max_len == 0:
        return 100.0
    return (max_len - levenshtein_distance(a, b)) * 100 / max_len


def match_answer(user_answer: str, correct_answer: str) -> MatchResult:
    """Grade *user_answer* against *correct_answer*.

    Exact (after normalization) and close (similarity >= 85) answers are
    accepted; anything else is wrong. Messages quote the canonical spelling
    of *correct_answer* as given, not its normalized form.
    """
    user = normalize(user_answer)
    correct = normalize(correct_answer)

    if user == correct:
        return MatchResult(
            is_correct=True,
            similarity=100.0,
            feedback="exact",
            message="Perfect! That's exactly right.",
        )

    score = similarity(user, correct)
    if score >= CLOSE_THRESHOLD:
        return MatchResult(
            is_correct=True,
            similarity=score,
            feedback="close",
            message=(
                "Close enough! You had a minor typo. "
                f'The correct spelling is "{correct_answer}".'
            ),
        )

    return MatchResult(
        is_correct=False,
        similarity=score,
        feedback="wrong",
        message=f'Not quite. The correct answer is "{correct_answer}".',
    )


def has_acceptable_typos(user_answer: str, correct_answer: str) -> bool:
    """True for near misses (70 <= similarity < 85), used for UI hints only."""
    user = normalize(user_answer)
    correct = normalize(correct_answer)
    if user == correct:
        return False
    score = similarity(user, correct)
    return HINT_THRESHOLD <= score < CLOSE_THRESHOLD
