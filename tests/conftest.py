"""Shared test fixtures."""
from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone

import pytest

from vocab_srs.db import Database
from vocab_srs.models import VocabWord, WordProgress

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def rng():
    """Seeded random source so generated tests are reproducible."""
    return random.Random(1234)


@pytest.fixture
def tmp_db(tmp_path):
    """Create a fresh temporary database."""
    db = Database(tmp_path / "test.db")
    yield db
    db.close()


@pytest.fixture
def sample_words():
    """Ten words, enough for every question type."""
    entries = [
        ("perspicacious", "having keen insight"),
        ("sagacious", "having practical wisdom"),
        ("astute", "shrewd; quick to assess"),
        ("ebullient", "full of enthusiasm"),
        ("sanguine", "optimistic"),
        ("terse", "brief to the point of rudeness"),
        ("laconic", "using very few words"),
        ("verbose", "using more words than needed"),
        ("garrulous", "talking too much about trivial things"),
        ("pithy", "concise and forcefully meaningful"),
    ]
    return [VocabWord(f"w{i}", word, definition) for i, (word, definition) in enumerate(entries, 1)]


@pytest.fixture
def make_progress():
    """Build a WordProgress with sensible defaults."""
    def _make(word_id="w1", score=50, due_in=timedelta(days=1), reviews=1, correct=1, now=NOW):
        return WordProgress(
            word_id=word_id,
            memory_score=score,
            next_review_date=now + due_in,
            last_reviewed=now,
            review_count=reviews,
            correct_count=correct,
            incorrect_count=reviews - correct,
        )
    return _make


@pytest.fixture
def populated_db(tmp_db, sample_words):
    """A database with one set holding the sample words."""
    set_id = tmp_db.add_set("Character", "Words describing people")
    words = tmp_db.add_words(set_id, [(w.word, w.definition) for w in sample_words])
    tmp_db.sample_set_id = set_id
    tmp_db.sample_word_ids = [w.id for w in words]
    return tmp_db
