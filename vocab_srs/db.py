from __future__ import annotations

import logging
import sqlite3
import uuid
from collections.abc import Iterable, Sequence
from datetime import date, datetime, timezone
from pathlib import Path

from vocab_srs.models import SESSION_TYPES, LearningSession, VocabWord, WordProgress
from vocab_srs.progress import is_due_for_review
from vocab_srs.srs import MASTERED_THRESHOLD
from vocab_srs.streak import next_streak

_log = logging.getLogger("vocab_srs.db")

SCHEMA = """
CREATE TABLE IF NOT EXISTS vocab_sets (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    description TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS vocab_words (
    id TEXT PRIMARY KEY,
    set_id TEXT NOT NULL REFERENCES vocab_sets(id),
    word TEXT NOT NULL,
    definition TEXT NOT NULL,
    example_sentence TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS learning_progress (
    word_id TEXT PRIMARY KEY,
    memory_score INTEGER NOT NULL DEFAULT 50,
    next_review_date TEXT NOT NULL,
    last_reviewed TEXT,
    review_count INTEGER DEFAULT 0,
    correct_count INTEGER DEFAULT 0,
    incorrect_count INTEGER DEFAULT 0
);

CREATE TABLE IF NOT EXISTS learning_sessions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    set_id TEXT NOT NULL,
    session_type TEXT NOT NULL,
    score INTEGER,
    completed_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS user_stats (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    current_streak INTEGER DEFAULT 0,
    longest_streak INTEGER DEFAULT 0,
    last_activity_date TEXT,
    total_words_learned INTEGER DEFAULT 0
);
"""

UPSERT_PROGRESS = """
INSERT INTO learning_progress (word_id, memory_score, next_review_date,
    last_reviewed, review_count, correct_count, incorrect_count)
VALUES (?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(word_id) DO UPDATE SET
    memory_score = excluded.memory_score,
    next_review_date = excluded.next_review_date,
    last_reviewed = excluded.last_reviewed,
    review_count = excluded.review_count,
    correct_count = excluded.correct_count,
    incorrect_count = excluded.incorrect_count
"""


def _parse_ts(value: str | None) -> datetime | None:
    if value is None:
        return None
    ts = datetime.fromisoformat(value)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def _progress_params(p: WordProgress) -> tuple:
    return (
        p.word_id,
        max(0, min(100, int(p.memory_score))),
        p.next_review_date.isoformat(),
        p.last_reviewed.isoformat() if p.last_reviewed else None,
        p.review_count,
        p.correct_count,
        p.incorrect_count,
    )


def _row_to_progress(row: sqlite3.Row) -> WordProgress | None:
    """Convert a progress row; rows that cannot be read count as unstudied."""
    try:
        return WordProgress(
            word_id=row["word_id"],
            memory_score=max(0, min(100, int(row["memory_score"]))),
            next_review_date=_parse_ts(row["next_review_date"]),
            last_reviewed=_parse_ts(row["last_reviewed"]),
            review_count=row["review_count"] or 0,
            correct_count=row["correct_count"] or 0,
            incorrect_count=row["incorrect_count"] or 0,
        )
    except (TypeError, ValueError) as e:
        _log.warning("Ignoring malformed progress for word %s: %s", row["word_id"], e)
        return None


def _row_to_word(row: sqlite3.Row) -> VocabWord:
    return VocabWord(
        id=row["id"],
        word=row["word"],
        definition=row["definition"],
        set_id=row["set_id"],
        example_sentence=row["example_sentence"],
    )


class Database:
    def __init__(self, db_path: Path):
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self._init_schema()

    def _init_schema(self) -> None:
        self.conn.executescript(SCHEMA)
        self.conn.commit()

    def close(self) -> None:
        self.conn.close()

    # ── Sets & words ──────────────────────────────────────────────────────

    def add_set(self, name: str, description: str | None = None) -> str:
        set_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc).isoformat()
        self.conn.execute(
            "INSERT INTO vocab_sets (id, name, description, created_at) VALUES (?, ?, ?, ?)",
            (set_id, name, description, now),
        )
        self.conn.commit()
        return set_id

    def get_set(self, set_id: str) -> dict | None:
        row = self.conn.execute(
            "SELECT * FROM vocab_sets WHERE id = ?", (set_id,)
        ).fetchone()
        return dict(row) if row else None

    def get_all_sets(self) -> list[dict]:
        rows = self.conn.execute(
            "SELECT * FROM vocab_sets ORDER BY created_at, name"
        ).fetchall()
        return [dict(r) for r in rows]

    def add_words(
        self,
        set_id: str,
        entries: Iterable[tuple[str, str] | tuple[str, str, str | None]],
    ) -> list[VocabWord]:
        """Add (word, definition[, example]) entries to a set."""
        now = datetime.now(timezone.utc).isoformat()
        added = []
        for entry in entries:
            word, definition = entry[0], entry[1]
            example = entry[2] if len(entry) > 2 else None
            w = VocabWord(str(uuid.uuid4()), word, definition, set_id, example)
            self.conn.execute(
                "INSERT INTO vocab_words (id, set_id, word, definition, example_sentence, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (w.id, set_id, w.word, w.definition, w.example_sentence, now),
            )
            added.append(w)
        self.conn.commit()
        return added

    def get_set_words(self, set_id: str) -> list[VocabWord]:
        rows = self.conn.execute(
            "SELECT * FROM vocab_words WHERE set_id = ? ORDER BY created_at, rowid",
            (set_id,),
        ).fetchall()
        return [_row_to_word(r) for r in rows]

    def get_word_count(self) -> int:
        return self.conn.execute("SELECT COUNT(*) FROM vocab_words").fetchone()[0]

    def get_known_word_ids(self, word_ids: Sequence[str]) -> set[str]:
        """The subset of *word_ids* that exist."""
        if not word_ids:
            return set()
        placeholders = ",".join("?" * len(word_ids))
        rows = self.conn.execute(
            f"SELECT id FROM vocab_words WHERE id IN ({placeholders})",
            list(word_ids),
        ).fetchall()
        return {r["id"] for r in rows}

    def delete_word(self, word_id: str) -> None:
        """Delete a word together with its progress."""
        with self.conn:
            self.conn.execute("DELETE FROM learning_progress WHERE word_id = ?", (word_id,))
            self.conn.execute("DELETE FROM vocab_words WHERE id = ?", (word_id,))

    # ── Learning progress ─────────────────────────────────────────────────

    def get_progress(self, word_id: str) -> WordProgress | None:
        row = self.conn.execute(
            "SELECT * FROM learning_progress WHERE word_id = ?", (word_id,)
        ).fetchone()
        return _row_to_progress(row) if row else None

    def get_progress_batch(self, word_ids: Sequence[str]) -> dict[str, WordProgress]:
        if not word_ids:
            return {}
        placeholders = ",".join("?" * len(word_ids))
        rows = self.conn.execute(
            f"SELECT * FROM learning_progress WHERE word_id IN ({placeholders})",
            list(word_ids),
        ).fetchall()
        result = {}
        for r in rows:
            p = _row_to_progress(r)
            if p is not None:
                result[p.word_id] = p
        return result

    def upsert_progress(self, progress: WordProgress) -> None:
        self.conn.execute(UPSERT_PROGRESS, _progress_params(progress))
        self.conn.commit()

    def upsert_progress_batch(self, progresses: Sequence[WordProgress]) -> None:
        """Write all rows in one transaction; on failure none are written."""
        with self.conn:
            self.conn.executemany(UPSERT_PROGRESS, [_progress_params(p) for p in progresses])

    def get_set_words_with_progress(
        self, set_id: str,
    ) -> list[tuple[VocabWord, WordProgress | None]]:
        words = self.get_set_words(set_id)
        progress = self.get_progress_batch([w.id for w in words])
        return [(w, progress.get(w.id)) for w in words]

    def get_all_sets_progress(
        self, set_ids: Sequence[str],
    ) -> dict[str, list[tuple[VocabWord, WordProgress | None]]]:
        """Words with progress for many sets in two queries."""
        result: dict[str, list[tuple[VocabWord, WordProgress | None]]] = {
            sid: [] for sid in set_ids
        }
        if not set_ids:
            return result
        placeholders = ",".join("?" * len(set_ids))
        rows = self.conn.execute(
            f"SELECT * FROM vocab_words WHERE set_id IN ({placeholders}) "
            "ORDER BY created_at, rowid",
            list(set_ids),
        ).fetchall()
        words = [_row_to_word(r) for r in rows]
        progress = self.get_progress_batch([w.id for w in words])
        for w in words:
            result[w.set_id].append((w, progress.get(w.id)))
        return result

    # ── Sessions & stats ──────────────────────────────────────────────────

    def record_session(
        self,
        set_id: str,
        session_type: str,
        score: int | None = None,
        completed_at: datetime | None = None,
    ) -> LearningSession:
        """Log a finished learning session and bump the daily streak."""
        if session_type not in SESSION_TYPES:
            raise ValueError(f"Unknown session type: {session_type}")
        if completed_at is None:
            completed_at = datetime.now(timezone.utc)
        cur = self.conn.execute(
            "INSERT INTO learning_sessions (set_id, session_type, score, completed_at) "
            "VALUES (?, ?, ?, ?)",
            (set_id, session_type, score, completed_at.isoformat()),
        )
        self.conn.commit()
        self._update_user_stats(completed_at.astimezone(timezone.utc).date())
        _log.info("Session %s on set %s: score %s", session_type, set_id, score)
        return LearningSession(cur.lastrowid, set_id, session_type, score, completed_at)

    def get_sessions(self, set_id: str | None = None, limit: int = 20) -> list[LearningSession]:
        if set_id is None:
            rows = self.conn.execute(
                "SELECT * FROM learning_sessions ORDER BY id DESC LIMIT ?", (limit,)
            ).fetchall()
        else:
            rows = self.conn.execute(
                "SELECT * FROM learning_sessions WHERE set_id = ? ORDER BY id DESC LIMIT ?",
                (set_id, limit),
            ).fetchall()
        return [
            LearningSession(r["id"], r["set_id"], r["session_type"], r["score"],
                            _parse_ts(r["completed_at"]))
            for r in rows
        ]

    def get_user_stats(self) -> dict:
        row = self.conn.execute("SELECT * FROM user_stats WHERE id = 1").fetchone()
        if row is None:
            return {
                "current_streak": 0,
                "longest_streak": 0,
                "last_activity_date": None,
                "total_words_learned": 0,
            }
        return {
            "current_streak": row["current_streak"],
            "longest_streak": row["longest_streak"],
            "last_activity_date": row["last_activity_date"],
            "total_words_learned": row["total_words_learned"],
        }

    def _update_user_stats(self, today: date) -> None:
        stats = self.get_user_stats()
        last = stats["last_activity_date"]
        streak = next_streak(
            date.fromisoformat(last) if last else None,
            today,
            stats["current_streak"],
            stats["longest_streak"],
        )
        learned = self.conn.execute(
            "SELECT COUNT(*) FROM learning_progress WHERE memory_score >= ?",
            (MASTERED_THRESHOLD,),
        ).fetchone()[0]
        self.conn.execute(
            "INSERT INTO user_stats (id, current_streak, longest_streak, "
            "last_activity_date, total_words_learned) VALUES (1, ?, ?, ?, ?) "
            "ON CONFLICT(id) DO UPDATE SET current_streak = excluded.current_streak, "
            "longest_streak = excluded.longest_streak, "
            "last_activity_date = excluded.last_activity_date, "
            "total_words_learned = excluded.total_words_learned",
            (streak.current, streak.longest, today.isoformat(), learned),
        )
        self.conn.commit()

    def get_stats(self) -> dict:
        set_count = self.conn.execute("SELECT COUNT(*) FROM vocab_sets").fetchone()[0]
        word_count = self.get_word_count()

        rows = self.conn.execute(
            "SELECT lp.* FROM learning_progress lp "
            "JOIN vocab_words w ON w.id = lp.word_id"
        ).fetchall()
        progress = [p for p in (_row_to_progress(r) for r in rows) if p is not None]
        now = datetime.now(timezone.utc)
        due = sum(1 for p in progress if is_due_for_review(p, now))
        mastered = sum(1 for p in progress if p.memory_score >= MASTERED_THRESHOLD)
        total_reviews = sum(p.review_count for p in progress)
        total_correct = sum(p.correct_count for p in progress)

        sessions = self.conn.execute(
            "SELECT COUNT(*) FROM learning_sessions"
        ).fetchone()[0]
        user = self.get_user_stats()

        return {
            "total_sets": set_count,
            "total_words": word_count,
            "words_studied": len(progress),
            "words_new": word_count - len(progress),
            "words_due": due + (word_count - len(progress)),
            "words_mastered": mastered,
            "total_sessions": sessions,
            "total_reviews": total_reviews,
            "accuracy": (
                round(total_correct / total_reviews * 100, 1)
                if total_reviews > 0
                else 0
            ),
            "current_streak": user["current_streak"],
            "longest_streak": user["longest_streak"],
        }
