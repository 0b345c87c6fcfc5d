"""FastAPI application with all routes."""
from __future__ import annotations

import logging
import random
import uuid

logging.basicConfig(level=logging.INFO, format="%(name)s | %(message)s")

from fastapi import FastAPI, HTTPException, Request

from vocab_srs.config import Settings, load_settings, save_settings
from vocab_srs.db import Database
from vocab_srs.matcher import has_acceptable_typos, match_answer
from vocab_srs.models import (
    SESSION_TYPES,
    GradedAnswer,
    ReviewEvent,
    SetReviewSummary,
    TestQuestion,
)
from vocab_srs.progress import (
    get_mastery_level,
    get_review_interval,
    get_words_needing_review,
    review_calendar,
    sets_needing_review,
    summarize_set,
    summarize_sets,
)
from vocab_srs.question_generator import (
    InsufficientWordsError,
    InvalidAnswerError,
    RandomSource,
    shuffled,
)
from vocab_srs.quiz import AttemptStateError, QuizAttempt, session_score
from vocab_srs.srs import record_reviews

app = FastAPI(title="Vocab SRS")

_log = logging.getLogger("vocab_srs.api")

# Global state (initialized in startup)
_db: Database | None = None
_settings: Settings | None = None
_active_tests: dict[str, dict] = {}  # test_id -> {"attempt": QuizAttempt, "set_id": str}


def get_db() -> Database:
    assert _db is not None
    return _db


def get_settings() -> Settings:
    assert _settings is not None
    return _settings


@app.on_event("startup")
async def startup():
    global _db, _settings
    if _db is not None:
        return  # Already initialized (e.g. by tests)
    _settings = load_settings()
    logging.getLogger("vocab_srs").setLevel(_settings.log_level)
    _db = Database(_settings.db_full_path)


@app.on_event("shutdown")
async def shutdown():
    if _db:
        _db.close()


# ── Serialization ─────────────────────────────────────────────────────────

def _summary_payload(s: SetReviewSummary) -> dict:
    level = get_mastery_level(s.memory_score)
    return {
        "memory_score": s.memory_score,
        "mastered_count": s.mastered_count,
        "word_count": s.word_count,
        "studied_count": s.studied_count,
        "next_review_date": s.next_review_date.isoformat() if s.next_review_date else None,
        "is_due": s.is_due,
        "mastery": {"level": level.level, "label": level.label, "color": level.color},
    }


def _question_payload(q: TestQuestion, rng: RandomSource) -> dict:
    """What the client sees of a question; the answer stays on the server."""
    if q.type == "true-false":
        return {"id": q.id, "type": q.type, "word": q.word, "definition": q.definition}
    if q.type == "multiple-choice":
        return {"id": q.id, "type": q.type, "word": q.word, "options": list(q.options)}
    if q.type == "write":
        return {"id": q.id, "type": q.type, "definition": q.definition}
    definitions = shuffled([p.definition for p in q.pairs], rng)
    return {
        "id": q.id,
        "type": q.type,
        "words": [{"word_id": p.word_id, "word": p.word} for p in q.pairs],
        "definitions": definitions,
    }


def _answer_payload(a: GradedAnswer) -> dict:
    return {
        "question_id": a.question_id,
        "question_type": a.question_type,
        "is_correct": a.is_correct,
        "user_answer": a.user_answer,
        "correct_answer": a.correct_answer,
        "similarity": a.similarity,
        "feedback": a.feedback,
    }


def _set_summaries() -> dict[str, SetReviewSummary]:
    db = get_db()
    set_ids = [s["id"] for s in db.get_all_sets()]
    words = db.get_all_sets_progress(set_ids)
    return summarize_sets({sid: [p for _, p in pairs] for sid, pairs in words.items()})


def _require_set(set_id: str) -> dict:
    s = get_db().get_set(set_id)
    if s is None:
        raise HTTPException(404, "Set not found")
    return s


# ── API: Stats & settings ─────────────────────────────────────────────────

@app.get("/api/stats")
async def api_stats():
    return get_db().get_stats()


@app.get("/api/settings")
async def api_get_settings():
    return get_settings().to_dict()


@app.put("/api/settings")
async def api_update_settings(request: Request):
    body = await request.json()
    s = get_settings()
    known = {f.name for f in Settings.__dataclass_fields__.values()}
    for k, v in body.items():
        if k in known:
            setattr(s, k, v)
    save_settings(s)
    return s.to_dict()


# ── API: Sets ─────────────────────────────────────────────────────────────

@app.post("/api/sets")
async def api_create_set(request: Request):
    body = await request.json()
    name = (body.get("name") or "").strip()
    if not name:
        raise HTTPException(400, "Set name is required")
    set_id = get_db().add_set(name, body.get("description"))
    return {"id": set_id, "name": name}


@app.post("/api/sets/{set_id}/words")
async def api_add_words(set_id: str, request: Request):
    _require_set(set_id)
    body = await request.json()
    entries = []
    for w in body.get("words", []):
        if not w.get("word") or not w.get("definition"):
            raise HTTPException(400, "Each word needs a word and a definition")
        entries.append((w["word"], w["definition"], w.get("example_sentence")))
    added = get_db().add_words(set_id, entries)
    return {"added": [{"id": w.id, "word": w.word} for w in added]}


@app.get("/api/sets")
async def api_sets():
    db = get_db()
    summaries = _set_summaries()
    return {
        "sets": [
            {**s, "summary": _summary_payload(summaries[s["id"]])}
            for s in db.get_all_sets()
        ],
        "needing_review": sets_needing_review(summaries),
    }


@app.get("/api/sets/{set_id}/summary")
async def api_set_summary(set_id: str):
    _require_set(set_id)
    pairs = get_db().get_set_words_with_progress(set_id)
    summary = summarize_set([p for _, p in pairs])
    return {
        "set_id": set_id,
        "summary": _summary_payload(summary),
        "words": [
            {
                "id": w.id,
                "word": w.word,
                "memory_score": p.memory_score if p else None,
                "review": get_review_interval(p.memory_score) if p else "Not studied yet",
            }
            for w, p in pairs
        ],
    }


@app.get("/api/sets/{set_id}/due")
async def api_set_due(set_id: str):
    _require_set(set_id)
    pairs = get_db().get_set_words_with_progress(set_id)
    return {"set_id": set_id, "due_word_ids": get_words_needing_review((w.id, p) for w, p in pairs)}


@app.get("/api/calendar")
async def api_calendar():
    calendar = review_calendar(_set_summaries())
    return {day.isoformat(): set_ids for day, set_ids in calendar.items()}


# ── API: Reviews ──────────────────────────────────────────────────────────

@app.post("/api/reviews")
async def api_reviews(request: Request):
    """Record a batch of reviews from one learning session."""
    body = await request.json()
    try:
        events = [
            ReviewEvent(
                word_id=r["word_id"],
                was_correct=bool(r["was_correct"]),
                question_type=r.get("question_type"),
                response_time_ms=r.get("response_time_ms"),
                previous_attempts=r.get("previous_attempts"),
            )
            for r in body.get("reviews", [])
        ]
    except KeyError as e:
        raise HTTPException(400, f"Review is missing {e}")

    set_id = body.get("set_id")
    session_type = body.get("session_type")
    log_session = bool(set_id and session_type)
    if log_session:
        _require_set(set_id)
        if session_type not in SESSION_TYPES:
            raise HTTPException(400, f"Unknown session type: {session_type}")

    db = get_db()
    word_ids = [e.word_id for e in events]
    unknown = sorted(set(word_ids) - db.get_known_word_ids(word_ids))
    if unknown:
        raise HTTPException(400, f"Unknown word ids: {', '.join(unknown)}")

    try:
        updated = record_reviews(db, events)
    except ValueError as e:
        raise HTTPException(400, str(e))

    result = {
        "updated": [
            {
                "word_id": p.word_id,
                "memory_score": p.memory_score,
                "next_review_date": p.next_review_date.isoformat(),
            }
            for p in updated
        ],
    }

    if log_session:
        score = body.get("score")
        if score is None:
            score = session_score(sum(1 for e in events if e.was_correct), len(events))
        db.record_session(set_id, session_type, score)
        result["score"] = score
    return result


@app.post("/api/match")
async def api_match(request: Request):
    body = await request.json()
    user_answer = body.get("user_answer", "")
    correct_answer = body.get("correct_answer", "")
    r = match_answer(user_answer, correct_answer)
    return {
        "is_correct": r.is_correct,
        "similarity": r.similarity,
        "feedback": r.feedback,
        "message": r.message,
        "did_you_mean": has_acceptable_typos(user_answer, correct_answer),
    }


# ── API: Tests ────────────────────────────────────────────────────────────

@app.post("/api/tests/start")
async def api_test_start(request: Request):
    body = await request.json()
    set_id = body.get("set_id")
    _require_set(set_id)
    words = get_db().get_set_words(set_id)
    seed = body.get("seed")
    try:
        attempt = QuizAttempt.from_words(
            words,
            question_count=body.get("question_count"),
            rng=random.Random(seed) if seed is not None else None,
        )
    except InsufficientWordsError as e:
        raise HTTPException(400, str(e))

    test_id = str(uuid.uuid4())
    first = attempt.start()
    _active_tests[test_id] = {"attempt": attempt, "set_id": set_id}
    _log.info("Test %s started on set %s with %d questions",
              test_id, set_id, len(attempt.questions))
    return {
        "test_id": test_id,
        "total": len(attempt.questions),
        "question": _question_payload(first, attempt.rng) if first else None,
    }


@app.post("/api/tests/answer")
async def api_test_answer(request: Request):
    body = await request.json()
    test_id = body.get("test_id")
    if test_id not in _active_tests:
        raise HTTPException(404, "Test not found")

    entry = _active_tests[test_id]
    attempt: QuizAttempt = entry["attempt"]
    try:
        graded = attempt.answer(body.get("answer"), body.get("response_time_ms"))
    except InvalidAnswerError as e:
        raise HTTPException(400, str(e))
    except AttemptStateError as e:
        raise HTTPException(409, str(e))

    result = {
        "result": _answer_payload(graded),
        "progress": {
            "answered": len(attempt.answers),
            "remaining": len(attempt.questions) - len(attempt.answers),
        },
        "test_complete": attempt.is_complete,
    }

    if attempt.is_complete:
        db = get_db()
        score = attempt.score()
        record_reviews(db, attempt.review_events())
        db.record_session(entry["set_id"], "test", score)
        del _active_tests[test_id]
        result["summary"] = {
            "score": score,
            "correct": sum(1 for a in attempt.answers if a.is_correct),
            "total": len(attempt.answers),
            "by_type": {
                qtype: {"correct": b.correct, "total": b.total, "percentage": b.percentage}
                for qtype, b in attempt.breakdown().items()
            },
            "incorrect": [_answer_payload(a) for a in attempt.incorrect_answers()],
        }
    else:
        result["question"] = _question_payload(attempt.current_question, attempt.rng)
    return result
