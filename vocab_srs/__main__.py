"""CLI entry point for vocab-srs.

Usage:
  python -m vocab_srs serve [--port PORT] [--host HOST]
  python -m vocab_srs stats
  python -m vocab_srs due
"""
from __future__ import annotations

import sys


def main():
    args = sys.argv[1:]
    command = args[0] if args else "serve"

    if command == "serve":
        _serve(args[1:])
    elif command == "stats":
        _stats()
    elif command == "due":
        _due()
    else:
        print(f"Unknown command: {command}")
        print("Commands: serve, stats, due")
        sys.exit(1)


def _parse_flag(args: list[str], name: str, default: str) -> str:
    for i, a in enumerate(args):
        if a == name and i + 1 < len(args):
            return args[i + 1]
    return default


def _serve(args: list[str]):
    import uvicorn

    from vocab_srs.config import load_settings

    settings = load_settings()
    port = int(_parse_flag(args, "--port", str(settings.port)))
    host = _parse_flag(args, "--host", settings.host)

    print(f"Starting Vocab SRS on http://{host}:{port}")
    print("Press Ctrl+C to stop\n")
    uvicorn.run(
        "vocab_srs.app:app",
        host=host,
        port=port,
        reload=False,
        timeout_graceful_shutdown=5,
    )


def _stats():
    from vocab_srs.config import load_settings
    from vocab_srs.db import Database

    settings = load_settings()
    db = Database(settings.db_full_path)
    stats = db.get_stats()

    print("Vocab SRS Stats")
    print("=" * 40)
    print(f"Sets:               {stats['total_sets']}")
    print(f"Total words:        {stats['total_words']}")
    print(f"Words studied:      {stats['words_studied']}")
    print(f"Words due:          {stats['words_due']}")
    print(f"Words mastered:     {stats['words_mastered']}")
    print(f"Sessions completed: {stats['total_sessions']}")
    print(f"Reviews recorded:   {stats['total_reviews']}")
    print(f"Overall accuracy:   {stats['accuracy']}%")
    print(f"Current streak:     {stats['current_streak']} (best {stats['longest_streak']})")
    db.close()


def _due():
    from vocab_srs.config import load_settings
    from vocab_srs.db import Database
    from vocab_srs.progress import get_mastery_level, summarize_set

    settings = load_settings()
    db = Database(settings.db_full_path)
    sets = db.get_all_sets()
    progress = db.get_all_sets_progress([s["id"] for s in sets])

    due = 0
    for s in sets:
        summary = summarize_set([p for _, p in progress[s["id"]]])
        if not summary.is_due:
            continue
        due += 1
        level = get_mastery_level(summary.memory_score)
        print(f"  {s['name']:30s} {summary.memory_score:3d}% {level.label:10s} "
              f"{summary.mastered_count}/{summary.word_count} mastered")

    if due == 0:
        print("Nothing due. Come back later.")
    db.close()


if __name__ == "__main__":
    main()
