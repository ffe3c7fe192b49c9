"""Simple migration runner for SQLite using the SQL files in migrations/"""
from pathlib import Path
import sqlite3

from dashboard.config import settings

BASE = Path(__file__).parent
MIGRATIONS = sorted((BASE / "migrations").glob("*.sql"))


def sqlite_path(url: str) -> Path:
    """Return the database file behind a `sqlite:///...` URL."""
    prefix = "sqlite:///"
    if not url.startswith(prefix) or url == prefix + ":memory:":
        raise ValueError(f"migrations need a file-based SQLite URL, got {url!r}")
    return Path(url[len(prefix):])


def run(db_path: Path = None) -> list:
    """Execute SQL migration files against the SQLite database.

    The function applies every `migrations/*.sql` file in lexical
    order and returns the applied file names. All statements are
    idempotent, so running it twice is harmless.
    """
    db_path = db_path or sqlite_path(settings.DATABASE_URL)
    print("Using database:", db_path)
    conn = sqlite3.connect(db_path)
    applied = []
    try:
        cur = conn.cursor()
        for m in MIGRATIONS:
            print("Applying:", m.name)
            cur.executescript(m.read_text(encoding="utf-8"))
            applied.append(m.name)
        conn.commit()
    finally:
        conn.close()
    print("Migrations applied.")
    return applied


if __name__ == '__main__':
    run()
