"""Database initialization, connection management and record collections."""
import json
import logging
import os
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any

from mcq_study.errors import PersistenceFailure

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = os.environ.get(
    "MCQ_STUDY_DB", str(Path.home() / ".mcq_study" / "study.db")
)

SCHEMA = """
CREATE TABLE IF NOT EXISTS files (
    filename TEXT PRIMARY KEY,
    source TEXT,
    mtime_ns INTEGER,
    data TEXT NOT NULL,
    timestamp TEXT
);

CREATE TABLE IF NOT EXISTS progress (
    file_id TEXT NOT NULL,
    question_id TEXT NOT NULL,
    correct INTEGER NOT NULL,
    selected_option INTEGER,
    timestamp TEXT,
    PRIMARY KEY (file_id, question_id)
);

CREATE TABLE IF NOT EXISTS favorites (
    question_id TEXT PRIMARY KEY,
    file_id TEXT,
    timestamp TEXT
);

CREATE TABLE IF NOT EXISTS settings (
    key TEXT PRIMARY KEY,
    value TEXT,
    timestamp TEXT
);

CREATE INDEX IF NOT EXISTS idx_progress_file ON progress(file_id);
"""


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Return a SQLite connection with row factory and foreign keys enabled."""
    try:
        conn = sqlite3.connect(db_path)
    except sqlite3.Error as exc:
        raise PersistenceFailure(f"Cannot open database {db_path}: {exc}") from exc
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_db(db_path: str = DEFAULT_DB_PATH) -> None:
    """Initialize the database, creating all tables if they don't exist."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = get_connection(db_path)
    try:
        conn.executescript(SCHEMA)
        conn.commit()
    except sqlite3.Error as exc:
        raise PersistenceFailure(f"Cannot initialize database {db_path}: {exc}") from exc
    finally:
        conn.close()


class Collection:
    """Key-value access to one table.

    Subclasses name the table, its key columns and how rows map to plain
    dict records. ``put`` always stamps a fresh ``timestamp``.
    """

    table: str = ""
    key_fields: tuple = ()
    columns: tuple = ()

    def __init__(self, db_path: str):
        self.db_path = db_path

    def _to_row(self, record: dict) -> tuple:
        return tuple(record.get(c) for c in self.columns)

    def _from_row(self, row: sqlite3.Row) -> dict:
        return dict(row)

    def _key_values(self, key: Any) -> tuple:
        if len(self.key_fields) == 1:
            return (key,)
        return tuple(key)

    def _run(self, sql: str, params: tuple = (), fetch: str = ""):
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(sql, params)
            if fetch == "one":
                result = cursor.fetchone()
            elif fetch == "all":
                result = cursor.fetchall()
            else:
                result = None
            conn.commit()
            return result
        except sqlite3.Error as exc:
            logger.error("Query on %s failed: %s", self.table, exc)
            raise PersistenceFailure(f"{self.table}: {exc}") from exc
        finally:
            conn.close()

    def get(self, key: Any) -> dict | None:
        where = " AND ".join(f"{f} = ?" for f in self.key_fields)
        row = self._run(
            f"SELECT * FROM {self.table} WHERE {where}", self._key_values(key), fetch="one"
        )
        return self._from_row(row) if row else None

    def put(self, record: dict) -> dict:
        record = dict(record, timestamp=datetime.now().isoformat())
        placeholders = ", ".join("?" for _ in self.columns)
        self._run(
            f"INSERT OR REPLACE INTO {self.table} ({', '.join(self.columns)}) VALUES ({placeholders})",
            self._to_row(record),
        )
        return record

    def get_all(self) -> list[dict]:
        order = ", ".join(self.key_fields)
        rows = self._run(f"SELECT * FROM {self.table} ORDER BY {order}", fetch="all")
        return [self._from_row(r) for r in rows]

    def delete(self, key: Any) -> None:
        where = " AND ".join(f"{f} = ?" for f in self.key_fields)
        self._run(f"DELETE FROM {self.table} WHERE {where}", self._key_values(key))

    def clear(self) -> None:
        self._run(f"DELETE FROM {self.table}")


class FileCache(Collection):
    table = "files"
    key_fields = ("filename",)
    columns = ("filename", "source", "mtime_ns", "data", "timestamp")

    def _to_row(self, record: dict) -> tuple:
        # YAML can yield dates; they are cached as their ISO text
        data = json.dumps(record["data"], default=str)
        return (record["filename"], record.get("source"), record.get("mtime_ns"), data, record["timestamp"])

    def _from_row(self, row: sqlite3.Row) -> dict:
        record = dict(row)
        record["data"] = json.loads(row["data"])
        return record


class ProgressStore(Collection):
    table = "progress"
    key_fields = ("file_id", "question_id")
    columns = ("file_id", "question_id", "correct", "selected_option", "timestamp")

    def _to_row(self, record: dict) -> tuple:
        return (
            record["file_id"],
            str(record["question_id"]),
            int(bool(record["correct"])),
            record.get("selected_option"),
            record["timestamp"],
        )

    def _from_row(self, row: sqlite3.Row) -> dict:
        record = dict(row)
        record["correct"] = bool(record["correct"])
        return record

    def _key_values(self, key: Any) -> tuple:
        file_id, question_id = key
        return (file_id, str(question_id))


class FavoriteStore(Collection):
    """Favorites are global: keyed by question id alone, file_id is informational."""

    table = "favorites"
    key_fields = ("question_id",)
    columns = ("question_id", "file_id", "timestamp")

    def _to_row(self, record: dict) -> tuple:
        return (str(record["question_id"]), record.get("file_id"), record["timestamp"])

    def _key_values(self, key: Any) -> tuple:
        return (str(key),)


class SettingsStore(Collection):
    table = "settings"
    key_fields = ("key",)
    columns = ("key", "value", "timestamp")

    def _to_row(self, record: dict) -> tuple:
        return (record["key"], json.dumps(record["value"]), record["timestamp"])

    def _from_row(self, row: sqlite3.Row) -> dict:
        return {"key": row["key"], "value": json.loads(row["value"]), "timestamp": row["timestamp"]}


class Database:
    """The four collections of one database file, created on construction."""

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        self.db_path = db_path
        init_db(db_path)
        self.files = FileCache(db_path)
        self.progress = ProgressStore(db_path)
        self.favorites = FavoriteStore(db_path)
        self.settings = SettingsStore(db_path)


def get_setting(db: Database, key: str, default: Any = None) -> Any:
    record = db.settings.get(key)
    return record["value"] if record else default


def set_setting(db: Database, key: str, value: Any) -> None:
    db.settings.put({"key": key, "value": value})
