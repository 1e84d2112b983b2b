"""
db.py
SQLite helpers + initialization (creates DB/tables for every academy collection).
"""

from __future__ import annotations

import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

DB_FILE = Path(__file__).with_name("academy.db")


def configure(db_file: Path) -> None:
    global DB_FILE
    DB_FILE = Path(db_file)


@contextmanager
def get_conn():
    conn = sqlite3.connect(DB_FILE, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()


def execute(sql: str, params: tuple = ()) -> int:
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.rowcount


def fetch_one(sql: str, params: tuple = ()):
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.fetchone()


def fetch_all(sql: str, params: tuple = ()) -> list[sqlite3.Row]:
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.fetchall()


def new_id() -> str:
    # 24 hex chars, same shape as the document ids the web client has always seen
    return uuid.uuid4().hex[:24]


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def ping() -> bool:
    try:
        row = fetch_one("SELECT 1 AS ok")
    except sqlite3.Error:
        return False
    return bool(row and row["ok"] == 1)


def _create_tables() -> None:
    with get_conn() as conn:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS hero_slides (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                subtitle TEXT NOT NULL DEFAULT '',
                description TEXT NOT NULL DEFAULT '',
                background_image TEXT NOT NULL DEFAULT '',
                cta_text TEXT NOT NULL DEFAULT '',
                cta_link TEXT NOT NULL DEFAULT '',
                redirect_url TEXT NOT NULL DEFAULT '',
                open_new_tab INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS activities (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                date TEXT NOT NULL DEFAULT '',
                time TEXT NOT NULL DEFAULT '',
                description TEXT NOT NULL DEFAULT '',
                image TEXT NOT NULL DEFAULT '',
                status TEXT NOT NULL DEFAULT 'upcoming',
                type TEXT NOT NULL DEFAULT '',
                priority TEXT NOT NULL DEFAULT '',
                redirect_url TEXT NOT NULL DEFAULT '',
                open_new_tab INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS members (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                contact TEXT NOT NULL DEFAULT '',
                phone TEXT NOT NULL DEFAULT '',
                join_date TEXT NOT NULL DEFAULT '',
                role TEXT NOT NULL DEFAULT 'Student',
                image TEXT NOT NULL DEFAULT '',
                created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS donations (
                id TEXT PRIMARY KEY,
                donor_name TEXT NOT NULL,
                amount REAL NOT NULL,
                date TEXT NOT NULL,
                purpose TEXT NOT NULL,
                created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS expenses (
                id TEXT PRIMARY KEY,
                description TEXT NOT NULL,
                amount REAL NOT NULL,
                date TEXT NOT NULL DEFAULT '',
                category TEXT NOT NULL DEFAULT '',
                vendor TEXT NOT NULL DEFAULT '',
                payment_method TEXT NOT NULL DEFAULT '',
                created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS experiences (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                date TEXT NOT NULL DEFAULT '',
                description TEXT NOT NULL DEFAULT '',
                image TEXT NOT NULL DEFAULT '',
                created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS gallery (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                description TEXT NOT NULL DEFAULT '',
                image_url TEXT NOT NULL,
                is_top_n INTEGER NOT NULL DEFAULT 0,
                top_n_order INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS weekly_fees (
                id TEXT PRIMARY KEY,
                member_id TEXT NOT NULL UNIQUE,
                member_name TEXT NOT NULL,
                created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS fee_payments (
                id TEXT PRIMARY KEY,
                fee_id TEXT NOT NULL,
                date TEXT NOT NULL,
                amount REAL NOT NULL CHECK(amount >= 0),
                status TEXT NOT NULL CHECK(status IN ('pending','paid','overdue')),
                FOREIGN KEY(fee_id) REFERENCES weekly_fees(id) ON DELETE CASCADE
            );
            """
        )


def init_db() -> None:
    """
    Initialize the database.
    - Create tables (idempotent)
    """
    _create_tables()
