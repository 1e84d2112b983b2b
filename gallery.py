"""
gallery.py
Top-N gallery selection and the hero slides derived from it.

After every mutation the top-N items carry orders 1..K (K <= limit) with
no gaps, and hero_slides holds exactly one slide per top-N item in that order.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from typing import Any, Iterable

import db
import store
from errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_SLIDE_DESCRIPTION = "Join us for exciting sports activities"
SLIDE_CTA_TEXT = "Learn More"
SLIDE_CTA_LINK = "#activities"
TOP_N_FIELDS = ("is_top_n", "top_n_order")

# One top-N mutation at a time across request threads
_lock = threading.Lock()


def _top_n_rows(conn: sqlite3.Connection) -> list[sqlite3.Row]:
    return conn.execute(
        "SELECT * FROM gallery WHERE is_top_n=1 ORDER BY top_n_order ASC, rowid ASC"
    ).fetchall()


def _get_item(conn: sqlite3.Connection, item_id: str) -> sqlite3.Row:
    row = conn.execute("SELECT * FROM gallery WHERE id=?", (item_id,)).fetchone()
    if row is None:
        raise NotFoundError("Gallery item not found")
    return row


def _renumber(conn: sqlite3.Connection, ordered_ids: Iterable[str]) -> None:
    conn.executemany(
        "UPDATE gallery SET top_n_order=? WHERE id=?",
        [(position, item_id) for position, item_id in enumerate(ordered_ids, start=1)],
    )


def list_top_n() -> list[dict[str, Any]]:
    with db.get_conn() as conn:
        return [dict(r) for r in _top_n_rows(conn)]


def upsert_item(fields: dict[str, Any], record_id: str | None = None) -> dict[str, Any]:
    """Plain create/update. Top-N membership only changes through toggle/reorder."""
    values = {k: v for k, v in fields.items() if k not in TOP_N_FIELDS}
    return store.upsert("gallery", values, record_id)


def regenerate_hero_slides(conn: sqlite3.Connection, academy_name: str) -> int:
    """Replace every hero slide with one per top-N item, in top-N order."""
    conn.execute("DELETE FROM hero_slides")
    top = _top_n_rows(conn)
    for item in top:
        conn.execute(
            """
            INSERT INTO hero_slides(id, title, subtitle, description, background_image,
                                    cta_text, cta_link, redirect_url, open_new_tab, created_at)
            VALUES(?,?,?,?,?,?,?,?,?,?)
            """,
            (
                db.new_id(),
                item["title"],
                academy_name,
                item["description"] or DEFAULT_SLIDE_DESCRIPTION,
                item["image_url"],
                SLIDE_CTA_TEXT,
                SLIDE_CTA_LINK,
                "",
                0,
                db.now_iso(),
            ),
        )
    logger.info("Regenerated %d hero slides from top-N gallery items", len(top))
    return len(top)


def toggle_top_n(item_id: str, *, limit: int, academy_name: str) -> dict[str, Any]:
    with _lock, db.get_conn() as conn:
        item = _get_item(conn, item_id)
        top_ids = [r["id"] for r in _top_n_rows(conn)]
        if item["is_top_n"]:
            conn.execute("UPDATE gallery SET is_top_n=0, top_n_order=0 WHERE id=?", (item_id,))
            _renumber(conn, [i for i in top_ids if i != item_id])
        else:
            if len(top_ids) >= limit:
                raise ValidationError(f"Top {limit} is full. Remove an item before adding another.")
            conn.execute(
                "UPDATE gallery SET is_top_n=1, top_n_order=? WHERE id=?",
                (len(top_ids) + 1, item_id),
            )
        regenerate_hero_slides(conn, academy_name)
        return dict(_get_item(conn, item_id))


def reorder(requested: list[tuple[str, int]], *, academy_name: str) -> list[dict[str, Any]]:
    """
    Renumber the top-N set. Supplied items come first, sorted by their
    requested order; top-N items left out keep their relative order after them.
    """
    with _lock, db.get_conn() as conn:
        current = [r["id"] for r in _top_n_rows(conn)]
        wanted: dict[str, int] = {}
        for item_id, order in requested:
            if item_id not in current:
                _get_item(conn, item_id)
                raise ValidationError(f"Gallery item {item_id} is not in the top-N set")
            wanted[item_id] = order
        ordered = sorted(wanted, key=lambda i: (wanted[i], current.index(i)))
        ordered += [i for i in current if i not in wanted]
        _renumber(conn, ordered)
        regenerate_hero_slides(conn, academy_name)
        return [dict(r) for r in _top_n_rows(conn)]


def delete_item(item_id: str, *, academy_name: str) -> None:
    with _lock, db.get_conn() as conn:
        item = _get_item(conn, item_id)
        conn.execute("DELETE FROM gallery WHERE id=?", (item_id,))
        if item["is_top_n"]:
            _renumber(conn, [r["id"] for r in _top_n_rows(conn)])
        regenerate_hero_slides(conn, academy_name)
    logger.info("Deleted gallery item %s", item_id)
