"""
store.py
Server-side persistence for every collection: list/upsert/delete, the
member -> weekly fee cascade and the payment sub-resource.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from typing import Any

import db
from errors import NotFoundError
from models import STUDENT_ROLE

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Collection:
    table: str
    columns: tuple[str, ...]
    order_by: str
    label: str


COLLECTIONS: dict[str, Collection] = {
    "hero_slides": Collection(
        "hero_slides",
        ("title", "subtitle", "description", "background_image", "cta_text", "cta_link", "redirect_url", "open_new_tab"),
        "rowid ASC",
        "Hero slide",
    ),
    "activities": Collection(
        "activities",
        ("title", "date", "time", "description", "image", "status", "type", "priority", "redirect_url", "open_new_tab"),
        "date DESC, rowid DESC",
        "Activity",
    ),
    "members": Collection(
        "members",
        ("name", "contact", "phone", "join_date", "role", "image"),
        "name COLLATE NOCASE ASC",
        "Member",
    ),
    "donations": Collection(
        "donations",
        ("donor_name", "amount", "date", "purpose"),
        "date DESC, rowid DESC",
        "Donation",
    ),
    "expenses": Collection(
        "expenses",
        ("description", "amount", "date", "category", "vendor", "payment_method"),
        "date DESC, rowid DESC",
        "Expense",
    ),
    "experiences": Collection(
        "experiences",
        ("title", "date", "description", "image"),
        "date DESC, rowid DESC",
        "Experience",
    ),
    "gallery": Collection(
        "gallery",
        ("title", "description", "image_url", "is_top_n", "top_n_order"),
        "created_at DESC, rowid DESC",
        "Gallery item",
    ),
}


def collection(name: str) -> Collection:
    try:
        return COLLECTIONS[name]
    except KeyError:
        raise KeyError(f"Unknown collection: {name}") from None


def list_rows(name: str) -> list[dict[str, Any]]:
    spec = collection(name)
    rows = db.fetch_all(f"SELECT * FROM {spec.table} ORDER BY {spec.order_by}")
    return [dict(r) for r in rows]


def _upsert(conn: sqlite3.Connection, spec: Collection, fields: dict[str, Any], record_id: str | None) -> dict[str, Any]:
    values = {k: v for k, v in fields.items() if k in spec.columns}
    if record_id is None:
        record_id = db.new_id()
        cols = ["id", *values, "created_at"]
        conn.execute(
            f"INSERT INTO {spec.table}({', '.join(cols)}) VALUES({', '.join('?' for _ in cols)})",
            (record_id, *values.values(), db.now_iso()),
        )
    else:
        if conn.execute(f"SELECT 1 FROM {spec.table} WHERE id=?", (record_id,)).fetchone() is None:
            raise NotFoundError(f"{spec.label} not found")
        if values:
            assignments = ", ".join(f"{k}=?" for k in values)
            conn.execute(f"UPDATE {spec.table} SET {assignments} WHERE id=?", (*values.values(), record_id))
    return dict(conn.execute(f"SELECT * FROM {spec.table} WHERE id=?", (record_id,)).fetchone())


def upsert(name: str, fields: dict[str, Any], record_id: str | None = None) -> dict[str, Any]:
    """Create when record_id is None, otherwise update the existing row (404 if absent)."""
    spec = collection(name)
    with db.get_conn() as conn:
        row = _upsert(conn, spec, fields, record_id)
    logger.info("%s %s: %s", "Created" if record_id is None else "Updated", spec.table, row["id"])
    return row


def delete(name: str, record_id: str) -> bool:
    spec = collection(name)
    removed = db.execute(f"DELETE FROM {spec.table} WHERE id=?", (record_id,)) > 0
    if removed:
        logger.info("Deleted %s: %s", spec.table, record_id)
    return removed


# ---------- Members ----------

def upsert_member(fields: dict[str, Any], record_id: str | None = None) -> dict[str, Any]:
    """Student members always own a weekly fee record; its memberName follows renames."""
    spec = collection("members")
    with db.get_conn() as conn:
        member = _upsert(conn, spec, fields, record_id)
        fee = conn.execute("SELECT id FROM weekly_fees WHERE member_id=?", (member["id"],)).fetchone()
        if fee is not None:
            conn.execute("UPDATE weekly_fees SET member_name=? WHERE id=?", (member["name"], fee["id"]))
        elif member["role"] == STUDENT_ROLE:
            conn.execute(
                "INSERT INTO weekly_fees(id, member_id, member_name, created_at) VALUES(?,?,?,?)",
                (db.new_id(), member["id"], member["name"], db.now_iso()),
            )
            logger.info("Created weekly fee record for member %s", member["id"])
    return member


def delete_member(record_id: str) -> bool:
    with db.get_conn() as conn:
        fee = conn.execute("SELECT id FROM weekly_fees WHERE member_id=?", (record_id,)).fetchone()
        if fee is not None:
            conn.execute("DELETE FROM fee_payments WHERE fee_id=?", (fee["id"],))
            conn.execute("DELETE FROM weekly_fees WHERE id=?", (fee["id"],))
        removed = conn.execute("DELETE FROM members WHERE id=?", (record_id,)).rowcount > 0
    if removed:
        logger.info("Deleted member %s and its fee record", record_id)
    return removed


# ---------- Weekly fees ----------

def _fee_record(conn: sqlite3.Connection, fee: sqlite3.Row) -> dict[str, Any]:
    payments = conn.execute(
        "SELECT id, date, amount, status FROM fee_payments WHERE fee_id=? ORDER BY rowid ASC",
        (fee["id"],),
    ).fetchall()
    return {
        "id": fee["id"],
        "member_id": fee["member_id"],
        "member_name": fee["member_name"],
        "payments": [dict(p) for p in payments],
    }


def _fee_for_member(conn: sqlite3.Connection, member_id: str) -> sqlite3.Row:
    fee = conn.execute("SELECT * FROM weekly_fees WHERE member_id=?", (member_id,)).fetchone()
    if fee is None:
        raise NotFoundError("Weekly fee record not found")
    return fee


def list_fee_records() -> list[dict[str, Any]]:
    with db.get_conn() as conn:
        fees = conn.execute("SELECT * FROM weekly_fees ORDER BY member_name COLLATE NOCASE ASC").fetchall()
        return [_fee_record(conn, fee) for fee in fees]


def get_fee_record(member_id: str) -> dict[str, Any]:
    with db.get_conn() as conn:
        return _fee_record(conn, _fee_for_member(conn, member_id))


def add_payment(member_id: str, date: str, amount: float, status: str | None = None) -> dict[str, Any]:
    with db.get_conn() as conn:
        fee = _fee_for_member(conn, member_id)
        conn.execute(
            "INSERT INTO fee_payments(id, fee_id, date, amount, status) VALUES(?,?,?,?,?)",
            (db.new_id(), fee["id"], date, amount, status or "paid"),
        )
        return _fee_record(conn, fee)


def update_payment(
    member_id: str,
    payment_id: str,
    date: str,
    amount: float,
    status: str | None = None,
) -> dict[str, Any]:
    with db.get_conn() as conn:
        fee = _fee_for_member(conn, member_id)
        payment = conn.execute(
            "SELECT status FROM fee_payments WHERE id=? AND fee_id=?", (payment_id, fee["id"])
        ).fetchone()
        if payment is None:
            raise NotFoundError("Payment not found")
        conn.execute(
            "UPDATE fee_payments SET date=?, amount=?, status=? WHERE id=?",
            (date, amount, status or payment["status"], payment_id),
        )
        return _fee_record(conn, fee)


def delete_payment(member_id: str, payment_id: str) -> dict[str, Any]:
    with db.get_conn() as conn:
        fee = _fee_for_member(conn, member_id)
        cur = conn.execute("DELETE FROM fee_payments WHERE id=? AND fee_id=?", (payment_id, fee["id"]))
        if cur.rowcount == 0:
            raise NotFoundError("Payment not found")
        return _fee_record(conn, fee)


def counts() -> dict[str, int]:
    """Row count per table (used by `manage.py check`)."""
    tables = [spec.table for spec in COLLECTIONS.values()] + ["weekly_fees", "fee_payments"]
    return {table: db.fetch_one(f"SELECT COUNT(*) AS n FROM {table}")["n"] for table in tables}
