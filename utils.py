"""
utils.py
Validation, dates, exports, sample data.
"""

from __future__ import annotations

from dataclasses import asdict
from datetime import date

import pandas as pd

import db
import gallery
import store
from models import BASE_FIELDS, MEMBER_ROLES, PAYMENT_STATUSES, AppState, Entity


def today_iso() -> str:
    return date.today().isoformat()


def parse_iso(d: str) -> date:
    return date.fromisoformat(d)


def _check_date(value: str, label: str, errors: list[str], required: bool = True) -> None:
    if not value.strip():
        if required:
            errors.append(f"{label} is required.")
        return
    try:
        parse_iso(value)
    except ValueError:
        errors.append(f"{label} must be a valid ISO date (YYYY-MM-DD).")


def _check_amount(amount, errors: list[str]) -> None:
    try:
        if float(amount) < 0:
            errors.append("Amount cannot be negative.")
    except (TypeError, ValueError):
        errors.append("Amount must be numeric.")


def validate_member_inputs(name: str, phone: str, role: str, join_date: str) -> list[str]:
    errors: list[str] = []
    if not name.strip():
        errors.append("Name is required.")
    if phone.strip() and not any(ch.isdigit() for ch in phone):
        errors.append("Phone must contain digits.")
    if role not in MEMBER_ROLES:
        errors.append(f"Role must be one of: {', '.join(MEMBER_ROLES)}.")
    _check_date(join_date, "Join date", errors, required=False)
    return errors


def validate_payment_inputs(payment_date: str, amount, status: str) -> list[str]:
    errors: list[str] = []
    _check_date(payment_date, "Payment date", errors)
    _check_amount(amount, errors)
    if status not in PAYMENT_STATUSES:
        errors.append(f"Status must be one of: {', '.join(PAYMENT_STATUSES)}.")
    return errors


def validate_money_inputs(label: str, amount, entry_date: str) -> list[str]:
    """Shared checks for donations and expenses."""
    errors: list[str] = []
    if not label.strip():
        errors.append("Name/description is required.")
    _check_amount(amount, errors)
    _check_date(entry_date, "Date", errors)
    return errors


def validate_gallery_inputs(title: str, image_url: str) -> list[str]:
    errors: list[str] = []
    if not title.strip():
        errors.append("Title is required.")
    if not image_url.strip().lower().startswith(("http://", "https://")):
        errors.append("Image URL must start with http:// or https://.")
    return errors


# ---------- Tables / exports ----------

def entities_frame(entities: list[Entity]) -> pd.DataFrame:
    rows = []
    for entity in entities:
        row = {k: v for k, v in asdict(entity).items() if k not in BASE_FIELDS}
        row["id"] = entity.remote_id or f"local-{entity.local_id}"
        row["synced"] = entity.is_persisted and not entity.needs_sync
        rows.append(row)
    return pd.DataFrame(rows)


def entities_to_csv_bytes(entities: list[Entity]) -> bytes:
    return entities_frame(entities).to_csv(index=False).encode("utf-8")


def payments_frame(state: AppState) -> pd.DataFrame:
    rows = [
        {
            "member": record.member_name,
            "date": payment.date,
            "amount": payment.amount,
            "status": payment.status,
        }
        for record in state.weekly_fees
        for payment in record.payments
    ]
    return pd.DataFrame(rows, columns=["member", "date", "amount", "status"])


def fee_summary_by_month(state: AppState) -> pd.DataFrame:
    """Weekly fee amounts per month, one column per payment status."""
    df = payments_frame(state)
    columns = ["month", *PAYMENT_STATUSES]
    if df.empty:
        return pd.DataFrame(columns=columns)
    df["month"] = pd.to_datetime(df["date"], errors="coerce").dt.strftime("%Y-%m")
    summary = (
        df.dropna(subset=["month"])
        .pivot_table(index="month", columns="status", values="amount", aggfunc="sum", fill_value=0.0)
        .reindex(columns=list(PAYMENT_STATUSES), fill_value=0.0)
        .sort_index(ascending=False)
        .reset_index()
    )
    summary.columns.name = None
    return summary[columns]


def finance_summary_by_month(state: AppState) -> pd.DataFrame:
    """Donations in, expenses out, per month."""
    frames = []
    for label, items in (("donations", state.donations), ("expenses", state.expenses)):
        frame = pd.DataFrame([{"date": i.date, "amount": i.amount} for i in items], columns=["date", "amount"])
        frame["kind"] = label
        frames.append(frame)
    df = pd.concat(frames, ignore_index=True)
    if df.empty:
        return pd.DataFrame(columns=["month", "donations", "expenses", "net"])
    df["month"] = pd.to_datetime(df["date"], errors="coerce").dt.strftime("%Y-%m")
    summary = (
        df.dropna(subset=["month"])
        .pivot_table(index="month", columns="kind", values="amount", aggfunc="sum", fill_value=0.0)
        .reindex(columns=["donations", "expenses"], fill_value=0.0)
        .sort_index(ascending=False)
        .reset_index()
    )
    summary.columns.name = None
    summary["net"] = summary["donations"] - summary["expenses"]
    return summary


# ---------- Sample data ----------

SAMPLE_TABLES = (
    "fee_payments",
    "weekly_fees",
    "hero_slides",
    "activities",
    "members",
    "donations",
    "expenses",
    "experiences",
    "gallery",
)


def clear_all_data() -> None:
    with db.get_conn() as conn:
        for table in SAMPLE_TABLES:
            conn.execute(f"DELETE FROM {table}")


def insert_sample_data(academy_name: str, reset: bool = False) -> dict[str, int]:
    """
    Insert the demo academy: activities, members (students get fee records
    with three weekly payments), donations, expenses, experiences and a
    gallery whose top-N items drive the hero slides.
    Safe to run multiple times: adds new rows each time unless reset=True.
    """
    if reset:
        clear_all_data()

    for activity in SAMPLE_ACTIVITIES:
        store.upsert("activities", activity)

    for member in SAMPLE_MEMBERS:
        row = store.upsert_member(member)
        if row["role"] == "Student":
            for payment_date, amount, status in SAMPLE_WEEKLY_PAYMENTS:
                store.add_payment(row["id"], payment_date, amount, status)

    for name, rows in (
        ("donations", SAMPLE_DONATIONS),
        ("expenses", SAMPLE_EXPENSES),
        ("experiences", SAMPLE_EXPERIENCES),
    ):
        for fields in rows:
            store.upsert(name, fields)

    with db.get_conn() as conn:
        for title, description, image_url, top_n_order in SAMPLE_GALLERY:
            conn.execute(
                """
                INSERT INTO gallery(id, title, description, image_url, is_top_n, top_n_order, created_at)
                VALUES(?,?,?,?,?,?,?)
                """,
                (db.new_id(), title, description, image_url, int(top_n_order > 0), top_n_order, db.now_iso()),
            )
        gallery.regenerate_hero_slides(conn, academy_name)

    return store.counts()


_UNSPLASH = "https://images.unsplash.com/photo-"

SAMPLE_ACTIVITIES = [
    {
        "title": "Weekend Football Tournament",
        "date": "2023-12-15",
        "time": "09:00 - 17:00",
        "description": "A friendly football tournament for all age groups",
        "image": f"{_UNSPLASH}1575361204480-aadea25e6e68?w=800&h=600&fit=crop",
        "status": "upcoming",
        "type": "tournament",
    },
    {
        "title": "Basketball Training Camp",
        "date": "2023-12-10",
        "time": "14:00 - 18:00",
        "description": "Intensive basketball training with professional coaches",
        "image": f"{_UNSPLASH}1519861531473-9200262188bf?w=800&h=600&fit=crop",
        "status": "upcoming",
        "type": "training",
    },
    {
        "title": "Swimming Competition",
        "date": "2023-11-30",
        "time": "10:00 - 15:00",
        "description": "Annual swimming competition with multiple categories",
        "image": f"{_UNSPLASH}1560090995-01632a28895b?w=800&h=600&fit=crop",
        "status": "completed",
        "type": "event",
    },
    {
        "title": "Yoga for Athletes",
        "date": "2023-12-05",
        "time": "07:00 - 08:30",
        "description": "Yoga sessions designed specifically for athletes",
        "image": f"{_UNSPLASH}1544367567-0f2fcb009e0b?w=800&h=600&fit=crop",
        "status": "upcoming",
        "type": "training",
    },
]

SAMPLE_MEMBERS = [
    {"name": "John Doe", "contact": "john.doe@example.com", "phone": "+91-9876-543210",
     "join_date": "2023-01-15", "role": "Student",
     "image": f"{_UNSPLASH}1472099645785-5658abf4ff4e?w=150&h=150&fit=crop&crop=face"},
    {"name": "Jane Smith", "contact": "jane.smith@example.com", "phone": "+91-9876-543211",
     "join_date": "2023-02-20", "role": "Coach",
     "image": f"{_UNSPLASH}1494790108377-be9c29b29330?w=150&h=150&fit=crop&crop=face"},
    {"name": "Michael Johnson", "contact": "michael.j@example.com", "phone": "+91-9876-543212",
     "join_date": "2023-03-10", "role": "Student",
     "image": f"{_UNSPLASH}1500648767791-00dcc994a43e?w=150&h=150&fit=crop&crop=face"},
    {"name": "Emily Williams", "contact": "emily.w@example.com", "phone": "+91-9876-543213",
     "join_date": "2023-04-05", "role": "Student",
     "image": f"{_UNSPLASH}1580489944761-15a19d654956?w=150&h=150&fit=crop&crop=face"},
    {"name": "Robert Brown", "contact": "robert.b@example.com", "phone": "+91-9876-543214",
     "join_date": "2023-05-22", "role": "Admin",
     "image": f"{_UNSPLASH}1507003211169-0a1dd7228f2d?w=150&h=150&fit=crop&crop=face"},
]

SAMPLE_WEEKLY_PAYMENTS = [
    ("2023-11-01", 500.0, "paid"),
    ("2023-11-08", 500.0, "paid"),
    ("2023-11-15", 500.0, "pending"),
]

SAMPLE_DONATIONS = [
    {"donor_name": "Community Sports Foundation", "amount": 25000.0, "date": "2023-06-15", "purpose": "Equipment"},
    {"donor_name": "Local Business Association", "amount": 15000.0, "date": "2023-07-10", "purpose": "Scholarships"},
    {"donor_name": "Anonymous Donor", "amount": 50000.0, "date": "2023-08-05", "purpose": "Facility Improvement"},
    {"donor_name": "Alumni Association", "amount": 10000.0, "date": "2023-09-20", "purpose": "Tournaments"},
]

SAMPLE_EXPENSES = [
    {"description": "New Training Equipment", "amount": 15000.0, "date": "2023-06-20",
     "category": "Equipment", "vendor": "Sports Gear Ltd.", "payment_method": "Bank Transfer"},
    {"description": "Facility Maintenance", "amount": 8000.0, "date": "2023-07-15",
     "category": "Maintenance", "vendor": "City Maintenance Services", "payment_method": "Check"},
    {"description": "Coach Salaries", "amount": 35000.0, "date": "2023-08-01",
     "category": "Salaries", "vendor": "Staff", "payment_method": "Bank Transfer"},
    {"description": "Tournament Registration Fees", "amount": 5000.0, "date": "2023-09-10",
     "category": "Events", "vendor": "State Sports Association", "payment_method": "Online Payment"},
    {"description": "Utility Bills", "amount": 7500.0, "date": "2023-10-05",
     "category": "Utilities", "vendor": "City Power & Water", "payment_method": "Direct Debit"},
]

SAMPLE_EXPERIENCES = [
    {"title": "State Championship Win", "date": "2023-05-15",
     "description": "Our basketball team won the state championship for the first time in academy history",
     "image": f"{_UNSPLASH}1577471488278-16eec37ffcc2?w=800&h=600&fit=crop"},
    {"title": "New Swimming Pool Inauguration", "date": "2023-07-20",
     "description": "Inaugurated our new Olympic-sized swimming pool with a friendly competition",
     "image": f"{_UNSPLASH}1560090995-01632a28895b?w=800&h=600&fit=crop"},
    {"title": "Annual Sports Day", "date": "2023-08-12",
     "description": "Successful completion of our annual sports day with participation from over 200 students",
     "image": f"{_UNSPLASH}1461896836934-ffe607ba8211?w=800&h=600&fit=crop"},
]

# (title, description, image_url, top_n_order); order 0 means outside the top-N set
SAMPLE_GALLERY = [
    ("Basketball Practice", "Students practicing basketball techniques",
     f"{_UNSPLASH}1519861531473-9200262188bf?w=800&h=600&fit=crop", 1),
    ("Swimming Competition", "Annual swimming competition",
     f"{_UNSPLASH}1560090995-01632a28895b?w=800&h=600&fit=crop", 2),
    ("Football Tournament", "Inter-school football tournament",
     f"{_UNSPLASH}1575361204480-aadea25e6e68?w=800&h=600&fit=crop", 3),
    ("Yoga Session", "Morning yoga session for athletes",
     f"{_UNSPLASH}1544367567-0f2fcb009e0b?w=800&h=600&fit=crop", 0),
    ("Athletics Track", "Our newly renovated athletics track",
     f"{_UNSPLASH}1461896836934-ffe607ba8211?w=800&h=600&fit=crop", 4),
    ("Gym Equipment", "New gym equipment for strength training",
     f"{_UNSPLASH}1574629810360-7efbbe195018?w=800&h=600&fit=crop", 5),
    ("Team Building Activities", "Students participating in team building exercises",
     f"{_UNSPLASH}1526232761682-d26e03ac148e?w=800&h=600&fit=crop", 0),
]
