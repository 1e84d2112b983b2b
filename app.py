"""
app.py
Streamlit Sports Academy manager (admin UI over the sync client).
Run: streamlit run app.py
"""

from __future__ import annotations

from datetime import date

import pandas as pd
import streamlit as st

import utils
from client import SyncRuntime
from config import configure_logging, load_settings
from models import (
    MEMBER_ROLES,
    PAYMENT_STATUSES,
    Activity,
    Donation,
    Expense,
    Experience,
    GalleryItem,
    HeroSlide,
    Member,
    Payment,
)

st.set_page_config(page_title="Sports Academy Manager", layout="wide")


@st.cache_resource
def get_runtime() -> SyncRuntime:
    # One sync loop per server process, shared by every browser session
    settings = load_settings()
    configure_logging(settings.log_level)
    runtime = SyncRuntime(settings)
    runtime.boot()
    return runtime


def show_messages(runtime: SyncRuntime) -> None:
    for level, message in runtime.messages.drain():
        if level == "error":
            st.error(message)
        elif level == "success":
            st.success(message)
        else:
            st.info(message)


def save(runtime: SyncRuntime, collection: str, entity, changes: dict | None = None) -> None:
    if runtime.call(runtime.client.save, collection, entity, changes):
        st.success("Saved and synchronized.")
    else:
        st.warning("Saved locally. It will be synchronized on the next sync pass.")


def delete(runtime: SyncRuntime, collection: str, entity) -> None:
    if runtime.call(runtime.client.delete, collection, entity):
        st.success("Deleted.")
    else:
        st.warning("Removed locally, but the server could not be updated.")


def pick(items: list, label: str, describe, key: str):
    """Selectbox over entities; returns the chosen one or None."""
    options = {f"{describe(item)} [{item.remote_id or 'local ' + str(item.local_id)}]": item for item in items}
    chosen = st.selectbox(label, ["(new)"] + list(options), key=key)
    return options.get(chosen)


def date_value(value: str) -> date:
    try:
        return utils.parse_iso(value)
    except ValueError:
        return date.today()


# ---------- Pages ----------

def dashboard_page(runtime: SyncRuntime):
    st.header("📊 Dashboard")
    stats = runtime.state.dashboard_stats

    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Members", stats.total_members)
    c2.metric("Activities", stats.total_activities)
    c3.metric("Experiences", stats.total_experiences)
    c4.metric("Net balance", f"{stats.net_balance:,.2f}")

    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Donations", f"{stats.total_donations:,.2f}")
    c2.metric("Expenses", f"{stats.total_expenses:,.2f}")
    c3.metric("Fees collected", f"{stats.weekly_fees_collected:,.2f}")
    c4.metric("Fees pending / overdue", f"{stats.pending_fees:,.2f} / {stats.overdue_fees:,.2f}")

    st.divider()

    st.subheader("Synchronization")
    scheduler = runtime.client.scheduler
    report = runtime.client.synchronizer.last_report
    pending = runtime.state.pending()
    s1, s2, s3 = st.columns(3)
    s1.metric("Pending items", len(pending))
    s2.metric("Periodic sync", f"every {scheduler.interval_minutes:g} min" if scheduler.running else "stopped")
    s3.metric("Last pass", report.outcome.value if report else "never")

    if st.button("Sync now", type="primary"):
        report = runtime.call(runtime.client.sync_now)
        if report is None:
            st.info("A sync pass is already running.")
        elif report.ok:
            st.success(f"Sync pass finished: {report.attempted} attempted, {report.failed} failed.")
        else:
            st.error(f"Sync pass aborted: {report.reason}")

    if pending:
        st.dataframe(
            pd.DataFrame([{"type": type(e).__name__, "local id": e.local_id, "remote id": e.remote_id} for e in pending]),
            use_container_width=True,
            hide_index=True,
        )


def members_page(runtime: SyncRuntime):
    st.header("👥 Members")
    state = runtime.state

    with st.sidebar:
        st.subheader("Search & Filters")
        search = st.text_input("Search (name/phone)")
        role_filter = st.selectbox("Role", ["All", *MEMBER_ROLES])

    members = [
        m for m in state.members
        if (not search.strip() or search.lower() in m.name.lower() or search in m.phone)
        and (role_filter == "All" or m.role == role_filter)
    ]
    st.dataframe(utils.entities_frame(members), use_container_width=True, hide_index=True)

    st.divider()

    existing = pick(members, "Member", lambda m: f"{m.name} ({m.role})", key="member_pick")
    st.subheader(f"✏️ Edit {existing.name}" if existing else "➕ Add Member")

    col1, col2 = st.columns(2)
    with col1:
        name = st.text_input("Name", value=existing.name if existing else "")
        contact = st.text_input("Contact (email)", value=existing.contact if existing else "")
        phone = st.text_input("Phone", value=existing.phone if existing else "")
    with col2:
        role = st.selectbox("Role", MEMBER_ROLES, index=MEMBER_ROLES.index(existing.role) if existing and existing.role in MEMBER_ROLES else 0)
        join_date = st.date_input("Join date", value=date_value(existing.join_date) if existing else date.today()).isoformat()
        image = st.text_input("Image URL", value=existing.image if existing else "")

    errors = utils.validate_member_inputs(name, phone, role, join_date)
    for e in errors:
        st.error(e)

    c1, c2 = st.columns(2)
    with c1:
        if st.button("Save", type="primary", disabled=bool(errors)):
            changes = dict(name=name.strip(), contact=contact.strip(), phone=phone.strip(), role=role, join_date=join_date, image=image.strip())
            save(runtime, "members", existing or Member(), changes)
            st.rerun()
    with c2:
        if existing is not None:
            confirm = st.checkbox("Confirm delete", value=False, key="member_del_confirm")
            if st.button("Delete", disabled=not confirm):
                delete(runtime, "members", existing)
                st.rerun()


def weekly_fees_page(runtime: SyncRuntime):
    st.header("💳 Weekly Fees")
    state = runtime.state
    if not state.weekly_fees:
        st.info("No fee records yet. Add a Student member first.")
        return

    options = {f"{r.member_name} - {len(r.payments)} payment(s)": r for r in state.weekly_fees}
    record = options[st.selectbox("Student", list(options))]

    if record.payments:
        st.dataframe(
            pd.DataFrame([{"date": p.date, "amount": p.amount, "status": p.status, "synced": not p.needs_sync and p.is_persisted} for p in record.payments]),
            use_container_width=True,
            hide_index=True,
        )
    else:
        st.caption("No payments for this student yet.")

    st.divider()

    existing = pick(record.payments, "Payment", lambda p: f"{p.date} {p.amount:g} ({p.status})", key="payment_pick")
    st.subheader("Edit payment" if existing else "Add payment")
    c1, c2, c3 = st.columns(3)
    with c1:
        amount = st.text_input("Amount", value=f"{existing.amount:g}" if existing else "500")
    with c2:
        pay_date = st.date_input("Date", value=date_value(existing.date) if existing else date.today()).isoformat()
    with c3:
        status = st.selectbox("Status", PAYMENT_STATUSES, index=PAYMENT_STATUSES.index(existing.status) if existing else 1)

    errors = utils.validate_payment_inputs(pay_date, amount, status)
    for e in errors:
        st.error(e)

    b1, b2 = st.columns(2)
    with b1:
        if st.button("Save payment", type="primary", disabled=bool(errors)):
            ok = runtime.call(
                runtime.client.save_payment, record, existing or Payment(),
                dict(date=pay_date, amount=float(amount), status=status),
            )
            if ok:
                st.success("Payment saved.")
            else:
                st.warning("Payment saved locally; it will sync later.")
            st.rerun()
    with b2:
        if existing is not None and st.button("Delete payment"):
            runtime.call(runtime.client.delete_payment, record, existing)
            st.rerun()


def gallery_page(runtime: SyncRuntime):
    st.header("🖼️ Gallery")
    state = runtime.state
    limit = runtime.settings.top_n_limit

    top = sorted((g for g in state.gallery if g.is_top_n), key=lambda g: g.top_n_order)
    st.subheader(f"Top {limit} (shown as hero slides)")
    if top:
        cols = st.columns(len(top))
        for col, item in zip(cols, top):
            with col:
                st.image(item.image_url, caption=f"{item.top_n_order}. {item.title}", use_container_width=True)

        with st.expander("Reorder"):
            positions = {}
            for item in top:
                positions[item.local_id] = st.number_input(
                    item.title, min_value=1, max_value=len(top), value=item.top_n_order, key=f"order_{item.local_id}"
                )
            if st.button("Apply order"):
                ordered = sorted(top, key=lambda g: (positions[g.local_id], g.top_n_order))
                if runtime.call(runtime.client.reorder_top_n, ordered):
                    st.success("Order updated.")
                else:
                    st.error("Could not update the order on the server.")
                st.rerun()
    else:
        st.caption("No items selected yet.")

    st.divider()

    for item in state.gallery:
        c1, c2, c3 = st.columns([1, 3, 1])
        with c1:
            st.image(item.image_url, use_container_width=True)
        with c2:
            st.markdown(f"**{item.title}**  \n{item.description}")
        with c3:
            label = "Remove from top" if item.is_top_n else "Add to top"
            full = not item.is_top_n and len(top) >= limit
            if st.button(label, key=f"toggle_{item.local_id}", disabled=full or not item.is_persisted):
                if not runtime.call(runtime.client.toggle_top_n, item):
                    st.error("Could not change the top selection.")
                st.rerun()

    st.divider()

    existing = pick(state.gallery, "Gallery item", lambda g: g.title, key="gallery_pick")
    st.subheader("Edit item" if existing else "Add item")
    title = st.text_input("Title", value=existing.title if existing else "")
    description = st.text_area("Description", value=existing.description if existing else "")
    image_url = st.text_input("Image URL", value=existing.image_url if existing else "")

    errors = utils.validate_gallery_inputs(title, image_url)
    for e in errors:
        st.error(e)

    b1, b2 = st.columns(2)
    with b1:
        if st.button("Save item", type="primary", disabled=bool(errors)):
            save(runtime, "gallery", existing or GalleryItem(), dict(title=title.strip(), description=description.strip(), image_url=image_url.strip()))
            st.rerun()
    with b2:
        if existing is not None and st.button("Delete item"):
            delete(runtime, "gallery", existing)
            st.rerun()


def content_page(runtime: SyncRuntime):
    st.header("📰 Content")
    state = runtime.state
    tab_slides, tab_activities, tab_experiences = st.tabs(["Hero slides", "Activities", "Experiences"])

    with tab_slides:
        st.caption("Hero slides are rebuilt from the gallery's top selection whenever it changes.")
        st.dataframe(utils.entities_frame(state.hero_slides), use_container_width=True, hide_index=True)
        existing = pick(state.hero_slides, "Slide", lambda s: s.title, key="slide_pick")
        title = st.text_input("Title", value=existing.title if existing else "", key="slide_title")
        subtitle = st.text_input("Subtitle", value=existing.subtitle if existing else runtime.settings.academy_name)
        description = st.text_area("Description", value=existing.description if existing else "", key="slide_desc")
        background = st.text_input("Background image", value=existing.background_image if existing else "")
        cta_text = st.text_input("Button text", value=existing.cta_text if existing else "Learn More")
        cta_link = st.text_input("Button link", value=existing.cta_link if existing else "#activities")
        if st.button("Save slide", disabled=not title.strip()):
            save(runtime, "hero_slides", existing or HeroSlide(), dict(
                title=title.strip(), subtitle=subtitle, description=description,
                background_image=background, cta_text=cta_text, cta_link=cta_link,
            ))
            st.rerun()
        if existing is not None and st.button("Delete slide"):
            delete(runtime, "hero_slides", existing)
            st.rerun()

    with tab_activities:
        st.dataframe(utils.entities_frame(state.activities), use_container_width=True, hide_index=True)
        existing = pick(state.activities, "Activity", lambda a: f"{a.date} {a.title}", key="activity_pick")
        c1, c2 = st.columns(2)
        with c1:
            title = st.text_input("Title", value=existing.title if existing else "", key="activity_title")
            when = st.date_input("Date", value=date_value(existing.date) if existing else date.today(), key="activity_date").isoformat()
            time = st.text_input("Time", value=existing.time if existing else "")
            kind = st.text_input("Type", value=existing.type if existing else "")
        with c2:
            status = st.selectbox("Status", ["upcoming", "ongoing", "completed"], key="activity_status")
            image = st.text_input("Image URL", value=existing.image if existing else "", key="activity_image")
            description = st.text_area("Description", value=existing.description if existing else "", key="activity_desc")
        if st.button("Save activity", disabled=not title.strip()):
            save(runtime, "activities", existing or Activity(), dict(
                title=title.strip(), date=when, time=time, type=kind,
                status=status, image=image, description=description,
            ))
            st.rerun()
        if existing is not None and st.button("Delete activity"):
            delete(runtime, "activities", existing)
            st.rerun()

    with tab_experiences:
        st.dataframe(utils.entities_frame(state.experiences), use_container_width=True, hide_index=True)
        existing = pick(state.experiences, "Experience", lambda x: f"{x.date} {x.title}", key="experience_pick")
        title = st.text_input("Title", value=existing.title if existing else "", key="experience_title")
        when = st.date_input("Date", value=date_value(existing.date) if existing else date.today(), key="experience_date").isoformat()
        image = st.text_input("Image URL", value=existing.image if existing else "", key="experience_image")
        description = st.text_area("Description", value=existing.description if existing else "", key="experience_desc")
        if st.button("Save experience", disabled=not title.strip()):
            save(runtime, "experiences", existing or Experience(), dict(title=title.strip(), date=when, image=image, description=description))
            st.rerun()
        if existing is not None and st.button("Delete experience"):
            delete(runtime, "experiences", existing)
            st.rerun()


def finance_page(runtime: SyncRuntime):
    st.header("💰 Finance")
    state = runtime.state
    tab_donations, tab_expenses, tab_reports = st.tabs(["Donations", "Expenses", "Reports"])

    with tab_donations:
        st.dataframe(utils.entities_frame(state.donations), use_container_width=True, hide_index=True)
        existing = pick(state.donations, "Donation", lambda d: f"{d.date} {d.donor_name}", key="donation_pick")
        donor = st.text_input("Donor", value=existing.donor_name if existing else "")
        amount = st.text_input("Amount", value=f"{existing.amount:g}" if existing else "0", key="donation_amount")
        when = st.date_input("Date", value=date_value(existing.date) if existing else date.today(), key="donation_date").isoformat()
        purpose = st.text_input("Purpose", value=existing.purpose if existing else "")
        errors = utils.validate_money_inputs(donor, amount, when)
        if st.button("Save donation", disabled=bool(errors)):
            save(runtime, "donations", existing or Donation(), dict(donor_name=donor.strip(), amount=float(amount), date=when, purpose=purpose))
            st.rerun()
        if existing is not None and st.button("Delete donation"):
            delete(runtime, "donations", existing)
            st.rerun()

    with tab_expenses:
        st.dataframe(utils.entities_frame(state.expenses), use_container_width=True, hide_index=True)
        existing = pick(state.expenses, "Expense", lambda x: f"{x.date} {x.description}", key="expense_pick")
        description = st.text_input("Description", value=existing.description if existing else "", key="expense_desc")
        amount = st.text_input("Amount", value=f"{existing.amount:g}" if existing else "0", key="expense_amount")
        when = st.date_input("Date", value=date_value(existing.date) if existing else date.today(), key="expense_date").isoformat()
        category = st.text_input("Category", value=existing.category if existing else "")
        vendor = st.text_input("Vendor", value=existing.vendor if existing else "")
        method = st.text_input("Payment method", value=existing.payment_method if existing else "")
        errors = utils.validate_money_inputs(description, amount, when)
        if st.button("Save expense", disabled=bool(errors)):
            save(runtime, "expenses", existing or Expense(), dict(
                description=description.strip(), amount=float(amount), date=when,
                category=category, vendor=vendor, payment_method=method,
            ))
            st.rerun()
        if existing is not None and st.button("Delete expense"):
            delete(runtime, "expenses", existing)
            st.rerun()

    with tab_reports:
        st.subheader("Donations vs expenses by month")
        st.dataframe(utils.finance_summary_by_month(state), use_container_width=True, hide_index=True)
        st.subheader("Weekly fees by month")
        st.dataframe(utils.fee_summary_by_month(state), use_container_width=True, hide_index=True)

        st.subheader("Export to CSV")
        for label, items in (
            ("members", state.members),
            ("donations", state.donations),
            ("expenses", state.expenses),
        ):
            st.download_button(
                f"Download {label}.csv",
                data=utils.entities_to_csv_bytes(items),
                file_name=f"{label}.csv",
                mime="text/csv",
                disabled=not items,
            )
        st.download_button(
            "Download weekly_fees.csv",
            data=utils.payments_frame(state).to_csv(index=False).encode("utf-8"),
            file_name="weekly_fees.csv",
            mime="text/csv",
        )


def settings_page(runtime: SyncRuntime):
    st.header("⚙️ Settings")
    settings = runtime.settings
    scheduler = runtime.client.scheduler

    st.write(f"API server: **{settings.api_base_url}**")
    st.write(f"Retries: **{settings.max_attempts}** attempts, backoff base **{settings.backoff_base:g}s**")

    st.subheader("Periodic sync")
    minutes = st.number_input("Interval (minutes)", min_value=0.5, value=float(scheduler.interval_minutes or settings.sync_interval_minutes), step=0.5)
    c1, c2 = st.columns(2)
    with c1:
        if st.button("Start", type="primary"):
            runtime.call(runtime.client.start_periodic, minutes)
            st.success(f"Periodic sync running every {minutes:g} min.")
    with c2:
        if st.button("Stop"):
            stopped = runtime.call(runtime.client.stop_periodic)
            if stopped:
                st.success("Periodic sync stopped.")
            else:
                st.info("Periodic sync was not running.")

    st.divider()

    if st.button("Reload all data from server"):
        runtime.call(runtime.client.load)
        st.rerun()


def main_app():
    runtime = get_runtime()

    st.sidebar.title("🏅 " + runtime.settings.academy_name)
    if not runtime.loaded:
        st.sidebar.warning("Offline: showing local data only")

    pages = {
        "Dashboard": dashboard_page,
        "Members": members_page,
        "Weekly Fees": weekly_fees_page,
        "Gallery": gallery_page,
        "Content": content_page,
        "Finance": finance_page,
        "Settings": settings_page,
    }
    if "page" not in st.session_state:
        st.session_state.page = "Dashboard"
    st.session_state.page = st.sidebar.radio("Navigate", list(pages), index=list(pages).index(st.session_state.page))

    show_messages(runtime)
    pages[st.session_state.page](runtime)


# --------- App entry ---------

if __name__ == "__main__":
    main_app()
