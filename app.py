import altair as alt
import streamlit as st
from contextlib import contextmanager
from typing import Optional

from core.aggregation import buckets_to_frame
from core.auth import auth_error_message
from core.backend import get_backend
from core.charts import build_area_chart
from core.data import SalesDataLoader, default_source, prepare_context
from core.errors import AuthError, VoteError
from core.filters import ALL, FilterState
from core.projection import describe_filters, project
from core.records import METRIC_CONFIG, METRIC_KEYS, get_item_types, get_years
from core.votes import cast_vote

alt.data_transformers.disable_max_rows()


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-header {display: flex;justify-content: space-between;align-items: center;margin-bottom: 8px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;}
        .card-actions {font-size: 0.85rem;color: #2563eb;}
        .chip-row {display: flex;flex-wrap: wrap;gap: 6px;margin-top: 6px;}
        .chip {background: #f3f4f6;border: 1px solid #e5e7eb;border-radius: 14px;padding: 4px 10px;font-size: 0.85rem;color: #374151;}
        .chip span {font-weight: 600;}
        .vote-locked {border-radius: 10px;padding: 10px 12px;font-size: 0.9rem;}
        .vote-locked.yay {background: #ecfdf5;color: #065f46;}
        .vote-locked.nay {background: #fef2f2;color: #991b1b;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str, actions: Optional[str] = None):
    container = st.container()
    container.markdown(
        f"""
        <div class="card">
          <div class="card-header">
            <div class="card-title">{title}</div>
            <div class="card-actions">{actions or ""}</div>
          </div>
        """,
        unsafe_allow_html=True,
    )
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def chips(items) -> str:
    return "".join(f"<span class='chip'>{label}: <span>{value}</span></span>" for label, value in items)


def session_loader() -> SalesDataLoader:
    if "loader" not in st.session_state:
        st.session_state["loader"] = SalesDataLoader()
    return st.session_state["loader"]


def session_auth():
    if "auth_client" not in st.session_state:
        st.session_state["auth_client"] = get_backend().auth_client()
    return st.session_state["auth_client"]


# ---------- Auth + vote ----------
def render_auth_card():
    backend = get_backend()
    auth = session_auth()
    user = auth.get_current_user()

    login_mode = st.session_state.setdefault("auth_mode_login", True)
    with card("Sign in &amp; cast your vote", "Once you vote, your choice is locked in."):
        if user is None:
            toggle_label = "Need an account? Create one" if login_mode else "Already registered? Sign in"
            if st.button(toggle_label, key="auth_mode_toggle"):
                st.session_state["auth_mode_login"] = not login_mode
                st.rerun()
            with st.form("auth_form"):
                c1, c2, c3 = st.columns([3, 3, 2])
                email = c1.text_input("Email", placeholder="you@example.com")
                password = c2.text_input("Password", type="password")
                submitted = c3.form_submit_button("Sign in" if login_mode else "Create account")
            if submitted:
                try:
                    if login_mode:
                        auth.sign_in(email, password)
                    else:
                        auth.sign_up(email, password)
                except AuthError as exc:
                    st.error(auth_error_message(exc.code))
                else:
                    st.rerun()
            return

        c1, c2 = st.columns([6, 2])
        c1.markdown(f"Signed in as **{user.email}**.")
        if c2.button("Sign out"):
            auth.sign_out()
            st.rerun()

        existing = backend.votes.get_vote(user.uid)
        st.markdown("**Your one-time vote**")
        if existing is None:
            st.caption("Choose Yay or Nay. Once saved, this vote cannot be changed.")
            b1, b2 = st.columns(2)
            for column, choice in ((b1, "yay"), (b2, "nay")):
                if column.button(choice.capitalize(), key=f"vote_{choice}", use_container_width=True):
                    try:
                        vote, created = cast_vote(backend.votes, user, choice)
                    except VoteError as exc:
                        st.error(str(exc))
                    else:
                        if created:
                            st.session_state["vote_just_cast"] = vote.vote
                        st.rerun()
        else:
            st.markdown(
                f"<div class='vote-locked {existing.vote}'>You voted <strong>{existing.vote.upper()}</strong>. "
                "Thank you, your vote is locked in and cannot be changed.</div>",
                unsafe_allow_html=True,
            )

        just_cast = st.session_state.pop("vote_just_cast", None)
        if just_cast:
            st.toast(f"You voted {just_cast.upper()}! Thanks for your support!")


# ---------- UI setup ----------
st.set_page_config(page_title="Warehouse & Retail Sales Pulse", layout="wide")
inject_base_styles()
st.title("Warehouse & Retail Sales Pulse")
st.caption(
    "Explore sales performance across warehouse, retail, and transfers. Segment by product type and year "
    "to see how volume shifts month over month."
)

loader = session_loader()
if loader.state.status in ("idle", "error") and not st.session_state.get("_load_attempted"):
    st.session_state["_load_attempted"] = True
    with st.spinner("Loading sales data…"):
        loader.load(default_source())

state = loader.state
records = state.records

# ----- Sidebar: segmentation + metric focus -----
with st.sidebar:
    st.markdown("### Segmentation")
    st.caption("Slice the CSV by item type and year. The graph always rolls up results by month.")
    item_type = st.selectbox("Item type", [ALL] + get_item_types(records), format_func=lambda v: "All item types" if v == ALL else v)
    year = st.selectbox("Year", [ALL] + get_years(records), format_func=lambda v: "All years" if v == ALL else str(v))

    st.markdown("---")
    st.markdown("### Metric focus")
    st.caption("Choose the primary metric and whether to compare channels or zoom into one.")
    metric = st.selectbox("Primary metric", list(METRIC_KEYS), format_func=lambda k: METRIC_CONFIG[k].series_name)
    show_all = st.checkbox("Show all channels together", value=True)

    if state.status == "error" and st.button("Retry loading"):
        with st.spinner("Loading sales data…"):
            loader.load(default_source())
        st.rerun()

filters = FilterState(item_type=item_type, year=year)
ctx = prepare_context(filters, {"records": records, "row_count": state.row_count}, metric=metric)
buckets = ctx["buckets"]
summary = ctx["summary"]
selection = project(buckets, metric, show_all)

render_auth_card()

with card("Monthly Volume by Channel", describe_filters(filters)):
    st.markdown(
        f"<div class='chip-row'>{chips([('Metric', METRIC_CONFIG[metric].label), ('View', selection.view_label), ('Months', len(buckets))])}</div>",
        unsafe_allow_html=True,
    )
    if state.status == "loading":
        st.info("Loading sales data…")
    elif state.status == "error":
        st.error(state.error or "Something went wrong while loading the sales data.")
    elif selection.is_empty:
        st.info("No data found for the selected filters.")
    else:
        st.altair_chart(build_area_chart(selection), use_container_width=True)
        st.download_button(
            "Export CSV",
            data=buckets_to_frame(buckets).to_csv(index=False).encode("utf-8"),
            file_name="monthly_sales.csv",
            mime="text/csv",
        )

st.markdown(
    "<div class='chip-row'>"
    + chips(
        [
            ("Months in view", summary.months),
            ("Σ Retail", f"{round(summary.total_retail_sales):,}"),
            ("Σ Transfers", f"{round(summary.total_transfers):,}"),
            ("Σ Warehouse", f"{round(summary.total_warehouse):,}"),
        ]
    )
    + "</div>",
    unsafe_allow_html=True,
)
st.caption(f"Live from CSV snapshot • {state.row_count:,} rows loaded")

st.markdown("---")
st.markdown(
    "**Statement of intent:** This dashboard is designed to surface how product mix and channel choice shape "
    "month-over-month sales so that stakeholders can make more confident inventory and purchasing decisions."
)
st.caption(
    "Data source: `Warehouse_and_Retail_Sales.csv` • View: monthly rollups with optional segmentation by item type and year."
)
