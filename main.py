# main.py

#============================================================#
#                          Rubi To-Do                        #
#============================================================#
# Purpose     : Agency to-do list. Client tasks with staff,  #
#               freelancer and client-contact assignees,     #
#               inline editing, PDF/CSV reports, CSV import  #
#============================================================#

import streamlit as st

from config import get_settings
from db import DocumentStore, PermissionDeniedError, init_db
from utils.filters import SpecialView
from utils.log import setup_logging
from ui.state import force_rerun, get_feeds, reset_feeds
from ui.tasks_panel import render_tasks_panel
from ui.report_panel import render_report_panel
from ui.import_panel import render_import_panel

settings = get_settings()
setup_logging(settings.log_level)

st.set_page_config(page_title="Rubi To-Do", layout="wide")


@st.cache_resource
def _init_store() -> DocumentStore:
    # one store per process so every session sees every other session's writes
    init_db()
    return DocumentStore()


store = _init_store()
feeds = get_feeds(store, settings)

# ---------- Sidebar ----------
with st.sidebar:
    st.title("Rubi To-Do")

    client_ids = [None] + [c.id for c in feeds.clients]
    current = feeds.client_id if feeds.client_id in client_ids else None
    client_id = st.selectbox(
        "Client",
        client_ids,
        index=client_ids.index(current),
        format_func=lambda i: "All clients" if i is None else (feeds.client_name(i) or i),
    )

    views = [None] + list(SpecialView)
    try:
        requested = SpecialView(st.query_params.get("view", ""))
    except ValueError:
        requested = None
    special_view = st.radio(
        "View",
        views,
        index=views.index(requested),
        format_func=lambda v: "All tasks" if v is None else v.label,
    )
    if special_view is None:
        st.query_params.pop("view", None)
    else:
        st.query_params["view"] = special_view.value

    if not client_id:
        st.caption(f"Showing the {settings.tasks_global_limit} most recent tasks.")
    if st.button("Reconnect"):
        reset_feeds()
        force_rerun()

feeds.watch_client(client_id)

# ---------- Access errors ----------
if isinstance(feeds.error, PermissionDeniedError):
    st.error("You do not have access to these tasks. Ask an administrator to grant access, then reconnect.")
    st.stop()
elif feeds.error is not None:
    st.error(f"The task store is unavailable: {feeds.error}")

# ---------- Tabs ----------
tab1, tab2, tab3 = st.tabs(["Tasks", "Report", "Import"])

with tab1:
    visible = render_tasks_panel(feeds, special_view)

with tab2:
    render_report_panel(feeds, visible, settings.report_title)

with tab3:
    render_import_panel(feeds)
