# ui/import_panel.py
import streamlit as st

from models.report_config import REPORT_COLUMNS
from utils.importer import import_file
from ui.state import LiveFeeds, force_rerun


def render_import_panel(feeds: LiveFeeds):
    st.subheader("Import CSV")
    st.caption("Header row as exported: " + ", ".join(REPORT_COLUMNS) + ". Dates as DD/MM/YYYY.")

    if not feeds.client_id:
        st.info("Select a client in the sidebar; imported tasks are added to that client.")
        return
    st.caption(f"Tasks will be added to {feeds.client_name(feeds.client_id) or 'the selected client'}.")

    up_key = f"import_csv_{st.session_state.get('import_v', 0)}"
    up = st.file_uploader("CSV file", type=["csv"], accept_multiple_files=False, key=up_key)

    for msg in st.session_state.pop("import_messages", []):
        st.success(msg)

    if up is not None and st.button("Import", type="primary"):
        result = import_file(up, feeds.client_id, feeds.task_store, feeds.directory())
        if not result:
            st.error(result.error)
            return
        st.session_state["import_v"] = st.session_state.get("import_v", 0) + 1
        if result.warnings:
            st.success(f"Imported {result.inserted_count} task(s).")
            for w in result.warnings:
                st.warning(w)
            return
        st.session_state["import_messages"] = [f"Imported {result.inserted_count} task(s)."]
        force_rerun()
