# ui/report_panel.py
from typing import List

import streamlit as st

from models.report_config import DateBasis, REPORT_COLUMNS, ReportConfig, ReportFormat
from models.task import Task
from utils.report import HAS_KALEIDO, base_scope, filter_for_report, generate_report, status_figure, summarize
from utils.formatting import format_hours
from ui.state import LiveFeeds


def _report_config(default_title: str) -> ReportConfig:
    title = st.text_input("Title", value=default_title, key="rep_title")
    fmt = st.radio("Format", list(ReportFormat), format_func=lambda f: f.value, horizontal=True, key="rep_format")

    c1, c2, c3 = st.columns(3)
    basis = c1.selectbox("Date range applies to", list(DateBasis),
                         format_func=lambda b: "Due date" if b is DateBasis.DUE_DATE else "Date logged",
                         key="rep_basis")
    start = c2.date_input("From", value=None, format="DD/MM/YYYY", key="rep_start")
    end = c3.date_input("To", value=None, format="DD/MM/YYYY", key="rep_end")

    st.markdown("**Include**")
    s1, s2, s3, s4 = st.columns(4)
    inc_complete = s1.checkbox("Complete", value=True, key="rep_inc_complete")
    inc_progress = s2.checkbox("In Progress", value=True, key="rep_inc_progress")
    inc_not_started = s3.checkbox("Not Started", value=True, key="rep_inc_not_started")
    inc_overdue = s4.checkbox("Overdue", value=False, key="rep_inc_overdue")

    st.markdown("**Group by**")
    g1, g2, g3 = st.columns(3)
    by_area = g1.checkbox("Area", key="rep_by_area")
    by_who = g2.checkbox("Who", key="rep_by_who")
    by_project = g3.checkbox("Project", key="rep_by_project")

    st.markdown("**Content**")
    o1, o2, o3, o4 = st.columns(4)
    notes = o1.checkbox("Notes", value=True, key="rep_notes")
    links = o2.checkbox("Links", value=True, key="rep_links")
    hours_total = o3.checkbox("Hours total", value=True, key="rep_hours_total")
    status_totals = o4.checkbox("Status totals", value=True, key="rep_status_totals")

    columns = st.multiselect("Columns", REPORT_COLUMNS, default=REPORT_COLUMNS, key="rep_columns")

    landscape, chart = True, False
    if fmt is ReportFormat.PDF:
        p1, p2 = st.columns(2)
        landscape = p1.checkbox("Landscape pages", value=True, key="rep_landscape")
        chart = p2.checkbox("Embed status chart (requires kaleido)", value=HAS_KALEIDO, key="rep_chart")

    return ReportConfig(
        title=title.strip() or default_title, date_basis=basis, start_date=start, end_date=end,
        include_complete=inc_complete, include_in_progress=inc_progress,
        include_not_started=inc_not_started, include_overdue=inc_overdue,
        group_by_area=by_area, group_by_assignee=by_who, group_by_project=by_project,
        include_notes=notes, include_links=links, include_hours_total=hours_total,
        include_status_totals=status_totals, columns=columns, output_format=fmt,
        landscape=landscape, include_chart=chart,
    )


def render_report_panel(feeds: LiveFeeds, visible: List[Task], default_title: str):
    st.subheader("Report")
    scope = base_scope(visible, feeds.grid.selected_tasks())
    if feeds.grid.selected_ids():
        scope_label = f"Selected tasks ({len(scope)})"
    elif feeds.client_id:
        scope_label = f"Client: {feeds.client_name(feeds.client_id)}"
    else:
        scope_label = "All clients"
    st.caption(f"Scope: {scope_label}")

    cfg = _report_config(default_title)
    directory = feeds.directory()

    matched = filter_for_report(scope, cfg)
    if matched:
        summary = summarize(matched)
        m1, m2, m3 = st.columns(3)
        m1.metric("Tasks", summary.total_count)
        m2.metric("Hours", format_hours(summary.total_hours))
        m3.metric("Overdue", summary.overdue_count)
        st.plotly_chart(status_figure(summary), use_container_width=True)
    else:
        st.info("No tasks match these settings.")

    if st.button("Generate report", type="primary"):
        try:
            result = generate_report(scope, cfg, directory, scope_label=scope_label)
        except Exception as e:
            st.error(f"Report generation failed: {e}")
            return
        if not result:
            st.warning(result.message)
            return
        st.success(f"{result.row_count} task(s) ready.")
        st.download_button(
            label=f"Download {result.filename}",
            data=result.data,
            file_name=result.filename,
            mime=result.mime,
        )
