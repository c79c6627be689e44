# ui/tasks_panel.py
import streamlit as st
import pandas as pd
from datetime import date
from typing import List, Optional

from models.task import ProgressStatus, STATUS_ORDER, Task
from utils.filters import SortKey, SpecialView, TaskFilter, visible_tasks
from utils.grid import CommitStatus, GRID_COLUMNS, CellKind
from ui.state import LiveFeeds, force_rerun

STATUS_OPTIONS = [s.value for s in STATUS_ORDER]
HEADER_TO_FIELD = {header: name for name, (header, _) in GRID_COLUMNS.items()}
_PICKER_LIMIT = 12


def _grid_key() -> str:
    return f"task_grid_{st.session_state.get('task_grid_v', 0)}"


def _bump_grid():
    st.session_state["task_grid_v"] = st.session_state.get("task_grid_v", 0) + 1


def _on_grid_change(feeds: LiveFeeds, ids: List[str], key: str):
    state = st.session_state.get(key) or {}
    messages = []
    for row_idx, changes in (state.get("edited_rows") or {}).items():
        task_id = ids[int(row_idx)]
        for header, value in changes.items():
            if header == "Select":
                (feeds.grid.select if value else feeds.grid.deselect)(task_id)
                continue
            name = HEADER_TO_FIELD.get(header)
            if name is None or GRID_COLUMNS[name][1] is CellKind.ASSIGNEES:
                continue
            outcome = feeds.grid.commit_value(task_id, name, value)
            if outcome.status in (CommitStatus.REJECTED, CommitStatus.FAILED):
                messages.append(f"{header}: {outcome.message}")
    st.session_state["grid_messages"] = messages
    _bump_grid()


def _grid_frame(feeds: LiveFeeds, tasks: List[Task]) -> pd.DataFrame:
    rows = []
    for t in tasks:
        row = {"Select": feeds.grid.is_selected(t.id)}
        for name, (header, kind) in GRID_COLUMNS.items():
            if kind is CellKind.NUMBER:
                row[header] = float(t.hours_allocated)
            else:
                row[header] = feeds.grid.display_value(t, name)
        rows.append(row)
    return pd.DataFrame(rows, columns=["Select"] + [h for h, _ in GRID_COLUMNS.values()])


def render_filters(special_view: Optional[SpecialView]):
    c1, c2, c3 = st.columns([2, 2, 1.4])
    statuses = c1.multiselect("Progress", STATUS_OPTIONS, default=[], key="flt_status",
                              disabled=special_view is not None,
                              help="Ignored while a special view is active" if special_view else None)
    search = c2.text_input("Search", key="flt_search", placeholder="Project, notes, area, due date, who")
    sort = c3.selectbox("Sort by", list(SortKey), format_func=lambda k: k.label, key="flt_sort")
    flt = TaskFilter(statuses=frozenset(ProgressStatus(s) for s in statuses), search=search,
                     special_view=special_view)
    return flt, sort


def render_task_grid(feeds: LiveFeeds, visible: List[Task]):
    for msg in st.session_state.pop("grid_messages", []):
        st.error(msg)

    ids = [t.id for t in visible]
    c1, c2, c3 = st.columns([1, 1, 3])
    if c1.button("Select all / none", disabled=not ids):
        feeds.grid.toggle_select_all(ids)
        _bump_grid()
        force_rerun()
    selected = feeds.grid.selected_ids()
    c2.caption(f"{len(selected)} selected")

    if not visible:
        st.info("No tasks to show.")
        return

    key = _grid_key()
    st.data_editor(
        _grid_frame(feeds, visible),
        key=key,
        on_change=_on_grid_change,
        args=(feeds, ids, key),
        use_container_width=True,
        hide_index=True,
        num_rows="fixed",
        column_config={
            "Select": st.column_config.CheckboxColumn("✓", width="small"),
            "Progress": st.column_config.SelectboxColumn("Progress", options=STATUS_OPTIONS, required=True),
            "Logged": st.column_config.TextColumn("Logged", help="DD/MM/YYYY"),
            "Due": st.column_config.TextColumn("Due", help="DD/MM/YYYY"),
            "Complete By": st.column_config.TextColumn("Complete By", help="DD/MM/YYYY"),
            "Who": st.column_config.TextColumn("Who", disabled=True, help="Edit below"),
            "Drive Link": st.column_config.LinkColumn("Drive Link"),
            "Hours": st.column_config.NumberColumn("Hours", min_value=0, step=0.5),
        },
    )

    with c3.popover("Delete selected", disabled=not selected):
        st.warning(f"Delete {len(selected)} task(s)? This cannot be undone.")
        confirm = st.checkbox("Yes, delete them", key="confirm_delete")
        if st.button("Delete", type="primary", disabled=not confirm):
            failed = [r for r in (feeds.grid.delete(i) for i in selected) if not r]
            if failed:
                st.error(f"Delete failed: {failed[0].message}")
            else:
                st.session_state.pop("confirm_delete", None)
                _bump_grid()
                force_rerun()


def render_assignee_editor(feeds: LiveFeeds, visible: List[Task]):
    if not visible:
        return
    st.markdown("**Who**")
    by_id = {t.id: t for t in visible}
    task_id = st.selectbox("Task", list(by_id), key="who_task",
                           format_func=lambda i: by_id[i].project or "(untitled)")
    if task_id is None:
        return

    chips = feeds.grid.chips(task_id)
    if chips:
        cols = st.columns(min(len(chips), 4))
        for i, (token, label) in enumerate(chips):
            if cols[i % len(cols)].button(f"✕ {label}", key=f"chip_{task_id}_{token}"):
                outcome = feeds.grid.dismiss(task_id, token)
                if outcome.status is CommitStatus.FAILED:
                    st.error(f"Update failed: {outcome.message}")
                else:
                    _bump_grid()
                    force_rerun()
    else:
        st.caption("Nobody assigned.")

    search = st.text_input("Add someone", key=f"who_search_{task_id}", placeholder="Search name or (rubi)/(freelancer)/(staff)")
    options = feeds.grid.picker_options(task_id, search)
    for entry in options[:_PICKER_LIMIT]:
        if st.button(f"＋ {entry.label}", key=f"pick_{task_id}_{entry.token}"):
            outcome = feeds.grid.pick(task_id, entry.token)
            if outcome.status is CommitStatus.FAILED:
                st.error(f"Update failed: {outcome.message}")
            else:
                _bump_grid()
                force_rerun()
    if len(options) > _PICKER_LIMIT:
        st.caption(f"{len(options) - _PICKER_LIMIT} more; refine the search.")


def render_new_task(feeds: LiveFeeds):
    with st.expander("New task"):
        if not feeds.client_id:
            st.info("Select a client in the sidebar to add tasks.")
            return
        with st.form("new_task", clear_on_submit=True):
            c1, c2 = st.columns(2)
            project = c1.text_input("Project")
            area = c2.text_input("Area")
            brief = c1.text_input("Brief")
            content = c2.text_input("Content status")
            due = c1.date_input("Due", value=None, format="DD/MM/YYYY")
            complete_by = c2.date_input("Complete by", value=None, format="DD/MM/YYYY")
            progress = c1.selectbox("Progress", STATUS_OPTIONS, index=0)
            hours = c2.number_input("Hours", min_value=0.0, step=0.5, value=0.0)
            versions = c1.text_input("Versions", value="V1")
            link = c2.text_input("Drive link")
            notes = st.text_area("Notes")
            submitted = st.form_submit_button("Add task")
        if submitted:
            if not project.strip():
                st.warning("A task needs a project name.")
                return
            result = feeds.task_store.create({
                "project": project, "area": area, "brief_status": brief, "content_status": content,
                "due_date": due or "", "complete_by": complete_by or "", "progress_status": progress,
                "hours_allocated": hours, "versions": versions, "drive_link": link, "notes": notes,
                "date_logged": date.today(),
            }, client_id=feeds.client_id)
            if result:
                st.success("Task added")
                _bump_grid()
            else:
                st.error(f"Create failed: {result.message}")


def render_tasks_panel(feeds: LiveFeeds, special_view: Optional[SpecialView] = None) -> List[Task]:
    """Render the grid and return the visible (filtered, sorted) tasks."""
    st.subheader("Tasks")
    if special_view is not None:
        st.caption(f"View: {special_view.label}")
    flt, sort = render_filters(special_view)
    directory = feeds.directory()
    feeds.grid.set_directory(directory)
    visible = visible_tasks(feeds.grid.tasks, flt, sort, directory)

    render_new_task(feeds)
    render_task_grid(feeds, visible)
    render_assignee_editor(feeds, visible)
    return visible
