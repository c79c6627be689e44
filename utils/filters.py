# utils/filters.py
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import FrozenSet, List, Optional, Sequence

from models.task import ProgressStatus, STATUS_PRIORITY, Task
from utils.directory import AssigneeDirectory
from utils.formatting import display_date, today_iso


class SpecialView(str, Enum):
    OVERDUE = "overdue"
    TODAY = "today"
    UNASSIGNED = "unassigned"
    ASSIGNED_IN_PROGRESS = "assigned_in_progress"

    @property
    def label(self) -> str:
        return {
            SpecialView.OVERDUE: "Overdue",
            SpecialView.TODAY: "Due today",
            SpecialView.UNASSIGNED: "Unassigned",
            SpecialView.ASSIGNED_IN_PROGRESS: "Assigned & open",
        }[self]


class SortKey(str, Enum):
    DUE_ASC = "due_date_soonest"
    DUE_DESC = "due_date_latest"
    LOGGED_DESC = "date_logged_newest"
    LOGGED_ASC = "date_logged_oldest"
    STATUS = "status"
    ASSIGNEE = "who"
    AREA = "area"
    HOURS = "hours"

    @property
    def label(self) -> str:
        return {
            SortKey.DUE_ASC: "Due date (soonest)",
            SortKey.DUE_DESC: "Due date (latest)",
            SortKey.LOGGED_DESC: "Date logged (newest)",
            SortKey.LOGGED_ASC: "Date logged (oldest)",
            SortKey.STATUS: "Status",
            SortKey.ASSIGNEE: "Who",
            SortKey.AREA: "Area",
            SortKey.HOURS: "Hours (most first)",
        }[self]


@dataclass
class TaskFilter:
    statuses: FrozenSet[ProgressStatus] = field(default_factory=frozenset)
    search: str = ""
    special_view: Optional[SpecialView] = None


def matches_special_view(task: Task, view: SpecialView, today: str) -> bool:
    if task.is_complete:
        return False
    if view is SpecialView.OVERDUE:
        return bool(task.due_date) and task.due_date < today
    if view is SpecialView.TODAY:
        return task.due_date == today
    if view is SpecialView.UNASSIGNED:
        return not task.assignees
    return bool(task.assignees)


def matches_search(task: Task, needle: str, directory: AssigneeDirectory) -> bool:
    needle = needle.strip().casefold()
    if not needle:
        return True
    haystack = [task.project, task.notes, task.area, task.due_date, display_date(task.due_date)]
    haystack += directory.resolve_all(task.assignees, task.client_id)
    return any(needle in (h or "").casefold() for h in haystack)


def filter_tasks(tasks: Sequence[Task], flt: TaskFilter, directory: Optional[AssigneeDirectory] = None,
                 today: Optional[date] = None) -> List[Task]:
    directory = directory or AssigneeDirectory()
    now = today_iso(today)
    out = []
    for t in tasks:
        if flt.special_view is not None:
            if not matches_special_view(t, flt.special_view, now):
                continue
        elif flt.statuses and t.progress_status not in flt.statuses:
            continue
        if flt.search and not matches_search(t, flt.search, directory):
            continue
        out.append(t)
    return out


def _present_last(tasks, attr, reverse):
    # empty values stay at the end whichever way the rest is ordered
    present = [t for t in tasks if getattr(t, attr)]
    missing = [t for t in tasks if not getattr(t, attr)]
    return sorted(present, key=lambda t: getattr(t, attr), reverse=reverse) + missing


def sort_tasks(tasks: Sequence[Task], key: SortKey, directory: Optional[AssigneeDirectory] = None) -> List[Task]:
    """Stable sort; ties keep store order."""
    tasks = list(tasks)
    if key is SortKey.DUE_ASC:
        return _present_last(tasks, "due_date", False)
    if key is SortKey.DUE_DESC:
        return _present_last(tasks, "due_date", True)
    if key is SortKey.LOGGED_DESC:
        return _present_last(tasks, "date_logged", True)
    if key is SortKey.LOGGED_ASC:
        return _present_last(tasks, "date_logged", False)
    if key is SortKey.STATUS:
        return sorted(tasks, key=lambda t: STATUS_PRIORITY[t.progress_status])
    if key is SortKey.ASSIGNEE:
        directory = directory or AssigneeDirectory()
        # unassigned rows last
        keyed = [(directory.first_name_key(t.assignees, t.client_id), t) for t in tasks]
        return [t for _, t in sorted(keyed, key=lambda kt: (kt[0] is None, kt[0] or ""))]
    if key is SortKey.AREA:
        return sorted(tasks, key=lambda t: (not t.area, t.area.casefold()))
    if key is SortKey.HOURS:
        return sorted(tasks, key=lambda t: -t.hours_allocated)
    raise ValueError(f"unknown sort key {key!r}")


def visible_tasks(tasks: Sequence[Task], flt: TaskFilter, key: SortKey = SortKey.DUE_ASC,
                  directory: Optional[AssigneeDirectory] = None, today: Optional[date] = None) -> List[Task]:
    return sort_tasks(filter_tasks(tasks, flt, directory, today), key, directory)
