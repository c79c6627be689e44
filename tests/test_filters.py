# tests/test_filters.py
from datetime import date

from models.task import ProgressStatus, Task
from utils.filters import SortKey, SpecialView, TaskFilter, filter_tasks, sort_tasks, visible_tasks

TODAY = date(2024, 2, 1)
NS, IP, DONE = ProgressStatus.NOT_STARTED, ProgressStatus.IN_PROGRESS, ProgressStatus.COMPLETE


def _task(tid, **kw):
    kw.setdefault("client_id", "c1")
    return Task(id=tid, **kw)


def _ids(tasks):
    return [t.id for t in tasks]


def sample():
    return [
        _task("late", project="Brochure", due_date="2024-01-10", progress_status=NS),
        _task("today", project="Banner", due_date="2024-02-01", progress_status=IP, assignees=["rubi:s1"]),
        _task("done", project="Logo", due_date="2024-01-05", progress_status=DONE, assignees=["rubi:s2"]),
        _task("nodate", project="Website", area="Digital", notes="Needs copy", assignees=["freelancer:f1"]),
    ]


def test_special_views(directory):
    tasks = sample()

    def view(v):
        return _ids(filter_tasks(tasks, TaskFilter(special_view=v), directory, TODAY))

    assert view(SpecialView.OVERDUE) == ["late"]
    assert view(SpecialView.TODAY) == ["today"]
    assert view(SpecialView.UNASSIGNED) == ["late"]
    assert view(SpecialView.ASSIGNED_IN_PROGRESS) == ["today", "nodate"]


def test_special_view_replaces_status_filter_but_composes_with_search(directory):
    flt = TaskFilter(statuses=frozenset({DONE}), special_view=SpecialView.ASSIGNED_IN_PROGRESS, search="web")
    assert _ids(filter_tasks(sample(), flt, directory, TODAY)) == ["nodate"]


def test_status_filter_empty_means_all(directory):
    assert len(filter_tasks(sample(), TaskFilter(), directory, TODAY)) == 4
    flt = TaskFilter(statuses=frozenset({NS, DONE}))
    assert _ids(filter_tasks(sample(), flt, directory, TODAY)) == ["late", "done", "nodate"]


def test_search_fields(directory):
    def hits(text):
        return _ids(filter_tasks(sample(), TaskFilter(search=text), directory, TODAY))

    assert hits("BANNER") == ["today"]
    assert hits("needs") == ["nodate"]
    assert hits("digital") == ["nodate"]
    assert hits("10/01/2024") == ["late"]
    assert hits("2024-01-05") == ["done"]
    assert hits("a. lee") == ["today"]
    assert hits("(freelancer)") == ["nodate"]


def test_due_sorts_keep_empty_last(directory):
    assert _ids(sort_tasks(sample(), SortKey.DUE_ASC)) == ["done", "late", "today", "nodate"]
    assert _ids(sort_tasks(sample(), SortKey.DUE_DESC)) == ["today", "late", "done", "nodate"]


def test_logged_sorts():
    tasks = [_task("a", date_logged="2024-01-02"), _task("b"), _task("c", date_logged="2024-01-03")]
    assert _ids(sort_tasks(tasks, SortKey.LOGGED_DESC)) == ["c", "a", "b"]
    assert _ids(sort_tasks(tasks, SortKey.LOGGED_ASC)) == ["a", "c", "b"]


def test_status_sort_is_stable():
    tasks = [_task("d1", progress_status=DONE), _task("n1", progress_status=NS),
             _task("i1", progress_status=IP), _task("n2", progress_status=NS)]
    assert _ids(sort_tasks(tasks, SortKey.STATUS)) == ["n1", "n2", "i1", "d1"]


def test_who_area_hours_sorts(directory):
    tasks = sample()
    assert _ids(sort_tasks(tasks, SortKey.ASSIGNEE, directory)) == ["today", "done", "nodate", "late"]
    assert _ids(sort_tasks(tasks, SortKey.AREA))[0] == "nodate"
    hours = [_task("a", hours_allocated=1), _task("b", hours_allocated=5), _task("c", hours_allocated=1)]
    assert _ids(sort_tasks(hours, SortKey.HOURS)) == ["b", "a", "c"]


def test_visible_tasks_filters_then_sorts(directory):
    flt = TaskFilter(statuses=frozenset({NS, IP}))
    assert _ids(visible_tasks(sample(), flt, SortKey.DUE_DESC, directory, TODAY)) == ["today", "late", "nodate"]
