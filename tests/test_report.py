# tests/test_report.py
import io
from datetime import date, datetime

import pandas as pd

from models.report_config import REPORT_COLUMNS, DateBasis, ReportConfig, ReportFormat
from models.task import ProgressStatus, Task
from utils.report import (
    base_scope, filter_for_report, generate_report, group_and_sort, report_filename, summarize,
)

TODAY = date(2024, 2, 1)
NS, IP, DONE = ProgressStatus.NOT_STARTED, ProgressStatus.IN_PROGRESS, ProgressStatus.COMPLETE


def _task(tid, **kw):
    kw.setdefault("client_id", "c1")
    return Task(id=tid, **kw)


def only(**flags):
    base = dict(include_complete=False, include_in_progress=False, include_not_started=False, include_overdue=False)
    base.update(flags)
    return base


def test_overdue_scenario():
    t = _task("t", project="Late", due_date="2024-01-10", progress_status=NS)
    cfg = ReportConfig(**only(include_overdue=True))
    assert filter_for_report([t], cfg, TODAY) == [t]
    assert summarize([t], TODAY).overdue_count == 1


def test_status_categories_are_inclusive_or_without_duplicates():
    late = _task("late", due_date="2024-01-10", progress_status=NS)
    fresh = _task("fresh", due_date="2024-03-01", progress_status=NS)
    busy = _task("busy", due_date="2024-01-01", progress_status=IP)
    done = _task("done", due_date="2024-01-01", progress_status=DONE)
    tasks = [late, fresh, busy, done]

    assert filter_for_report(tasks, ReportConfig(**only(include_overdue=True)), TODAY) == [late, busy]
    both = ReportConfig(**only(include_overdue=True, include_in_progress=True))
    assert filter_for_report(tasks, both, TODAY) == [late, busy]
    assert filter_for_report(tasks, ReportConfig(**only()), TODAY) == []


def test_start_after_end_is_empty_and_refused():
    t = _task("t", project="x", due_date="2024-01-10")
    cfg = ReportConfig(start_date=date(2024, 2, 1), end_date=date(2024, 1, 1))
    assert filter_for_report([t], cfg, TODAY) == []
    result = generate_report([t], cfg, today=TODAY)
    assert not result
    assert result.data is None and result.message


def test_date_range_is_inclusive_on_chosen_basis():
    a = _task("a", due_date="2024-01-01", date_logged="2023-12-01")
    b = _task("b", due_date="2024-01-31")
    c = _task("c", due_date="2024-02-01")
    d = _task("d")
    cfg = ReportConfig(start_date=date(2024, 1, 1), end_date=date(2024, 1, 31))
    assert filter_for_report([a, b, c, d], cfg, TODAY) == [a, b]

    logged = ReportConfig(date_basis=DateBasis.DATE_LOGGED, start_date=date(2023, 12, 1), end_date=date(2023, 12, 1))
    assert filter_for_report([a, b, c, d], logged, TODAY) == [a]
    assert filter_for_report([a, b, c, d], ReportConfig(), TODAY) == [a, b, c, d]


def test_grouping_precedence_area_then_assignee_then_project_then_due(directory):
    tasks = [
        _task("1", area="Print", project="B", due_date="2024-03-01", assignees=["rubi:s2"]),
        _task("2", area="Digital", project="Z", due_date="2024-01-01", assignees=["rubi:s2"]),
        _task("3", area="Print", project="A", due_date="2024-02-01", assignees=["rubi:s2"]),
        _task("4", area="Print", project="C", due_date="2024-01-01", assignees=["rubi:s1"]),
        _task("5", area="Print", project="A", due_date="2024-01-15", assignees=["rubi:s2"]),
    ]
    cfg = ReportConfig(group_by_area=True, group_by_assignee=True, group_by_project=True)
    assert [t.id for t in group_and_sort(tasks, cfg, directory)] == ["2", "4", "5", "3", "1"]

    by_project = ReportConfig(group_by_project=True)
    assert [t.id for t in group_and_sort(tasks, by_project, directory)] == ["5", "3", "1", "4", "2"]
    assert group_and_sort(tasks, ReportConfig(), directory) == tasks


def test_summary_counts_and_hours_per_observed_status():
    tasks = [_task("a", progress_status=NS, hours_allocated=2), _task("b", progress_status=DONE, hours_allocated=1.5),
             _task("c", progress_status=NS, hours_allocated=1)]
    s = summarize(tasks, TODAY)
    assert s.total_count == 3
    assert s.total_hours == 4.5
    assert [(x.status, x.count, x.hours) for x in s.by_status] == [(NS, 2, 3.0), (DONE, 1, 1.5)]
    assert s.overdue_count == 0


def test_columns_follow_canonical_order_and_content_flags():
    cfg = ReportConfig(columns=["Hours", "Project", "Notes", "Drive Link"], include_links=False)
    assert cfg.output_columns() == ["Project", "Notes", "Hours"]
    assert ReportConfig(include_notes=False).output_columns() == [c for c in REPORT_COLUMNS if c != "Notes"]


def test_csv_output(directory):
    tasks = [_task("a", project="Site, phase 2", due_date="2024-01-10", hours_allocated=12,
                   assignees=["rubi:s1", "freelancer:f1"], notes="line one\nline two")]
    cfg = ReportConfig(output_format=ReportFormat.CSV, columns=["Who", "Project", "Due", "Hours", "Notes"])
    result = generate_report(tasks, cfg, directory, today=TODAY)
    assert result
    assert result.mime == "text/csv"
    assert result.filename == "agency_to_do_list_2024-02-01.csv"

    df = pd.read_csv(io.BytesIO(result.data), dtype=str, keep_default_na=False)
    assert list(df.columns) == ["Project", "Due", "Notes", "Who", "Hours"]
    row = df.iloc[0]
    assert row["Project"] == "Site, phase 2"
    assert row["Due"] == "10/01/2024"
    assert row["Notes"] == "line one\nline two"
    assert row["Who"] == "A. Lee (rubi), Dana Ruiz (freelancer)"
    assert row["Hours"] == "12"


def test_pdf_output(directory):
    tasks = [_task(str(i), project=f"Task {i}", due_date="2024-01-10", notes="<b>& more</b>") for i in range(80)]
    cfg = ReportConfig(title="Weekly Status", group_by_area=True)
    result = generate_report(tasks, cfg, directory, scope_label="Client: Acme", today=TODAY,
                             generated_at=datetime(2024, 2, 1, 9, 30))
    assert result
    assert result.mime == "application/pdf"
    assert result.data.startswith(b"%PDF")
    assert result.filename == "weekly_status_2024-02-01.pdf"
    assert result.row_count == 80


def test_empty_result_is_refused():
    result = generate_report([_task("a", progress_status=DONE)], ReportConfig(**only(include_not_started=True)),
                             today=TODAY)
    assert not result
    assert "No tasks" in result.message
    assert result.data is None


def test_base_scope_prefers_selection():
    visible = [_task("a"), _task("b")]
    assert base_scope(visible, []) == visible
    assert base_scope(visible, [visible[1]]) == [visible[1]]


def test_report_filename():
    assert report_filename("  Agency  To Do List ", ReportFormat.PDF, TODAY) == "agency_to_do_list_2024-02-01.pdf"
    assert report_filename("", ReportFormat.CSV, TODAY) == "report_2024-02-01.csv"
