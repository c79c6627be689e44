# tests/test_importer.py
import io
from datetime import date

import db
from db import Query, StoreError
from models.report_config import ReportConfig, ReportFormat
from utils.importer import import_file
from utils.report import generate_report
from utils.task_store import TaskStore, WriteResult

TODAY = date(2024, 2, 1)


def _csv(text: str) -> io.BytesIO:
    return io.BytesIO(text.encode("utf-8"))


def _tasks(task_store, client_id):
    seen = []
    task_store.subscribe(client_id, seen.append).unsubscribe()
    return seen[-1]


def test_export_then_import_round_trip(task_store, directory):
    task_store.create({"project": "Brochure", "area": "Print", "hours_allocated": 2.5, "due_date": "2024-01-10",
                       "assignees": ["rubi:s1", "staff:pat@acme.com"], "notes": "Two, with comma"}, client_id="c1")
    task_store.create({"project": "Site", "area": "Digital", "hours_allocated": 0,
                       "assignees": ["freelancer:f1", "rubi:gone"]}, client_id="c1")
    originals = _tasks(task_store, "c1")

    exported = generate_report(originals, ReportConfig(output_format=ReportFormat.CSV), directory, today=TODAY)
    assert exported

    result = import_file(io.BytesIO(exported.data), "c1", task_store, directory)
    assert result.ok, result.error
    assert result.inserted_count == 2
    assert result.warnings == []

    copies = _tasks(task_store, "c1")[len(originals):]

    def names(t):
        return directory.resolve_all(t.assignees, "c1")

    assert [(t.project, t.area, t.hours_allocated, names(t)) for t in copies] == \
        [(t.project, t.area, t.hours_allocated, names(t)) for t in originals]
    assert copies[0].due_date == "2024-01-10"
    assert copies[0].notes == "Two, with comma"


def test_same_client_round_trip_keeps_tokens(task_store, directory):
    task_store.create({"project": "Banner", "assignees": ["staff:sam@acme.com", "rubi:s2"]}, client_id="c1")
    originals = _tasks(task_store, "c1")
    exported = generate_report(originals, ReportConfig(output_format=ReportFormat.CSV), directory, today=TODAY)
    assert import_file(io.BytesIO(exported.data), "c1", task_store, directory).inserted_count == 1
    assert _tasks(task_store, "c1")[1].assignees == ["staff:sam@acme.com", "rubi:s2"]


def test_missing_columns_default(task_store, directory):
    result = import_file(_csv("Project,Area,Colour\nposter,Print,red\n"), "c1", task_store, directory)
    assert result.inserted_count == 1
    t = _tasks(task_store, "c1")[0]
    assert t.project == "Poster"
    assert t.due_date == ""
    assert t.date_logged == ""
    assert t.progress_status.value == "Not Started"
    assert t.versions == "V1"
    assert t.hours_allocated == 0
    assert t.assignees == []


def test_rows_without_project_are_skipped_and_dates_parse(task_store, directory):
    text = "Project,Due,Progress,Hours\nFirst,10/01/2024,In Progress,3\n,11/01/2024,,\nSecond,2024-01-12,,\n"
    result = import_file(_csv(text), "c1", task_store, directory)
    assert result.inserted_count == 2
    first, second = _tasks(task_store, "c1")
    assert first.due_date == "2024-01-10"
    assert first.progress_status.value == "In Progress"
    assert first.hours_allocated == 3
    assert second.due_date == "2024-01-12"


def test_bad_row_aborts_whole_import(store, task_store, directory):
    text = "Project,Hours\nGood,1\nBad,lots\n"
    result = import_file(_csv(text), "c1", task_store, directory)
    assert not result
    assert "Row 3" in result.error and "Nothing was imported" in result.error
    assert store.query(Query(db.TASKS)) == []

    bad_date = import_file(_csv("Project,Due\nX,31/31/2024\n"), "c1", task_store, directory)
    assert not bad_date and "Due" in bad_date.error
    bad_status = import_file(_csv("Project,Progress\nX,maybe\n"), "c1", task_store, directory)
    assert not bad_status
    assert store.query(Query(db.TASKS)) == []


def test_batch_failure_inserts_nothing(store, directory):
    class FailingTaskStore(TaskStore):
        def batch_create(self, docs):
            return WriteResult(False, error=StoreError("write quota exceeded"))

    result = import_file(_csv("Project\nA\nB\n"), "c1", FailingTaskStore(store), directory)
    assert not result
    assert "write quota exceeded" in result.error
    assert store.query(Query(db.TASKS)) == []


def test_no_client_is_refused(task_store, directory):
    result = import_file(_csv("Project\nA\n"), None, task_store, directory)
    assert not result and "client" in result.error.lower()


def test_unmatched_labels_warn_but_import_proceeds(task_store, directory):
    text = 'Project,Who\nA,"Nobody (rubi), A. Lee (rubi), Plain Name"\n'
    result = import_file(_csv(text), "c1", task_store, directory)
    assert result.inserted_count == 1
    assert len(result.warnings) == 1 and "Nobody (rubi)" in result.warnings[0]
    assert _tasks(task_store, "c1")[0].assignees == ["rubi:Nobody", "rubi:s1", "Plain Name"]


def test_unreadable_file(task_store, directory):
    result = import_file(_csv(""), "c1", task_store, directory)
    assert not result
    result = import_file(_csv("Name\nx\n"), "c1", task_store, directory)
    assert not result and "Project" in result.error


def test_non_finite_hours_abort_import(store, task_store, directory):
    result = import_file(_csv("Project,Hours\nA,1\nB,inf\n"), "c1", task_store, directory)
    assert not result
    assert "Row 3" in result.error
    assert store.query(Query(db.TASKS)) == []
