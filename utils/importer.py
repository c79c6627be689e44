# utils/importer.py
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pandas as pd

from models.task import parse_status
from utils.directory import AssigneeDirectory
from utils.formatting import to_iso
from utils.task_store import TaskStore, prepare_new_task

log = logging.getLogger(__name__)

# CSV header -> task field, as written by the report export
IMPORT_COLUMNS = {
    "Project": "project",
    "Brief": "brief_status",
    "Status": "internal_status",
    "Content Status": "content_status",
    "Notes": "notes",
    "Versions": "versions",
    "Area": "area",
    "Drive Link": "drive_link",
}
DATE_COLUMNS = {"Logged": "date_logged", "Due": "due_date", "Complete By": "complete_by"}


class ImportFileError(ValueError):
    """The file, or one of its rows, cannot be imported. Nothing was written."""


@dataclass
class ImportResult:
    inserted_count: int = 0
    warnings: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def __bool__(self):
        return self.ok


def read_rows(file) -> pd.DataFrame:
    try:
        df = pd.read_csv(file, dtype=str, keep_default_na=False, skip_blank_lines=True)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise ImportFileError(f"Could not read the file as CSV: {e}") from e
    df.columns = [str(c).strip() for c in df.columns]
    if "Project" not in df.columns:
        raise ImportFileError("The file has no 'Project' column.")
    return df


def _cell(row, column: str) -> str:
    value = row.get(column, "")
    return "" if value is None else str(value).strip()


def row_to_task(row, row_no: int, client_id: str, directory: AssigneeDirectory,
                unmatched: List[str]) -> Dict[str, Any]:
    partial: Dict[str, Any] = {name: _cell(row, col) for col, name in IMPORT_COLUMNS.items()}

    for col, name in DATE_COLUMNS.items():
        raw = _cell(row, col)
        try:
            partial[name] = to_iso(raw)
        except ValueError:
            raise ImportFileError(f"Row {row_no}: '{raw}' in {col} is not a date (use DD/MM/YYYY).") from None

    progress = _cell(row, "Progress")
    status = parse_status(progress) if progress else None
    if progress and status is None:
        raise ImportFileError(f"Row {row_no}: unknown Progress value '{progress}'.")
    partial["progress_status"] = status

    hours = _cell(row, "Hours")
    try:
        partial["hours_allocated"] = float(hours) if hours else 0.0
    except ValueError:
        raise ImportFileError(f"Row {row_no}: Hours '{hours}' is not a number.") from None
    if not math.isfinite(partial["hours_allocated"]):
        raise ImportFileError(f"Row {row_no}: Hours '{hours}' is not a number.")
    if partial["hours_allocated"] < 0:
        raise ImportFileError(f"Row {row_no}: Hours cannot be negative.")

    labels = [s.strip() for s in _cell(row, "Who").split(",") if s.strip()]
    partial["assignees"] = [directory.encode(label, client_id, unmatched) for label in labels]

    try:
        return prepare_new_task(partial, client_id)
    except ValueError as e:
        raise ImportFileError(f"Row {row_no}: {e}") from e


def import_file(file, target_client_id: Optional[str], task_store: TaskStore,
                directory: Optional[AssigneeDirectory] = None) -> ImportResult:
    """Import every row with a Project as a task of ``target_client_id``, all or nothing."""
    if not target_client_id:
        return ImportResult(error="Select a client before importing.")
    directory = (directory or AssigneeDirectory()).for_client(target_client_id)

    unmatched: List[str] = []
    try:
        df = read_rows(file)
        docs = []
        for i, row in enumerate(df.to_dict(orient="records")):
            if not _cell(row, "Project"):
                continue
            # header is line 1
            docs.append(row_to_task(row, i + 2, target_client_id, directory, unmatched))
    except ImportFileError as e:
        log.warning("import refused: %s", e)
        return ImportResult(error=f"{e} Nothing was imported.")

    if not docs:
        return ImportResult(error="The file has no rows with a Project. Nothing was imported.")

    result = task_store.batch_create(docs)
    if not result:
        return ImportResult(error=f"Import failed: {result.message} Nothing was imported.")

    warnings = [f"No match for '{label}'; it was kept as typed." for label in dict.fromkeys(unmatched)]
    log.info("imported %d task(s) into client %s (%d unmatched assignee label(s))",
             result.count, target_client_id, len(warnings))
    return ImportResult(inserted_count=result.count, warnings=warnings)
