# models/report_config.py
from sqlmodel import SQLModel, Field
from typing import Optional, List
from datetime import date
from enum import Enum

# canonical column order; also the CSV header the importer expects
REPORT_COLUMNS = [
    "Project", "Brief", "Status", "Content Status", "Logged", "Due", "Complete By",
    "Progress", "Notes", "Who", "Versions", "Area", "Drive Link", "Hours",
]

COLUMN_FIELDS = {
    "Project": "project",
    "Brief": "brief_status",
    "Status": "internal_status",
    "Content Status": "content_status",
    "Logged": "date_logged",
    "Due": "due_date",
    "Complete By": "complete_by",
    "Progress": "progress_status",
    "Notes": "notes",
    "Who": "assignees",
    "Versions": "versions",
    "Area": "area",
    "Drive Link": "drive_link",
    "Hours": "hours_allocated",
}


class DateBasis(str, Enum):
    DUE_DATE = "due_date"
    DATE_LOGGED = "date_logged"


class ReportFormat(str, Enum):
    PDF = "PDF"
    CSV = "CSV"


class ReportConfig(SQLModel):
    title: str = "Agency To Do List"
    date_basis: DateBasis = DateBasis.DUE_DATE
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    include_complete: bool = True
    include_in_progress: bool = True
    include_not_started: bool = True
    include_overdue: bool = False

    group_by_area: bool = False
    group_by_assignee: bool = False
    group_by_project: bool = False

    include_notes: bool = True
    include_links: bool = True
    include_hours_total: bool = True
    include_status_totals: bool = True

    columns: List[str] = Field(default_factory=lambda: list(REPORT_COLUMNS))
    output_format: ReportFormat = ReportFormat.PDF
    landscape: bool = True
    include_chart: bool = False

    def output_columns(self) -> List[str]:
        """Selected columns in canonical order, minus those the content flags drop."""
        chosen = set(self.columns)
        if not self.include_notes:
            chosen.discard("Notes")
        if not self.include_links:
            chosen.discard("Drive Link")
        return [c for c in REPORT_COLUMNS if c in chosen]

    @property
    def any_status_category(self) -> bool:
        return self.include_complete or self.include_in_progress or self.include_not_started or self.include_overdue
