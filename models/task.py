# models/task.py
from sqlmodel import SQLModel, Field
from typing import Optional, List
from datetime import datetime
from enum import Enum


class ProgressStatus(str, Enum):
    NOT_STARTED = "Not Started"
    IN_PROGRESS = "In Progress"
    COMPLETE = "Complete"


STATUS_ORDER = [ProgressStatus.NOT_STARTED, ProgressStatus.IN_PROGRESS, ProgressStatus.COMPLETE]

STATUS_PRIORITY = {s: i for i, s in enumerate(STATUS_ORDER)}

# legacy and loose spellings seen in older documents and hand-made CSVs
STATUS_SYNONYMS = {
    "not started": ProgressStatus.NOT_STARTED,
    "notstarted": ProgressStatus.NOT_STARTED,
    "no": ProgressStatus.NOT_STARTED,
    "todo": ProgressStatus.NOT_STARTED,
    "to-do": ProgressStatus.NOT_STARTED,
    "to do": ProgressStatus.NOT_STARTED,
    "in progress": ProgressStatus.IN_PROGRESS,
    "in-progress": ProgressStatus.IN_PROGRESS,
    "inprogress": ProgressStatus.IN_PROGRESS,
    "yes": ProgressStatus.IN_PROGRESS,
    "complete": ProgressStatus.COMPLETE,
    "completed": ProgressStatus.COMPLETE,
    "done": ProgressStatus.COMPLETE,
}


def parse_status(value) -> Optional[ProgressStatus]:
    """Canonical status for `value`, or None when it is not recognised."""
    if isinstance(value, ProgressStatus):
        return value
    if value is None:
        return None
    return STATUS_SYNONYMS.get(str(value).strip().lower())


TEXT_FIELDS = ("project", "brief_status", "internal_status", "content_status", "notes", "area", "versions")
DATE_FIELDS = ("date_logged", "due_date", "complete_by")


class Task(SQLModel):
    id: Optional[str] = None
    client_id: str
    project: str = ""
    brief_status: str = ""
    internal_status: str = ""
    content_status: str = ""
    date_logged: str = ""
    due_date: str = ""
    complete_by: str = ""
    progress_status: ProgressStatus = ProgressStatus.NOT_STARTED
    notes: str = ""
    assignees: List[str] = Field(default_factory=list)
    versions: str = "V1"
    area: str = ""
    drive_link: str = ""
    hours_allocated: float = Field(default=0.0, ge=0)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_complete(self) -> bool:
        return self.progress_status == ProgressStatus.COMPLETE

    def is_overdue(self, today_iso: str) -> bool:
        return bool(self.due_date) and self.due_date < today_iso and not self.is_complete


# fields a grid commit or an import may write
EDITABLE_FIELDS = TEXT_FIELDS + DATE_FIELDS + ("progress_status", "assignees", "drive_link", "hours_allocated")
