# utils/grid.py
"""Inline-edit grid controller.

Holds the task rows the grid shows, runs the per-cell
Viewing -> Editing -> Viewing lifecycle and turns each committed cell into
exactly one ``TaskStore.update``. Store pushes (``set_tasks``) always
overwrite whatever the grid holds locally.
"""
import logging
import math
from dataclasses import dataclass, field as dc_field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from models.assignee import DirectoryEntry
from models.task import ProgressStatus, Task, parse_status
from utils.directory import AssigneeDirectory
from utils.formatting import display_date, format_hours, normalize_link, sentence_case, to_iso
from utils.task_store import TaskStore, WriteResult

log = logging.getLogger(__name__)

EMPTY_DATE = "--"
GONE_MESSAGE = "This task no longer exists."


class CellKind(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    STATUS = "status"
    LINK = "link"
    ASSIGNEES = "assignees"


# field -> (header, kind), in grid order
GRID_COLUMNS: Dict[str, Tuple[str, CellKind]] = {
    "project": ("Project", CellKind.TEXT),
    "brief_status": ("Brief", CellKind.TEXT),
    "internal_status": ("Status", CellKind.TEXT),
    "content_status": ("Content Status", CellKind.TEXT),
    "date_logged": ("Logged", CellKind.DATE),
    "due_date": ("Due", CellKind.DATE),
    "complete_by": ("Complete By", CellKind.DATE),
    "progress_status": ("Progress", CellKind.STATUS),
    "notes": ("Notes", CellKind.TEXT),
    "assignees": ("Who", CellKind.ASSIGNEES),
    "versions": ("Versions", CellKind.TEXT),
    "area": ("Area", CellKind.TEXT),
    "drive_link": ("Drive Link", CellKind.LINK),
    "hours_allocated": ("Hours", CellKind.NUMBER),
}


def cell_kind(field: str) -> CellKind:
    try:
        return GRID_COLUMNS[field][1]
    except KeyError:
        raise ValueError(f"{field!r} is not an editable grid column") from None


class CellValidationError(ValueError):
    pass


def parse_cell(kind: CellKind, raw: Any) -> Any:
    """Stored value for text typed into a cell. Raises CellValidationError."""
    if kind is CellKind.TEXT:
        return sentence_case(raw)
    if kind is CellKind.LINK:
        return normalize_link(raw)
    if kind is CellKind.NUMBER:
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            return 0.0
        try:
            value = float(raw)
        except (TypeError, ValueError):
            raise CellValidationError(f"{raw!r} is not a number") from None
        if not math.isfinite(value) or value < 0:
            raise CellValidationError("Hours must be zero or more")
        return value
    if kind is CellKind.DATE:
        if raw is None or str(raw).strip() in ("", EMPTY_DATE):
            return ""
        try:
            return to_iso(raw)
        except ValueError:
            raise CellValidationError(f"{raw!r} is not a date (use DD/MM/YYYY)") from None
    if kind is CellKind.STATUS:
        status = parse_status(raw)
        if status is None:
            raise CellValidationError(f"{raw!r} is not a progress status")
        return status
    raise CellValidationError("Assignees are edited through the picker")


def format_cell(kind: CellKind, value: Any) -> str:
    if kind is CellKind.DATE:
        return display_date(value) or EMPTY_DATE
    if kind is CellKind.NUMBER:
        return format_hours(value)
    if kind is CellKind.STATUS:
        return value.value if isinstance(value, ProgressStatus) else str(value or "")
    return "" if value is None else str(value)


class CellMode(str, Enum):
    VIEWING = "viewing"
    EDITING = "editing"


@dataclass
class CellState:
    task_id: str
    field: str
    mode: CellMode = CellMode.VIEWING
    snapshot: Any = None
    draft: Any = None


class CommitStatus(str, Enum):
    COMMITTED = "committed"
    UNCHANGED = "unchanged"
    REJECTED = "rejected"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class CommitOutcome:
    status: CommitStatus
    task_id: str
    field: str
    value: Any = None
    message: str = ""

    def __bool__(self):
        return self.status is CommitStatus.COMMITTED


@dataclass
class _Row:
    task: Task
    cells: Dict[str, CellState] = dc_field(default_factory=dict)


class GridController:
    def __init__(self, task_store: TaskStore, directory: Optional[AssigneeDirectory] = None):
        self.task_store = task_store
        self.directory = directory or AssigneeDirectory()
        self._rows: Dict[str, _Row] = {}
        self._order: List[str] = []
        self._selected: Set[str] = set()

    # ---- data ----
    def set_tasks(self, tasks: Iterable[Task]) -> None:
        """Replace local state with a store delivery. Open edits on vanished rows are dropped."""
        rows = {}
        order = []
        for t in tasks:
            if not t.id:
                continue
            old = self._rows.get(t.id)
            rows[t.id] = _Row(task=t, cells=old.cells if old else {})
            order.append(t.id)
        self._rows = rows
        self._order = order
        self._selected &= set(rows)

    def set_directory(self, directory: AssigneeDirectory) -> None:
        self.directory = directory

    @property
    def tasks(self) -> List[Task]:
        return [self._rows[i].task for i in self._order]

    def task(self, task_id: str) -> Task:
        try:
            return self._rows[task_id].task
        except KeyError:
            raise KeyError(f"unknown task {task_id}") from None

    # ---- cell lifecycle ----
    def cell(self, task_id: str, field: str) -> CellState:
        row = self._rows[task_id]
        state = row.cells.get(field)
        if state is None:
            state = row.cells[field] = CellState(task_id, field)
        return state

    def begin_edit(self, task_id: str, field: str) -> CellState:
        cell_kind(field)
        state = self.cell(task_id, field)
        current = getattr(self.task(task_id), field)
        state.mode = CellMode.EDITING
        state.snapshot = list(current) if isinstance(current, list) else current
        state.draft = None
        return state

    def set_draft(self, task_id: str, field: str, raw: Any) -> None:
        state = self.cell(task_id, field)
        if state.mode is not CellMode.EDITING:
            raise RuntimeError(f"{field} of task {task_id} is not being edited")
        state.draft = raw

    def cancel_edit(self, task_id: str, field: str) -> CommitOutcome:
        state = self.cell(task_id, field)
        state.mode = CellMode.VIEWING
        state.draft = None
        return CommitOutcome(CommitStatus.CANCELLED, task_id, field, state.snapshot)

    def _gone(self, task_id: str, field: str) -> CommitOutcome:
        log.info("edit of %s on task %s dropped: task was removed", field, task_id)
        return CommitOutcome(CommitStatus.FAILED, task_id, field, None, GONE_MESSAGE)

    def commit_edit(self, task_id: str, field: str) -> CommitOutcome:
        if task_id not in self._rows:
            return self._gone(task_id, field)
        state = self.cell(task_id, field)
        if state.mode is not CellMode.EDITING:
            return CommitOutcome(CommitStatus.UNCHANGED, task_id, field, getattr(self.task(task_id), field))
        kind = cell_kind(field)
        snapshot, raw = state.snapshot, state.draft
        state.mode = CellMode.VIEWING
        state.draft = None

        if raw is None:
            return CommitOutcome(CommitStatus.UNCHANGED, task_id, field, snapshot)

        if kind is CellKind.ASSIGNEES:
            token = str(raw)
            new = [t for t in snapshot if t != token] if token in snapshot else snapshot + [token]
            return self._write(task_id, field, new)

        # the text shown in the cell, retyped as-is
        if isinstance(raw, str) and raw == format_cell(kind, snapshot):
            return CommitOutcome(CommitStatus.UNCHANGED, task_id, field, snapshot)
        try:
            value = parse_cell(kind, raw)
        except CellValidationError as e:
            log.info("rejected %s on task %s: %s", field, task_id, e)
            return CommitOutcome(CommitStatus.REJECTED, task_id, field, snapshot, str(e))
        if value == snapshot:
            return CommitOutcome(CommitStatus.UNCHANGED, task_id, field, snapshot)
        return self._write(task_id, field, value)

    def commit_value(self, task_id: str, field: str, raw: Any) -> CommitOutcome:
        """Edit, set and commit in one step (what a grid widget change amounts to)."""
        if task_id not in self._rows:
            return self._gone(task_id, field)
        self.begin_edit(task_id, field)
        self.set_draft(task_id, field, raw)
        return self.commit_edit(task_id, field)

    def _write(self, task_id: str, field: str, value: Any) -> CommitOutcome:
        row = self._rows.get(task_id)
        if row is None:
            return self._gone(task_id, field)
        previous = row.task
        optimistic = row.task = previous.model_copy(update={field: value})
        result: WriteResult = self.task_store.update(task_id, {field: value})
        if not result:
            # revert only our own value, never a newer push
            current = self._rows.get(task_id)
            if current is not None and current.task is optimistic:
                current.task = previous
            return CommitOutcome(CommitStatus.FAILED, task_id, field, getattr(previous, field), result.message)
        current = self._rows[task_id].task if task_id in self._rows else row.task
        return CommitOutcome(CommitStatus.COMMITTED, task_id, field, getattr(current, field))

    def display_value(self, task: Task, field: str) -> str:
        kind = cell_kind(field)
        value = getattr(task, field)
        if kind is CellKind.ASSIGNEES:
            return ", ".join(self.directory.resolve_all(value, task.client_id))
        return format_cell(kind, value)

    # ---- assignees ----
    def chips(self, task_id: str) -> List[Tuple[str, str]]:
        """(token, label) per assignee, in stored order."""
        t = self.task(task_id)
        return [(tok, self.directory.resolve(tok, t.client_id)) for tok in t.assignees]

    def toggle_assignee(self, task_id: str, token: str) -> CommitOutcome:
        if task_id not in self._rows:
            return self._gone(task_id, "assignees")
        self.begin_edit(task_id, "assignees")
        self.set_draft(task_id, "assignees", token)
        return self.commit_edit(task_id, "assignees")

    def pick(self, task_id: str, token: str) -> CommitOutcome:
        if task_id not in self._rows:
            return self._gone(task_id, "assignees")
        if token in self.task(task_id).assignees:
            return CommitOutcome(CommitStatus.UNCHANGED, task_id, "assignees", self.task(task_id).assignees)
        return self.toggle_assignee(task_id, token)

    def dismiss(self, task_id: str, token: str) -> CommitOutcome:
        if task_id not in self._rows:
            return self._gone(task_id, "assignees")
        if token not in self.task(task_id).assignees:
            return CommitOutcome(CommitStatus.UNCHANGED, task_id, "assignees", self.task(task_id).assignees)
        return self.toggle_assignee(task_id, token)

    def picker_options(self, task_id: str, search: str = "") -> List[DirectoryEntry]:
        t = self.task(task_id)
        return self.directory.for_client(t.client_id).search(search, exclude=t.assignees)

    # ---- rows ----
    def delete(self, task_id: str) -> WriteResult:
        result = self.task_store.delete(task_id)
        if result:
            self._selected.discard(task_id)
        return result

    # ---- selection ----
    def select(self, task_id: str) -> None:
        if task_id in self._rows:
            self._selected.add(task_id)

    def deselect(self, task_id: str) -> None:
        self._selected.discard(task_id)

    def toggle_select(self, task_id: str) -> None:
        if task_id in self._selected:
            self.deselect(task_id)
        else:
            self.select(task_id)

    def is_selected(self, task_id: str) -> bool:
        return task_id in self._selected

    def toggle_select_all(self, visible_ids: Sequence[str]) -> None:
        """Select every visible row, or clear them when all are already selected."""
        visible = [i for i in visible_ids if i in self._rows]
        if visible and all(i in self._selected for i in visible):
            self._selected.difference_update(visible)
        else:
            self._selected.update(visible)

    def clear_selection(self) -> None:
        self._selected.clear()

    def selected_ids(self) -> List[str]:
        """Selected ids in row order."""
        return [i for i in self._order if i in self._selected]

    def selected_tasks(self) -> List[Task]:
        return [self._rows[i].task for i in self.selected_ids()]
