# utils/task_store.py
"""Task store adapter.

The only place that sees raw task documents. Everything it hands out is a
canonical ``Task``; legacy key names, string assignee lists and status
synonyms never get past ``normalize_task``.
"""
import logging
import math
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from pydantic import ValidationError

import db
from db import Query, SERVER_TIMESTAMP, StoreError, Subscription
from models.task import DATE_FIELDS, EDITABLE_FIELDS, ProgressStatus, Task, TEXT_FIELDS, parse_status
from utils.formatting import normalize_link, sentence_case, to_iso, today_iso

log = logging.getLogger(__name__)

_ASSIGNEE_SPLIT_RE = re.compile(r",|\n|&| and ", re.IGNORECASE)

# legacy document key -> canonical field
LEGACY_KEYS = {
    "clientId": "client_id",
    "briefCreatedRequired": "brief_status",
    "briefStatus": "brief_status",
    "dateSent": "internal_status",
    "contentRequiredReceived": "content_status",
    "contentStatus": "content_status",
    "dateLogged": "date_logged",
    "dueDate": "due_date",
    "completeBy": "complete_by",
    "inProgress": "progress_status",
    "progressStatus": "progress_status",
    "who": "assignees",
    "linksToFiles": "drive_link",
    "driveLink": "drive_link",
    "hoursAllocated": "hours_allocated",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}


def split_legacy_assignees(value) -> List[str]:
    """Assignee list from a stored value of any historical shape, duplicates removed."""
    if value is None:
        parts = []
    elif isinstance(value, str):
        parts = _ASSIGNEE_SPLIT_RE.split(value)
    elif isinstance(value, (list, tuple)):
        parts = [str(v) for v in value if v is not None]
    else:
        parts = []
    out = []
    for p in parts:
        p = p.strip()
        if p and p not in out:
            out.append(p)
    return out


def _coerce_hours(value) -> float:
    try:
        hours = float(value or 0)
    except (TypeError, ValueError):
        return 0.0
    return hours if math.isfinite(hours) and hours >= 0 else 0.0


def _coerce_date(value, task_id) -> str:
    try:
        return to_iso(value)
    except ValueError:
        log.debug("task %s: dropping unparseable date %r", task_id, value)
        return ""


def _coerce_stamp(value) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None
    return None


def normalize_task(raw: Dict[str, Any]) -> Task:
    data: Dict[str, Any] = {}
    for key, value in raw.items():
        canonical = LEGACY_KEYS.get(key)
        if canonical is None:
            data[key] = value
        elif canonical not in raw:
            # the canonical key wins when both are present
            data.setdefault(canonical, value)

    task_id = raw.get("id")
    fields = {
        "id": task_id,
        "client_id": str(data.get("client_id") or ""),
        "assignees": split_legacy_assignees(data.get("assignees")),
        "progress_status": parse_status(data.get("progress_status")) or ProgressStatus.NOT_STARTED,
        "hours_allocated": _coerce_hours(data.get("hours_allocated")),
        "drive_link": str(data.get("drive_link") or ""),
        "created_at": _coerce_stamp(data.get("created_at")),
        "updated_at": _coerce_stamp(data.get("updated_at")),
    }
    for name in TEXT_FIELDS:
        value = data.get(name)
        fields[name] = "" if value is None else str(value)
    if not fields["versions"]:
        fields["versions"] = "V1"
    for name in DATE_FIELDS:
        fields[name] = _coerce_date(data.get(name), task_id)
    return Task(**fields)


def serialize_fields(delta: Dict[str, Any]) -> Dict[str, Any]:
    """Canonical field values -> document values."""
    out = {}
    for key, value in delta.items():
        if key not in EDITABLE_FIELDS and key != "client_id":
            raise ValueError(f"Unknown task field: {key}")
        if isinstance(value, ProgressStatus):
            value = value.value
        elif key == "assignees":
            value = list(value)
        out[key] = value
    return out


def prepare_new_task(partial: Dict[str, Any], client_id: Optional[str] = None,
                     stamp_logged: bool = False) -> Dict[str, Any]:
    """Document body for a new task with defaults and write-time casing applied."""
    body = dict(partial)
    body["client_id"] = client_id or body.get("client_id") or ""
    if not body["client_id"]:
        raise ValueError("Select a client first.")
    for name in TEXT_FIELDS:
        body[name] = sentence_case(body.get(name, ""))
    if not body["versions"]:
        body["versions"] = "V1"
    for name in DATE_FIELDS:
        body[name] = to_iso(body.get(name, ""))
    if stamp_logged and not body["date_logged"]:
        body["date_logged"] = today_iso()
    body["progress_status"] = parse_status(body.get("progress_status")) or ProgressStatus.NOT_STARTED
    body["assignees"] = split_legacy_assignees(body.get("assignees"))
    body["drive_link"] = normalize_link(body.get("drive_link"))
    hours = float(body.get("hours_allocated") or 0)
    if not math.isfinite(hours) or hours < 0:
        raise ValueError("Hours must be a number, zero or more.")
    body["hours_allocated"] = hours
    doc = serialize_fields({k: v for k, v in body.items() if k in EDITABLE_FIELDS or k == "client_id"})
    doc["created_at"] = SERVER_TIMESTAMP
    doc["updated_at"] = SERVER_TIMESTAMP
    return doc


@dataclass
class WriteResult:
    ok: bool
    doc_id: Optional[str] = None
    error: Optional[Exception] = None
    count: int = 0

    def __bool__(self):
        return self.ok

    @property
    def message(self) -> str:
        if self.ok:
            return ""
        if isinstance(self.error, db.PermissionDeniedError):
            return "You do not have permission to change tasks."
        return str(self.error) or "The store rejected the write."


class TaskStore:
    def __init__(self, store: db.DocumentStore, global_limit: int = 500):
        self.store = store
        self.global_limit = global_limit

    def subscribe(self, client_id: Optional[str],
                  on_change: Callable[[List[Task]], None],
                  on_error: Optional[Callable[[StoreError], None]] = None) -> Subscription:
        if client_id:
            q = Query(db.TASKS, where=("client_id", client_id))
        else:
            q = Query(db.TASKS, order_by="created_at", descending=True, limit=self.global_limit)
        return self.store.subscribe(q, on_change, on_error, transform=self._normalize_all)

    def _normalize_all(self, docs: Iterable[Dict[str, Any]]) -> List[Task]:
        tasks = []
        for d in docs:
            try:
                tasks.append(normalize_task(d))
            except ValidationError as e:
                log.warning("skipping malformed task %s: %s", d.get("id"), e)
        return tasks

    def create(self, partial: Dict[str, Any], client_id: Optional[str] = None) -> WriteResult:
        try:
            doc = prepare_new_task(partial, client_id, stamp_logged=True)
            doc_id = self.store.add(db.TASKS, doc)
        except (StoreError, ValueError) as e:
            log.error("task create failed: %s", e)
            return WriteResult(False, error=e)
        return WriteResult(True, doc_id=doc_id, count=1)

    def batch_create(self, docs: List[Dict[str, Any]]) -> WriteResult:
        """Insert prepared task documents atomically."""
        try:
            ids = self.store.batch_add(db.TASKS, docs)
        except StoreError as e:
            log.error("batch insert of %d task(s) failed: %s", len(docs), e)
            return WriteResult(False, error=e)
        return WriteResult(True, count=len(ids))

    def update(self, task_id: str, delta: Dict[str, Any]) -> WriteResult:
        try:
            body = serialize_fields(delta)
            body["updated_at"] = SERVER_TIMESTAMP
            self.store.update(db.TASKS, task_id, body)
        except (StoreError, ValueError) as e:
            log.error("task %s update failed: %s", task_id, e)
            return WriteResult(False, doc_id=task_id, error=e)
        return WriteResult(True, doc_id=task_id, count=1)

    def delete(self, task_id: str) -> WriteResult:
        try:
            self.store.delete(db.TASKS, task_id)
        except StoreError as e:
            log.error("task %s delete failed: %s", task_id, e)
            return WriteResult(False, doc_id=task_id, error=e)
        return WriteResult(True, doc_id=task_id, count=1)
