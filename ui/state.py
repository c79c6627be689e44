# ui/state.py
import logging
from typing import List, Optional

import streamlit as st

from config import Settings
from db import DocumentStore, StoreError
from models.people import Client, Freelancer, Staff
from models.task import Task
from utils.directory import AssigneeDirectory
from utils.grid import GridController
from utils.people_store import PeopleStore
from utils.task_store import TaskStore

log = logging.getLogger(__name__)

_FEEDS_KEY = "live_feeds"


def force_rerun():
    fn = getattr(st, "rerun", None) or getattr(st, "experimental_rerun", None)
    if fn:
        fn()


class LiveFeeds:
    """Per-session holder of the live subscriptions and what they last delivered."""

    def __init__(self, store: DocumentStore, settings: Settings):
        self.task_store = TaskStore(store, settings.tasks_global_limit)
        self.people = PeopleStore(store)
        self.grid = GridController(self.task_store)
        self.tasks: List[Task] = []
        self.staff: List[Staff] = []
        self.freelancers: List[Freelancer] = []
        self.clients: List[Client] = []
        self.error: Optional[StoreError] = None
        self.client_id: Optional[str] = None
        self._task_sub = None
        self._people_subs = []

    # ---- callbacks ----
    def _on_tasks(self, tasks: List[Task]):
        self.tasks = tasks
        self.grid.set_tasks(tasks)

    def _on_staff(self, staff):
        self.staff = staff

    def _on_freelancers(self, freelancers):
        self.freelancers = freelancers

    def _on_clients(self, clients):
        self.clients = clients

    def _on_error(self, err: StoreError):
        self.error = err

    # ---- lifecycle ----
    def start(self):
        if self._people_subs:
            return
        self._people_subs = [
            self.people.subscribe_staff(self._on_staff, self._on_error),
            self.people.subscribe_freelancers(self._on_freelancers, self._on_error),
            self.people.subscribe_clients(self._on_clients, self._on_error),
        ]

    def watch_client(self, client_id: Optional[str]):
        """Point the task feed at one client (or all). Re-subscribes only on change."""
        client_id = client_id or None
        if self._task_sub is not None and self._task_sub.active and client_id == self.client_id:
            return
        if self._task_sub is not None:
            self._task_sub.unsubscribe()
        self.client_id = client_id
        self.error = None
        self.grid.clear_selection()
        log.debug("task feed -> %s", client_id or "all clients")
        self._task_sub = self.task_store.subscribe(client_id, self._on_tasks, self._on_error)

    def close(self):
        for sub in self._people_subs + ([self._task_sub] if self._task_sub else []):
            sub.unsubscribe()
        self._people_subs = []
        self._task_sub = None

    # ---- derived ----
    def directory(self) -> AssigneeDirectory:
        return AssigneeDirectory(self.staff, self.freelancers, self.clients, self.client_id)

    def client_name(self, client_id: Optional[str]) -> str:
        c = next((c for c in self.clients if c.id == client_id), None)
        return c.company if c else ""


def get_feeds(store: DocumentStore, settings: Settings) -> LiveFeeds:
    feeds = st.session_state.get(_FEEDS_KEY)
    if feeds is None:
        feeds = st.session_state[_FEEDS_KEY] = LiveFeeds(store, settings)
    feeds.start()
    return feeds


def reset_feeds():
    feeds = st.session_state.pop(_FEEDS_KEY, None)
    if feeds is not None:
        feeds.close()
