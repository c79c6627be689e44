# tests/conftest.py
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest

from db import DocumentStore, init_db, make_engine
from models.people import Client, ClientContact, Freelancer, Staff
from utils.directory import AssigneeDirectory
from utils.task_store import TaskStore


@pytest.fixture
def store():
    engine = make_engine("sqlite://")
    init_db(engine)
    yield DocumentStore(engine)
    engine.dispose()


@pytest.fixture
def task_store(store):
    return TaskStore(store, global_limit=500)


@pytest.fixture
def staff():
    return [Staff(id="s1", name="A. Lee"), Staff(id="s2", name="Bo Chen")]


@pytest.fixture
def freelancers():
    return [Freelancer(id="f1", name="Dana Ruiz")]


@pytest.fixture
def clients():
    return [
        Client(id="c1", company="Acme", contacts=[
            ClientContact(name="Pat Kim", email="pat@acme.com", role="Main Contact"),
            ClientContact(name="Sam Roe", email="sam@acme.com", role="Contact"),
        ]),
        Client(id="c2", company="Globex", contacts=[
            ClientContact(name="Lou Park", email="lou@globex.com", role="Main Contact"),
        ]),
    ]


@pytest.fixture
def directory(staff, freelancers, clients):
    return AssigneeDirectory(staff, freelancers, clients, client_id="c1")
