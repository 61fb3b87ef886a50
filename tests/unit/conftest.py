"""
Global fixtures for all unit tests.

Clients are in-memory fakes (tests/helpers/fake_mongo.py), so repository,
context and unit-of-work behaviour is tested without a MongoDB server.
"""

import pytest
from pymongo.topology_description import TOPOLOGY_TYPE

from repokit.persistence import MongoDbContext, MongoUnitOfWork, StaticAuditContext
from repokit.repositories import TrackedRepository
from tests.helpers.entities import Widget
from tests.helpers.fake_mongo import FakeClient


@pytest.fixture
def replica_client():
    """Fake client of a replica set (transactions supported)."""
    return FakeClient(TOPOLOGY_TYPE.ReplicaSetWithPrimary)


@pytest.fixture
def standalone_client():
    """Fake client of a standalone server (no transactions)."""
    return FakeClient(TOPOLOGY_TYPE.Single)


@pytest.fixture
def context(replica_client):
    return MongoDbContext(replica_client)


@pytest.fixture
def unit_of_work(context):
    return MongoUnitOfWork(context)


@pytest.fixture
def widgets(context, replica_client):
    """Tracked Widget repository acting as user "alice"."""
    return TrackedRepository(context, replica_client["shop"]["widgets"], Widget, StaticAuditContext("alice"))


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch):
    """Keep real MONGO_* settings out of unit tests."""
    for name in (
        "MONGO_CONNECTION_STRING",
        "MONGO_DATABASE_NAME",
        "MONGO_COLLECTIONS",
        "MONGO_SUPPORTS_TRANSACTIONS",
    ):
        monkeypatch.delenv(name, raising=False)
