"""
Tests for the store readiness probe
"""
from sqlalchemy.exc import OperationalError
from sqlmodel import Session

from core import db


class FlakySession:
    """Session whose connection fails a set number of times"""

    def __init__(self, failures: int):
        self.failures = failures
        self.calls = 0
        self.rollbacks = 0

    def connection(self):
        return self

    def execute(self, statement):
        self.calls += 1
        if self.calls <= self.failures:
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    def rollback(self):
        self.rollbacks += 1


def test_store_ready(session: Session):
    assert db.wait_for_store(session) is True


def test_store_recovers(monkeypatch):
    sleeps = []
    monkeypatch.setattr(db.time, "sleep", sleeps.append)
    flaky = FlakySession(failures=2)

    assert db.wait_for_store(flaky, max_tries=5, delay_ms=100) is True
    assert flaky.calls == 3
    assert flaky.rollbacks == 2
    assert sleeps == [0.1, 0.1]


def test_store_never_ready(monkeypatch):
    sleeps = []
    monkeypatch.setattr(db.time, "sleep", sleeps.append)
    down = FlakySession(failures=100)

    assert db.wait_for_store(down, max_tries=4, delay_ms=50) is False
    assert down.calls == 4
    assert len(sleeps) == 3
