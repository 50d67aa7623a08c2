import json

import pytest

from soleo import app_context
from soleo.app.errors import ConflictError, NotFoundError
from soleo.db import managed_connection


class FakeConnection:
    def __init__(self) -> None:
        self.commits = 0
        self.rollbacks = 0

    def commit(self) -> None:
        self.commits += 1

    def rollback(self) -> None:
        self.rollbacks += 1


class FakeDatabase:
    def __init__(self) -> None:
        self.connection = FakeConnection()
        self.released = []

    def acquire(self) -> FakeConnection:
        return self.connection

    def release(self, connection: FakeConnection) -> None:
        self.released.append(connection)


@pytest.fixture
def database():
    db = FakeDatabase()
    app_context.configure(database=db, get_current_user=lambda **kwargs: None)
    yield db
    app_context.reset()


def test_managed_connection_commits_and_releases(database):
    with managed_connection() as (conn, managed):
        assert managed is True
        assert conn is database.connection

    assert database.connection.commits == 1
    assert database.released == [database.connection]


def test_managed_connection_rolls_back_on_error(database):
    with pytest.raises(RuntimeError):
        with managed_connection():
            raise RuntimeError("boom")

    assert database.connection.rollbacks == 1
    assert database.connection.commits == 0
    assert database.released == [database.connection]


def test_caller_owned_connection_is_untouched(database):
    external = FakeConnection()

    with managed_connection(external) as (conn, managed):
        assert conn is external
        assert managed is False

    assert external.commits == 0
    assert database.released == []


def test_unconfigured_context_raises():
    app_context.reset()

    assert app_context.is_configured() is False
    with pytest.raises(RuntimeError):
        app_context.get_database()


def test_api_error_envelope_and_status_override():
    error = NotFoundError("Membership not found", detail={"membershipId": 3})

    response = error.with_status(400).to_response()

    assert response.status_code == 400
    assert json.loads(response.body) == {
        "success": False,
        "message": "Membership not found",
        "error": "not_found",
        "membershipId": 3,
    }
    assert error.status_code == 404
    assert ConflictError("taken").status_code == 409
