"""Tests for the profile stores."""

import asyncio
import json
import sqlite3

import httpx
import pytest

from ministry_scanner.core.payload import PersonType
from ministry_scanner.database.models import Member
from ministry_scanner.services.stores import (
    HttpProfileStore,
    ProfileFetchError,
    ProfileUpdateError,
    SQLiteProfileStore,
    sqlite_stores,
)


def http_store(handler, person_type=PersonType.MEMBER) -> HttpProfileStore:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpProfileStore(person_type=person_type, base_url="http://admin.test", http_client=client)


def test_sqlite_store_fetch_and_update(db_manager) -> None:
    store = sqlite_stores(db_manager)[PersonType.MEMBER]
    member_id = Member(db_manager).create("Juan", "Dela Cruz")

    async def scenario():
        before = await store.fetch(member_id)
        await store.update(member_id, {"email": "juan@example.com"})
        after = await store.fetch(member_id)
        missing = await store.fetch(999)
        return before, after, missing

    before, after, missing = asyncio.run(scenario())

    assert before["email"] is None
    assert after["email"] == "juan@example.com"
    assert missing is None


def test_sqlite_store_update_failure_raises(db_manager) -> None:
    store = sqlite_stores(db_manager)[PersonType.MEMBER]
    member_id = Member(db_manager).create("Juan", "Dela Cruz")

    with pytest.raises(ProfileUpdateError):
        asyncio.run(store.update(member_id, {"gender": "unknown"}))


def test_sqlite_store_database_error_is_fetch_error() -> None:
    class BrokenModel:
        def get_by_id(self, record_id):
            raise sqlite3.OperationalError("database is locked")

    store = SQLiteProfileStore(PersonType.MINISTER, BrokenModel())

    with pytest.raises(ProfileFetchError):
        asyncio.run(store.fetch(1))


def test_sqlite_store_search(db_manager) -> None:
    store = sqlite_stores(db_manager)[PersonType.MEMBER]
    Member(db_manager).create("Juan", "Dela Cruz")

    results = asyncio.run(store.search("dela"))

    assert [row["first_name"] for row in results] == ["Juan"]


def test_http_store_fetch_unwraps_envelope() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        return httpx.Response(200, json={"success": True, "data": {"id": 7, "firstName": "Maria"}})

    store = http_store(handler, PersonType.MINISTER)

    record = asyncio.run(store.fetch(7))

    assert record == {"id": 7, "firstName": "Maria"}
    assert seen == ["/api/minister/7"]


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(404, json={"error": "Not found"}),
        httpx.Response(200, json={"success": False, "error": "Member not found"}),
        httpx.Response(200, json={"success": True, "data": None}),
        httpx.Response(200, json={"success": True, "data": {}}),
    ],
)
def test_http_store_absent_records(response) -> None:
    store = http_store(lambda request: response)

    assert asyncio.run(store.fetch(3)) is None


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, json={"error": "Internal server error"}),
        httpx.Response(200, content=b"<html>oops</html>"),
        httpx.Response(200, json=["not", "an", "envelope"]),
    ],
)
def test_http_store_server_failures_raise(response) -> None:
    store = http_store(lambda request: response)

    with pytest.raises(ProfileFetchError):
        asyncio.run(store.fetch(3))


def test_http_store_transport_error_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    store = http_store(handler)

    with pytest.raises(ProfileFetchError):
        asyncio.run(store.fetch(3))


def test_http_store_update_sends_camel_case() -> None:
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["method"] = request.method
        captured["path"] = request.url.path
        captured["body"] = json.loads(request.content.decode())
        return httpx.Response(200, json={"success": True, "data": {}})

    store = http_store(handler)

    asyncio.run(store.update(3, {"mobile_number": "0917", "x_link": "https://x.com/juan"}))

    assert captured == {
        "method": "PUT",
        "path": "/api/member/3",
        "body": {"mobileNumber": "0917", "xLink": "https://x.com/juan"},
    }


def test_http_store_update_rejected() -> None:
    store = http_store(lambda request: httpx.Response(200, json={"success": False, "error": "Invalid email"}))

    with pytest.raises(ProfileUpdateError, match="Invalid email"):
        asyncio.run(store.update(3, {"email": "bad"}))


def test_http_store_search() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/member/search"
        assert request.url.params["q"] == "juan"
        return httpx.Response(200, json={"success": True, "data": [{"id": 1, "firstName": "Juan"}]})

    store = http_store(handler)

    assert asyncio.run(store.search("juan")) == [{"id": 1, "firstName": "Juan"}]
    assert asyncio.run(store.search("j")) == []


def test_http_store_create_and_close() -> None:
    store = HttpProfileStore.create(PersonType.MEMBER, "http://admin.test/")

    assert store.base_url == "http://admin.test"
    asyncio.run(store.close())
