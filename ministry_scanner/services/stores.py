"""
Profile stores.

A store answers for one person type. ``fetch`` returns the raw record or
None when there is no such person; any other failure (database error,
unreachable server, bad response) raises ProfileFetchError so the caller
can offer a retry.
"""

import asyncio
import re
import sqlite3
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol
import httpx
from ministry_scanner.config.settings import API_BASE_URL, API_TIMEOUT, SEARCH_MIN_LENGTH
from ministry_scanner.core.payload import PersonType
from ministry_scanner.database.models import Member, Minister
from ministry_scanner.utils.logging import setup_logger

logger = setup_logger()

_SNAKE_PART = re.compile(r"_([a-z])")


class ProfileStoreError(Exception):
    """Base class for store failures"""


class ProfileFetchError(ProfileStoreError):
    """Reading from the store failed; the lookup may be retried"""


class ProfileUpdateError(ProfileStoreError):
    """Writing an edit to the store failed"""


class ProfileStore(Protocol):
    """Interface for the per-type profile sources."""

    person_type: PersonType

    async def fetch(self, person_id: int) -> Optional[Dict]:
        """Return the record, or None when it does not exist."""

    async def update(self, person_id: int, changes: Dict) -> None:
        """Persist changed fields."""

    async def search(self, query: str) -> List[Dict]:
        """Return records whose name matches the query."""


class SQLiteProfileStore:
    """
    Store backed by a local Member or Minister model.
    Model calls are blocking and run in a worker thread.
    """

    def __init__(self, person_type: PersonType, model):
        self.person_type = person_type
        self.model = model

    async def fetch(self, person_id: int) -> Optional[Dict]:
        try:
            return await asyncio.to_thread(self.model.get_by_id, person_id)
        except sqlite3.Error as e:
            raise ProfileFetchError(f"Failed to load {self.person_type.value} {person_id}: {e}") from e

    async def update(self, person_id: int, changes: Dict) -> None:
        updated = await asyncio.to_thread(self.model.update, person_id, **changes)
        if not updated:
            raise ProfileUpdateError(f"Failed to update {self.person_type.value} {person_id}")

    async def search(self, query: str) -> List[Dict]:
        try:
            return await asyncio.to_thread(self.model.search, query)
        except sqlite3.Error as e:
            raise ProfileFetchError(f"Failed to search {self.person_type.value}s: {e}") from e


def _camel_case(key: str) -> str:
    return _SNAKE_PART.sub(lambda match: match.group(1).upper(), key)


@dataclass
class HttpProfileStore:
    """
    Store backed by the church admin API.

    Responses use the envelope ``{"success": bool, "data": ...}``.
    """

    person_type: PersonType
    base_url: str
    http_client: httpx.AsyncClient
    timeout: float = API_TIMEOUT

    @classmethod
    def create(cls, person_type: PersonType, base_url: str = API_BASE_URL) -> "HttpProfileStore":
        """Create a store with a managed httpx session."""
        return cls(person_type=person_type, base_url=base_url.rstrip("/"), http_client=httpx.AsyncClient())

    def _url(self, suffix: str) -> str:
        return f"{self.base_url}/api/{self.person_type.value}/{suffix}"

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            return await self.http_client.request(method, url, timeout=self.timeout, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"{method} {url} failed: {e}")
            raise ProfileFetchError(f"Could not reach the server: {e}") from e

    @staticmethod
    def _body(response: httpx.Response) -> Dict:
        try:
            body = response.json()
        except ValueError as e:
            raise ProfileFetchError(f"Invalid response from server: {e}") from e
        if not isinstance(body, dict):
            raise ProfileFetchError("Invalid response from server")
        return body

    async def fetch(self, person_id: int) -> Optional[Dict]:
        """Fetch one record by id."""
        url = self._url(str(person_id))
        response = await self._request("GET", url)

        if response.status_code == 404:
            return None
        if response.is_error:
            raise ProfileFetchError(f"HTTP error! status: {response.status_code}")

        body = self._body(response)
        data = body.get("data")
        if not body.get("success") or not data:
            return None
        return data

    async def update(self, person_id: int, changes: Dict) -> None:
        """Send changed fields; the API expects camelCase keys."""
        url = self._url(str(person_id))
        payload = {_camel_case(key): value for key, value in changes.items()}
        try:
            response = await self._request("PUT", url, json=payload)
        except ProfileFetchError as e:
            raise ProfileUpdateError(str(e)) from e

        if response.is_error:
            raise ProfileUpdateError(f"HTTP error! status: {response.status_code}")
        try:
            body = self._body(response)
        except ProfileFetchError as e:
            raise ProfileUpdateError(str(e)) from e
        if not body.get("success"):
            raise ProfileUpdateError(body.get("error") or f"Failed to update {self.person_type.value}")

    async def search(self, query: str) -> List[Dict]:
        """Search records by name."""
        query = (query or "").strip()
        if len(query) < SEARCH_MIN_LENGTH:
            return []

        response = await self._request("GET", self._url("search"), params={"q": query})
        if response.is_error:
            raise ProfileFetchError(f"HTTP error! status: {response.status_code}")
        data = self._body(response).get("data") or []
        return list(data)

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()


def sqlite_stores(db_manager) -> Dict[PersonType, SQLiteProfileStore]:
    """
    One local store per person type, sharing a database.
    """
    return {
        PersonType.MEMBER: SQLiteProfileStore(PersonType.MEMBER, Member(db_manager)),
        PersonType.MINISTER: SQLiteProfileStore(PersonType.MINISTER, Minister(db_manager)),
    }


def http_stores(base_url: str = API_BASE_URL) -> Dict[PersonType, HttpProfileStore]:
    return {person_type: HttpProfileStore.create(person_type, base_url) for person_type in PersonType}
