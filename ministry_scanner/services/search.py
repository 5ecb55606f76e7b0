import asyncio
from dataclasses import dataclass
from typing import Dict, List
from ministry_scanner.config.settings import SEARCH_MIN_LENGTH
from ministry_scanner.core.payload import PersonType, ScanPayload
from ministry_scanner.core.profiles import build_profile
from ministry_scanner.services.actions import handler_for
from ministry_scanner.services.stores import ProfileFetchError
from ministry_scanner.utils.logging import setup_logger


@dataclass(frozen=True)
class SearchHit:
    """One person matching a name search"""
    id: int
    type: PersonType
    name: str
    detail: str = ""

    @property
    def payload(self) -> ScanPayload:
        return ScanPayload(id=self.id, type=self.type)

    def __str__(self) -> str:
        text = f"[{self.type.label}] {self.name}"
        return f"{text} ({self.detail})" if self.detail else text


class PersonDirectory:
    """
    Name search across members and ministers.
    """

    def __init__(self, stores: Dict):
        self.stores = stores
        self.logger = setup_logger()
        self.errors: Dict[PersonType, str] = {}

    async def _search_type(self, person_type: PersonType, query: str) -> List[SearchHit]:
        try:
            records = await self.stores[person_type].search(query)
        except ProfileFetchError as e:
            self.logger.warning(f"{person_type.label} search failed: {e}")
            self.errors[person_type] = str(e)
            return []

        hits = []
        for record in records:
            try:
                profile = build_profile(person_type, record)
            except (TypeError, ValueError) as e:
                self.logger.warning(f"Skipping malformed {person_type.value} record: {e}")
                continue
            detail = handler_for(person_type).list_detail(profile)
            hits.append(SearchHit(profile.id, person_type, profile.full_name, detail))
        return hits

    async def search(self, query: str) -> List[SearchHit]:
        """
        Search both collections by name.

        Members come first, then ministers, each in store order. A failing
        store is logged in ``errors`` and contributes no hits.
        """
        self.errors = {}
        query = (query or "").strip()
        if len(query) < SEARCH_MIN_LENGTH:
            return []

        results = await asyncio.gather(
            *(self._search_type(person_type, query) for person_type in PersonType)
        )
        hits = [hit for group in results for hit in group]
        self.logger.info(f"Search '{query}': {len(hits)} result(s)")
        return hits

    @staticmethod
    def select(hit: SearchHit) -> ScanPayload:
        return hit.payload
