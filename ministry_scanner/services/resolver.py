"""
Payload resolution.

Camera scans, uploaded images and search selections all end up here as a
ScanPayload. The resolver looks the person up in the store that owns the
payload type and publishes the outcome as a Resolution.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional
from ministry_scanner.core.payload import PersonType, ScanPayload
from ministry_scanner.core.profiles import Profile, build_profile
from ministry_scanner.services.stores import ProfileFetchError, ProfileStore
from ministry_scanner.utils.logging import setup_logger


class ResolutionStatus(Enum):
    LOADING = "loading"
    FOUND = "found"
    ABSENT = "absent"
    FAILED = "failed"


@dataclass(frozen=True)
class Resolution:
    """Outcome of looking up a scanned payload"""
    payload: ScanPayload
    status: ResolutionStatus
    profile: Optional[Profile] = None
    error: Optional[str] = None

    @property
    def display_name(self) -> str:
        if self.profile is not None:
            return self.profile.display_name
        return str(self.payload)

    @property
    def retryable(self) -> bool:
        return self.status == ResolutionStatus.FAILED


class ProfileResolver:
    """
    Resolves payloads against per-type profile stores.
    """

    def __init__(self, stores: Dict[PersonType, ProfileStore], on_change: Callable = None):
        """
        Args:
            stores: Store for each PersonType
            on_change: Optional callback(resolution) fired whenever current changes
        """
        self.stores = stores
        self.on_change = on_change
        self.current: Optional[Resolution] = None
        self.logger = setup_logger()
        self._generation = 0

    def _publish(self, resolution: Optional[Resolution]):
        self.current = resolution
        if self.on_change:
            self.on_change(resolution)

    async def resolve(self, payload: ScanPayload) -> Resolution:
        """
        Look up the person a payload refers to.

        Publishes a loading resolution first, then found, absent or failed.
        A lookup superseded by a newer resolve() or clear() is returned to
        its caller but not published.
        """
        self._generation += 1
        generation = self._generation
        self._publish(Resolution(payload, ResolutionStatus.LOADING))

        resolution = await self._lookup(payload)

        if generation == self._generation:
            self._publish(resolution)
        return resolution

    async def _lookup(self, payload: ScanPayload) -> Resolution:
        store = self.stores[payload.type]
        try:
            record = await store.fetch(payload.id)
        except ProfileFetchError as e:
            self.logger.error(f"Failed to resolve {payload}: {e}")
            return Resolution(payload, ResolutionStatus.FAILED, error=str(e))

        if not record:
            self.logger.info(f"No record for {payload}")
            return Resolution(payload, ResolutionStatus.ABSENT)

        try:
            profile = build_profile(payload.type, record)
        except (TypeError, ValueError) as e:
            self.logger.error(f"Invalid record for {payload}: {e}")
            return Resolution(payload, ResolutionStatus.FAILED, error=f"Invalid profile data: {e}")

        self.logger.info(f"Resolved {payload} to {profile.display_name}")
        return Resolution(payload, ResolutionStatus.FOUND, profile=profile)

    async def refetch(self) -> Optional[Resolution]:
        """
        Resolve the current payload again, e.g. after an edit or a failure.
        """
        if self.current is None:
            return None
        return await self.resolve(self.current.payload)

    def clear(self):
        self._generation += 1
        self._publish(None)
