"""Shared test fixtures."""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np
import pytest
import qrcode

from ministry_scanner.core.camera import CameraError, CameraPlaybackError, VideoDevice
from ministry_scanner.core.payload import PersonType
from ministry_scanner.database.db_manager import DatabaseManager
from ministry_scanner.services.stores import ProfileFetchError, ProfileUpdateError


def qr_frame(text: str) -> np.ndarray:
    """Render text as a QR code and return it as a BGR camera frame."""
    qr = qrcode.QRCode(box_size=8, border=4)
    qr.add_data(text)
    qr.make(fit=True)
    image = qr.make_image(fill_color="black", back_color="white").convert("RGB")
    rgb = np.array(image, dtype=np.uint8)
    return np.ascontiguousarray(rgb[:, :, ::-1])


def blank_frame(width: int = 320, height: int = 240) -> np.ndarray:
    return np.full((height, width, 3), 255, dtype=np.uint8)


class FakeTrack:
    def __init__(self, frames):
        self.frames = list(frames)
        self.live = True
        self.reads = 0

    def read(self):
        if not self.live:
            return None
        self.reads += 1
        if len(self.frames) > 1:
            return self.frames.pop(0)
        return self.frames[0] if self.frames else None

    def stop(self):
        self.live = False


class FakeStream:
    def __init__(self, device, frames, play_error: bool = False):
        self.device = device
        self.tracks = [FakeTrack(frames)]
        self.play_error = play_error

    @property
    def active(self):
        return any(track.live for track in self.tracks)

    def play(self):
        if self.play_error:
            raise CameraPlaybackError()

    def read(self):
        return self.tracks[0].read()

    def stop(self):
        for track in self.tracks:
            track.stop()


@dataclass
class FakeBackend:
    """Camera backend serving scripted frames."""

    devices: List[VideoDevice] = field(default_factory=lambda: [VideoDevice(0, "Front Camera")])
    frames: Dict[int, list] = field(default_factory=dict)
    available: bool = True
    open_errors: List[CameraError] = field(default_factory=list)
    play_error: bool = False
    opened: List[int] = field(default_factory=list)
    streams: list = field(default_factory=list)
    enumerations: int = 0
    open_delay: float = 0

    def is_available(self) -> bool:
        return self.available

    def enumerate_devices(self):
        self.enumerations += 1
        return list(self.devices)

    def open(self, device_id, width, height):
        if self.open_delay:
            time.sleep(self.open_delay)
        if self.open_errors:
            raise self.open_errors.pop(0)
        self.opened.append(device_id)
        device = next(d for d in self.devices if d.device_id == device_id)
        stream = FakeStream(device, self.frames.get(device_id, [blank_frame()]), self.play_error)
        self.streams.append(stream)
        return stream


class FakeSink:
    def __init__(self):
        self.shown = 0
        self.cleared = 0

    def show(self, frame):
        self.shown += 1

    def clear(self):
        self.cleared += 1


@dataclass
class InMemoryProfileStore:
    """In-memory profile store for tests."""

    person_type: PersonType
    records: Dict[int, dict] = field(default_factory=dict)
    fail_fetch: bool = False
    fail_update: bool = False
    delay: float = 0
    fetches: List[int] = field(default_factory=list)
    updates: List[tuple] = field(default_factory=list)

    async def fetch(self, person_id: int) -> Optional[dict]:
        self.fetches.append(person_id)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_fetch:
            raise ProfileFetchError("connection refused")
        record = self.records.get(person_id)
        return dict(record) if record else None

    async def update(self, person_id: int, changes: dict) -> None:
        if self.fail_update:
            raise ProfileUpdateError(f"Failed to update {self.person_type.value} {person_id}")
        self.updates.append((person_id, dict(changes)))
        self.records[person_id].update(changes)

    async def search(self, query: str) -> List[dict]:
        if self.fail_fetch:
            raise ProfileFetchError("connection refused")
        query = query.lower()
        return [
            dict(record) for record in self.records.values()
            if query in f"{record['first_name']} {record['last_name']}".lower()
        ]


def member_record(person_id: int = 1, **overrides) -> dict:
    record = {
        "id": person_id,
        "first_name": "Juan",
        "last_name": "Dela Cruz",
        "middle_name": "Santos",
        "gender": "male",
        "email": "juan@example.com",
        "mobile_number": "09171234567",
        "year_joined": 2019,
        "church_name": "Redeemer Main",
        "created_at": "2024-01-10 08:00:00",
    }
    record.update(overrides)
    return record


def minister_record(person_id: int = 7, **overrides) -> dict:
    record = {
        "id": person_id,
        "first_name": "Maria",
        "last_name": "Reyes",
        "suffix": "Jr.",
        "nickname": "Ria",
        "gender": "female",
        "email": "maria@example.com",
        "telephone": "02-8123-4567",
        "civil_status": "married",
        "created_at": "2024-02-01 09:30:00",
    }
    record.update(overrides)
    return record


@pytest.fixture
def stores():
    return {
        PersonType.MEMBER: InMemoryProfileStore(PersonType.MEMBER, {1: member_record(1)}),
        PersonType.MINISTER: InMemoryProfileStore(PersonType.MINISTER, {7: minister_record(7)}),
    }


@pytest.fixture
def db_manager(tmp_path):
    manager = DatabaseManager(tmp_path / "test.db")
    manager.initialize_db()
    return manager
