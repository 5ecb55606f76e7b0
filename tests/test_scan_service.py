"""Tests for the scan workflow facade."""

import asyncio

import cv2

from ministry_scanner.core.capture import CaptureSession, CaptureState
from ministry_scanner.core.payload import PersonType, ScanPayload
from ministry_scanner.services.resolver import ResolutionStatus
from ministry_scanner.services.scan_service import INVALID_QR, NO_QR_FOUND, ScanService
from ministry_scanner.services.search import SearchHit
from tests.conftest import FakeBackend, blank_frame, qr_frame


def make_service(stores, backend=None):
    session = CaptureSession(backend=backend or FakeBackend(), scan_interval=0.01)
    return ScanService(stores, session=session)


def png_bytes(frame) -> bytes:
    ok, encoded = cv2.imencode(".png", frame)
    assert ok
    return encoded.tobytes()


def test_scan_camera_resolves_first_code(stores) -> None:
    backend = FakeBackend(frames={0: [blank_frame(), blank_frame(), qr_frame('{"id":7,"type":"minister"}')]})
    service = make_service(stores, backend)

    resolution = asyncio.run(service.scan_camera())

    assert resolution.status == ResolutionStatus.FOUND
    assert resolution.profile.first_name == "Maria"
    assert service.session.state == CaptureState.FOUND
    assert not backend.streams[0].active


def test_scan_camera_failure_returns_none(stores) -> None:
    service = make_service(stores, FakeBackend(devices=[]))

    assert asyncio.run(service.scan_camera()) is None
    assert service.session.state == CaptureState.DEVICE_MISSING
    assert service.resolver.current is None


def test_scan_upload_resolves(stores) -> None:
    service = make_service(stores)

    outcome = asyncio.run(service.scan_upload(png_bytes(qr_frame('{"id":1,"type":"member"}'))))

    assert outcome.ok
    assert outcome.notice is None
    assert outcome.resolution.profile.last_name == "Dela Cruz"


def test_scan_upload_without_code_keeps_state(stores) -> None:
    service = make_service(stores)

    async def scenario():
        await service.scan_text('{"id":1,"type":"member"}')
        before = service.resolver.current
        no_code = await service.scan_upload(png_bytes(blank_frame()))
        foreign = await service.scan_upload(png_bytes(qr_frame("https://example.com")))
        return before, no_code, foreign

    before, no_code, foreign = asyncio.run(scenario())

    assert no_code.notice == NO_QR_FOUND
    assert foreign.notice == INVALID_QR
    assert not no_code.ok and not foreign.ok
    assert service.resolver.current is before


def test_scan_text(stores) -> None:
    service = make_service(stores)

    absent = asyncio.run(service.scan_text(' {"id":42,"type":"minister"} '))
    invalid = asyncio.run(service.scan_text("hello"))
    empty = asyncio.run(service.scan_text(""))

    assert absent.resolution.status == ResolutionStatus.ABSENT
    assert absent.resolution.display_name == "Minister #42"
    assert invalid.notice == INVALID_QR
    assert empty.notice == INVALID_QR


def test_upload_while_camera_running_stops_camera(stores) -> None:
    backend = FakeBackend()
    service = make_service(stores, backend)

    async def scenario():
        await service.session.start()
        return await service.scan_upload(png_bytes(qr_frame('{"id":1,"type":"member"}')))

    outcome = asyncio.run(scenario())

    assert outcome.ok
    assert service.session.state == CaptureState.IDLE
    assert not backend.streams[0].active


def test_search_and_select_hit(stores) -> None:
    service = make_service(stores)

    async def scenario():
        hits = await service.search("juan")
        resolution = await service.select_search_hit(hits[0])
        return hits, resolution

    hits, resolution = asyncio.run(scenario())

    assert hits == [SearchHit(1, PersonType.MEMBER, "Juan Santos Dela Cruz", "Redeemer Main")]
    assert resolution.payload == ScanPayload(1, PersonType.MEMBER)
    assert resolution.status == ResolutionStatus.FOUND
