"""
Camera capture session.

A session owns one camera stream and the polling task that samples it.
Scanning is a fixed-rate poll rather than a frame callback: every
SCAN_INTERVAL seconds the current frame is copied into an RGBA raster,
decoded, and parsed as a person payload. The first valid payload ends the
session in the "found" state and releases the camera right away.

Teardown (stop, close, found, failed start) always runs the same steps in
the same order: cancel a start in progress, wait for camera calls already
running in worker threads, cancel the polling task, stop every track of the
stream, detach the stream from the preview sink, clear the error text.
"""

import asyncio
from enum import Enum
from typing import Callable, List, Optional, Set
from ministry_scanner.config.settings import FRAME_WIDTH, FRAME_HEIGHT, FACING_MODE, SCAN_INTERVAL, PLAYBACK_TIMEOUT
from ministry_scanner.core import payload as payload_codec
from ministry_scanner.core.camera import (
    CameraError,
    CameraPlaybackError,
    CameraUnavailableError,
    CameraNotFoundError,
    OpenCVCameraBackend,
    VideoDevice,
    VideoStream,
    preferred_device,
)
from ministry_scanner.core.decoder import QRDecoder
from ministry_scanner.core.payload import ScanPayload
from ministry_scanner.utils.logging import setup_logger


class CaptureState(Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    STREAM_OBTAINED = "stream-obtained"
    PLAYING = "playing"
    FOUND = "found"
    ERROR = "error"
    PLAY_ERROR = "play-error"
    DEVICE_MISSING = "device-missing"


ACTIVE_STATES = (CaptureState.REQUESTING, CaptureState.STREAM_OBTAINED, CaptureState.PLAYING)
RETRYABLE_STATES = (CaptureState.ERROR, CaptureState.PLAY_ERROR, CaptureState.DEVICE_MISSING)

TIMEOUT_MESSAGE = "Camera startup timed out. Please try again or check permissions."
DEVICE_MISSING_MESSAGE = "No camera found. Please connect a camera and try again."


def _stop_orphaned_stream(call: asyncio.Future):
    if call.cancelled() or call.exception() is not None:
        return
    call.result().stop()


class CaptureSession:
    """
    Manages one camera interaction: device selection, stream acquisition,
    playback, the scanning loop and teardown.
    """

    def __init__(self, backend=None, decoder: QRDecoder = None, frame_sink=None,
                 on_state_change: Callable = None, scan_interval: float = SCAN_INTERVAL,
                 playback_timeout: float = PLAYBACK_TIMEOUT, width: int = FRAME_WIDTH,
                 height: int = FRAME_HEIGHT, facing_mode: str = FACING_MODE):
        """
        Args:
            backend: Camera backend (defaults to OpenCV)
            decoder: QR decoder used on every sampled frame
            frame_sink: Optional preview with show(frame) and clear()
            on_state_change: Optional callback(state, session) fired on every transition
            scan_interval: Seconds between sampled frames
            playback_timeout: Seconds to wait for playback before failing
        """
        self.backend = backend or OpenCVCameraBackend()
        self.decoder = decoder or QRDecoder()
        self.frame_sink = frame_sink
        self.on_state_change = on_state_change
        self.scan_interval = scan_interval
        self.playback_timeout = playback_timeout
        self.width = width
        self.height = height
        self.facing_mode = facing_mode
        self.logger = setup_logger()

        self.state = CaptureState.IDLE
        self.error = ""
        self.devices: List[VideoDevice] = []
        self.device_id: Optional[int] = None
        self.stream: Optional[VideoStream] = None
        self.payload: Optional[ScanPayload] = None

        self._sink = None
        self._poll_task: Optional[asyncio.Task] = None
        self._start_task: Optional[asyncio.Task] = None
        self._stream_calls: Set[asyncio.Future] = set()
        self._found = False
        self._lock = asyncio.Lock()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    @property
    def is_polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    @property
    def is_active(self) -> bool:
        return self.state in ACTIVE_STATES

    def _set_state(self, state: CaptureState):
        if state == self.state:
            return
        self.logger.info(f"Capture state: {self.state.value} -> {state.value}")
        self.state = state
        if self.on_state_change:
            self.on_state_change(state, self)

    def _fail(self, state: CaptureState, message: str):
        self.error = message
        self.logger.warning(f"Camera failure ({state.value}): {message}")
        self._set_state(state)

    def _release(self):
        """
        Release every resource held by the session.
        Does not touch the state; callers decide where the session ends up.
        """
        task, self._poll_task = self._poll_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

        if self.stream is not None:
            for track in self.stream.tracks:
                track.stop()
            self.stream = None

        if self._sink is not None:
            self._sink.clear()
            self._sink = None

        self.error = ""

    def _stream_call(self, func, *args) -> asyncio.Future:
        """
        Run a blocking stream call (play/read) in a worker thread.
        The call is tracked so teardown can wait for it before stopping tracks.
        """
        call = asyncio.ensure_future(asyncio.to_thread(func, *args))
        self._stream_calls.add(call)
        call.add_done_callback(self._stream_calls.discard)
        return call

    async def _settle_stream_calls(self):
        """
        Wait for play/read calls still running in worker threads.
        """
        pending = [call for call in self._stream_calls if not call.done()]
        if pending:
            await asyncio.wait(pending)

    async def start(self) -> CaptureState:
        """
        Request the camera and start playback.

        The work runs as a tracked task so stop() can cancel it at any point.

        Returns:
            The state the session ended up in (playing on success)
        """
        task = self._start_task
        if task is None or task.done():
            task = asyncio.ensure_future(self._start_guarded())
            self._start_task = task

        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                # Stopped while starting
                return self.state
            raise
        finally:
            if self._start_task is task and task.done():
                self._start_task = None

    async def _start_guarded(self) -> CaptureState:
        async with self._lock:
            return await self._start_locked()

    async def _start_locked(self) -> CaptureState:
        if self.state in ACTIVE_STATES:
            return self.state

        self._release()
        self._found = False
        self.payload = None

        if not self.backend.is_available():
            self._fail(CaptureState.ERROR, CameraUnavailableError().message)
            return self.state

        self._set_state(CaptureState.REQUESTING)

        try:
            if not self.devices:
                self.devices = await asyncio.to_thread(self.backend.enumerate_devices)

            if not self.devices:
                self._fail(CaptureState.DEVICE_MISSING, DEVICE_MISSING_MESSAGE)
                return self.state

            if self.device_id not in [device.device_id for device in self.devices]:
                self.device_id = preferred_device(self.devices, self.facing_mode).device_id

            stream = await self._open_stream()
        except CameraNotFoundError as e:
            self.devices = []
            self._fail(CaptureState.ERROR, e.message)
            return self.state
        except CameraError as e:
            self._fail(CaptureState.ERROR, e.message)
            return self.state

        self.stream = stream
        self._set_state(CaptureState.STREAM_OBTAINED)

        try:
            await asyncio.wait_for(self._wait_for_playback(), timeout=self.playback_timeout)
        except CameraPlaybackError as e:
            await self._settle_stream_calls()
            self._release()
            self._fail(CaptureState.PLAY_ERROR, e.message)
            return self.state
        except asyncio.TimeoutError:
            await self._settle_stream_calls()
            self._release()
            self._fail(CaptureState.ERROR, TIMEOUT_MESSAGE)
            return self.state

        self._sink = self.frame_sink
        self.error = ""
        self._set_state(CaptureState.PLAYING)
        return self.state

    async def _open_stream(self) -> VideoStream:
        """
        Open the selected device off the event loop.
        If the start is cancelled mid-open, the stream is stopped as soon as
        the open returns.
        """
        call = asyncio.ensure_future(
            asyncio.to_thread(self.backend.open, self.device_id, self.width, self.height)
        )
        try:
            return await asyncio.shield(call)
        except asyncio.CancelledError:
            call.add_done_callback(_stop_orphaned_stream)
            raise

    async def _wait_for_playback(self):
        """
        Playback counts as started once the stream delivers its first frame.
        """
        stream = self.stream
        await asyncio.shield(self._stream_call(stream.play))
        while True:
            frame = await asyncio.shield(self._stream_call(stream.read))
            if frame is not None:
                return
            await asyncio.sleep(self.scan_interval)

    async def _cancel_start(self):
        task, self._start_task = self._start_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    async def stop(self) -> CaptureState:
        """
        Stop the session from any state and return to idle.
        A start still in progress is cancelled first.
        """
        await self._cancel_start()
        async with self._lock:
            await self._settle_stream_calls()
            self._release()
            self.payload = None
            self._found = False
            self._set_state(CaptureState.IDLE)
            return self.state

    async def close(self):
        await self.stop()

    async def retry(self) -> CaptureState:
        """
        Try again after a failed start.
        """
        async with self._lock:
            if self.state not in RETRYABLE_STATES:
                return self.state
            if self.state == CaptureState.DEVICE_MISSING:
                self.devices = []
            self.error = ""
            self._set_state(CaptureState.IDLE)
        return await self.start()

    async def switch_device(self) -> bool:
        """
        Cycle to the next video input device.

        Returns:
            True if the session moved to another device
        """
        if len(self.devices) < 2:
            return False

        await self._cancel_start()
        async with self._lock:
            ids = [device.device_id for device in self.devices]
            current = ids.index(self.device_id) if self.device_id in ids else -1
            self.device_id = ids[(current + 1) % len(ids)]
            self.logger.info(f"Switching to camera {self.device_id}")

            was_running = self.state in ACTIVE_STATES
            await self._settle_stream_calls()
            self._release()
            self._set_state(CaptureState.IDLE)

        if was_running:
            await self.start()
        return True

    def sample(self) -> Optional[ScanPayload]:
        """
        One polling tick: read a frame, rasterize it, decode and parse.

        Returns:
            ScanPayload if the frame holds a valid person code, otherwise None
        """
        if self.stream is None:
            return None

        frame = self.stream.read()
        if frame is None:
            return None

        if self._sink is not None:
            self._sink.show(frame)

        raster, width, height = self.decoder.to_raster(frame)
        if raster is None:
            return None

        text = self.decoder.decode(raster, width, height)
        if text is None:
            return None

        return payload_codec.decode(text)

    async def ticks(self):
        """
        Yield one sampling result per interval while the session is playing.
        """
        while self.state == CaptureState.PLAYING and self.stream is not None:
            yield self.sample()
            await asyncio.sleep(self.scan_interval)

    def _mark_found(self, payload: ScanPayload) -> bool:
        if self._found:
            return False
        self._found = True
        self.payload = payload
        self._release()
        self.logger.info(f"QR code scanned: {payload}")
        self._set_state(CaptureState.FOUND)
        return True

    async def _poll_until_found(self) -> Optional[ScanPayload]:
        async for result in self.ticks():
            if result is not None and self._mark_found(result):
                return result
        return None

    async def scan(self) -> Optional[ScanPayload]:
        """
        Poll frames until a valid payload is found.

        Returns:
            The payload, or None if the session stopped, switched device or
            was not playing
        """
        # Let any start/switch in flight settle first
        async with self._lock:
            pass

        if self.state == CaptureState.FOUND:
            return self.payload
        if self.state != CaptureState.PLAYING:
            return None

        task = self._poll_task
        if task is None or task.done():
            task = asyncio.ensure_future(self._poll_until_found())
            self._poll_task = task

        try:
            return await task
        except asyncio.CancelledError:
            if task.cancelled() and self._poll_task is not task:
                # Stopped or switched from elsewhere
                return None
            raise
        finally:
            if self._poll_task is task and task.done():
                self._poll_task = None
