"""
Camera access over OpenCV.

Opening a device is the only place the environment can refuse us, so every
refusal is classified into a specific CameraError subclass with a message
that can be shown to the user as-is.
"""

import os
import sys
import cv2
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional
from ministry_scanner.config.settings import FRAME_WIDTH, FRAME_HEIGHT, FACING_MODE, MAX_CAMERA_INDEX
from ministry_scanner.utils.logging import setup_logger


class CameraError(Exception):
    """
    Base class for camera acquisition failures.
    """
    default_message = "Camera error. Please check your camera and try again."

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class CameraUnavailableError(CameraError):
    default_message = "Camera API not supported in this environment."


class CameraPermissionError(CameraError):
    default_message = "Camera access denied. Please allow camera permissions and try again."


class CameraNotFoundError(CameraError):
    default_message = "No camera found. Please connect a camera and try again."


class CameraInUseError(CameraError):
    default_message = "Camera is already in use by another application."


class CameraConstraintError(CameraError):
    default_message = "Camera doesn't support the required constraints."


class CameraPlaybackError(CameraError):
    default_message = "Failed to start video playback. The camera was granted but no video could be shown."


@dataclass(frozen=True)
class VideoDevice:
    """A video input device"""
    device_id: int
    label: str


class VideoTrack:
    """
    A single video track of an open stream (one OpenCV capture handle).
    """

    def __init__(self, capture):
        self._capture = capture
        self.live = True

    def read(self):
        if not self.live:
            return None
        ok, frame = self._capture.read()
        if not ok:
            return None
        return frame

    def stop(self):
        if self.live:
            self._capture.release()
            self.live = False


class VideoStream:
    """
    An acquired camera stream.
    """

    def __init__(self, device: VideoDevice, tracks: List[VideoTrack]):
        self.device = device
        self.tracks = tracks

    @property
    def active(self) -> bool:
        return any(track.live for track in self.tracks)

    def play(self):
        """
        Begin playback.

        Raises:
            CameraPlaybackError: If the stream has no live track to play
        """
        if not self.active:
            raise CameraPlaybackError()

    def read(self):
        """
        Read the current frame from the first live track.

        Returns:
            BGR frame (numpy array) or None if no frame is available
        """
        for track in self.tracks:
            if track.live:
                return track.read()
        return None

    def stop(self):
        for track in self.tracks:
            track.stop()


def preferred_device(devices: List[VideoDevice], facing_mode: str = FACING_MODE) -> Optional[VideoDevice]:
    """
    Pick the camera to start with.

    A device labelled back/rear/environment wins when the facing mode asks
    for the environment camera; otherwise the first device is used.
    """
    if not devices:
        return None

    if facing_mode == "environment":
        for device in devices:
            label = device.label.lower()
            if "back" in label or "rear" in label or "environment" in label:
                return device

    return devices[0]


class OpenCVCameraBackend:
    """
    Camera backend built on cv2.VideoCapture.
    """

    def __init__(self, max_index: int = MAX_CAMERA_INDEX):
        self.max_index = max_index
        self.logger = setup_logger()
        self._known_ids = set()

    def is_available(self) -> bool:
        return hasattr(cv2, "VideoCapture")

    def _device_node(self, device_id: int):
        """
        Path of the V4L2 device node on Linux, None elsewhere.
        """
        if not sys.platform.startswith("linux"):
            return None
        return Path(f"/dev/video{device_id}")

    def _sysfs_attr(self, device_id: int, name: str) -> Optional[str]:
        attr_file = Path(f"/sys/class/video4linux/video{device_id}/{name}")
        try:
            if attr_file.exists():
                return attr_file.read_text().strip()
        except OSError:
            pass
        return None

    def _device_label(self, device_id: int) -> str:
        return self._sysfs_attr(device_id, "name") or f"Camera {device_id}"

    def _is_capture_node(self, device_id: int) -> bool:
        # UVC cameras expose a second, metadata-only node with index 1
        index = self._sysfs_attr(device_id, "index")
        return index is None or index == "0"

    def enumerate_devices(self) -> List[VideoDevice]:
        """
        List video input devices.

        Where device nodes exist they are listed without being opened, so a
        camera that is busy or not permitted still shows up and open() can
        report why it failed. Elsewhere each index is opened with OpenCV.
        """
        if not self.is_available():
            raise CameraUnavailableError()

        devices = []
        for device_id in range(self.max_index + 1):
            node = self._device_node(device_id)
            if node is not None:
                if node.exists() and self._is_capture_node(device_id):
                    devices.append(VideoDevice(device_id, self._device_label(device_id)))
                continue

            capture = cv2.VideoCapture(device_id)
            try:
                if capture.isOpened():
                    devices.append(VideoDevice(device_id, self._device_label(device_id)))
            finally:
                capture.release()

        self._known_ids = {device.device_id for device in devices}
        self.logger.info(f"Found {len(devices)} video input device(s)")
        return devices

    def open(self, device_id: int, width: int = FRAME_WIDTH, height: int = FRAME_HEIGHT) -> VideoStream:
        """
        Acquire a stream from a camera.

        Raises:
            CameraUnavailableError, CameraNotFoundError, CameraPermissionError,
            CameraInUseError, CameraConstraintError
        """
        if not self.is_available():
            raise CameraUnavailableError()

        node = self._device_node(device_id)
        if node is not None:
            if not node.exists():
                raise CameraNotFoundError()
            if not os.access(node, os.R_OK | os.W_OK):
                raise CameraPermissionError()

        capture = cv2.VideoCapture(device_id)
        if not capture.isOpened():
            capture.release()
            if node is not None or device_id in self._known_ids:
                raise CameraInUseError()
            raise CameraNotFoundError()

        width_ok = capture.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        height_ok = capture.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
        if not (width_ok or height_ok):
            capture.release()
            raise CameraConstraintError()

        self.logger.info(f"Camera {device_id} opened at {width}x{height}")
        device = VideoDevice(device_id, self._device_label(device_id))
        return VideoStream(device, [VideoTrack(capture)])
