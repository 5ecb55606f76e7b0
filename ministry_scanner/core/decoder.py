import cv2
import numpy as np
from pathlib import Path
from pyzbar.pyzbar import decode as zbar_decode, ZBarSymbol
from ministry_scanner.utils.logging import setup_logger


class QRDecoder:
    """
    Extracts QR code text from raw pixels.
    Every failure comes back as None: a frame without a readable code is the
    normal case while polling.
    """

    def __init__(self):
        self.logger = setup_logger()

    def decode(self, pixels, width: int, height: int):
        """
        Decode a QR code from an RGBA pixel buffer.

        Args:
            pixels: bytes-like or numpy array with width * height * 4 samples
            width: Raster width in pixels
            height: Raster height in pixels

        Returns:
            Decoded text or None
        """
        try:
            if width <= 0 or height <= 0:
                return None

            if isinstance(pixels, np.ndarray):
                buffer = np.ascontiguousarray(pixels, dtype=np.uint8).reshape(-1)
            else:
                buffer = np.frombuffer(pixels, dtype=np.uint8)

            if buffer.size != width * height * 4:
                self.logger.debug(
                    f"Pixel buffer size {buffer.size} does not match {width}x{height} RGBA"
                )
                return None

            rgba = buffer.reshape((height, width, 4))
            # Grayscale gives zbar the most reliable input
            gray = cv2.cvtColor(rgba, cv2.COLOR_RGBA2GRAY)
            decoded_objects = zbar_decode(gray, symbols=[ZBarSymbol.QRCODE])

            for obj in decoded_objects:
                qr_data = obj.data.decode("utf-8")
                self.logger.debug(f"QR detected: {qr_data}")
                return qr_data

            return None
        except Exception as e:
            self.logger.warning(f"QR decode error: {e}")
            return None

    def to_raster(self, frame):
        """
        Convert a camera frame (BGR or grayscale) into an RGBA raster.

        Returns:
            tuple: (rgba_array, width, height) or (None, 0, 0) for unusable frames
        """
        if frame is None or not isinstance(frame, np.ndarray) or frame.size == 0:
            return None, 0, 0

        try:
            if frame.ndim == 2:
                rgba = cv2.cvtColor(frame, cv2.COLOR_GRAY2RGBA)
            elif frame.shape[2] == 4:
                rgba = cv2.cvtColor(frame, cv2.COLOR_BGRA2RGBA)
            else:
                rgba = cv2.cvtColor(frame, cv2.COLOR_BGR2RGBA)
        except cv2.error as e:
            self.logger.warning(f"Could not convert frame to RGBA: {e}")
            return None, 0, 0

        height, width = rgba.shape[:2]
        return rgba, width, height

    def decode_frame(self, frame):
        """
        Decode a QR code from a camera frame.
        """
        rgba, width, height = self.to_raster(frame)
        if rgba is None:
            return None
        return self.decode(rgba, width, height)

    def decode_image(self, source):
        """
        Decode a QR code from an uploaded image.

        Args:
            source: Path, encoded image bytes, or a file-like object

        Returns:
            Decoded text or None if the image is unreadable or has no QR code
        """
        try:
            if source is None:
                return None

            if isinstance(source, (str, Path)):
                image = cv2.imread(str(source), cv2.IMREAD_COLOR)
            else:
                data = source.read() if hasattr(source, "read") else bytes(source)
                image = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_COLOR)
        except Exception as e:
            self.logger.warning(f"Could not read image for QR decoding: {e}")
            return None

        if image is None:
            self.logger.warning("Uploaded image could not be decoded")
            return None

        return self.decode_frame(image)
