"""
Scan workflow.

Ties the capture session, the decoder, the resolver and the action surface
together. Every entry point (camera, uploaded image, pasted text, search
selection) funnels into the same resolver call.
"""

from dataclasses import dataclass
from typing import Optional
from ministry_scanner.core import payload as payload_codec
from ministry_scanner.core.capture import CaptureSession
from ministry_scanner.core.decoder import QRDecoder
from ministry_scanner.services.actions import ProfileActions
from ministry_scanner.services.resolver import ProfileResolver, Resolution
from ministry_scanner.services.search import PersonDirectory, SearchHit
from ministry_scanner.utils.logging import setup_logger

NO_QR_FOUND = "No QR code found in the uploaded image"
INVALID_QR = "Invalid QR code format"


@dataclass(frozen=True)
class ScanOutcome:
    """
    Result of a one-shot scan. ``notice`` is set when nothing was resolved.
    """
    resolution: Optional[Resolution] = None
    notice: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.resolution is not None


class ScanService:
    """
    Facade over the scanning workflow.
    """

    def __init__(self, stores, session: CaptureSession = None, decoder: QRDecoder = None,
                 resolver: ProfileResolver = None, actions: ProfileActions = None,
                 directory: PersonDirectory = None):
        self.decoder = decoder or QRDecoder()
        self.session = session or CaptureSession(decoder=self.decoder)
        self.resolver = resolver or ProfileResolver(stores)
        self.actions = actions or ProfileActions(self.resolver, session=self.session, stores=stores)
        self.directory = directory or PersonDirectory(stores)
        self.logger = setup_logger()

    async def scan_camera(self) -> Optional[Resolution]:
        """
        Start the camera (if needed) and resolve the first valid code.

        Returns:
            The resolution, or None if the camera failed or was stopped
        """
        if not self.session.is_active:
            await self.session.start()

        found = await self.session.scan()
        if found is None:
            return None
        return await self.resolver.resolve(found)

    async def _resolve_text(self, text, empty_notice: str) -> ScanOutcome:
        if text is None:
            self.logger.info(empty_notice)
            return ScanOutcome(notice=empty_notice)

        found = payload_codec.decode(text)
        if found is None:
            self.logger.info(f"{INVALID_QR}: {text!r}")
            return ScanOutcome(notice=INVALID_QR)

        # A new result replaces whatever the camera was doing
        if self.session.is_active:
            await self.session.stop()
        return ScanOutcome(resolution=await self.resolver.resolve(found))

    async def scan_upload(self, image) -> ScanOutcome:
        """
        Decode and resolve a QR code from an uploaded image.
        The current resolution is left untouched when nothing valid is found.

        Args:
            image: Path, encoded image bytes or a file-like object
        """
        text = self.decoder.decode_image(image)
        return await self._resolve_text(text, NO_QR_FOUND)

    async def scan_text(self, text: str) -> ScanOutcome:
        """
        Resolve payload text entered by hand.
        """
        text = (text or "").strip() or None
        return await self._resolve_text(text, INVALID_QR)

    async def search(self, query: str):
        return await self.directory.search(query)

    async def select_search_hit(self, hit: SearchHit) -> Resolution:
        if self.session.is_active:
            await self.session.stop()
        return await self.resolver.resolve(self.directory.select(hit))

    async def close(self):
        await self.session.close()
