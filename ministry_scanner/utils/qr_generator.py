import re
import qrcode
from pathlib import Path
from ministry_scanner.config.paths import QR_CODES_DIR
from ministry_scanner.config.settings import QR_BOX_SIZE, QR_BORDER
from ministry_scanner.core import payload as payload_codec
from ministry_scanner.core.payload import PersonType
from ministry_scanner.utils.logging import setup_logger

_NON_SLUG = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    return _NON_SLUG.sub("-", (text or "").lower()).strip("-")


class QRGenerator:
    """
    Generates person QR codes.
    """

    def __init__(self, qr_codes_dir=None):
        self.logger = setup_logger()
        self.qr_codes_dir = Path(qr_codes_dir) if qr_codes_dir else QR_CODES_DIR
        self.qr_codes_dir.mkdir(parents=True, exist_ok=True)

    def generate(self, person_id: int, person_type, name: str = None, save_image: bool = True):
        """
        Generate a QR code carrying the person payload.

        Args:
            person_id: Member or minister id
            person_type: PersonType or its string value
            name: Optional display name used in the file name
            save_image: Whether to save the QR code as an image file

        Returns:
            tuple: (payload_text, image_path) or (payload_text, None) if save_image=False
        """
        payload_text = payload_codec.encode(person_id, person_type)

        try:
            qr = qrcode.QRCode(
                version=1,
                error_correction=qrcode.constants.ERROR_CORRECT_L,
                box_size=QR_BOX_SIZE,
                border=QR_BORDER,
            )
            qr.add_data(payload_text)
            qr.make(fit=True)

            img = qr.make_image(fill_color="black", back_color="white")

            image_path = None
            if save_image:
                image_path = self.get_qr_path(person_id, person_type, name)
                img.save(image_path)
                self.logger.info(f"QR code generated and saved: {image_path}")

            return payload_text, image_path

        except Exception as e:
            self.logger.error(f"Failed to generate QR code for {person_type} {person_id}: {e}")
            raise

    def get_qr_path(self, person_id: int, person_type, name: str = None):
        """
        Get the expected path of a person's QR code image,
        e.g. ``member-7-juan-dela-cruz.png``.
        """
        person_type = PersonType(person_type)
        slug = slugify(name) or "profile"
        return self.qr_codes_dir / f"{person_type.value}-{person_id}-{slug}.png"

    def qr_exists(self, person_id: int, person_type, name: str = None):
        return self.get_qr_path(person_id, person_type, name).exists()

    def delete_qr(self, person_id: int, person_type, name: str = None):
        """
        Delete a QR code image file.

        Returns:
            bool: True if deleted successfully
        """
        qr_path = self.get_qr_path(person_id, person_type, name)
        if qr_path.exists():
            try:
                qr_path.unlink()
                self.logger.info(f"Deleted QR code: {qr_path}")
                return True
            except OSError as e:
                self.logger.warning(f"Failed to delete QR code {qr_path}: {e}")
                return False
        return False
