"""
Scan payload codec.

Every generated person QR code carries the JSON text
``{"id":<id>,"type":"member"|"minister"}``. Decoding is a classification,
not a validation step that raises: text scanned from the environment is
often something else entirely, so anything that does not match the shape
comes back as ``None``.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union


class PersonType(Enum):
    """Which collection a payload id refers to"""
    MEMBER = "member"
    MINISTER = "minister"

    @property
    def label(self) -> str:
        return self.value.capitalize()


@dataclass(frozen=True)
class ScanPayload:
    """Decoded contents of a person QR code"""
    id: int
    type: PersonType

    def to_dict(self) -> dict:
        return {"id": self.id, "type": self.type.value}

    def __str__(self) -> str:
        return f"{self.type.label} #{self.id}"


def _is_valid_id(value) -> bool:
    # bool is an int subclass; True must not pass for id 1
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def encode(person_id: int, person_type: Union[PersonType, str]) -> str:
    """
    Serialize a person reference into the canonical payload text.

    Args:
        person_id: Primary key of the member or minister
        person_type: PersonType or its string value

    Returns:
        Compact JSON string, e.g. '{"id":7,"type":"minister"}'

    Raises:
        ValueError: If the id is not a positive integer or the type is unknown
    """
    if not _is_valid_id(person_id):
        raise ValueError(f"Invalid person id: {person_id!r}")
    person_type = PersonType(person_type)
    return json.dumps(
        {"id": person_id, "type": person_type.value},
        separators=(",", ":"),
    )


def decode(text: Union[str, bytes, None]) -> Optional[ScanPayload]:
    """
    Parse payload text scanned from a QR code.

    Args:
        text: Raw decoded text (or UTF-8 bytes)

    Returns:
        ScanPayload, or None when the text is not a valid person payload
    """
    if text is None:
        return None

    if isinstance(text, bytes):
        try:
            text = text.decode("utf-8")
        except UnicodeDecodeError:
            return None

    try:
        data = json.loads(text)
    except (TypeError, ValueError):
        return None

    if not isinstance(data, dict):
        return None

    person_id = data.get("id")
    if not _is_valid_id(person_id):
        return None

    try:
        person_type = PersonType(data.get("type"))
    except (TypeError, ValueError):
        return None

    return ScanPayload(id=person_id, type=person_type)
