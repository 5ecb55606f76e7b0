"""
Member and minister profiles.

A resolved profile is one of two variants sharing the ``type``
discriminant. Code that needs type-specific behaviour looks the handler up
by ``profile.type`` once instead of testing field names.
"""

import re
from dataclasses import dataclass, fields, asdict
from typing import ClassVar, Dict, Optional, Union
from ministry_scanner.core.payload import PersonType, ScanPayload

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _snake_case(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def _normalize(record: Dict) -> Dict:
    # Rows from sqlite are snake_case; the admin API answers in camelCase
    return {_snake_case(key): value for key, value in record.items()}


@dataclass(frozen=True)
class BaseProfile:
    """Fields and accessors shared by both variants; phone and image are per variant"""
    id: int
    first_name: str
    last_name: str
    middle_name: Optional[str] = None
    gender: Optional[str] = None
    email: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    type: ClassVar[PersonType]

    @classmethod
    def from_record(cls, record: Dict):
        """
        Build a profile from a store record, ignoring unknown keys.
        """
        data = _normalize(record)
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})

    @property
    def payload(self) -> ScanPayload:
        return ScanPayload(id=self.id, type=self.type)

    @property
    def full_name(self) -> str:
        parts = [self.first_name, self.middle_name, self.last_name]
        return " ".join(part for part in parts if part)

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def initials(self) -> str:
        return "".join(part[0] for part in self.display_name.split() if part).upper()

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class MemberProfile(BaseProfile):
    """Church member record"""
    church_id: Optional[int] = None
    church_name: Optional[str] = None
    profile_picture: Optional[str] = None
    birthdate: Optional[str] = None
    year_joined: Optional[int] = None
    marital_status: Optional[str] = None
    ministry_involvement: Optional[str] = None
    occupation: Optional[str] = None
    organization: Optional[str] = None
    educational_attainment: Optional[str] = None
    school: Optional[str] = None
    degree: Optional[str] = None
    mobile_number: Optional[str] = None
    home_address: Optional[str] = None
    facebook_link: Optional[str] = None
    x_link: Optional[str] = None
    instagram_link: Optional[str] = None
    notes: Optional[str] = None
    is_active: Optional[bool] = None

    type: ClassVar[PersonType] = PersonType.MEMBER

    def summary(self) -> Dict[str, str]:
        return {
            "Email": self.email or "Not provided",
            "Phone": self.mobile_number or "Not provided",
            "Gender": self.gender or "Not specified",
            "Year Joined": str(self.year_joined) if self.year_joined else "Not provided",
        }

    @property
    def phone(self) -> Optional[str]:
        return self.mobile_number

    @property
    def image(self) -> Optional[str]:
        return self.profile_picture


@dataclass(frozen=True)
class MinisterProfile(BaseProfile):
    """Minister record"""
    suffix: Optional[str] = None
    nickname: Optional[str] = None
    date_of_birth: Optional[str] = None
    place_of_birth: Optional[str] = None
    civil_status: Optional[str] = None
    telephone: Optional[str] = None
    address: Optional[str] = None
    present_address: Optional[str] = None
    permanent_address: Optional[str] = None
    father_name: Optional[str] = None
    mother_name: Optional[str] = None
    spouse_name: Optional[str] = None
    wedding_date: Optional[str] = None
    skills: Optional[str] = None
    hobbies: Optional[str] = None
    sports: Optional[str] = None
    certified_by: Optional[str] = None
    image_url: Optional[str] = None

    type: ClassVar[PersonType] = PersonType.MINISTER

    def summary(self) -> Dict[str, str]:
        return {
            "Email": self.email or "Not provided",
            "Phone": self.telephone or "Not provided",
            "Gender": self.gender or "Not specified",
            "Civil Status": self.civil_status or "Not provided",
        }

    @property
    def full_name(self) -> str:
        name = super().full_name
        return f"{name} {self.suffix}" if self.suffix else name

    @property
    def phone(self) -> Optional[str]:
        return self.telephone

    @property
    def image(self) -> Optional[str]:
        return self.image_url


Profile = Union[MemberProfile, MinisterProfile]

PROFILE_CLASSES = {
    PersonType.MEMBER: MemberProfile,
    PersonType.MINISTER: MinisterProfile,
}


def build_profile(person_type: PersonType, record: Dict) -> Profile:
    return PROFILE_CLASSES[person_type].from_record(record)
