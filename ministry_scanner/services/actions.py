"""
Actions available on a resolved profile.

Type-specific behaviour (detail sections, edit form, PDF mapping, search
listing, database model) lives in
one handler per PersonType, chosen once from ``profile.type``.
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Tuple
from ministry_scanner.core.payload import PersonType
from ministry_scanner.core.profiles import MemberProfile, MinisterProfile, Profile
from ministry_scanner.database.models import Member, Minister
from ministry_scanner.services.resolver import ProfileResolver, Resolution, ResolutionStatus
from ministry_scanner.utils.logging import setup_logger
from ministry_scanner.utils.pdf_export import ProfilePdfExporter
from ministry_scanner.utils.qr_generator import QRGenerator


class ActionUnavailableError(Exception):
    """The action needs a state the workflow is not in"""


def _format_gender(value):
    return value.capitalize() if value else None


@dataclass
class ProfileDetails:
    """What the detail view shows for one person"""
    type_label: str
    name: str
    initials: str
    image: Optional[str]
    summary: Dict[str, str]
    sections: Dict[str, Dict] = field(default_factory=dict)


class MemberHandler:
    person_type = PersonType.MEMBER
    model = Member
    pdf_title = "MEMBER INFORMATION"
    editable_fields = (
        'first_name', 'middle_name', 'last_name', 'gender', 'birthdate', 'year_joined',
        'marital_status', 'mobile_number', 'email', 'home_address', 'occupation',
        'organization', 'ministry_involvement', 'educational_attainment', 'school',
        'degree', 'facebook_link', 'x_link', 'instagram_link', 'notes',
    )

    def sections(self, profile: MemberProfile) -> Dict[str, Dict]:
        return {
            "Church Information": {
                "Church Name": profile.church_name,
            },
            "Personal Information": {
                "Full Name": profile.full_name,
                "Gender": _format_gender(profile.gender),
                "Date of Birth": profile.birthdate,
                "Year Joined": profile.year_joined,
                "Marital Status": profile.marital_status,
            },
            "Contact Information": {
                "Mobile Number": profile.mobile_number,
                "Email Address": profile.email,
                "Home Address": profile.home_address,
            },
            "Social Media Links": {
                "Facebook": profile.facebook_link,
                "X (Twitter)": profile.x_link,
                "Instagram": profile.instagram_link,
            },
            "Work & Ministry Information": {
                "Occupation": profile.occupation,
                "Organization": profile.organization,
                "Ministry Involvement": profile.ministry_involvement,
            },
            "Educational Information": {
                "Educational Attainment": profile.educational_attainment,
                "School/University": profile.school,
                "Degree/Course": profile.degree,
            },
            "Additional Information": {
                "Notes": profile.notes,
            },
            "Registration Information": {
                "Registration Date": profile.created_at or "Not available",
                "Last Updated": profile.updated_at or "Not available",
            },
        }

    def list_detail(self, profile: MemberProfile) -> str:
        return profile.church_name or ""

    def pdf_filename(self, profile: MemberProfile) -> str:
        timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        return f"Member_{'_'.join(profile.full_name.split())}_{timestamp}.pdf"


class MinisterHandler:
    person_type = PersonType.MINISTER
    model = Minister
    pdf_title = "MINISTRY APPLICATION"
    editable_fields = (
        'first_name', 'middle_name', 'last_name', 'suffix', 'nickname', 'gender',
        'date_of_birth', 'place_of_birth', 'civil_status', 'email', 'telephone',
        'address', 'present_address', 'permanent_address', 'father_name',
        'mother_name', 'spouse_name', 'wedding_date', 'skills', 'hobbies', 'sports',
    )

    def sections(self, profile: MinisterProfile) -> Dict[str, Dict]:
        return {
            "Personal Information": {
                "Full Name": profile.full_name,
                "Nickname": profile.nickname,
                "Gender": _format_gender(profile.gender),
                "Date of Birth": profile.date_of_birth,
                "Place of Birth": profile.place_of_birth,
                "Civil Status": profile.civil_status,
            },
            "Contact Information": {
                "Email Address": profile.email,
                "Telephone": profile.telephone,
                "Address": profile.address,
                "Present Address": profile.present_address,
                "Permanent Address": profile.permanent_address,
            },
            "Family Information": {
                "Father's Name": profile.father_name,
                "Mother's Name": profile.mother_name,
                "Spouse's Name": profile.spouse_name,
                "Wedding Date": profile.wedding_date,
            },
            "Skills & Interests": {
                "Skills": profile.skills,
                "Hobbies": profile.hobbies,
                "Sports": profile.sports,
            },
            "Certification": {
                "Certified By": profile.certified_by,
            },
            "Registration Information": {
                "Registration Date": profile.created_at or "Not available",
                "Last Updated": profile.updated_at or "Not available",
            },
        }

    def list_detail(self, profile: MinisterProfile) -> str:
        return profile.nickname or ""

    def pdf_filename(self, profile: MinisterProfile) -> str:
        timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        return f"Ministry_Application_{'_'.join(profile.full_name.split())}_{timestamp}.pdf"


HANDLERS = {
    PersonType.MEMBER: MemberHandler(),
    PersonType.MINISTER: MinisterHandler(),
}


def handler_for(person_type: PersonType):
    return HANDLERS[person_type]


class ProfileActions:
    """
    View, edit, export and QR actions on the current resolution.
    """

    def __init__(self, resolver: ProfileResolver, session=None, exporter: ProfilePdfExporter = None,
                 qr_generator: QRGenerator = None, stores: Dict = None):
        self.resolver = resolver
        self.session = session
        self.exporter = exporter or ProfilePdfExporter()
        self.qr_generator = qr_generator or QRGenerator()
        self.stores = stores if stores is not None else resolver.stores
        self.logger = setup_logger()
        self._last_export: Optional[Tuple[Resolution, Path]] = None

    def _require_found(self) -> Tuple[Resolution, Profile]:
        resolution = self.resolver.current
        if resolution is None or resolution.status != ResolutionStatus.FOUND:
            raise ActionUnavailableError("No profile loaded")
        return resolution, resolution.profile

    def view(self) -> ProfileDetails:
        _, profile = self._require_found()
        handler = handler_for(profile.type)
        return ProfileDetails(
            type_label=profile.type.label,
            name=profile.full_name,
            initials=profile.initials,
            image=profile.image,
            summary=profile.summary(),
            sections=handler.sections(profile),
        )

    def edit(self) -> Dict:
        """
        Seed values for the edit form.
        """
        _, profile = self._require_found()
        handler = handler_for(profile.type)
        return {name: getattr(profile, name) for name in handler.editable_fields}

    async def submit_edit(self, changes: Dict) -> Resolution:
        """
        Save edited fields and reload the profile.

        Only editable fields that differ from the loaded profile are sent.
        The loaded snapshot is replaced by a fresh lookup, never patched.

        Raises:
            ActionUnavailableError: If no profile is loaded
            ProfileUpdateError: If the store rejects the update
        """
        resolution, profile = self._require_found()
        seed = self.edit()
        changed = {
            name: value for name, value in changes.items()
            if name in seed and value != seed[name]
        }
        if not changed:
            return resolution

        store = self.stores[profile.type]
        await store.update(profile.id, changed)
        self.logger.info(f"Saved {profile.payload}: {', '.join(changed)}")
        return await self.resolver.refetch()

    def export_pdf(self):
        """
        Export the loaded profile as a PDF.

        A profile snapshot is written once; asking again for the same
        resolution returns the existing file. A refetch after an edit is a new
        resolution and gets a new file.

        Returns:
            Path of the written file
        """
        resolution, profile = self._require_found()
        if self._last_export is not None:
            exported_for, path = self._last_export
            if exported_for is resolution and path.exists():
                return path

        handler = handler_for(profile.type)
        path = self.exporter.export(
            handler.sections(profile),
            title=handler.pdf_title,
            filename=handler.pdf_filename(profile),
            subtitle=profile.full_name,
            image=profile.image,
        )
        self._last_export = (resolution, Path(path))
        return path

    def regenerate_qr(self):
        """
        Render the person's QR code again.
        Works from the payload alone, so it is available for absent records too.

        Returns:
            tuple: (payload_text, image_path)
        """
        resolution = self.resolver.current
        if resolution is None:
            raise ActionUnavailableError("Nothing scanned yet")
        name = resolution.profile.display_name if resolution.profile else None
        return self.qr_generator.generate(resolution.payload.id, resolution.payload.type, name)

    async def reset(self):
        """
        Clear the result and release the camera.
        """
        self._last_export = None
        self.resolver.clear()
        if self.session is not None:
            await self.session.stop()
