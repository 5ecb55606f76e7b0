"""Tests for QR image generation and PDF export."""

import pytest

from ministry_scanner.core.decoder import QRDecoder
from ministry_scanner.core.payload import PersonType
from ministry_scanner.utils.pdf_export import ProfilePdfExporter
from ministry_scanner.utils.qr_generator import QRGenerator, slugify


def test_generated_qr_scans_back(tmp_path) -> None:
    generator = QRGenerator(tmp_path)

    payload_text, path = generator.generate(12, PersonType.MEMBER, "Ana  Santos!")

    assert path == tmp_path / "member-12-ana-santos.png"
    assert QRDecoder().decode_image(path) == payload_text == '{"id":12,"type":"member"}'


def test_generate_without_saving(tmp_path) -> None:
    generator = QRGenerator(tmp_path)

    payload_text, path = generator.generate(3, "minister", save_image=False)

    assert payload_text == '{"id":3,"type":"minister"}'
    assert path is None
    assert not generator.qr_exists(3, "minister")


def test_generate_rejects_invalid_reference(tmp_path) -> None:
    with pytest.raises(ValueError):
        QRGenerator(tmp_path).generate(0, PersonType.MEMBER)


def test_qr_exists_and_delete(tmp_path) -> None:
    generator = QRGenerator(tmp_path)
    generator.generate(5, PersonType.MINISTER)

    assert generator.qr_exists(5, PersonType.MINISTER)
    assert generator.get_qr_path(5, PersonType.MINISTER).name == "minister-5-profile.png"
    assert generator.delete_qr(5, PersonType.MINISTER)
    assert not generator.delete_qr(5, PersonType.MINISTER)


def test_slugify() -> None:
    assert slugify("Juan Dela Cruz") == "juan-dela-cruz"
    assert slugify("  --  ") == ""
    assert slugify(None) == ""


def test_pdf_layout_skips_empty_values_and_sections(tmp_path) -> None:
    exporter = ProfilePdfExporter(tmp_path)

    lines = exporter.layout({
        "Personal Information": {"Full Name": "Juan Dela Cruz", "Nickname": None, "Gender": "  "},
        "Social Media Links": {"Facebook": None, "Instagram": ""},
        "Additional Information": {"Notes": "word " * 30},
    })

    assert lines[0] == ("section", "PERSONAL INFORMATION")
    assert lines[1] == ("field", "Full Name: Juan Dela Cruz")
    assert ("section", "SOCIAL MEDIA LINKS") not in lines
    assert lines[2] == ("section", "ADDITIONAL INFORMATION")
    assert lines[3][0] == "field"
    assert lines[4][0] == "wrap"


def test_pdf_pagination_keeps_section_titles_with_fields(tmp_path) -> None:
    exporter = ProfilePdfExporter(tmp_path, lines_per_page=3)
    lines = [
        ("section", "A"), ("field", "a: 1"),
        ("section", "B"), ("field", "b: 1"), ("field", "b: 2"),
    ]

    pages = exporter.paginate(lines)

    assert pages == [
        [("section", "A"), ("field", "a: 1")],
        [("section", "B"), ("field", "b: 1"), ("field", "b: 2")],
    ]
    assert exporter.paginate([]) == [[]]


def test_pdf_export_writes_multi_page_file(tmp_path) -> None:
    exporter = ProfilePdfExporter(tmp_path, lines_per_page=5)
    sections = {f"Section {index}": {"Value": f"value {index}"} for index in range(6)}

    path = exporter.export(sections, title="MEMBER INFORMATION", filename="member.pdf",
                           subtitle="Juan Dela Cruz", image=str(tmp_path / "missing.png"))

    data = path.read_bytes()
    assert path == tmp_path / "member.pdf"
    assert data.startswith(b"%PDF")
    assert len(exporter.paginate(exporter.layout(sections))) == 3
