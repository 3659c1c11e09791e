from io import BytesIO

from docx import Document
import pytest

from interview_room.errors import InvalidInput
from interview_room.resume.parser import DOCX_MIMETYPE, detect_format, parse_resume


def _docx_bytes(*paragraphs: str) -> bytes:
    document = Document()
    for text in paragraphs:
        document.add_paragraph(text)
    buffer = BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def test_parse_docx_joins_paragraphs():
    text = parse_resume("cv.docx", _docx_bytes("Jane Doe", "Staff engineer"), DOCX_MIMETYPE)
    assert text.strip() == "Jane Doe\nStaff engineer"


def test_detect_format_uses_mimetype_or_extension():
    assert detect_format("upload", "application/pdf") == "pdf"
    assert detect_format("CV.PDF") == "pdf"
    assert detect_format("cv.docx", None) == "docx"
    with pytest.raises(InvalidInput):
        detect_format("cv.txt", "text/plain")


def test_empty_and_unreadable_files_are_invalid_input():
    with pytest.raises(InvalidInput):
        parse_resume("cv.pdf", b"", "application/pdf")
    with pytest.raises(InvalidInput):
        parse_resume("cv.docx", b"not a zip archive", DOCX_MIMETYPE)


def test_docx_without_text_is_invalid_input():
    with pytest.raises(InvalidInput):
        parse_resume("cv.docx", _docx_bytes("", "   "), DOCX_MIMETYPE)
