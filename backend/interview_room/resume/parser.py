from io import BytesIO
from zipfile import BadZipFile

from docx import Document
from docx.opc.exceptions import PackageNotFoundError
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from interview_room.errors import InvalidInput

PDF_MIMETYPE = "application/pdf"
DOCX_MIMETYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def parse_pdf(file_bytes: bytes) -> str:
    reader = PdfReader(BytesIO(file_bytes))
    text = []
    for page in reader.pages:
        t = page.extract_text()
        if t:
            text.append(t)
    return "\n".join(text)


def parse_docx(file_bytes: bytes) -> str:
    doc = Document(BytesIO(file_bytes))
    return "\n".join([p.text for p in doc.paragraphs])


def detect_format(filename: str, content_type: str | None = None) -> str:
    mimetype = str(content_type or "").split(";")[0].strip().lower()
    name = str(filename or "").lower().strip()
    if mimetype == PDF_MIMETYPE or name.endswith(".pdf"):
        return "pdf"
    if mimetype == DOCX_MIMETYPE or name.endswith(".docx"):
        return "docx"
    raise InvalidInput("Unsupported file format. Please upload a PDF or DOCX resume.")


def parse_resume(filename: str, file_bytes: bytes, content_type: str | None = None) -> str:
    if not file_bytes:
        raise InvalidInput("resume file is required")

    kind = detect_format(filename, content_type)
    try:
        if kind == "pdf":
            text = parse_pdf(file_bytes)
        else:
            text = parse_docx(file_bytes)
    except (PdfReadError, PackageNotFoundError, BadZipFile, ValueError, KeyError) as exc:
        raise InvalidInput(f"Resume could not be read: {exc}") from exc

    if not text.strip():
        raise InvalidInput("Resume text is empty or could not be extracted")
    return text
