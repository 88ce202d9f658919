from __future__ import annotations

import io
import logging

import docx  # python-docx
import fitz  # PyMuPDF

logger = logging.getLogger(__name__)

MAX_RESUME_BYTES = 5 * 1024 * 1024
MAX_RESUME_CHARS = 6000

PDF_MIME = "application/pdf"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
TEXT_MIME = "text/plain"


class ResumeError(ValueError):
    pass


def extract_text_from_pdf(data: bytes) -> str:
    """Extract text from PDF bytes using PyMuPDF."""
    with fitz.open(stream=data, filetype="pdf") as doc:
        parts = [page.get_text() for page in doc]
    return "\n\n".join(part for part in parts if part.strip())


def extract_text_from_docx(data: bytes) -> str:
    """Extract text from DOCX bytes using python-docx."""
    document = docx.Document(io.BytesIO(data))
    return "\n".join(paragraph.text for paragraph in document.paragraphs if paragraph.text.strip())


def extract_resume_text(data: bytes, content_type: str, filename: str = "") -> str:
    """Return resume text truncated to what the prompt can carry.

    Raises ResumeError for oversized or unsupported files.
    """
    if len(data) > MAX_RESUME_BYTES:
        raise ResumeError("Resume too large (5MB limit)")

    content_type = (content_type or "").split(";", 1)[0].strip().lower()
    suffix = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""

    try:
        if content_type == PDF_MIME or (not content_type and suffix == "pdf"):
            text = extract_text_from_pdf(data)
        elif content_type == DOCX_MIME or (not content_type and suffix == "docx"):
            text = extract_text_from_docx(data)
        elif content_type == TEXT_MIME or (not content_type and suffix == "txt"):
            text = data.decode("utf-8", errors="replace")
        else:
            raise ResumeError("Unsupported file format")
    except ResumeError:
        raise
    except Exception as exc:
        logger.warning("Resume extraction failed for %s: %s", filename or content_type, exc)
        raise ResumeError(f"Could not read resume: {exc}") from exc

    return text[:MAX_RESUME_CHARS]
