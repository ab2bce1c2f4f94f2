import io
import os

import pdfplumber

from ledger_ingest.errors import DetectionFailed
from ledger_ingest.logger import get_logger

logger = get_logger(__name__)

DOCUMENT_EXTENSIONS = frozenset({".pdf"})


def file_extension(filename: str | None) -> str:
    return os.path.splitext(filename or "")[1].lower()


def is_document(filename: str | None) -> bool:
    return file_extension(filename) in DOCUMENT_EXTENSIONS


def decode_text(file_bytes: bytes) -> str:
    for encoding in ("utf-8-sig", "utf-8", "cp1252", "latin-1"):
        try:
            return file_bytes.decode(encoding)
        except UnicodeDecodeError:
            continue
    return file_bytes.decode("utf-8", errors="ignore")


def extract_pdf_text(file_bytes: bytes) -> str:
    pages_text: list[str] = []
    try:
        with pdfplumber.open(io.BytesIO(file_bytes)) as pdf:
            for index, page in enumerate(pdf.pages):
                text = page.extract_text()
                if text and text.strip():
                    pages_text.append(text)
                    logger.debug("[DOC] Extracted text from page %d", index + 1)
    except Exception as exc:  # pdfplumber surfaces several pdfminer error types
        raise DetectionFailed("The PDF file could not be read.") from exc

    if not pages_text:
        logger.warning("[DOC] No text extracted from PDF; it may be a scanned image.")
        raise DetectionFailed("The PDF has no extractable text (scanned statements are not supported).")
    return "\n".join(pages_text)


def read_statement(file_bytes: bytes, filename: str | None) -> str:
    """Turn an uploaded statement into the text the pipeline works on."""
    if not file_bytes:
        raise DetectionFailed("The uploaded file is empty.")
    if is_document(filename):
        return extract_pdf_text(file_bytes)
    return decode_text(file_bytes)
