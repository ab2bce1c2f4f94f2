from unittest.mock import MagicMock, patch

import pytest

from ledger_ingest.domain.documents import decode_text, is_document, read_statement
from ledger_ingest.errors import DetectionFailed


def _pdf(*texts: str | None) -> MagicMock:
    pdf = MagicMock()
    pages = []
    for text in texts:
        page = MagicMock()
        page.extract_text.return_value = text
        pages.append(page)
    pdf.__enter__.return_value.pages = pages
    return pdf


def test_is_document() -> None:
    assert is_document("Extracto.PDF")
    assert not is_document("movimientos.csv")
    assert not is_document(None)


def test_decode_text_handles_legacy_encoding() -> None:
    assert decode_text("Descripción".encode("cp1252")) == "Descripción"
    assert decode_text("\ufeffFecha,Monto".encode("utf-8")) == "Fecha,Monto"


def test_read_statement_rejects_empty_upload() -> None:
    with pytest.raises(DetectionFailed):
        read_statement(b"", "empty.csv")


def test_read_statement_joins_pdf_pages() -> None:
    with patch("ledger_ingest.domain.documents.pdfplumber.open", return_value=_pdf("page one", None, "page three")):
        text = read_statement(b"%PDF-1.7", "statement.pdf")

    assert text == "page one\npage three"


def test_read_statement_scanned_pdf() -> None:
    with patch("ledger_ingest.domain.documents.pdfplumber.open", return_value=_pdf(None, "  ")):
        with pytest.raises(DetectionFailed):
            read_statement(b"%PDF-1.7", "scan.pdf")


def test_read_statement_broken_pdf() -> None:
    with patch("ledger_ingest.domain.documents.pdfplumber.open", side_effect=ValueError("bad xref")):
        with pytest.raises(DetectionFailed):
            read_statement(b"not a pdf", "broken.pdf")
