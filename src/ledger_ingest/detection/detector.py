from typing import Any

from ledger_ingest.core import settings
from ledger_ingest.detection.delimited import content_lines, detect_header, sniff_separator, split_fields
from ledger_ingest.detection.mapping import map_from_header, mapping_from_payload, missing_required
from ledger_ingest.detection.vendors import DROPI, match_vendor
from ledger_ingest.domain.documents import is_document
from ledger_ingest.errors import DetectionFailed
from ledger_ingest.extraction.document import candidates_from_inference
from ledger_ingest.extraction.dropi import read_metadata
from ledger_ingest.integration.inference import InferenceError, SemanticInference
from ledger_ingest.logger import get_logger
from ledger_ingest.models import DelimitedText, DocumentGeneric, DocumentVendorKnown

logger = get_logger(__name__)

DOCUMENT_INSTRUCTIONS = """Eres un experto en análisis de extractos bancarios PDF. Tu tarea es extraer TODAS las transacciones.

BUSCA tablas con encabezados como Date/Fecha, Description/Descripción, Amount/Monto, Balance/Saldo,
Ref Number/Referencia, Débito/Crédito, Ingreso/Egreso.

REGLAS:
1. Montos negativos o en columna de débitos = tipo "out"
2. Montos positivos o en columna de créditos = tipo "in"
3. Fechas en formato YYYY-MM-DD
4. Montos sin símbolos de moneda, comas ni espacios; solo números y punto decimal
5. En conversiones de moneda el monto es la cantidad recibida (tipo "in")

Responde SOLO con JSON válido (sin markdown):
{"transactions": [{"fecha": "2025-09-06", "descripcion": "...", "monto_original": 14600, "moneda": "AED",
"tipo": "out", "referencia": "P157389908"}], "defaultCurrency": "AED", "confidence": 0.9}

Si NO encuentras transacciones, retorna {"transactions": [], "defaultCurrency": "USD", "confidence": 0.1}"""

DELIMITED_INSTRUCTIONS = """Eres un experto en análisis de extractos bancarios CSV/TSV.
Identifica las columnas y mapéalas a: fecha, descripcion, monto, moneda, tipo, referencia, saldo.
Los índices de columna empiezan en 0.

Responde SOLO con JSON válido (sin markdown):
{"columnMapping": {"0": "fecha", "1": "descripcion", "2": "monto"}, "defaultCurrency": "COP", "confidence": 0.85}"""


def sample_document(content: str) -> str:
    lines = content.split("\n")[:settings.DOCUMENT_SAMPLE_LINES]
    return "\n".join(lines)[:settings.DOCUMENT_SAMPLE_CHARS]


def _currency(payload: dict[str, Any], fallback: str) -> str:
    value = payload.get("defaultCurrency") or payload.get("default_currency")
    if isinstance(value, str) and len(value.strip()) == 3 and value.strip().isalpha():
        return value.strip().upper()
    return fallback


def _confidence(payload: dict[str, Any], default: float) -> float:
    try:
        value = float(payload.get("confidence", default))
    except (TypeError, ValueError):
        return default
    return min(1.0, max(0.0, value))


class FormatDetector:
    def __init__(
        self,
        inference: SemanticInference | None = None,
        default_currency: str = settings.REPORTING_CURRENCY,
    ) -> None:
        self.inference = inference
        self.default_currency = default_currency

    def detect(self, content: str, filename: str) -> DelimitedText | DocumentGeneric | DocumentVendorKnown:
        if not content or not content.strip():
            raise DetectionFailed("The statement has no readable content.")

        if is_document(filename):
            vendor = match_vendor(content)
            if vendor is not None:
                logger.info("[DETECT] %s: known vendor layout '%s'", filename, vendor.vendor_id)
                card_last4, period = read_metadata(content) if vendor.vendor_id == DROPI else (None, None)
                return DocumentVendorKnown(
                    vendor_id=vendor.vendor_id,
                    confidence=1.0,
                    card_last4=card_last4,
                    period=period,
                )
            return self._detect_document(content, filename)

        return self._detect_delimited(content, filename)

    def _infer(self, instructions: str, user_input: str, failure_message: str) -> dict[str, Any]:
        if self.inference is None:
            raise DetectionFailed(failure_message)
        try:
            return self.inference.complete_json(instructions, user_input)
        except InferenceError as exc:
            logger.error("[DETECT] Structure inference failed: %s", exc)
            raise DetectionFailed(failure_message) from exc

    def _detect_document(self, content: str, filename: str) -> DocumentGeneric:
        sample = sample_document(content)
        logger.info(
            "[DETECT] %s: generic document, analysing %d of %d characters",
            filename,
            len(sample),
            len(content),
        )
        payload = self._infer(
            DOCUMENT_INSTRUCTIONS,
            f"Analiza este extracto bancario y extrae TODAS las transacciones de las tablas:\n\n{sample}",
            "Transactions could not be extracted from the PDF; the format may not be supported.",
        )

        items = payload.get("transactions")
        if not isinstance(items, list):
            raise DetectionFailed("Transactions could not be extracted from the PDF; the format may not be supported.")
        default_currency = _currency(payload, self.default_currency)
        transactions = candidates_from_inference(items, default_currency)
        if not transactions:
            raise DetectionFailed(
                "No transactions were found in the PDF. Check that it is a bank statement with a movements table."
            )

        logger.info("[DETECT] %s: %d transactions extracted by inference", filename, len(transactions))
        return DocumentGeneric(
            confidence=_confidence(payload, 0.5),
            default_currency=default_currency,
            transactions=transactions,
        )

    def _detect_delimited(self, content: str, filename: str) -> DelimitedText:
        sample = content_lines(content)[:settings.DELIMITED_SAMPLE_LINES]
        separator = sniff_separator(sample)
        has_header = detect_header(sample, separator)
        logger.info(
            "[DETECT] %s: delimited text, separator=%r, header=%s",
            filename,
            separator,
            has_header,
        )

        if self.inference is not None:
            payload = self._infer(
                DELIMITED_INSTRUCTIONS,
                "Analiza este extracto y mapea las columnas:\n\n" + "\n".join(sample),
                "The column layout of the file could not be identified.",
            )
            mapping = mapping_from_payload(payload.get("columnMapping") or payload.get("column_mapping"))
            default_currency = _currency(payload, self.default_currency)
        elif has_header:
            mapping = map_from_header(split_fields(sample[0], separator))
            default_currency = self.default_currency
            if not mapping:
                raise DetectionFailed("The column layout of the file could not be identified from its header.")
        else:
            raise DetectionFailed("The file has no header and column analysis is not configured.")

        missing = missing_required(mapping)
        if missing:
            logger.warning(
                "[DETECT] %s: mapping lacks %s; rows will use default values",
                filename,
                ", ".join(field.value for field in missing),
            )

        return DelimitedText(
            separator=separator,
            has_header=has_header,
            column_mapping=mapping,
            default_currency=default_currency,
        )
