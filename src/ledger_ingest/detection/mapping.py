from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from ledger_ingest.domain.parsing import strip_accents
from ledger_ingest.errors import DetectionFailed
from ledger_ingest.logger import get_logger
from ledger_ingest.models import SemanticField, resolve_semantic_field

logger = get_logger(__name__)

HEADER_SYNONYMS: dict[SemanticField, tuple[str, ...]] = {
    SemanticField.DATE: (
        "fecha", "date", "transaction date", "posted date", "fecha transaccion", "fecha movimiento",
    ),
    SemanticField.DESCRIPTION: (
        "descripcion", "description", "concepto", "detalle", "memo", "details", "movimiento",
    ),
    SemanticField.AMOUNT: ("monto", "amount", "valor", "importe", "value", "total"),
    SemanticField.CURRENCY: ("moneda", "currency", "divisa"),
    SemanticField.TYPE: ("tipo", "type", "tipo operacion", "operacion", "naturaleza"),
    SemanticField.REFERENCE: ("referencia", "reference", "ref", "ref number", "comprobante"),
    SemanticField.BALANCE: ("saldo", "balance", "running balance"),
}

REQUIRED_FIELDS = (SemanticField.DATE, SemanticField.DESCRIPTION)


def _normalize_header(value: str) -> str:
    return " ".join(strip_accents(value).lower().replace("_", " ").split())


def map_from_header(header: Sequence[str]) -> dict[int, SemanticField]:
    """Map columns by header name; first matching column wins per field."""
    mapping: dict[int, SemanticField] = {}
    normalized = [_normalize_header(value) for value in header]
    for field, synonyms in HEADER_SYNONYMS.items():
        for index, name in enumerate(normalized):
            if index in mapping:
                continue
            if name in synonyms:
                mapping[index] = field
                break
    return dict(sorted(mapping.items()))


def mapping_from_payload(raw: Any) -> dict[int, SemanticField]:
    """Validate a ``columnMapping`` object returned by the inference service."""
    if not isinstance(raw, Mapping) or not raw:
        raise DetectionFailed("The column layout of the file could not be identified.")

    mapping: dict[int, SemanticField] = {}
    seen: set[SemanticField] = set()
    for key, label in raw.items():
        try:
            index = int(key)
        except (TypeError, ValueError) as exc:
            raise DetectionFailed("The column layout of the file could not be identified.") from exc
        if index < 0 or not isinstance(label, str):
            raise DetectionFailed("The column layout of the file could not be identified.")
        field = resolve_semantic_field(label)
        if field is None:
            logger.debug("[DETECT] Ignoring column %d mapped to unknown field '%s'", index, label)
            continue
        if field in seen:
            logger.debug("[DETECT] Column %d repeats field '%s'; keeping the first", index, field.value)
            continue
        seen.add(field)
        mapping[index] = field

    if not mapping:
        raise DetectionFailed("The column layout of the file could not be identified.")
    return dict(sorted(mapping.items()))


def missing_required(mapping: Mapping[int, SemanticField]) -> list[SemanticField]:
    present: Iterable[SemanticField] = mapping.values()
    return [field for field in REQUIRED_FIELDS if field not in set(present)]
