from datetime import date
from typing import Any

from pydantic import ValidationError

from ledger_ingest.domain.parsing import (
    AmountParseError,
    clean_text,
    parse_amount,
    parse_statement_date,
    resolve_direction,
)
from ledger_ingest.logger import get_logger
from ledger_ingest.models import CandidateTransaction, DocumentGeneric

logger = get_logger(__name__)


def _first(item: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = item.get(key)
        if value is not None and str(value).strip() != "":
            return value
    return None


def candidate_from_inference(item: Any, default_currency: str) -> CandidateTransaction | None:
    """Convert one inferred document transaction; None when it is unusable."""
    if not isinstance(item, dict):
        return None

    description = clean_text(str(_first(item, "descripcion", "description") or ""))
    raw_amount = _first(item, "monto_original", "monto", "amount")
    if not description or raw_amount is None:
        return None
    try:
        amount = parse_amount(str(raw_amount))
    except AmountParseError:
        return None

    raw_date = _first(item, "fecha", "date")
    parsed_date = parse_statement_date(str(raw_date)) if raw_date is not None else None
    if raw_date is not None and parsed_date is None:
        return None

    balance_raw = _first(item, "saldo", "balance")
    try:
        balance = parse_amount(str(balance_raw)) if balance_raw is not None else None
    except AmountParseError:
        balance = None

    reference = _first(item, "referencia", "reference")
    type_text = _first(item, "tipo", "type")
    currency = str(_first(item, "moneda", "currency") or default_currency).strip().upper()

    try:
        return CandidateTransaction(
            date=parsed_date or date.today(),
            description=description,
            amount_original=abs(amount),
            currency=currency,
            direction=resolve_direction(amount, str(type_text) if type_text is not None else None),
            reference=str(reference).strip() if reference is not None else None,
            balance_after=balance,
        )
    except ValidationError:
        return None


def candidates_from_inference(items: list[Any], default_currency: str) -> list[CandidateTransaction]:
    candidates: list[CandidateTransaction] = []
    for index, item in enumerate(items):
        candidate = candidate_from_inference(item, default_currency)
        if candidate is None:
            logger.warning("[EXTRACT] Skipping unusable document transaction #%d", index)
            continue
        candidates.append(candidate)
    return candidates


def extract_generic(structure: DocumentGeneric) -> list[CandidateTransaction]:
    # Detection already mapped and extracted in one pass.
    return list(structure.transactions)
