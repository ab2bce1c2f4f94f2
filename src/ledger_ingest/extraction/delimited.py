from datetime import date

from pydantic import ValidationError

from ledger_ingest.detection.delimited import content_lines, split_fields
from ledger_ingest.domain.parsing import (
    AmountParseError,
    clean_text,
    parse_amount,
    parse_statement_date,
    resolve_direction,
)
from ledger_ingest.logger import get_logger
from ledger_ingest.models import CandidateTransaction, DelimitedText, SemanticField

logger = get_logger(__name__)

PLACEHOLDER_DESCRIPTION = "Sin descripción"


class RowSkipped(ValueError):
    pass


def _field(fields: list[str], structure: DelimitedText, field: SemanticField) -> str | None:
    index = structure.column_for(field)
    if index is None or index >= len(fields):
        return None
    value = fields[index].strip()
    return value or None


def parse_row(fields: list[str], structure: DelimitedText, today: date) -> CandidateTransaction:
    raw_date = _field(fields, structure, SemanticField.DATE)
    if raw_date is None:
        row_date = today
    else:
        parsed = parse_statement_date(raw_date)
        if parsed is None:
            raise RowSkipped(f"unreadable date '{raw_date}'")
        row_date = parsed

    description = clean_text(_field(fields, structure, SemanticField.DESCRIPTION)) or PLACEHOLDER_DESCRIPTION

    try:
        amount = parse_amount(_field(fields, structure, SemanticField.AMOUNT))
    except AmountParseError as exc:
        raise RowSkipped(str(exc)) from exc

    balance_raw = _field(fields, structure, SemanticField.BALANCE)
    try:
        balance = parse_amount(balance_raw) if balance_raw is not None else None
    except AmountParseError:
        balance = None

    currency = (_field(fields, structure, SemanticField.CURRENCY) or "").upper()
    if len(currency) != 3 or not currency.isalpha():
        currency = structure.default_currency.upper()
    direction = resolve_direction(amount, _field(fields, structure, SemanticField.TYPE))

    try:
        return CandidateTransaction(
            date=row_date,
            description=description,
            amount_original=abs(amount),
            currency=currency,
            direction=direction,
            reference=_field(fields, structure, SemanticField.REFERENCE),
            balance_after=balance,
        )
    except ValidationError as exc:
        raise RowSkipped(f"invalid transaction: {exc.errors()[0]['msg']}") from exc


def extract_delimited(
    content: str,
    structure: DelimitedText,
    today: date | None = None,
) -> list[CandidateTransaction]:
    """One candidate per data line, in file order; bad lines are logged and skipped."""
    today = today or date.today()
    lines = content_lines(content)
    start = 1 if structure.has_header else 0

    candidates: list[CandidateTransaction] = []
    skipped = 0
    for line_number, line in enumerate(lines[start:], start=start + 1):
        fields = split_fields(line, structure.separator)
        try:
            candidates.append(parse_row(fields, structure, today))
        except RowSkipped as exc:
            skipped += 1
            logger.warning("[EXTRACT] Skipping line %d: %s", line_number, exc)

    logger.info(
        "[EXTRACT] Delimited extraction: %d transactions, %d lines skipped",
        len(candidates),
        skipped,
    )
    return candidates
