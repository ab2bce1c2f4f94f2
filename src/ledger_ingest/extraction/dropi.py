"""
Deterministic extractor for Dropi wallet statements.

Each movement reads ``DD/MM/YYYY <description> Débito|Crédito
Aprobada|Rechazada|Pendiente -$1,234.00 $5,678.00``; no inference is involved.
"""

import re
from datetime import datetime
from decimal import Decimal

from ledger_ingest.domain.parsing import clean_text
from ledger_ingest.errors import ExtractionFailed
from ledger_ingest.logger import get_logger
from ledger_ingest.models import CandidateTransaction, Direction

logger = get_logger(__name__)

DROPI_CURRENCY = "COP"

TRANSACTION_PATTERN = re.compile(
    r"(?P<date>\d{2}/\d{2}/\d{4})\s+"
    r"(?P<description>[^|\n]+?)\s+"
    r"(?P<operation>D[ée]bito|Cr[ée]dito)\s+"
    r"(?P<status>Aprobada|Rechazada|Pendiente)\s+"
    r"(?P<amount>-?\s?\$\s?[\d,]+(?:\.\d+)?)\s+"
    r"\$?\s?(?P<balance>-?[\d,]+(?:\.\d+)?)",
    re.IGNORECASE,
)
CARD_PATTERN = re.compile(r"\*{4}\s*\*{4}\s*\*{4}\s*(\d{4})")
PERIOD_PATTERN = re.compile(r"Periodo:\s*(\d{2}/\d{2}/\d{4})\s*-\s*(\d{2}/\d{2}/\d{4})", re.IGNORECASE)


def _money(raw: str) -> Decimal:
    return Decimal(re.sub(r"[$,\s]", "", raw))


def read_metadata(content: str) -> tuple[str | None, str | None]:
    card_match = CARD_PATTERN.search(content)
    period_match = PERIOD_PATTERN.search(content)
    card = card_match.group(1) if card_match else None
    period = f"{period_match.group(1)} - {period_match.group(2)}" if period_match else None
    return card, period


def extract_dropi(content: str) -> list[CandidateTransaction]:
    transactions: list[CandidateTransaction] = []

    for match in TRANSACTION_PATTERN.finditer(content):
        amount = _money(match.group("amount"))
        is_credit = match.group("operation").lower().startswith("cr")
        direction = Direction.IN if is_credit or amount >= 0 else Direction.OUT

        transactions.append(CandidateTransaction(
            date=datetime.strptime(match.group("date"), "%d/%m/%Y").date(),
            description=clean_text(match.group("description")) or match.group("description"),
            amount_original=abs(amount),
            currency=DROPI_CURRENCY,
            direction=direction,
            balance_after=_money(match.group("balance")),
        ))

    if not transactions:
        logger.error("[EXTRACT] No Dropi movements matched; the vendor detection was likely wrong.")
        raise ExtractionFailed("No transactions were found in the expected Dropi format.")

    logger.info("[EXTRACT] Dropi extraction: %d transactions", len(transactions))
    return transactions
