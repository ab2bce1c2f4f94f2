import re
import unicodedata
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from ledger_ingest.models import Direction

_NON_NUMERIC = re.compile(r"[^0-9.\-]")
_WORD = re.compile(r"[a-z]+")

# Day-first formats come before month-first ones: the statements are Colombian.
_DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%d/%m/%Y",
    "%d-%m-%Y",
    "%d.%m.%Y",
    "%d/%m/%y",
    "%m/%d/%Y",
    "%d %b %Y",
    "%b %d, %Y",
)

INCOME_WORDS = frozenset({
    "in", "income", "credit", "cr", "deposit", "inflow",
    "ingreso", "ingresos", "credito", "abono", "deposito", "entrada",
})
EXPENSE_WORDS = frozenset({
    "out", "expense", "debit", "dr", "withdrawal", "outflow", "payment",
    "egreso", "egresos", "debito", "cargo", "retiro", "salida", "pago",
})


class AmountParseError(ValueError):
    pass


def strip_accents(value: str) -> str:
    normalized = unicodedata.normalize("NFKD", value)
    return "".join(char for char in normalized if not unicodedata.combining(char))


def parse_amount(raw: str | None) -> Decimal:
    """
    Parse a statement amount keeping only digits, the decimal point and a
    leading minus sign. A blank cell is zero; text without digits is an error.
    """
    if raw is None or not raw.strip():
        return Decimal(0)
    cleaned = _NON_NUMERIC.sub("", raw)
    negative = cleaned.startswith("-")
    digits = cleaned.replace("-", "")
    if not digits or digits == ".":
        raise AmountParseError(f"Amount '{raw}' has no digits")
    try:
        value = Decimal(digits)
    except InvalidOperation as exc:
        raise AmountParseError(f"Amount '{raw}' is not a number") from exc
    return -value if negative else value


def parse_statement_date(raw: str | None) -> date | None:
    if not raw:
        return None
    text = raw.strip().strip('"')
    if not text:
        return None
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    # ISO timestamps such as 2025-01-05T10:00:00Z
    if len(text) > 10:
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        except ValueError:
            return None
    return None


def direction_from_text(raw: str | None) -> Direction | None:
    """Read a type/operation cell in English or Spanish; None when ambiguous."""
    if not raw:
        return None
    words = set(_WORD.findall(strip_accents(raw.lower())))
    is_income = bool(words & INCOME_WORDS)
    is_expense = bool(words & EXPENSE_WORDS)
    if is_income and not is_expense:
        return Direction.IN
    if is_expense and not is_income:
        return Direction.OUT
    return None


def resolve_direction(amount: Decimal, type_text: str | None = None) -> Direction:
    override = direction_from_text(type_text)
    if override is not None:
        return override
    return Direction.IN if amount > 0 else Direction.OUT


def clean_text(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = re.sub(r"\s+", " ", value).strip()
    return cleaned or None
