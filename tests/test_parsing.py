from datetime import date
from decimal import Decimal

import pytest

from ledger_ingest.domain.parsing import (
    AmountParseError,
    direction_from_text,
    parse_amount,
    parse_statement_date,
    resolve_direction,
)
from ledger_ingest.models import Direction


def test_parse_amount_strips_symbols_and_thousands() -> None:
    assert parse_amount("$1,234.50") == Decimal("1234.50")
    assert parse_amount("-150.00") == Decimal("-150.00")
    assert parse_amount(" 200000 ") == Decimal("200000")


def test_parse_amount_blank_is_zero() -> None:
    assert parse_amount("") == Decimal(0)
    assert parse_amount(None) == Decimal(0)


def test_parse_amount_without_digits_fails() -> None:
    with pytest.raises(AmountParseError):
        parse_amount("n/a")


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("2025-01-05", date(2025, 1, 5)),
        ("05/01/2025", date(2025, 1, 5)),
        ("05-01-2025", date(2025, 1, 5)),
        ("2025-01-05T10:30:00Z", date(2025, 1, 5)),
        ("Jan 05, 2025", date(2025, 1, 5)),
    ],
)
def test_parse_statement_date_formats(raw: str, expected: date) -> None:
    assert parse_statement_date(raw) == expected


def test_parse_statement_date_unreadable() -> None:
    assert parse_statement_date("yesterday") is None
    assert parse_statement_date("   ") is None


def test_direction_words_in_both_languages() -> None:
    assert direction_from_text("Ingreso") == Direction.IN
    assert direction_from_text("Crédito") == Direction.IN
    assert direction_from_text("Débito") == Direction.OUT
    assert direction_from_text("withdrawal") == Direction.OUT
    assert direction_from_text("Transferencia") is None


def test_resolve_direction_prefers_type_cell() -> None:
    assert resolve_direction(Decimal("50"), "egreso") == Direction.OUT
    assert resolve_direction(Decimal("-50"), "abono") == Direction.IN


def test_resolve_direction_from_sign() -> None:
    assert resolve_direction(Decimal("50")) == Direction.IN
    assert resolve_direction(Decimal("-50")) == Direction.OUT
    # Zero is not income.
    assert resolve_direction(Decimal("0")) == Direction.OUT
