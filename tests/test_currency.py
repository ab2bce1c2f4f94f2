from decimal import Decimal

import pytest

from ledger_ingest.core.settings import parse_rate_overrides
from ledger_ingest.domain.currency import STATIC_RATES, RateTable, normalize, quantize_reporting


@pytest.fixture
def cop_table() -> RateTable:
    return RateTable.build("COP", STATIC_RATES)


def test_convert_foreign_amount(cop_table: RateTable) -> None:
    conversion = normalize(Decimal("150.00"), "USD", "COP", cop_table)

    assert conversion.amount_reporting == Decimal("615000")
    assert conversion.rate == Decimal("4100")
    assert conversion.note == "FX: USD → COP @ 4100"


def test_reporting_currency_passes_through(cop_table: RateTable) -> None:
    conversion = normalize(Decimal("200000"), "cop", "COP", cop_table)

    assert conversion.amount_reporting == Decimal("200000")
    assert conversion.note is None


def test_missing_rate_keeps_amount_and_flags_it(cop_table: RateTable) -> None:
    conversion = normalize(Decimal("80"), "EUR", "COP", cop_table)

    assert conversion.amount_reporting == Decimal("80")
    assert conversion.rate == Decimal(1)
    assert conversion.note is not None
    assert "EUR" in conversion.note
    assert "not converted" in conversion.note


def test_later_layers_override_earlier() -> None:
    table = RateTable.build("COP", STATIC_RATES, {"usd": Decimal("3950")}, None)

    assert table.rate_for("USD") == Decimal("3950")
    assert table.rate_for("AED") == Decimal("1120")
    assert table.rate_for("COP") == Decimal(1)


def test_rate_table_is_read_only(cop_table: RateTable) -> None:
    with pytest.raises(TypeError):
        cop_table.rates["USD"] = Decimal("1")  # type: ignore[index]


def test_quantize_uses_minor_units() -> None:
    assert quantize_reporting(Decimal("1234.5"), "COP") == Decimal("1235")
    assert quantize_reporting(Decimal("10.005"), "USD") == Decimal("10.01")


def test_non_reporting_quote_currency() -> None:
    table = RateTable.build("USD", {"COP": Decimal("0.00025")})
    conversion = normalize(Decimal("200000"), "COP", "USD", table)

    assert conversion.amount_reporting == Decimal("50.00")


def test_parse_rate_overrides() -> None:
    assert parse_rate_overrides("usd=4000, AED=1100,bad,EUR=x") == {
        "USD": Decimal("4000"),
        "AED": Decimal("1100"),
    }
    assert parse_rate_overrides(None) == {}


def test_usd_row_into_cop() -> None:
    table = RateTable.build("COP", {"USD": Decimal("4100")})
    conversion = normalize(Decimal("100"), "USD", "COP", table)

    assert conversion.amount_reporting == Decimal("410000")
    assert conversion.note is not None


def test_unknown_currency_is_flagged() -> None:
    table = RateTable.build("COP", {"USD": Decimal("4100")})
    conversion = normalize(Decimal("42"), "XYZ", "COP", table)

    assert conversion.amount_reporting == Decimal("42")
    assert conversion.note == "FX: no rate for XYZ → COP; amount not converted"


def test_reporting_currency_amount_is_not_rounded(cop_table: RateTable) -> None:
    conversion = normalize(Decimal("1234.56"), "COP", "COP", cop_table)

    assert conversion.amount_reporting == Decimal("1234.56")
    assert conversion.note is None
