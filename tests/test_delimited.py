from datetime import date
from decimal import Decimal

from ledger_ingest.detection.delimited import detect_header, sniff_separator, split_fields
from ledger_ingest.detection.mapping import map_from_header
from ledger_ingest.extraction.delimited import PLACEHOLDER_DESCRIPTION, extract_delimited
from ledger_ingest.models import DelimitedText, Direction, SemanticField

BANK_CSV = (
    "Fecha,Descripcion,Monto,Moneda,Tipo\n"
    '2025-01-05,"PAGO FACEBOOK, ADS",-150.00,USD,egreso\n'
    "2025-01-06,ENTRADA POR GANANCIA,200000,COP,ingreso\n"
    "2025-01-07,COMPRA PAPELERIA,-35000,COP,\n"
)

CSV_STRUCTURE = DelimitedText(
    separator=",",
    has_header=True,
    column_mapping={
        0: SemanticField.DATE,
        1: SemanticField.DESCRIPTION,
        2: SemanticField.AMOUNT,
        3: SemanticField.CURRENCY,
        4: SemanticField.TYPE,
    },
    default_currency="COP",
)


def test_split_fields_keeps_quoted_separator() -> None:
    fields = split_fields('2025-01-05,"PAGO FACEBOOK, ADS",-150.00', ",")
    assert fields == ["2025-01-05", "PAGO FACEBOOK, ADS", "-150.00"]


def test_split_fields_escaped_quote() -> None:
    assert split_fields('a,"say ""hi""",b', ",") == ["a", 'say "hi"', "b"]


def test_sniff_separator() -> None:
    assert sniff_separator(BANK_CSV.splitlines()[:3]) == ","
    assert sniff_separator(["Fecha\tDescripcion\tMonto", "2025-01-05\tCafe\t-10"]) == "\t"
    assert sniff_separator(["Fecha|Descripcion|Monto", "2025-01-05|Cafe|-10"]) == "|"


def test_detect_header() -> None:
    lines = BANK_CSV.splitlines()
    assert detect_header(lines, ",") is True
    assert detect_header(lines[1:], ",") is False


def test_map_from_header_synonyms() -> None:
    mapping = map_from_header(["Date", "Concepto", "Valor", "Saldo", "Ref"])
    assert mapping == {
        0: SemanticField.DATE,
        1: SemanticField.DESCRIPTION,
        2: SemanticField.AMOUNT,
        3: SemanticField.BALANCE,
        4: SemanticField.REFERENCE,
    }


def test_extract_one_candidate_per_line_in_order() -> None:
    candidates = extract_delimited(BANK_CSV, CSV_STRUCTURE)

    assert [c.description for c in candidates] == [
        "PAGO FACEBOOK, ADS",
        "ENTRADA POR GANANCIA",
        "COMPRA PAPELERIA",
    ]
    assert all(c.amount_original >= 0 for c in candidates)


def test_extract_reads_currency_and_direction() -> None:
    first, second, third = extract_delimited(BANK_CSV, CSV_STRUCTURE)

    assert first.date == date(2025, 1, 5)
    assert first.amount_original == Decimal("150.00")
    assert first.currency == "USD"
    assert first.direction == Direction.OUT

    assert second.direction == Direction.IN
    assert second.amount_original == Decimal("200000")

    # No type cell: the sign decides.
    assert third.direction == Direction.OUT


def test_extract_without_header() -> None:
    structure = DelimitedText(
        separator="|",
        has_header=False,
        column_mapping={0: SemanticField.DATE, 1: SemanticField.DESCRIPTION, 2: SemanticField.AMOUNT},
        default_currency="USD",
    )
    content = "05/01/2025|Cafe|-4.50\n06/01/2025|Refund|12\n"

    candidates = extract_delimited(content, structure)

    assert len(candidates) == 2
    assert candidates[0].date == date(2025, 1, 5)
    assert candidates[0].currency == "USD"
    assert candidates[1].direction == Direction.IN


def test_extract_skips_unreadable_rows() -> None:
    content = (
        "Fecha,Descripcion,Monto,Moneda,Tipo\n"
        "someday,BROKEN DATE,10,COP,\n"
        "2025-01-05,BROKEN AMOUNT,abc,COP,\n"
        "2025-01-06,GOOD ROW,10,COP,\n"
    )

    candidates = extract_delimited(content, CSV_STRUCTURE)

    assert [c.description for c in candidates] == ["GOOD ROW"]


def test_extract_defaults_for_missing_cells() -> None:
    content = "Fecha,Descripcion,Monto,Moneda,Tipo\n,,25,??,\n"

    (candidate,) = extract_delimited(content, CSV_STRUCTURE, today=date(2025, 2, 1))

    assert candidate.date == date(2025, 2, 1)
    assert candidate.description == PLACEHOLDER_DESCRIPTION
    assert candidate.currency == "COP"
