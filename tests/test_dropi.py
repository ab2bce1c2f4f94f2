from datetime import date
from decimal import Decimal

import pytest

from ledger_ingest.detection.vendors import DROPI, match_vendor
from ledger_ingest.errors import ExtractionFailed
from ledger_ingest.extraction.dropi import extract_dropi, read_metadata
from ledger_ingest.models import Direction

DROPI_STATEMENT = """DROPI
Movimientos y transacciones
Tarjeta **** **** **** 4821
Periodo: 01/01/2025 - 31/01/2025
Fecha Descripción Tipo Estado Monto Saldo
05/01/2025 COBRO DE FLETE GUIA 240011 Débito Aprobada -$12,500.00 $87,500.00
06/01/2025 ENTRADA POR GANANCIA ORDEN 9912 Crédito Aprobada $45,000.00 $132,500.00
07/01/2025 RETIRO DE SALDO Débito Pendiente -$100,000.00 $32,500.00
"""


def test_vendor_signature_matches_dropi() -> None:
    vendor = match_vendor(DROPI_STATEMENT)
    assert vendor is not None
    assert vendor.vendor_id == DROPI
    assert match_vendor("Emirates NBD account statement") is None


def test_read_metadata() -> None:
    card, period = read_metadata(DROPI_STATEMENT)
    assert card == "4821"
    assert period == "01/01/2025 - 31/01/2025"


def test_extract_dropi_movements() -> None:
    transactions = extract_dropi(DROPI_STATEMENT)

    assert len(transactions) == 3
    freight, earnings, withdrawal = transactions

    assert freight.date == date(2025, 1, 5)
    assert freight.description == "COBRO DE FLETE GUIA 240011"
    assert freight.amount_original == Decimal("12500.00")
    assert freight.direction == Direction.OUT
    assert freight.currency == "COP"
    assert freight.balance_after == Decimal("87500.00")

    assert earnings.direction == Direction.IN
    assert earnings.amount_original == Decimal("45000.00")

    assert withdrawal.direction == Direction.OUT


def test_extract_dropi_without_movements_fails() -> None:
    with pytest.raises(ExtractionFailed):
        extract_dropi("DROPI\nMovimientos y transacciones\nSin movimientos en el periodo")
