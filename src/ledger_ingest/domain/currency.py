from collections.abc import Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from types import MappingProxyType

from ledger_ingest.logger import get_logger

logger = get_logger(__name__)

# Rates into COP used when the rate store is unreachable.
STATIC_RATES: Mapping[str, Decimal] = MappingProxyType({
    "USD": Decimal("4100"),
    "AED": Decimal("1120"),
    "COP": Decimal("1"),
})

# Minor-unit precision of reporting currencies; unlisted currencies use 2.
MINOR_UNITS: Mapping[str, int] = MappingProxyType({
    "COP": 0,
    "CLP": 0,
    "JPY": 0,
})


@dataclass(frozen=True)
class RateTable:
    """Read-only rates quoting one unit of each currency in ``reporting_currency``."""
    reporting_currency: str
    rates: Mapping[str, Decimal]

    @classmethod
    def build(
        cls,
        reporting_currency: str,
        *layers: Mapping[str, Decimal] | None,
    ) -> "RateTable":
        merged: dict[str, Decimal] = {}
        for layer in layers:
            for code, rate in (layer or {}).items():
                merged[code.upper()] = Decimal(rate)
        return cls(reporting_currency.upper(), MappingProxyType(merged))

    def rate_for(self, currency: str) -> Decimal | None:
        code = currency.upper()
        if code == self.reporting_currency:
            return Decimal(1)
        return self.rates.get(code)


@dataclass(frozen=True)
class Conversion:
    amount_reporting: Decimal
    rate: Decimal
    note: str | None


def quantize_reporting(amount: Decimal, reporting_currency: str) -> Decimal:
    places = MINOR_UNITS.get(reporting_currency.upper(), 2)
    exponent = Decimal(1).scaleb(-places)
    return amount.quantize(exponent, rounding=ROUND_HALF_UP)


def _format_rate(rate: Decimal) -> str:
    return format(rate.normalize(), "f")


def normalize(
    amount_original: Decimal,
    currency: str,
    reporting_currency: str,
    rate_table: RateTable,
) -> Conversion:
    code = currency.upper()
    reporting = reporting_currency.upper()
    if code == reporting:
        # Same currency: returned unchanged, never rounded.
        return Conversion(amount_original, Decimal(1), None)

    rate = rate_table.rate_for(code)
    if rate is None:
        # Lossy: the amount is kept as-is and the note tells the reviewer.
        logger.warning("[FX] No rate for %s -> %s; keeping the original amount.", code, reporting)
        return Conversion(
            quantize_reporting(amount_original, reporting),
            Decimal(1),
            f"FX: no rate for {code} → {reporting}; amount not converted",
        )

    converted = quantize_reporting(amount_original * rate, reporting)
    return Conversion(converted, rate, f"FX: {code} → {reporting} @ {_format_rate(rate)}")
