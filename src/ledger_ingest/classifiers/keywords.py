from collections.abc import Mapping, Sequence
from types import MappingProxyType

from ledger_ingest.models import CategorizationRule, Category, ClassificationResult

from .base import Classifier

KEYWORD_CONFIDENCE = 0.85

# Built-in defaults, checked in this order after user rules and the remote classifier.
DEFAULT_KEYWORDS: Mapping[str, tuple[Category, str]] = MappingProxyType({
    "COBRO DE FLETE": (Category.FULFILLMENT, "COORDINADORA"),
    "ENTRADA POR GANANCIA": (Category.REV_DROPI_COD, "DROPI_PLATFORM"),
    "RETIRO DE SALDO": (Category.WITHDRAWALS, "DROPICARTERA"),
    "CONSO": (Category.WITHDRAWALS, "DROPICARTERA"),
    "FACEBOOK": (Category.ADS_FACEBOOK, "FACEBOOK"),
    "META": (Category.ADS_FACEBOOK, "FACEBOOK"),
    "OPENAI": (Category.SOFTWARE_TOOLS, "OPENAI"),
    "CHATGPT": (Category.SOFTWARE_TOOLS, "OPENAI"),
    "TRANSFERENCIA DE WALLET": (Category.INTERNAL_TRANSFER, "SELF"),
    "MERCURY": (Category.INTERNAL_TRANSFER, "MERCURY"),
    "SLASH": (Category.INTERNAL_TRANSFER, "SLASH"),
})


class KeywordClassifier(Classifier):
    def __init__(self, table: Mapping[str, tuple[Category, str]] = DEFAULT_KEYWORDS):
        self.table = table

    def classify(
        self, description: str, rules: Sequence[CategorizationRule] = ()
    ) -> ClassificationResult | None:
        upper_description = description.upper()
        for keyword, (category, counterparty) in self.table.items():
            if keyword in upper_description:
                return ClassificationResult(
                    category=category,
                    counterparty=counterparty,
                    confidence=KEYWORD_CONFIDENCE,
                    reason=f"matched built-in keyword '{keyword}'",
                    source="keyword",
                )
        return None
