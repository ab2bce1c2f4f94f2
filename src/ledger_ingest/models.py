from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, Field, field_validator


class Direction(str, Enum):
    IN = "in"
    OUT = "out"


class Category(str, Enum):
    FULFILLMENT = "FULFILLMENT"
    REV_DROPI_COD = "REV_DROPI_COD"
    WITHDRAWALS = "WITHDRAWALS"
    ADS_FACEBOOK = "ADS_FACEBOOK"
    SOFTWARE_TOOLS = "SOFTWARE_TOOLS"
    INTERNAL_TRANSFER = "INTERNAL_TRANSFER"
    INVENTORY = "INVENTORY"
    OPERATIONAL = "OPERATIONAL"
    OTHER = "OTHER"


UNKNOWN_COUNTERPARTY = "UNKNOWN"


class SemanticField(str, Enum):
    DATE = "date"
    DESCRIPTION = "description"
    AMOUNT = "amount"
    CURRENCY = "currency"
    TYPE = "type"
    REFERENCE = "reference"
    BALANCE = "balance"


# Column labels the inference service answers with (the statements are Spanish).
SEMANTIC_FIELD_ALIASES: dict[str, SemanticField] = {
    "fecha": SemanticField.DATE,
    "descripcion": SemanticField.DESCRIPTION,
    "monto": SemanticField.AMOUNT,
    "monto_original": SemanticField.AMOUNT,
    "moneda": SemanticField.CURRENCY,
    "tipo": SemanticField.TYPE,
    "referencia": SemanticField.REFERENCE,
    "saldo": SemanticField.BALANCE,
}


def resolve_semantic_field(label: str) -> SemanticField | None:
    key = label.strip().lower()
    if key in SEMANTIC_FIELD_ALIASES:
        return SEMANTIC_FIELD_ALIASES[key]
    try:
        return SemanticField(key)
    except ValueError:
        return None


class CandidateTransaction(BaseModel):
    date: date
    description: str = Field(min_length=1)
    amount_original: Decimal = Field(ge=0)
    currency: str = Field(min_length=3, max_length=3)
    direction: Direction
    reference: str | None = None
    balance_after: Decimal | None = None

    @field_validator("currency")
    @classmethod
    def _upper_currency(cls, value: str) -> str:
        return value.upper()


class ClassificationResult(BaseModel):
    category: Category
    counterparty: str = UNKNOWN_COUNTERPARTY
    confidence: float = Field(ge=0.0, le=1.0)
    reason: str
    source: str  # "rule", "llm", "keyword", "default"


class ClassifiedTransaction(CandidateTransaction):
    category: Category = Category.OTHER
    counterparty: str = UNKNOWN_COUNTERPARTY
    classification_confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    classification_reason: str = "no match"


class NormalizedTransaction(ClassifiedTransaction):
    amount_reporting: Decimal = Field(ge=0)
    reporting_currency: str
    conversion_note: str | None = None


class CategorizationRule(BaseModel):
    keyword: str
    category: Category
    counterparty: str | None = None
    priority: int = 0
    active: bool = True


class Account(BaseModel):
    id: str
    name: str
    currency: str = "COP"


class DelimitedText(BaseModel):
    kind: Literal["delimited"] = "delimited"
    separator: Literal[",", "\t", "|"]
    has_header: bool
    column_mapping: dict[int, SemanticField]
    default_currency: str = "COP"

    @field_validator("column_mapping")
    @classmethod
    def _non_negative_columns(cls, value: dict[int, SemanticField]) -> dict[int, SemanticField]:
        if any(index < 0 for index in value):
            raise ValueError("column indexes must be non-negative")
        return value

    def column_for(self, field: SemanticField) -> int | None:
        for index, mapped in self.column_mapping.items():
            if mapped == field:
                return index
        return None


class DocumentGeneric(BaseModel):
    kind: Literal["document_generic"] = "document_generic"
    confidence: float = Field(ge=0.0, le=1.0)
    default_currency: str = "COP"
    # Filled by the inference step, which maps and extracts in one pass.
    transactions: list[CandidateTransaction] = Field(default_factory=list)


class DocumentVendorKnown(BaseModel):
    kind: Literal["document_vendor"] = "document_vendor"
    vendor_id: str
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    card_last4: str | None = None
    period: str | None = None


StructureDescriptor = Annotated[
    DelimitedText | DocumentGeneric | DocumentVendorKnown,
    Field(discriminator="kind"),
]


class TransactionRecord(BaseModel):
    """Row shape of the ``transactions_unified`` table."""
    user_id: str
    account_id: str
    fecha: date
    descripcion: str
    cuenta: str
    tipo: Direction
    monto_original: Decimal = Field(ge=0)
    moneda: str
    monto_cop: Decimal = Field(ge=0)
    categoria: Category | None = None
    contrapartida: str | None = None
    referencia: str | None = None
    notas: str | None = None
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    reason: str | None = None
