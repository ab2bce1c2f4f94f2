from collections.abc import Sequence

from ledger_ingest.errors import IngestionError
from ledger_ingest.integration.inference import InferenceError, SemanticInference
from ledger_ingest.logger import get_logger
from ledger_ingest.models import UNKNOWN_COUNTERPARTY, CategorizationRule, Category, ClassificationResult

from .base import Classifier

logger = get_logger(__name__)

DEFAULT_LLM_CONFIDENCE = 0.8

CLASSIFY_INSTRUCTIONS = """Clasifica transacciones financieras en estas categorías:
- FULFILLMENT: fletes, envíos, logística
- REV_DROPI_COD: ingresos por ventas Dropi
- WITHDRAWALS: retiros de cartera
- ADS_FACEBOOK: publicidad Facebook/Meta
- SOFTWARE_TOOLS: herramientas como OpenAI, software
- INTERNAL_TRANSFER: transferencias entre cuentas propias
- INVENTORY: compra de inventario, proveedores
- OPERATIONAL: gastos operacionales
- OTHER: otros

Responde SOLO con JSON sin markdown:
{"categoria": "NOMBRE_CATEGORIA", "contrapartida": "NOMBRE_ENTIDAD", "confidence": 0.85}"""


class LLMClassifier(Classifier):
    def __init__(self, inference: SemanticInference):
        self.inference = inference

    def classify(
        self, description: str, rules: Sequence[CategorizationRule] = ()
    ) -> ClassificationResult | None:
        try:
            payload = self.inference.complete_json(CLASSIFY_INSTRUCTIONS, f"Clasifica: {description}")
        except (InferenceError, IngestionError) as exc:
            logger.warning("[CLASSIFY] Remote classifier degraded, using built-in table: %s", exc)
            return None

        raw_category = payload.get("categoria") or payload.get("category")
        try:
            category = Category(str(raw_category).strip().upper())
        except ValueError:
            logger.warning("[CLASSIFY] Remote classifier returned unknown category %r", raw_category)
            return None

        counterparty = payload.get("contrapartida") or payload.get("counterparty")
        counterparty = str(counterparty).strip() if counterparty else UNKNOWN_COUNTERPARTY

        try:
            confidence = float(payload.get("confidence", DEFAULT_LLM_CONFIDENCE))
        except (TypeError, ValueError):
            confidence = DEFAULT_LLM_CONFIDENCE

        return ClassificationResult(
            category=category,
            counterparty=counterparty or UNKNOWN_COUNTERPARTY,
            confidence=min(1.0, max(0.0, confidence)),
            reason="semantic classifier",
            source="llm",
        )
