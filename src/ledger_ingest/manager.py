from collections.abc import Sequence

from ledger_ingest.classifiers.base import Classifier
from ledger_ingest.classifiers.keywords import KeywordClassifier
from ledger_ingest.classifiers.llm import LLMClassifier
from ledger_ingest.classifiers.rules import RuleMatcher
from ledger_ingest.integration.inference import SemanticInference
from ledger_ingest.logger import get_logger
from ledger_ingest.models import UNKNOWN_COUNTERPARTY, CategorizationRule, Category, ClassificationResult

logger = get_logger(__name__)

NO_MATCH = ClassificationResult(
    category=Category.OTHER,
    counterparty=UNKNOWN_COUNTERPARTY,
    confidence=0.0,
    reason="no match",
    source="default",
)


class CategorizerService:
    """
    Ordered classification strategy: user rules, remote classifier, built-in
    keyword table, then the OTHER/UNKNOWN terminal value. Never raises.
    """

    def __init__(self, inference: SemanticInference | None = None):
        self.classifiers: list[Classifier] = []

        # 1. User rules (highest priority)
        self.rules = RuleMatcher()
        self.classifiers.append(self.rules)

        # 2. Remote semantic classifier, only when configured
        if inference is not None:
            self.llm: LLMClassifier | None = LLMClassifier(inference)
            self.classifiers.append(self.llm)
        else:
            self.llm = None
            logger.warning("Semantic inference not configured. Remote classifier disabled.")

        # 3. Built-in keyword table
        self.keywords = KeywordClassifier()
        self.classifiers.append(self.keywords)

    def categorize(
        self, description: str, rules: Sequence[CategorizationRule] = ()
    ) -> ClassificationResult:
        for classifier in self.classifiers:
            classifier_name = classifier.__class__.__name__
            try:
                result = classifier.classify(description, rules)
            except Exception:
                logger.exception("[CLASSIFY] %s failed for '%s...'", classifier_name, description[:50])
                continue

            if result:
                logger.debug(
                    "[CLASSIFY] %s returned '%s' (confidence: %.2f) for '%s...'",
                    classifier_name,
                    result.category.value,
                    result.confidence,
                    description[:50],
                )
                return result

        logger.debug("[CLASSIFY] No classifier matched for: '%s...'", description[:50])
        return NO_MATCH.model_copy()
