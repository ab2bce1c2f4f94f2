from abc import ABC, abstractmethod
from collections.abc import Sequence

from ledger_ingest.models import CategorizationRule, ClassificationResult


class Classifier(ABC):
    @abstractmethod
    def classify(
        self, description: str, rules: Sequence[CategorizationRule] = ()
    ) -> ClassificationResult | None:
        """Attempt to categorize the description; None passes to the next tier."""
        pass
