from collections.abc import Sequence

from ledger_ingest.models import UNKNOWN_COUNTERPARTY, CategorizationRule, ClassificationResult

from .base import Classifier

RULE_REASON = "matched user rule"


def order_rules(rules: Sequence[CategorizationRule]) -> list[CategorizationRule]:
    """Active rules by descending priority; equal priorities keep their given order."""
    active = [rule for rule in rules if rule.active and rule.keyword.strip()]
    return sorted(active, key=lambda rule: rule.priority, reverse=True)


class RuleMatcher(Classifier):
    def classify(
        self, description: str, rules: Sequence[CategorizationRule] = ()
    ) -> ClassificationResult | None:
        upper_description = description.upper()
        for rule in order_rules(rules):
            if rule.keyword.strip().upper() in upper_description:
                return ClassificationResult(
                    category=rule.category,
                    counterparty=rule.counterparty or UNKNOWN_COUNTERPARTY,
                    confidence=1.0,
                    reason=RULE_REASON,
                    source="rule",
                )
        return None
