import asyncio
import os
from collections.abc import Callable, Sequence

from ledger_ingest.core import settings
from ledger_ingest.detection.detector import FormatDetector
from ledger_ingest.detection.vendors import DROPI
from ledger_ingest.domain.currency import STATIC_RATES, RateTable, normalize
from ledger_ingest.errors import ExtractionFailed
from ledger_ingest.extraction.delimited import extract_delimited
from ledger_ingest.extraction.document import extract_generic
from ledger_ingest.extraction.dropi import extract_dropi
from ledger_ingest.integration.store import LedgerStoreClient
from ledger_ingest.logger import get_logger
from ledger_ingest.manager import CategorizerService
from ledger_ingest.models import (
    CandidateTransaction,
    CategorizationRule,
    ClassificationResult,
    ClassifiedTransaction,
    DelimitedText,
    DocumentGeneric,
    DocumentVendorKnown,
    NormalizedTransaction,
)
from ledger_ingest.services.review import ReviewBuffer

logger = get_logger(__name__)

Structure = DelimitedText | DocumentGeneric | DocumentVendorKnown

VENDOR_EXTRACTORS: dict[str, Callable[[str], list[CandidateTransaction]]] = {
    DROPI: extract_dropi,
}


def extract(content: str, structure: Structure) -> list[CandidateTransaction]:
    if isinstance(structure, DelimitedText):
        return extract_delimited(content, structure)
    if isinstance(structure, DocumentVendorKnown):
        extractor = VENDOR_EXTRACTORS.get(structure.vendor_id)
        if extractor is None:
            raise ExtractionFailed(f"No extractor is available for '{structure.vendor_id}' statements.")
        return extractor(content)
    return extract_generic(structure)


def classify_candidate(candidate: CandidateTransaction, result: ClassificationResult) -> ClassifiedTransaction:
    return ClassifiedTransaction(
        **candidate.model_dump(),
        category=result.category,
        counterparty=result.counterparty,
        classification_confidence=result.confidence,
        classification_reason=result.reason,
    )


def normalize_transaction(row: ClassifiedTransaction, rate_table: RateTable) -> NormalizedTransaction:
    conversion = normalize(row.amount_original, row.currency, rate_table.reporting_currency, rate_table)
    return NormalizedTransaction(
        **row.model_dump(),
        amount_reporting=conversion.amount_reporting,
        reporting_currency=rate_table.reporting_currency,
        conversion_note=conversion.note,
    )


class IngestionPipeline:
    """
    Statement to review buffer: detect, extract, classify each row, convert
    into the reporting currency. Only the inference and store calls suspend.
    """

    def __init__(
        self,
        detector: FormatDetector,
        categorizer: CategorizerService,
        store: LedgerStoreClient,
        reporting_currency: str = settings.REPORTING_CURRENCY,
        concurrency: int = settings.CLASSIFY_CONCURRENCY,
    ) -> None:
        self.detector = detector
        self.categorizer = categorizer
        self.store = store
        self.reporting_currency = reporting_currency.upper()
        self.concurrency = max(1, concurrency)

    async def detect_structure(self, content: str, filename: str) -> Structure:
        return await asyncio.to_thread(self.detector.detect, content, filename)

    async def load_rules(self, user_id: str) -> list[CategorizationRule]:
        return await self.store.get_active_rules(user_id)

    async def rate_table(self) -> RateTable:
        static = STATIC_RATES if self.reporting_currency == "COP" else None
        overrides = settings.parse_rate_overrides(os.getenv("FX_RATES"))
        stored = await self.store.get_rates(self.reporting_currency)
        if stored is None:
            logger.debug("[FX] Rate store unavailable; using the static rate table.")
        return RateTable.build(self.reporting_currency, static, overrides, stored)

    async def classify_all(
        self,
        candidates: Sequence[CandidateTransaction],
        rules: Sequence[CategorizationRule],
    ) -> list[ClassificationResult]:
        semaphore = asyncio.Semaphore(self.concurrency)

        async def classify_one(candidate: CandidateTransaction) -> ClassificationResult:
            async with semaphore:
                return await asyncio.to_thread(self.categorizer.categorize, candidate.description, rules)

        # gather keeps input order
        return list(await asyncio.gather(*(classify_one(candidate) for candidate in candidates)))

    async def extract_and_classify(
        self,
        content: str,
        structure: Structure,
        user_id: str,
        rules: Sequence[CategorizationRule] | None = None,
    ) -> list[NormalizedTransaction]:
        candidates = extract(content, structure)
        if not candidates:
            raise ExtractionFailed("No transactions could be read from the statement.")

        if rules is None:
            rules = await self.load_rules(user_id)

        results = await self.classify_all(candidates, rules)
        rate_table = await self.rate_table()
        normalized = [
            normalize_transaction(classify_candidate(candidate, result), rate_table)
            for candidate, result in zip(candidates, results)
        ]

        logger.info(
            "[INGEST] %d transactions ready for review (user %s, %s)",
            len(normalized),
            user_id,
            structure.kind,
        )
        return normalized

    async def ingest(
        self,
        content: str,
        filename: str,
        user_id: str,
        rules: Sequence[CategorizationRule] | None = None,
    ) -> tuple[Structure, ReviewBuffer]:
        structure = await self.detect_structure(content, filename)
        rows = await self.extract_and_classify(content, structure, user_id, rules)
        return structure, ReviewBuffer(user_id=user_id, store=self.store, rows=rows)
