import asyncio
from enum import Enum
from typing import Any

from pydantic import ValidationError

from ledger_ingest.domain.records import build_records
from ledger_ingest.errors import CommitFailed, ReviewError
from ledger_ingest.integration.store import LedgerStoreClient
from ledger_ingest.logger import get_logger
from ledger_ingest.models import NormalizedTransaction

logger = get_logger(__name__)

# Review-time names of the editable fields, plus the persisted column names.
EDITABLE_FIELDS: dict[str, str] = {
    "date": "date",
    "fecha": "date",
    "description": "description",
    "descripcion": "description",
    "amount_original": "amount_original",
    "monto_original": "amount_original",
    "currency": "currency",
    "moneda": "currency",
    "direction": "direction",
    "tipo": "direction",
    "reference": "reference",
    "referencia": "reference",
    "balance_after": "balance_after",
    "category": "category",
    "categoria": "category",
    "counterparty": "counterparty",
    "contrapartida": "counterparty",
    "amount_reporting": "amount_reporting",
    "monto_cop": "amount_reporting",
    "conversion_note": "conversion_note",
    "notas": "conversion_note",
}


class ReviewState(str, Enum):
    EMPTY = "empty"
    POPULATED = "populated"
    COMMITTING = "committing"
    COMMITTED = "committed"
    DISCARDED = "discarded"


class ReviewBuffer:
    """
    Editable staging list for one ingestion. Nothing is persisted until
    ``commit``; a failed commit leaves the rows untouched for a retry.
    """

    def __init__(
        self,
        user_id: str,
        store: LedgerStoreClient,
        rows: list[NormalizedTransaction] | None = None,
    ) -> None:
        self.user_id = user_id
        self.store = store
        self.rows: list[NormalizedTransaction] = list(rows or [])
        self.state = ReviewState.POPULATED if self.rows else ReviewState.EMPTY
        self._commit_lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self.rows)

    def _ensure_open(self) -> None:
        if self.state in {ReviewState.COMMITTING, ReviewState.COMMITTED, ReviewState.DISCARDED}:
            raise ReviewError(f"This review was already {self.state.value}.", status_code=409)

    def _check_index(self, index: int) -> None:
        if index < 0 or index >= len(self.rows):
            raise ReviewError(f"Row {index} does not exist.", status_code=404)

    def edit(self, index: int, field: str, value: Any) -> NormalizedTransaction:
        """
        Replace one field of one row. The user's value is authoritative: the
        row is not re-classified and its reporting amount is not recomputed.
        """
        self._ensure_open()
        self._check_index(index)
        attribute = EDITABLE_FIELDS.get(field)
        if attribute is None:
            raise ReviewError(f"Field '{field}' cannot be edited.")

        data = self.rows[index].model_dump()
        data[attribute] = value
        try:
            updated = NormalizedTransaction.model_validate(data)
        except ValidationError as exc:
            raise ReviewError(f"Invalid value for '{field}': {exc.errors()[0]['msg']}") from exc

        self.rows[index] = updated
        logger.debug("[REVIEW] Row %d field '%s' edited", index, attribute)
        return updated

    def remove(self, index: int) -> NormalizedTransaction:
        self._ensure_open()
        self._check_index(index)
        removed = self.rows.pop(index)
        if not self.rows:
            self.state = ReviewState.EMPTY
        logger.debug("[REVIEW] Row %d removed, %d left", index, len(self.rows))
        return removed

    async def commit(self, account_id: str | None) -> int:
        # One commit at a time; a second submit waits and then sees the final state.
        async with self._commit_lock:
            self._ensure_open()
            if not self.rows:
                raise CommitFailed("There are no transactions to save.", status_code=400)
            if not account_id:
                raise CommitFailed("Select a destination account before saving.", status_code=400)

            self.state = ReviewState.COMMITTING
            committed = False
            try:
                account = await self.store.get_account(account_id, self.user_id)
                if account is None:
                    raise CommitFailed(f"Account {account_id} was not found.", status_code=400)

                records = build_records(self.rows, account, self.user_id)
                inserted = await self.store.insert_transactions(records)
                committed = True
            finally:
                if not committed:
                    self.state = ReviewState.POPULATED

            logger.info(
                "[REVIEW] Committed %d transactions to account '%s' for user %s",
                inserted,
                account.name,
                self.user_id,
            )
            self.rows = []
            self.state = ReviewState.COMMITTED
            return inserted

    def discard(self) -> None:
        self._ensure_open()
        dropped = len(self.rows)
        self.rows = []
        self.state = ReviewState.DISCARDED
        logger.info("[REVIEW] Discarded %d staged transactions", dropped)
