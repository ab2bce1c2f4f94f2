import asyncio
import os
from decimal import Decimal, InvalidOperation
from time import monotonic
from typing import Any

import httpx

from ledger_ingest.core import settings
from ledger_ingest.errors import CommitFailed
from ledger_ingest.logger import get_logger
from ledger_ingest.models import Account, CategorizationRule, TransactionRecord

logger = get_logger(__name__)

RULES_TABLE = "categorization_rules"
RATES_TABLE = "fx_rates"
ACCOUNTS_TABLE = "accounts"
TRANSACTIONS_TABLE = "transactions_unified"


def parse_rule_row(row: dict[str, Any]) -> CategorizationRule | None:
    try:
        return CategorizationRule(
            keyword=str(row.get("keyword") or ""),
            category=row.get("categoria"),
            counterparty=row.get("contrapartida") or None,
            priority=int(row.get("priority") or 0),
            active=bool(row.get("active", True)),
        )
    except (TypeError, ValueError) as exc:
        logger.warning("[STORE] Skipping unusable rule %s: %s", row.get("id", "?"), exc)
        return None


def latest_rates(rows: list[dict[str, Any]]) -> dict[str, Decimal]:
    """Keep the newest rate per base currency from ``fx_rates`` rows."""
    newest: dict[str, tuple[str, Decimal]] = {}
    for row in rows:
        code = str(row.get("base_code") or "").upper()
        rate_date = str(row.get("rate_date") or "")
        try:
            rate = Decimal(str(row.get("rate")))
        except InvalidOperation:
            continue
        if len(code) != 3 or rate <= 0:
            continue
        if code not in newest or rate_date > newest[code][0]:
            newest[code] = (rate_date, rate)
    return {code: rate for code, (_, rate) in newest.items()}


class LedgerStoreClient:
    """Async client for the hosted ledger tables (PostgREST dialect)."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        client: httpx.AsyncClient | None = None,
        rates_cache_ttl: float | None = None,
    ):
        base = base_url or os.getenv("LEDGER_STORE_URL")
        self.base_url = base.rstrip("/") if base else None
        self.api_key = api_key or os.getenv("LEDGER_STORE_KEY")
        self.headers = {
            "apikey": self.api_key or "",
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        self._client = client
        self._client_lock = asyncio.Lock()
        self._cache_lock = asyncio.Lock()
        self._rates_cache: dict[str, dict[str, Decimal]] = {}
        self._rates_cache_expires_at: dict[str, float] = {}
        ttl = rates_cache_ttl if rates_cache_ttl is not None else settings.FX_RATES_TTL
        self._rates_cache_ttl = max(0.0, ttl)

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.api_key)

    async def aclose(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def _get_client(self) -> httpx.AsyncClient:
        client = self._client
        if client is not None and not client.is_closed:
            return client

        async with self._client_lock:
            client = self._client
            if client is None or client.is_closed:
                client = httpx.AsyncClient(timeout=30.0)
                self._client = client
            return client

    def _table_url(self, table: str) -> str:
        return f"{self.base_url}/rest/v1/{table}"

    async def get_active_rules(self, user_id: str) -> list[CategorizationRule]:
        if not self.configured:
            return []

        client = await self._get_client()
        try:
            response = await client.get(
                self._table_url(RULES_TABLE),
                headers=self.headers,
                params={
                    "select": "*",
                    "user_id": f"eq.{user_id}",
                    "active": "eq.true",
                    "order": "priority.desc",
                },
            )
            response.raise_for_status()
            rows = response.json()
        except Exception as exc:
            logger.error("[STORE] Error fetching rules for user %s: %s", user_id, exc)
            return []

        rules = [rule for rule in (parse_rule_row(row) for row in rows) if rule is not None]
        logger.debug("[STORE] Loaded %d active rules for user %s", len(rules), user_id)
        return rules

    async def get_rates(self, quote_code: str) -> dict[str, Decimal] | None:
        """Latest rates into ``quote_code``; None when the store is unavailable."""
        if not self.configured:
            return None

        quote = quote_code.upper()
        async with self._cache_lock:
            if self._rates_cache_ttl > 0 and monotonic() < self._rates_cache_expires_at.get(quote, 0.0):
                return self._rates_cache[quote]

            client = await self._get_client()
            try:
                response = await client.get(
                    self._table_url(RATES_TABLE),
                    headers=self.headers,
                    params={
                        "select": "base_code,quote_code,rate,rate_date",
                        "quote_code": f"eq.{quote}",
                        "order": "rate_date.desc",
                    },
                )
                response.raise_for_status()
                rates = latest_rates(response.json())
            except Exception as exc:
                logger.error("[STORE] Error fetching FX rates into %s: %s", quote, exc)
                return self._rates_cache.get(quote)

            if self._rates_cache_ttl > 0:
                self._rates_cache[quote] = rates
                self._rates_cache_expires_at[quote] = monotonic() + self._rates_cache_ttl
            return rates

    async def get_account(self, account_id: str, user_id: str) -> Account | None:
        """None only when the store answers that the account does not exist."""
        if not self.configured:
            raise CommitFailed("The transaction store is not configured.")

        client = await self._get_client()
        try:
            response = await client.get(
                self._table_url(ACCOUNTS_TABLE),
                headers=self.headers,
                params={
                    "select": "id,nombre,moneda",
                    "id": f"eq.{account_id}",
                    "user_id": f"eq.{user_id}",
                },
            )
            response.raise_for_status()
            rows = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("[STORE] Error fetching account %s: %s", account_id, exc)
            raise CommitFailed() from exc

        if not rows:
            return None
        row = rows[0]
        return Account(
            id=str(row.get("id")),
            name=str(row.get("nombre") or "Unknown"),
            currency=str(row.get("moneda") or "COP"),
        )

    async def insert_transactions(self, records: list[TransactionRecord]) -> int:
        """Bulk insert; the store applies the batch atomically."""
        if not self.configured:
            raise CommitFailed("The transaction store is not configured.")

        payload = [record.model_dump(mode="json", exclude_none=True) for record in records]
        client = await self._get_client()
        try:
            response = await client.post(
                self._table_url(TRANSACTIONS_TABLE),
                headers={**self.headers, "Prefer": "return=minimal"},
                json=payload,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "[STORE] Insert of %d transactions rejected (HTTP %s): %s",
                len(records),
                exc.response.status_code,
                exc.response.text,
            )
            raise CommitFailed() from exc
        except httpx.HTTPError as exc:
            logger.error("[STORE] Insert of %d transactions failed: %s", len(records), exc)
            raise CommitFailed() from exc

        logger.info("[STORE] Inserted %d transactions.", len(records))
        return len(records)
