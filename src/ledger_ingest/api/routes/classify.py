import asyncio
from typing import Annotated

from fastapi import APIRouter, Depends

from ledger_ingest.api.dependencies import get_service, get_store
from ledger_ingest.api.schemas import ClassifyRequest, ClassifyResponse
from ledger_ingest.integration.store import LedgerStoreClient
from ledger_ingest.manager import CategorizerService

router = APIRouter(prefix="/api")


@router.post("/classify", response_model=ClassifyResponse)
async def classify_description(
    req: ClassifyRequest,
    service: Annotated[CategorizerService, Depends(get_service)],
    store: Annotated[LedgerStoreClient, Depends(get_store)],
) -> ClassifyResponse:
    rules = await store.get_active_rules(req.user_id) if req.user_id else []
    result = await asyncio.to_thread(service.categorize, req.description, rules)
    return ClassifyResponse(result=result)
