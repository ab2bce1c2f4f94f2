from fastapi import HTTPException, Request

from ledger_ingest.integration.store import LedgerStoreClient
from ledger_ingest.manager import CategorizerService
from ledger_ingest.services.ingestion import IngestionPipeline
from ledger_ingest.services.sessions import ReviewSessions


def get_pipeline(request: Request) -> IngestionPipeline:
    pipeline = getattr(request.app.state, "pipeline", None)
    if not pipeline:
        raise HTTPException(status_code=500, detail="Service not initialized")
    return pipeline


def get_service(request: Request) -> CategorizerService:
    service = getattr(request.app.state, "service", None)
    if not service:
        raise HTTPException(status_code=500, detail="Service not initialized")
    return service


def get_store(request: Request) -> LedgerStoreClient:
    store = getattr(request.app.state, "store", None)
    if not store:
        raise HTTPException(status_code=500, detail="Store not configured")
    return store


def get_sessions(request: Request) -> ReviewSessions:
    sessions = getattr(request.app.state, "sessions", None)
    if sessions is None:
        raise HTTPException(status_code=500, detail="Service not initialized")
    return sessions
