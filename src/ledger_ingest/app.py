from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ledger_ingest.api.routes import classify, reviews, statements
from ledger_ingest.core import settings
from ledger_ingest.detection.detector import FormatDetector
from ledger_ingest.errors import IngestionError
from ledger_ingest.integration.inference import SemanticInference
from ledger_ingest.integration.store import LedgerStoreClient
from ledger_ingest.logger import get_logger, setup_logging
from ledger_ingest.manager import CategorizerService
from ledger_ingest.services.ingestion import IngestionPipeline
from ledger_ingest.services.sessions import ReviewSessions

logger = get_logger(__name__)


async def handle_ingestion_error(request: Request, exc: IngestionError) -> JSONResponse:
    logger.warning("[HTTP] %s %s -> %d: %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


def create_app() -> FastAPI:
    setup_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("Initializing services...")
        settings.log_environment()

        inference = SemanticInference.from_env()
        if inference is None:
            logger.info("OPENAI_API_KEY not set. Column inference and remote classification are disabled.")

        store = LedgerStoreClient()
        if not store.configured:
            logger.warning("LEDGER_STORE_URL or LEDGER_STORE_KEY not set. Rules, rates and commits are unavailable.")

        service = CategorizerService(inference=inference)
        detector = FormatDetector(inference=inference, default_currency=settings.REPORTING_CURRENCY)
        pipeline = IngestionPipeline(
            detector=detector,
            categorizer=service,
            store=store,
            reporting_currency=settings.REPORTING_CURRENCY,
            concurrency=settings.CLASSIFY_CONCURRENCY,
        )

        app.state.service = service
        app.state.store = store
        app.state.pipeline = pipeline
        app.state.sessions = ReviewSessions()

        logger.info("Services initialized.")
        yield
        logger.info("Service shutting down.")
        await store.aclose()

    app = FastAPI(title="Ledger Ingest", lifespan=lifespan)
    app.add_exception_handler(IngestionError, handle_ingestion_error)

    app.include_router(statements.router)
    app.include_router(reviews.router)
    app.include_router(classify.router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()
