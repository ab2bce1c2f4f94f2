from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, UploadFile

from ledger_ingest.api.dependencies import get_pipeline, get_sessions
from ledger_ingest.api.schemas import DetectResponse, ReviewResponse
from ledger_ingest.domain.documents import read_statement
from ledger_ingest.logger import get_logger
from ledger_ingest.models import DocumentVendorKnown
from ledger_ingest.services.ingestion import IngestionPipeline
from ledger_ingest.services.sessions import ReviewSessions

logger = get_logger(__name__)

router = APIRouter(prefix="/api/statements")


async def _read_upload(file: UploadFile) -> tuple[str, str]:
    filename = file.filename or "statement"
    data = await file.read()
    logger.info("[UPLOAD] %s (%d bytes)", filename, len(data))
    return read_statement(data, filename), filename


@router.post("/detect", response_model=DetectResponse)
async def detect_statement(
    file: Annotated[UploadFile, File()],
    pipeline: Annotated[IngestionPipeline, Depends(get_pipeline)],
) -> DetectResponse:
    content, filename = await _read_upload(file)
    structure = await pipeline.detect_structure(content, filename)
    return DetectResponse(filename=filename, structure=structure)


@router.post("/ingest", response_model=ReviewResponse)
async def ingest_statement(
    file: Annotated[UploadFile, File()],
    user_id: Annotated[str, Form(min_length=1)],
    pipeline: Annotated[IngestionPipeline, Depends(get_pipeline)],
    sessions: Annotated[ReviewSessions, Depends(get_sessions)],
) -> ReviewResponse:
    content, filename = await _read_upload(file)
    structure, buffer = await pipeline.ingest(content, filename, user_id)
    session_id = sessions.open(buffer)
    vendor = structure if isinstance(structure, DocumentVendorKnown) else None
    return ReviewResponse(
        session_id=session_id,
        state=buffer.state.value,
        structure_kind=structure.kind,
        card_last4=vendor.card_last4 if vendor else None,
        period=vendor.period if vendor else None,
        count=len(buffer),
        rows=buffer.rows,
    )
