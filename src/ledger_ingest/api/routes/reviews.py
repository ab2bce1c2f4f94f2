from typing import Annotated

from fastapi import APIRouter, Depends

from ledger_ingest.api.dependencies import get_sessions
from ledger_ingest.api.schemas import CommitRequest, CommitResponse, EditRowRequest, ReviewResponse
from ledger_ingest.services.review import ReviewBuffer
from ledger_ingest.services.sessions import ReviewSessions

router = APIRouter(prefix="/api/reviews")


def _review_response(session_id: str, buffer: ReviewBuffer) -> ReviewResponse:
    return ReviewResponse(
        session_id=session_id,
        state=buffer.state.value,
        count=len(buffer),
        rows=buffer.rows,
    )


@router.get("/{session_id}", response_model=ReviewResponse)
async def get_review(
    session_id: str,
    sessions: Annotated[ReviewSessions, Depends(get_sessions)],
) -> ReviewResponse:
    return _review_response(session_id, sessions.get(session_id))


@router.patch("/{session_id}/rows/{index}", response_model=ReviewResponse)
async def edit_row(
    session_id: str,
    index: int,
    req: EditRowRequest,
    sessions: Annotated[ReviewSessions, Depends(get_sessions)],
) -> ReviewResponse:
    buffer = sessions.get(session_id)
    buffer.edit(index, req.field, req.value)
    return _review_response(session_id, buffer)


@router.delete("/{session_id}/rows/{index}", response_model=ReviewResponse)
async def remove_row(
    session_id: str,
    index: int,
    sessions: Annotated[ReviewSessions, Depends(get_sessions)],
) -> ReviewResponse:
    buffer = sessions.get(session_id)
    buffer.remove(index)
    return _review_response(session_id, buffer)


@router.post("/{session_id}/commit", response_model=CommitResponse)
async def commit_review(
    session_id: str,
    req: CommitRequest,
    sessions: Annotated[ReviewSessions, Depends(get_sessions)],
) -> CommitResponse:
    buffer = sessions.get(session_id)
    inserted = await buffer.commit(req.account_id)
    sessions.close_finished(session_id)
    return CommitResponse(inserted_count=inserted)


@router.delete("/{session_id}")
async def discard_review(
    session_id: str,
    sessions: Annotated[ReviewSessions, Depends(get_sessions)],
) -> dict[str, str]:
    buffer = sessions.get(session_id)
    buffer.discard()
    sessions.close_finished(session_id)
    return {"status": "discarded"}
