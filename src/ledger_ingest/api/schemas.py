from typing import Any

from pydantic import BaseModel, Field

from ledger_ingest.models import ClassificationResult, NormalizedTransaction, StructureDescriptor


class DetectResponse(BaseModel):
    filename: str
    structure: StructureDescriptor


class ReviewResponse(BaseModel):
    session_id: str
    state: str
    structure_kind: str | None = None
    card_last4: str | None = None
    period: str | None = None
    count: int
    rows: list[NormalizedTransaction]


class EditRowRequest(BaseModel):
    field: str
    value: Any = None


class CommitRequest(BaseModel):
    account_id: str = Field(min_length=1)


class CommitResponse(BaseModel):
    inserted_count: int


class ClassifyRequest(BaseModel):
    description: str = Field(min_length=1)
    user_id: str | None = None


class ClassifyResponse(BaseModel):
    result: ClassificationResult
