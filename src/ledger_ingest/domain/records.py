from ledger_ingest.models import Account, NormalizedTransaction, TransactionRecord

REVIEW_PROVENANCE = "Manual review and approval"


def build_record(row: NormalizedTransaction, account: Account, user_id: str) -> TransactionRecord:
    return TransactionRecord(
        user_id=user_id,
        account_id=account.id,
        fecha=row.date,
        descripcion=row.description,
        cuenta=account.name,
        tipo=row.direction,
        monto_original=row.amount_original,
        moneda=row.currency,
        monto_cop=row.amount_reporting,
        categoria=row.category,
        contrapartida=row.counterparty,
        referencia=row.reference,
        notas=row.conversion_note,
        confidence=row.classification_confidence,
        reason=REVIEW_PROVENANCE,
    )


def build_records(
    rows: list[NormalizedTransaction], account: Account, user_id: str
) -> list[TransactionRecord]:
    return [build_record(row, account, user_id) for row in rows]
