import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from proofmark.models.models import IdempotencyRecord

logger = logging.getLogger(__name__)


# ---------- IDEMPOTENCY ----------
def get_idempotency(db: Session, idem_key: str) -> Optional[IdempotencyRecord]:
    return db.query(IdempotencyRecord).filter(IdempotencyRecord.idem_key == idem_key).first()


def reserve_idempotency_key(db: Session, idem_key: str) -> None:
    if get_idempotency(db, idem_key):
        return

    db.add(IdempotencyRecord(idem_key=idem_key))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.debug("Idempotency key %s already reserved", idem_key)


def store_idempotent_response(db: Session, idem_key: str, proof_id: str, response_json: str) -> None:
    record = get_idempotency(db, idem_key)
    if record is None:
        record = IdempotencyRecord(idem_key=idem_key)
        db.add(record)

    # first stored response is final
    if record.response_json:
        return

    record.proof_id = proof_id
    record.response_json = response_json
    db.commit()
