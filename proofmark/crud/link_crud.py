import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from proofmark.models.models import LinkIndex
from proofmark.services.provenance.errors import PersistenceConflict

logger = logging.getLogger(__name__)


# ---------- LINK INDEX ----------
def get_linked_proof_id(db: Session, platform: str, canonical_id: str) -> Optional[str]:
    row = (
        db.query(LinkIndex)
        .filter(LinkIndex.platform == platform, LinkIndex.canonical_id == canonical_id)
        .first()
    )
    return row.proof_id if row else None


def insert_or_get_link(db: Session, platform: str, canonical_id: str, proof_id: str) -> str:
    """First writer wins; returns the proof id that owns the identity."""
    db.add(LinkIndex(platform=platform, canonical_id=canonical_id, proof_id=proof_id))
    try:
        db.commit()
        return proof_id
    except IntegrityError:
        db.rollback()

    winner = get_linked_proof_id(db, platform, canonical_id)
    if winner is None:
        raise PersistenceConflict(f"Link index conflict for {platform}:{canonical_id} without a winner")

    logger.info("Link for %s:%s already owned by proof %s", platform, canonical_id, winner)
    return winner
