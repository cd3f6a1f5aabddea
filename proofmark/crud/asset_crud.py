import logging
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from proofmark.models.models import Asset

logger = logging.getLogger(__name__)


# ---------- CONTENT TYPE MAPPER ----------
def normalize_media_type(mime: Optional[str]) -> str:
    mime = (mime or "application/octet-stream").split(";")[0].strip().lower()
    return mime or "application/octet-stream"


def get_asset(db: Session, asset_id: str) -> Optional[Asset]:
    return db.query(Asset).filter(Asset.asset_id == asset_id).first()


def get_asset_by_sha256(db: Session, sha256: str) -> Optional[Asset]:
    return db.query(Asset).filter(Asset.sha256 == sha256).first()


def insert_or_get_asset(
    db: Session,
    sha256: str,
    media_type: str,
    size_bytes: int,
    duration_sec: Optional[int] = None,
    width: Optional[int] = None,
    height: Optional[int] = None,
) -> Tuple[Asset, bool]:
    """
    Resolve the asset for `sha256`, creating it when absent.

    Returns (asset, reused). Losing an insert race to a concurrent request
    counts as reuse of the winner's row.
    """
    existing = get_asset_by_sha256(db, sha256)
    if existing:
        logger.info("Reusing existing asset %s", existing.asset_id)
        return existing, True

    record = Asset(
        sha256=sha256,
        media_type=normalize_media_type(media_type),
        size_bytes=size_bytes,
        duration_sec=duration_sec,
        width=width,
        height=height,
    )

    db.add(record)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        winner = get_asset_by_sha256(db, sha256)
        if winner is None:
            raise
        logger.info("Asset for %s created concurrently, reusing %s", sha256, winner.asset_id)
        return winner, True

    db.refresh(record)
    logger.info("Created asset %s", record.asset_id)
    return record, False
