from sqlalchemy import (
    Column, String, Text, Boolean, BigInteger, Integer, DateTime, ForeignKey, Index
)
from sqlalchemy.sql import func
import uuid

from proofmark.database.database import Base


def new_id() -> str:
    return uuid.uuid4().hex


class Asset(Base):
    __tablename__ = "assets"

    asset_id = Column(String(32), primary_key=True, default=new_id)

    sha256 = Column(String(64), nullable=False, unique=True)
    media_type = Column(String(100), nullable=False)
    size_bytes = Column(BigInteger, nullable=False)

    duration_sec = Column(Integer, nullable=True)
    width = Column(Integer, nullable=True)
    height = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Proof(Base):
    __tablename__ = "proofs"

    id = Column(String(32), primary_key=True, default=new_id)
    trustmark_id = Column(String(16), nullable=False, unique=True, index=True)

    asset_id = Column(String(32), ForeignKey("assets.asset_id"), nullable=True)

    c2pa_present = Column(Boolean, nullable=False, default=False)
    c2pa_raw_json = Column(Text, nullable=True)
    origin_status = Column(String(20), nullable=False, default="not_found")

    policy_result = Column(String(20), nullable=False, default="pass")
    policy_json = Column(Text, nullable=False, default="{}")

    metadata_id = Column(String(32), nullable=True)
    receipt_id = Column(String(32), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class Receipt(Base):
    __tablename__ = "receipts"

    id = Column(String(32), primary_key=True, default=new_id)
    proof_id = Column(String(32), ForeignKey("proofs.id"), nullable=False, unique=True)

    json = Column(Text, nullable=False)  # canonical payload, stored verbatim
    receipt_hash = Column(String(64), nullable=False)
    signature = Column(String(128), nullable=False)
    signer_pub_key = Column(String(64), nullable=False)

    pdf_path = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())


class LinkIndex(Base):
    __tablename__ = "link_index"

    platform = Column(String(20), primary_key=True)
    canonical_id = Column(String(512), primary_key=True)

    proof_id = Column(String(32), ForeignKey("proofs.id"), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("ix_link_index_proof", "proof_id"),
    )


class IdempotencyRecord(Base):
    __tablename__ = "idempotency"

    idem_key = Column(String(255), primary_key=True)

    proof_id = Column(String(32), nullable=True)
    response_json = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
