from typing import List, Optional

from sqlalchemy.orm import Session

from proofmark.models.models import Proof, Receipt


# ---------- PROOFS ----------
def insert_proof(
    db: Session,
    proof_id: str,
    trustmark_id: str,
    asset_id: Optional[str],
    c2pa_present: bool,
    c2pa_raw_json: Optional[str],
    origin_status: str,
    policy_result: str = "pass",
    policy_json: str = "{}",
) -> Proof:
    if c2pa_present and not c2pa_raw_json:
        raise ValueError("A proof with a C2PA manifest must keep the raw manifest JSON")

    record = Proof(
        id=proof_id,
        trustmark_id=trustmark_id,
        asset_id=asset_id,
        c2pa_present=c2pa_present,
        c2pa_raw_json=c2pa_raw_json,
        origin_status=origin_status,
        policy_result=policy_result,
        policy_json=policy_json,
    )

    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def get_proof(db: Session, proof_id: str) -> Optional[Proof]:
    return db.query(Proof).filter(Proof.id == proof_id).first()


def get_proof_by_trustmark(db: Session, trustmark_id: str) -> Optional[Proof]:
    return db.query(Proof).filter(Proof.trustmark_id == trustmark_id).first()


def trustmark_exists(db: Session, trustmark_id: str) -> bool:
    return db.query(Proof.id).filter(Proof.trustmark_id == trustmark_id).first() is not None


def set_proof_receipt(db: Session, proof: Proof, receipt_id: str) -> Proof:
    # the only mutation a proof sees after creation
    proof.receipt_id = receipt_id
    db.commit()
    db.refresh(proof)
    return proof


def list_proofs(db: Session, limit: int = 100) -> List[Proof]:
    return (
        db.query(Proof)
        .order_by(Proof.created_at.desc())
        .limit(limit)
        .all()
    )


def count_proofs(db: Session) -> int:
    return db.query(Proof).count()


# ---------- RECEIPTS ----------
def insert_receipt(
    db: Session,
    proof_id: str,
    json_text: str,
    receipt_hash: str,
    signature: str,
    signer_pub_key: str,
) -> Receipt:
    record = Receipt(
        proof_id=proof_id,
        json=json_text,
        receipt_hash=receipt_hash,
        signature=signature,
        signer_pub_key=signer_pub_key,
    )

    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def get_receipt_for_proof(db: Session, proof_id: str) -> Optional[Receipt]:
    return db.query(Receipt).filter(Receipt.proof_id == proof_id).first()
