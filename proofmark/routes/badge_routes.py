from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from proofmark.config import Settings, get_settings
from proofmark.crud import proof_crud
from proofmark.database.database import get_db
from proofmark.schemas.proof_schemas import BadgeEmbedResponse
from proofmark.services.provenance.badges import embed_snippets, render_badge_svg


badgerouter = APIRouter(prefix="/v1/badge", tags=["Badges"])


@badgerouter.get("/{trustmark_id}.svg")
def get_badge_svg(trustmark_id: str, db: Session = Depends(get_db)):
    proof = proof_crud.get_proof_by_trustmark(db, trustmark_id)
    if not proof:
        raise HTTPException(status_code=404, detail="Proof not found")

    svg = render_badge_svg(proof.trustmark_id, proof.c2pa_present, proof.origin_status)

    return Response(
        content=svg,
        media_type="image/svg+xml",
        headers={"Cache-Control": "public, max-age=3600"},
    )


@badgerouter.get("/{trustmark_id}/embed", response_model=BadgeEmbedResponse)
def get_badge_embed(
    trustmark_id: str,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    if not proof_crud.trustmark_exists(db, trustmark_id):
        raise HTTPException(status_code=404, detail="Proof not found")

    return embed_snippets(settings.public_base_url, settings.api_base_url, trustmark_id)
