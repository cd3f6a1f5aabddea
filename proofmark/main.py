import logging

from fastapi import FastAPI

from proofmark.config import get_settings
from proofmark.database.database import engine, Base
from proofmark.models import models  # noqa: F401  (registers tables)
from proofmark.routes.badge_routes import badgerouter
from proofmark.routes.proof_routes import proofrouter
from proofmark.services.provenance.status_tracker import StatusTracker

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

Base.metadata.create_all(bind=engine)

app = FastAPI(title="Proofmark")

# one tracker per process, shared by every verification run
app.state.status_tracker = StatusTracker(ttl=settings.status_ttl)

app.include_router(proofrouter)
app.include_router(badgerouter)


@app.get("/health")
def health():
    return {"ok": True}
