import logging
import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from proofmark.schemas.provenance_schemas import (
    ManifestCheckResult,
    VerificationStatus,
    VerificationStep,
)
from .errors import NotFound

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class StatusTracker:
    """
    Process-wide ledger of in-flight verification runs.

    One writer per run (its orchestrator), any number of pollers. Every
    change stores a fresh snapshot so readers never see a half-applied
    update. Finished runs are reaped once older than `ttl` seconds.
    """

    def __init__(self, ttl: float = 3600.0):
        self.ttl = ttl
        self._statuses: Dict[str, VerificationStatus] = {}
        self._lock = threading.Lock()

    def start(self, url: str, run_id: Optional[str] = None) -> str:
        self.reap()

        run_id = run_id or uuid.uuid4().hex
        status = VerificationStatus(
            current_step=VerificationStep.starting,
            message="Starting verification process...",
            updated_at=_now(),
        )
        with self._lock:
            self._statuses[run_id] = status

        logger.info("Started verification %s for %s", run_id, url)
        return run_id

    def update(
        self,
        run_id: str,
        step: VerificationStep,
        message: str,
        completed: Optional[str] = None,
        **fields,
    ) -> None:
        with self._lock:
            current = self._statuses.get(run_id)
            if current is None:
                logger.warning("Status update for unknown verification %s", run_id)
                return

            steps = dict(current.completed_steps)
            if completed:
                steps[completed] = True

            self._statuses[run_id] = current.model_copy(update={
                "current_step": step,
                "message": message,
                "completed_steps": steps,
                "updated_at": _now(),
                **fields,
            })

        logger.debug("Verification %s: %s - %s", run_id, step.value, message)

    def complete(self, run_id: str, step: VerificationStep, result: ManifestCheckResult) -> None:
        # the finished snapshot keeps the terminal pipeline state as its step
        self.update(
            run_id,
            step,
            "Verification completed successfully",
            is_completed=True,
            result=result,
        )
        logger.info("Completed verification %s (%s)", run_id, step.value)

    def fail(self, run_id: str, error_message: str) -> None:
        self.update(
            run_id,
            VerificationStep.error,
            "Verification failed",
            is_completed=True,
            has_error=True,
            error_message=error_message,
        )

    def get(self, run_id: str) -> VerificationStatus:
        with self._lock:
            status = self._statuses.get(run_id)
        if status is None:
            raise NotFound(f"Verification ID not found: {run_id}")
        return status

    def reap(self, now: Optional[datetime] = None) -> int:
        cutoff = (now or _now()) - timedelta(seconds=self.ttl)

        with self._lock:
            stale = [
                run_id
                for run_id, status in self._statuses.items()
                if status.is_completed and status.updated_at < cutoff
            ]
            for run_id in stale:
                del self._statuses[run_id]

        if stale:
            logger.info("Reaped %s finished verification statuses", len(stale))
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._statuses)
