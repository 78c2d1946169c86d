"""Admin endpoints for the inactivity engine."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ..accounts.models import User
from ..audit.service import audit
from ..config import settings
from ..database.base import get_db
from ..dependencies import get_current_operator, get_inactivity_engine
from ..rate_limit import limiter
from .schemas import CycleResponse, InactivityStatsResponse
from .service import InactivityEngine, get_inactivity_stats

router = APIRouter(prefix="/admin/inactivity", tags=["admin-inactivity"])


@router.get("/stats", response_model=InactivityStatsResponse)
def inactivity_stats(
    db: Session = Depends(get_db),
    operator: User = Depends(get_current_operator),
):
    return get_inactivity_stats(db)


@router.post("/run-check", response_model=CycleResponse)
@limiter.limit(settings.rate_limit_run_check)
def run_check(
    request: Request,
    db: Session = Depends(get_db),
    operator: User = Depends(get_current_operator),
    engine: InactivityEngine = Depends(get_inactivity_engine),
):
    """Trigger an inactivity cycle now. Returns once the cycle has finished."""
    audit(db, request, "inactivity_check_triggered", f"email={operator.email}", user_id=operator.id)
    db.commit()
    report = engine.run_manual_check()
    return report.as_dict()
