"""Session authentication routes."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..audit.service import audit
from ..config import settings
from ..database.base import get_db
from ..dependencies import get_current_user
from ..rate_limit import limiter
from .models import User
from .schemas import LoginRequest, UserResponse
from .service import authenticate_user, record_activity

router = APIRouter(tags=["auth"])


@router.post("/login")
@limiter.limit(settings.rate_limit_login)
def login(request: Request, body: LoginRequest, db: Session = Depends(get_db)):
    user = authenticate_user(db, body.email, body.password)
    if not user:
        audit(db, request, "login_failed", f"email={body.email}")
        db.commit()
        return JSONResponse({"error": "Invalid credentials"}, status_code=401)

    if not user.is_active:
        audit(db, request, "login_rejected_inactive", f"email={body.email}", user_id=user.id)
        db.commit()
        return JSONResponse({"error": "Account is deactivated. Contact support to reactivate it."}, status_code=403)

    record_activity(db, user)
    audit(db, request, "login", f"email={body.email}", user_id=user.id)
    db.commit()
    request.session["user_id"] = str(user.id)
    return UserResponse.model_validate(user).model_dump(mode="json")


@router.post("/logout")
def logout(request: Request, db: Session = Depends(get_db)):
    audit(db, request, "logout")
    db.commit()
    request.session.clear()
    return {"ok": True}


@router.get("/me", response_model=UserResponse)
def me(user: User = Depends(get_current_user)):
    return user
