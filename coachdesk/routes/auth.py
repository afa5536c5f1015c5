from fastapi import APIRouter, Depends, Form, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from coachdesk.core.db import get_db
from coachdesk.core.session import clear_session, set_session
from coachdesk.core.security import verify_password
from coachdesk.models import User
from coachdesk.services.authz import require_user

router = APIRouter(tags=["auth"])


@router.post("/login")
def login(email: str = Form(...), password: str = Form(...), db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == email.lower().strip(), User.is_active.is_(True)).first()
    if not user or not verify_password(password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    response = JSONResponse({"id": user.id, "email": user.email, "full_name": user.full_name})
    set_session(response, user.id)
    return response


@router.post("/logout")
def logout():
    response = JSONResponse({"status": "logged_out"})
    clear_session(response)
    return response


@router.get("/me")
def me(user: User = Depends(require_user)):
    return {"id": user.id, "email": user.email, "full_name": user.full_name}
