from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from coachdesk.core.db import get_db
from coachdesk.core.session import read_session
from coachdesk.models import User
from coachdesk.services.table_state import TableStateRegistry, TableStateStore


@dataclass
class CurrentContext:
    user: User
    tables: TableStateStore


def _find_current_user(request: Request, db: Session) -> User:
    user_id = read_session(request)
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    user = db.query(User).filter(User.id == user_id, User.is_active.is_(True)).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid session")
    return user


def require_user(request: Request, db: Session = Depends(get_db)) -> User:
    return _find_current_user(request, db)


def get_table_registry(request: Request) -> TableStateRegistry:
    registry = getattr(request.app.state, "table_states", None)
    if registry is None:
        registry = TableStateRegistry()
        request.app.state.table_states = registry
    return registry


def require_context(
    user: User = Depends(require_user),
    registry: TableStateRegistry = Depends(get_table_registry),
) -> CurrentContext:
    return CurrentContext(user=user, tables=registry.for_owner(user.id))
