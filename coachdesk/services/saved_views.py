"""Saved views: named, persisted filter configurations per resource and owner.

Each (resource_key, owner) has at most one default view. Promoting a view
clears the previous default in the same transaction, and the partial unique
index ``ix_saved_views_one_default`` rejects a second default written by a
concurrent session.
"""
import logging
from datetime import datetime
from typing import Any

from fastapi import HTTPException
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from coachdesk.models import SavedView
from coachdesk.services.filter_config import default_filter_config, default_view_name, parse_filter_config

logger = logging.getLogger("coachdesk.saved_views")


def serialize_view(view: SavedView) -> dict[str, Any]:
    return {
        "id": view.id,
        "resource_key": view.resource_key,
        "view_name": view.view_name,
        "filter_config": view.filter_config or {},
        "icon_name": view.icon_name,
        "is_default": view.is_default,
        "created_by": view.created_by,
        "created_at": view.created_at.isoformat() if view.created_at else None,
        "updated_at": view.updated_at.isoformat() if view.updated_at else None,
    }


def _owned(db: Session, owner_id: int):
    return db.query(SavedView).filter(SavedView.created_by == owner_id)


def _default_query(db: Session, resource_key: str, owner_id: int):
    return _owned(db, owner_id).filter(SavedView.resource_key == resource_key, SavedView.is_default.is_(True))


def _clear_default(db: Session, resource_key: str, owner_id: int, keep_id: int | None = None) -> None:
    query = _default_query(db, resource_key, owner_id)
    if keep_id is not None:
        query = query.filter(SavedView.id != keep_id)
    query.update({SavedView.is_default: False}, synchronize_session="fetch")


def _validated_name(view_name: str | None) -> str:
    name = (view_name or "").strip()
    if not name:
        raise HTTPException(status_code=400, detail="View name is required")
    if len(name) > 120:
        raise HTTPException(status_code=400, detail="View name is too long")
    return name


def _validated_config(filter_config: dict[str, Any] | None) -> dict[str, Any]:
    try:
        parse_filter_config(filter_config)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid filter configuration: {e.errors()[0]['msg']}")
    return dict(filter_config or {})


def _name_taken(db: Session, resource_key: str, owner_id: int, name: str, exclude_id: int | None = None) -> bool:
    query = _owned(db, owner_id).filter(SavedView.resource_key == resource_key, SavedView.view_name == name)
    if exclude_id is not None:
        query = query.filter(SavedView.id != exclude_id)
    return db.query(query.exists()).scalar()


def list_views(db: Session, resource_key: str, owner_id: int) -> list[SavedView]:
    """Default view first, then newest first. Storage errors yield an empty list."""
    try:
        return (
            _owned(db, owner_id)
            .filter(SavedView.resource_key == resource_key)
            .order_by(SavedView.is_default.desc(), SavedView.created_at.desc(), SavedView.id.desc())
            .all()
        )
    except SQLAlchemyError as e:
        logger.warning(f"Failed to list saved views for {resource_key}: {e}")
        return []


def get_view(db: Session, view_id: int, owner_id: int) -> SavedView | None:
    try:
        return _owned(db, owner_id).filter(SavedView.id == view_id).first()
    except SQLAlchemyError as e:
        logger.warning(f"Failed to fetch saved view {view_id}: {e}")
        return None


def _view_for_change(db: Session, view_id: int, owner_id: int) -> SavedView:
    try:
        view = _owned(db, owner_id).filter(SavedView.id == view_id).first()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error loading saved view {view_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to load saved view")
    if not view:
        raise HTTPException(status_code=404, detail="Saved view not found")
    return view


def get_default_view(db: Session, resource_key: str, owner_id: int) -> SavedView | None:
    try:
        return _default_query(db, resource_key, owner_id).first()
    except SQLAlchemyError as e:
        logger.warning(f"Failed to fetch default view for {resource_key}: {e}")
        return None


def create_view(
    db: Session,
    owner_id: int,
    resource_key: str,
    view_name: str,
    filter_config: dict[str, Any] | None,
    is_default: bool = False,
    icon_name: str | None = None,
) -> SavedView:
    if not (resource_key or "").strip():
        raise HTTPException(status_code=400, detail="Resource key is required")
    name = _validated_name(view_name)
    config = _validated_config(filter_config)

    try:
        if _name_taken(db, resource_key, owner_id, name):
            raise HTTPException(status_code=409, detail=f"A view named '{name}' already exists")
        if is_default:
            _clear_default(db, resource_key, owner_id)
        view = SavedView(
            resource_key=resource_key,
            view_name=name,
            filter_config=config,
            icon_name=icon_name,
            is_default=is_default,
            created_by=owner_id,
        )
        db.add(view)
        db.commit()
        db.refresh(view)
        logger.info(f"Created saved view {view.id} '{name}' for {resource_key} (default={is_default})")
        return view
    except HTTPException:
        raise
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"Saved view conflict for {resource_key}: {e}")
        raise HTTPException(status_code=409, detail="Saved view conflicts with an existing view")
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error creating saved view for {resource_key}: {e}")
        raise HTTPException(status_code=500, detail="Failed to create saved view")


def update_view(
    db: Session,
    owner_id: int,
    view_id: int,
    view_name: str | None = None,
    filter_config: dict[str, Any] | None = None,
    is_default: bool | None = None,
    icon_name: str | None = None,
) -> SavedView:
    """Apply the given changes; ``None`` leaves a field untouched."""
    view = _view_for_change(db, view_id, owner_id)

    name = _validated_name(view_name) if view_name is not None else None
    config = _validated_config(filter_config) if filter_config is not None else None

    try:
        if name is not None and name != view.view_name:
            if _name_taken(db, view.resource_key, owner_id, name, exclude_id=view.id):
                raise HTTPException(status_code=409, detail=f"A view named '{name}' already exists")
            view.view_name = name
        if config is not None:
            view.filter_config = config
        if icon_name is not None:
            view.icon_name = icon_name or None
        if is_default is True and not view.is_default:
            _clear_default(db, view.resource_key, owner_id, keep_id=view.id)
            view.is_default = True
        elif is_default is False:
            view.is_default = False
        view.updated_at = datetime.utcnow()

        db.commit()
        db.refresh(view)
        logger.info(f"Updated saved view {view.id}")
        return view
    except HTTPException:
        raise
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"Saved view conflict updating {view_id}: {e}")
        raise HTTPException(status_code=409, detail="Saved view conflicts with an existing view")
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error updating saved view {view_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update saved view")


def delete_view(db: Session, owner_id: int, view_id: int) -> None:
    view = _view_for_change(db, view_id, owner_id)
    try:
        db.delete(view)
        db.commit()
        logger.info(f"Deleted saved view {view_id}")
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error deleting saved view {view_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete saved view")


def ensure_default_view(db: Session, resource_key: str, owner_id: int) -> SavedView | None:
    """Return the default view, provisioning one from the resource defaults.

    A view that already carries the default name is promoted instead of
    duplicated. Losing an insert race re-reads the winner's default.
    """
    try:
        existing = _default_query(db, resource_key, owner_id).first()
        if existing:
            return existing

        name = default_view_name(resource_key)
        view = _owned(db, owner_id).filter(SavedView.resource_key == resource_key, SavedView.view_name == name).first()
        if view is not None:
            view.is_default = True
            view.updated_at = datetime.utcnow()
        else:
            view = SavedView(
                resource_key=resource_key,
                view_name=name,
                filter_config=default_filter_config(resource_key),
                is_default=True,
                created_by=owner_id,
            )
            db.add(view)
        db.commit()
        db.refresh(view)
        logger.info(f"Provisioned default view '{name}' for {resource_key} (owner {owner_id})")
        return view
    except IntegrityError:
        db.rollback()
        logger.info(f"Default view for {resource_key} was created concurrently, re-reading")
        return get_default_view(db, resource_key, owner_id)
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning(f"Failed to ensure default view for {resource_key}: {e}")
        return None
