import logging
from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from coachdesk.core.db import get_db
from coachdesk.models import Budget, BudgetAssignment, Lead
from coachdesk.services.authz import CurrentContext, require_context
from coachdesk.services.resources import serialize_lead

logger = logging.getLogger("coachdesk.leads")

router = APIRouter(prefix="/leads", tags=["leads"])


class CreateLeadRequest(BaseModel):
    full_name: str
    phone: str
    email: str = ""
    city: str = ""
    birth_date: date | None = None
    gender: str | None = None
    status_main: str = "new"
    status_sub: str = ""
    height: float | None = None
    weight: float | None = None
    source: str = ""
    fitness_goal: str = ""
    activity_level: str = ""
    preferred_time: str = ""
    notes: str = ""
    subscription_data: dict[str, Any] | None = None


class AssignBudgetRequest(BaseModel):
    budget_id: int


@router.post("", status_code=status.HTTP_201_CREATED)
def create_lead(payload: CreateLeadRequest, ctx: CurrentContext = Depends(require_context), db: Session = Depends(get_db)):
    full_name = payload.full_name.strip()
    phone = payload.phone.strip()
    if not full_name or not phone:
        raise HTTPException(status_code=400, detail="Name and phone are required")

    lead = Lead(**payload.model_dump(exclude={"full_name", "phone", "subscription_data"}))
    lead.full_name = full_name
    lead.phone = phone
    lead.email = payload.email.strip().lower()
    lead.subscription_data = payload.subscription_data or {}
    db.add(lead)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="A lead with this phone already exists")
    db.refresh(lead)
    logger.info(f"Created lead {lead.id} by user {ctx.user.id}")
    return serialize_lead(lead)


@router.post("/{lead_id}/budget")
def assign_budget(
    lead_id: int,
    payload: AssignBudgetRequest,
    ctx: CurrentContext = Depends(require_context),
    db: Session = Depends(get_db),
):
    lead = db.query(Lead).filter(Lead.id == lead_id).first()
    if not lead:
        raise HTTPException(status_code=404, detail="Lead not found")
    budget = db.query(Budget).filter(Budget.id == payload.budget_id).first()
    if not budget:
        raise HTTPException(status_code=404, detail="Budget not found")

    for assignment in lead.budget_assignments:
        assignment.is_active = False
    db.add(BudgetAssignment(budget_id=budget.id, lead_id=lead.id, customer_id=lead.customer_id, is_active=True))
    db.commit()
    db.refresh(lead)
    logger.info(f"Assigned budget {budget.id} to lead {lead.id}")
    return serialize_lead(lead)
