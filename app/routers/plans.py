"""
Seller plans and their deliverable stock.

Plans are publicly readable; writes are limited to the owning seller (or an admin).
Plan.stock mirrors the number of available deliverables: it grows with uploads and
shrinks with each sale or removal of an unsold deliverable.
"""
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.database import get_db, increment_counter
from app.models.catalog import Plan, Deliverable, DeliverableStatus, SubscriptionService
from app.models.user import User, UserRole
from app.schemas.catalog import (
    PlanCreate,
    PlanUpdate,
    PlanResponse,
    DeliverablesCreate,
    DeliverableResponse,
)
from app.auth.dependencies import require_seller

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/plans", tags=["Plans"])


def _get_plan(db: Session, plan_id: int) -> Plan:
    plan = db.query(Plan).filter(Plan.id == plan_id).first()
    if not plan:
        raise HTTPException(status_code=404, detail="Plano não encontrado")
    return plan


def _get_owned_plan(db: Session, plan_id: int, user: User) -> Plan:
    plan = _get_plan(db, plan_id)
    if plan.seller_id != user.id and user.role != UserRole.ADMIN:
        raise HTTPException(status_code=403, detail="Este plano pertence a outro vendedor")
    return plan


@router.get("", response_model=List[PlanResponse])
def list_plans(
    service_id: Optional[int] = None,
    seller_id: Optional[int] = None,
    db: Session = Depends(get_db),
):
    query = db.query(Plan)
    if service_id is not None:
        query = query.filter(Plan.service_id == service_id)
    if seller_id is not None:
        query = query.filter(Plan.seller_id == seller_id)
    return query.order_by(Plan.created_at.desc()).all()


@router.get("/mine", response_model=List[PlanResponse])
def list_my_plans(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_seller),
):
    return db.query(Plan).filter(Plan.seller_id == current_user.id).order_by(Plan.created_at.desc()).all()


@router.get("/{plan_id}", response_model=PlanResponse)
def get_plan(plan_id: int, db: Session = Depends(get_db)):
    return _get_plan(db, plan_id)


@router.post("", response_model=PlanResponse, status_code=status.HTTP_201_CREATED)
def create_plan(
    data: PlanCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_seller),
):
    service = db.query(SubscriptionService).filter(SubscriptionService.id == data.service_id).first()
    if not service:
        raise HTTPException(status_code=400, detail="Serviço não encontrado")

    plan = Plan(**data.model_dump(), seller_id=current_user.id, stock=0)
    db.add(plan)
    db.commit()
    db.refresh(plan)
    logger.info("Plan %s created by seller %s", plan.id, current_user.id)
    return plan


@router.patch("/{plan_id}", response_model=PlanResponse)
def update_plan(
    plan_id: int,
    data: PlanUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_seller),
):
    plan = _get_owned_plan(db, plan_id, current_user)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(plan, field, value)
    db.commit()
    db.refresh(plan)
    return plan


@router.delete("/{plan_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_plan(
    plan_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_seller),
):
    plan = _get_owned_plan(db, plan_id, current_user)
    db.delete(plan)
    db.commit()


# ---------------------------------------------------------------------------
# Deliverables (stock)
# ---------------------------------------------------------------------------

@router.get("/{plan_id}/deliverables", response_model=List[DeliverableResponse])
def list_deliverables(
    plan_id: int,
    status_filter: Optional[DeliverableStatus] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_seller),
):
    _get_owned_plan(db, plan_id, current_user)
    query = db.query(Deliverable).filter(Deliverable.plan_id == plan_id)
    if status_filter is not None:
        query = query.filter(Deliverable.status == status_filter)
    return query.order_by(Deliverable.created_at, Deliverable.id).all()


@router.post("/{plan_id}/deliverables", response_model=List[DeliverableResponse], status_code=status.HTTP_201_CREATED)
def add_deliverables(
    plan_id: int,
    data: DeliverablesCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_seller),
):
    """Upload stock; blank entries are ignored."""
    plan = _get_owned_plan(db, plan_id, current_user)
    contents = [c.strip() for c in data.contents if c and c.strip()]
    if not contents:
        raise HTTPException(status_code=422, detail="Informe ao menos um acesso")

    created = [Deliverable(plan_id=plan.id, content=c, status=DeliverableStatus.AVAILABLE) for c in contents]
    db.add_all(created)
    db.flush()
    increment_counter(db, Plan, plan.id, stock=len(created))
    db.commit()
    for d in created:
        db.refresh(d)
    logger.info("%d deliverables added to plan %s", len(created), plan.id)
    return created


@router.delete("/{plan_id}/deliverables/{deliverable_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_deliverable(
    plan_id: int,
    deliverable_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_seller),
):
    """Remove unsold stock. Sold deliverables are part of the sale record."""
    plan = _get_owned_plan(db, plan_id, current_user)
    deliverable = (
        db.query(Deliverable)
        .filter(Deliverable.id == deliverable_id, Deliverable.plan_id == plan.id)
        .first()
    )
    if not deliverable:
        raise HTTPException(status_code=404, detail="Acesso não encontrado")
    if deliverable.status == DeliverableStatus.SOLD:
        raise HTTPException(status_code=409, detail="Acessos vendidos não podem ser removidos")

    # Conditional delete: a sale may have claimed it since the read above
    removed = (
        db.query(Deliverable)
        .filter(Deliverable.id == deliverable.id, Deliverable.status == DeliverableStatus.AVAILABLE)
        .delete(synchronize_session=False)
    )
    if not removed:
        db.rollback()
        raise HTTPException(status_code=409, detail="Acessos vendidos não podem ser removidos")
    increment_counter(db, Plan, plan.id, stock=-1)
    db.commit()
