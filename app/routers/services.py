"""
Streaming service catalog. Public read, admin write.
"""
import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.catalog import SubscriptionService, Plan
from app.schemas.catalog import ServiceCreate, ServiceUpdate, ServiceResponse, PlanResponse
from app.auth.dependencies import require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/services", tags=["Services"])


def _get_or_404(db: Session, service_id: int) -> SubscriptionService:
    service = db.query(SubscriptionService).filter(SubscriptionService.id == service_id).first()
    if not service:
        raise HTTPException(status_code=404, detail="Serviço não encontrado")
    return service


@router.get("", response_model=List[ServiceResponse])
def list_services(db: Session = Depends(get_db)):
    return db.query(SubscriptionService).order_by(SubscriptionService.name).all()


@router.get("/{service_id}", response_model=ServiceResponse)
def get_service(service_id: int, db: Session = Depends(get_db)):
    return _get_or_404(db, service_id)


@router.get("/{service_id}/plans", response_model=List[PlanResponse])
def list_service_plans(service_id: int, db: Session = Depends(get_db)):
    """Offers from every seller for one service, cheapest first."""
    _get_or_404(db, service_id)
    return (
        db.query(Plan)
        .filter(Plan.service_id == service_id)
        .order_by(Plan.price, Plan.id)
        .all()
    )


@router.post("", response_model=ServiceResponse, status_code=status.HTTP_201_CREATED)
def create_service(
    data: ServiceCreate,
    db: Session = Depends(get_db),
    _: None = Depends(require_admin),
):
    service = SubscriptionService(**data.model_dump())
    db.add(service)
    db.commit()
    db.refresh(service)
    logger.info("Service %s created: %s", service.id, service.name)
    return service


@router.patch("/{service_id}", response_model=ServiceResponse)
def update_service(
    service_id: int,
    data: ServiceUpdate,
    db: Session = Depends(get_db),
    _: None = Depends(require_admin),
):
    service = _get_or_404(db, service_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(service, field, value)
    db.commit()
    db.refresh(service)
    return service


@router.delete("/{service_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_service(
    service_id: int,
    db: Session = Depends(get_db),
    _: None = Depends(require_admin),
):
    service = _get_or_404(db, service_id)
    db.delete(service)
    db.commit()
