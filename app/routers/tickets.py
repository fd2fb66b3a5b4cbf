"""
Per-purchase tickets (chat between buyer and seller).

Live updates: GET /tickets/{id}/events is a Server-Sent Events stream fed by the
change feed. Each connection holds one feed subscription, closed when the client
disconnects.
"""
import json
import logging
from dataclasses import asdict
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.ticket import Ticket, MessageType
from app.models.user import User
from app.schemas.checkout import ChargeResponse
from app.schemas.tickets import TicketSummary, TicketDetail, MessageCreate, MessageResponse
from app.services import change_feed, checkout, tickets as ticket_service
from app.services.notifications import dispatch_pending_messages
from app.auth.dependencies import get_current_user
from app.routers.checkout import charge_response, raise_for_payment_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tickets", tags=["Tickets"])

# Keep-alive comment interval for idle event streams
_HEARTBEAT_EVERY = 15


def _load(db: Session, ticket_id: int, user: User):
    try:
        return ticket_service.get_ticket_for(db, ticket_id, user)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ticket_service.TicketAccessError as e:
        raise HTTPException(status_code=403, detail=str(e))


@router.get("", response_model=List[TicketSummary])
def list_tickets(
    view: str = Query("customer", alias="as", pattern="^(customer|seller)$"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Tickets where the user is the buyer (?as=customer) or the seller (?as=seller)."""
    column = Ticket.customer_id if view == "customer" else Ticket.seller_id
    return (
        db.query(Ticket)
        .filter(column == current_user.id)
        .order_by(Ticket.last_message_at.desc().nullslast(), Ticket.id.desc())
        .all()
    )


@router.get("/{ticket_id}", response_model=TicketDetail)
def get_ticket(
    ticket_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Open a ticket: zeroes the viewer's unread counter."""
    ticket, role = _load(db, ticket_id, current_user)
    ticket_service.mark_read(db, ticket, role)

    messages = ticket_service.list_messages(db, ticket)
    if role == ticket_service.SELLER:
        counterpart = ticket.customer
    else:
        counterpart = ticket.seller

    return TicketDetail(
        **TicketSummary.model_validate(ticket).model_dump(),
        viewer_role=role,
        subscription_end_date=ticket_service.subscription_end(ticket),
        is_expired=ticket_service.is_expired(ticket),
        has_pending_media_request=ticket_service.has_pending_media_request(messages, current_user.id),
        counterpart_presence=asdict(ticket_service.presence(counterpart.last_seen_at)) if counterpart else None,
    )


@router.get("/{ticket_id}/messages", response_model=List[MessageResponse])
def list_messages(
    ticket_id: int,
    since: Optional[datetime] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ticket, _ = _load(db, ticket_id, current_user)
    return ticket_service.list_messages(db, ticket, since)


@router.post("/{ticket_id}/messages", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
def send_message(
    ticket_id: int,
    data: MessageCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ticket, _ = _load(db, ticket_id, current_user)
    try:
        message, queued = ticket_service.post_message(
            db, ticket, current_user, data.text, data.type, data.payload
        )
    except ticket_service.TicketAccessError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except ticket_service.TicketExpiredError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ticket_service.InvalidMessageError as e:
        raise HTTPException(status_code=422, detail=str(e))

    db.commit()
    db.refresh(message)

    dispatch_pending_messages([entry.id for entry in queued])
    if message.type == MessageType.MEDIA_RESPONSE:
        ticket_service.schedule_media_acknowledgement(ticket.id)
    return message


class TicketUpdate(BaseModel):
    needs_manual_delivery: bool


@router.patch("/{ticket_id}", response_model=TicketSummary)
def update_ticket(
    ticket_id: int,
    data: TicketUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Seller clears (or sets) the manual-delivery flag."""
    ticket, role = _load(db, ticket_id, current_user)
    if role not in (ticket_service.SELLER, ticket_service.ADMIN):
        raise HTTPException(status_code=403, detail="Somente o vendedor pode alterar o ticket")
    ticket.needs_manual_delivery = data.needs_manual_delivery
    db.commit()
    db.refresh(ticket)
    return ticket


@router.post("/{ticket_id}/renewal", response_model=ChargeResponse, status_code=status.HTTP_201_CREATED)
def renew_subscription(
    ticket_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """PIX charge that extends the subscription; poll it at /checkout/charges/{id}."""
    ticket, _ = _load(db, ticket_id, current_user)
    try:
        outcome = checkout.start_renewal(db, current_user, ticket)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except Exception as e:
        raise_for_payment_error(e)
    return charge_response(outcome.charge)


def _event_stream(ticket_id: int, subscription: change_feed.Subscription):
    idle = 0
    try:
        yield "retry: 3000\n\n"
        for change in subscription:
            if change is None:
                idle += 1
                if idle >= _HEARTBEAT_EVERY:
                    idle = 0
                    yield ": keep-alive\n\n"
                continue
            idle = 0
            yield f"event: {change['collection']}\ndata: {json.dumps(change)}\n\n"
    finally:
        subscription.close()
        logger.debug("Event stream for ticket %s closed", ticket_id)


@router.get("/{ticket_id}/events")
def ticket_events(
    ticket_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Server-Sent Events for new messages and ticket changes (counters, preview)."""
    _load(db, ticket_id, current_user)
    subscription = change_feed.Subscription(
        change_feed.channel_name("chat_messages", ticket_id),
        change_feed.channel_name("tickets", ticket_id),
    )
    return StreamingResponse(
        _event_stream(ticket_id, subscription),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
