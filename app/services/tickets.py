"""
Ticket (per-purchase chat) workflow.

Unread bookkeeping:
- sending a message increments the counter of the other party only
- opening the ticket zeroes the viewer's own counter
Counters are changed with single-statement UPDATEs so concurrent senders never lose
an increment.

A ticket is read-only once its subscription's end date has passed; renewal
(see services/checkout.py) moves the end date forward and re-enables it.
"""
import base64
import binascii
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone, timedelta
from typing import List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.config import settings
from app.database import increment_counter
from app.models.pending_message import PendingMessageType, PendingWhatsappMessage
from app.models.ticket import Ticket, ChatMessage, MessageType
from app.models.user import User, UserRole
from app.services import change_feed, notifications

logger = logging.getLogger(__name__)

CUSTOMER = "customer"
SELLER = "seller"
ADMIN = "admin"

SYSTEM_SENDER_NAME = "Sistema"

MEDIA_ACK_TEXT = "Recebemos sua imagem! Vamos analisar e já retornamos por aqui."

_DATA_URL_RE = re.compile(r"^data:(image/[\w.+-]+);base64,(.+)$", re.DOTALL)


class TicketAccessError(PermissionError):
    """User is not a participant of the ticket."""


class TicketExpiredError(Exception):
    """The subscription behind the ticket has expired; chat is read-only."""


class InvalidMessageError(ValueError):
    """Message content or type not allowed for this sender."""


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive timestamps (as returned by some drivers) as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def participant_role(ticket: Ticket, user: User) -> Optional[str]:
    if user.id == ticket.customer_id:
        return CUSTOMER
    if user.id == ticket.seller_id:
        return SELLER
    if user.role == UserRole.ADMIN:
        return ADMIN
    return None


def get_ticket_for(db: Session, ticket_id: int, user: User) -> Tuple[Ticket, str]:
    """Load a ticket the user may see. Raises LookupError / TicketAccessError."""
    ticket = db.query(Ticket).filter(Ticket.id == ticket_id).first()
    if ticket is None:
        raise LookupError("Ticket não encontrado.")
    role = participant_role(ticket, user)
    if role is None:
        raise TicketAccessError("Acesso negado.")
    return ticket, role


def subscription_end(ticket: Ticket) -> Optional[datetime]:
    sub = ticket.user_subscription
    return as_utc(sub.end_date) if sub else None


def is_expired(ticket: Ticket, now: Optional[datetime] = None) -> bool:
    now = now or datetime.now(timezone.utc)
    end = subscription_end(ticket)
    return end is not None and end < now


def mark_read(db: Session, ticket: Ticket, role: str) -> None:
    """Zero the viewer's own unread counter (customer or seller view)."""
    if role == CUSTOMER:
        column = "unread_by_customer_count"
    elif role == SELLER:
        column = "unread_by_seller_count"
    else:
        return

    result = db.execute(
        update(Ticket)
        .where(Ticket.id == ticket.id, getattr(Ticket, column) > 0)
        .values({column: 0})
        .execution_options(synchronize_session=False)
    )
    if result.rowcount:
        change_feed.record_change(db, "tickets", ticket.id, scope=ticket.id)
    db.commit()
    db.refresh(ticket)


def list_messages(db: Session, ticket: Ticket, since: Optional[datetime] = None) -> List[ChatMessage]:
    query = db.query(ChatMessage).filter(ChatMessage.ticket_id == ticket.id)
    if since is not None:
        query = query.filter(ChatMessage.created_at > since)
    return query.order_by(ChatMessage.created_at, ChatMessage.id).all()


def has_pending_media_request(messages: List[ChatMessage], viewer_id: int) -> bool:
    """
    True if the latest media_request from someone else has no media_response
    from the viewer after it. Computed from history; nothing is stored.
    """
    last_request = None
    for msg in messages:
        if msg.type == MessageType.MEDIA_REQUEST and msg.sender_id != viewer_id:
            if last_request is None or as_utc(msg.created_at) >= as_utc(last_request.created_at):
                last_request = msg
    if last_request is None:
        return False

    requested_at = as_utc(last_request.created_at)
    return not any(
        msg.type == MessageType.MEDIA_RESPONSE
        and msg.sender_id == viewer_id
        and (as_utc(msg.created_at) > requested_at
             or (as_utc(msg.created_at) == requested_at and msg.id > last_request.id))
        for msg in messages
    )


def validate_media_payload(payload: Optional[str]) -> int:
    """Check a data-URL image and return its decoded size in bytes."""
    if not payload:
        raise InvalidMessageError("Envie uma imagem.")
    match = _DATA_URL_RE.match(payload)
    if not match:
        raise InvalidMessageError("Formato de imagem inválido.")
    try:
        size = len(base64.b64decode(match.group(2), validate=True))
    except (binascii.Error, ValueError):
        raise InvalidMessageError("Imagem corrompida.")
    if size > settings.media_max_bytes:
        limit_mb = settings.media_max_bytes // (1024 * 1024)
        raise InvalidMessageError(f"A imagem excede o limite de {limit_mb}MB.")
    return size


def _preview(text: str, message_type: MessageType) -> str:
    if message_type == MessageType.MEDIA_REQUEST:
        return text or "[Solicitação de imagem]"
    if message_type == MessageType.MEDIA_RESPONSE:
        return text or "[Imagem enviada]"
    return text


def add_message(
    db: Session,
    ticket: Ticket,
    text: str,
    sender_id: Optional[int],
    sender_name: str,
    message_type: MessageType = MessageType.TEXT,
    payload: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ChatMessage:
    """Append a message and update the ticket preview. Counters are the caller's business."""
    now = now or datetime.now(timezone.utc)
    message = ChatMessage(
        ticket_id=ticket.id,
        sender_id=sender_id,
        sender_name=sender_name,
        text=text,
        type=message_type,
        payload=payload,
        created_at=now,
    )
    db.add(message)
    ticket.last_message_text = _preview(text, message_type)
    ticket.last_message_at = now
    db.flush()
    return message


def post_message(
    db: Session,
    ticket: Ticket,
    sender: User,
    text: str,
    message_type: MessageType = MessageType.TEXT,
    payload: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Tuple[ChatMessage, List[PendingWhatsappMessage]]:
    """
    Send a participant message. Returns the message and any queued WhatsApp entries.
    The caller commits.
    """
    now = now or datetime.now(timezone.utc)
    role = participant_role(ticket, sender)
    if role not in (CUSTOMER, SELLER):
        raise TicketAccessError("Somente o cliente e o vendedor podem enviar mensagens.")
    if is_expired(ticket, now):
        raise TicketExpiredError("Sua assinatura expirou. Renove para continuar a conversa.")

    text = (text or "").strip()
    if message_type == MessageType.TEXT and not text:
        raise InvalidMessageError("A mensagem não pode estar vazia.")
    if message_type == MessageType.MEDIA_REQUEST and role != SELLER:
        raise InvalidMessageError("Somente o vendedor pode solicitar imagens.")
    if message_type == MessageType.MEDIA_RESPONSE:
        if role != CUSTOMER:
            raise InvalidMessageError("Somente o cliente pode responder com imagens.")
        validate_media_payload(payload)
    else:
        payload = None

    message = add_message(db, ticket, text, sender.id, sender.name, message_type, payload, now)

    if role == CUSTOMER:
        increment_counter(db, Ticket, ticket.id, unread_by_seller_count=1)
    else:
        increment_counter(db, Ticket, ticket.id, unread_by_customer_count=1)
    change_feed.record_change(db, "tickets", ticket.id, scope=ticket.id)

    queued = []
    if role == SELLER:
        entry = notifications.enqueue(
            db,
            PendingMessageType.TICKET_NOTIFICATION,
            ticket.customer.phone_number if ticket.customer else None,
            {
                "customer_name": ticket.customer_name,
                "seller_name": ticket.seller_name,
                "ticket_id": ticket.id,
            },
        )
        if entry is not None:
            queued.append(entry)

    return message, queued


def acknowledge_media(db: Session, ticket_id: int) -> Optional[ChatMessage]:
    """Automatic seller reply after a customer sends an image."""
    ticket = db.query(Ticket).filter(Ticket.id == ticket_id).first()
    if ticket is None:
        logger.warning("acknowledge_media: ticket %s not found", ticket_id)
        return None

    message = add_message(db, ticket, MEDIA_ACK_TEXT, ticket.seller_id, ticket.seller_name)
    increment_counter(db, Ticket, ticket.id, unread_by_customer_count=1)
    change_feed.record_change(db, "tickets", ticket.id, scope=ticket.id)
    db.commit()
    return message


@dataclass
class Presence:
    online: bool
    last_seen_at: Optional[datetime]
    label: str


def _relative(delta: timedelta) -> str:
    minutes = int(delta.total_seconds() // 60)
    if minutes < 60:
        return f"há {minutes} minuto{'s' if minutes != 1 else ''}"
    hours = minutes // 60
    if hours < 24:
        return f"há {hours} hora{'s' if hours != 1 else ''}"
    days = hours // 24
    if days < 30:
        return f"há {days} dia{'s' if days != 1 else ''}"
    months = days // 30
    return f"há {months} {'mês' if months == 1 else 'meses'}"


def presence(last_seen_at: Optional[datetime], now: Optional[datetime] = None) -> Presence:
    """Online if seen within the presence window; otherwise a relative 'last seen' label."""
    now = now or datetime.now(timezone.utc)
    last_seen_at = as_utc(last_seen_at)
    if last_seen_at is None:
        return Presence(online=False, last_seen_at=None, label="Offline")
    delta = now - last_seen_at
    if delta <= timedelta(minutes=settings.presence_online_minutes):
        return Presence(online=True, last_seen_at=last_seen_at, label="Online")
    return Presence(online=False, last_seen_at=last_seen_at, label=f"Visto por último {_relative(delta)}")


def schedule_media_acknowledgement(ticket_id: int) -> None:
    """Queue the automatic reply a few seconds after an image arrives."""
    from app.tasks import send_media_acknowledgement

    try:
        send_media_acknowledgement.apply_async((ticket_id,), countdown=settings.media_ack_delay_seconds)
    except Exception as e:
        logger.warning("Could not schedule media acknowledgement for ticket %s: %s", ticket_id, e)
