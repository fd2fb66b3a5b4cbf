"""
Outbound WhatsApp notification queue.

Producers call enqueue() inside their own transaction and, after commit, hand the new
ids to dispatch_pending_messages(). The worker side (process_pending_message) claims an
entry before touching the gateway, so two workers never send the same entry twice.

Outcomes of one processing attempt:
- template missing/empty → entry deleted without sending
- send ok → entry deleted
- send failed → retried with exponential backoff; after the last attempt the entry
  is kept with status=failed
"""
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.config import settings
from app.database import claim
from app.integrations import evolution
from app.models.pending_message import PendingWhatsappMessage, PendingMessageType, PendingMessageStatus
from app.schemas.templates import TEMPLATE_VARIABLES
from app.services.settings import WhatsappConfig, get_whatsapp_config

logger = logging.getLogger(__name__)

DEFAULT_TICKET_NOTIFICATION = (
    "Olá {cliente}! Você recebeu uma nova mensagem do vendedor {vendedor} sobre sua compra. "
    "Acesse o link para responder: {link_ticket}"
)

# Processing outcomes
SENT = "sent"
DROPPED = "dropped"
RETRY = "retry"
FAILED = "failed"
SKIPPED = "skipped"


def find_unknown_placeholders(message_type: str, template_text: str) -> set:
    found = set(re.findall(r"\{(\w+)\}", template_text))
    return found - TEMPLATE_VARIABLES.get(message_type, set())


def resolve_template(template: str, variables: dict) -> str:
    """Replace {placeholder} occurrences with their values."""
    result = template
    for key, value in variables.items():
        result = result.replace("{" + key + "}", value)
    return result


def _template_and_variables(entry_type: PendingMessageType, data: dict, config: WhatsappConfig):
    if entry_type == PendingMessageType.WELCOME:
        return config.welcome_message, {
            "cliente": data.get("customer_name") or "",
            "email": data.get("customer_email") or "",
        }
    if entry_type == PendingMessageType.SALE_NOTIFICATION:
        return config.sale_notification_message, {
            "vendedor": data.get("seller_name") or "",
            "produto": data.get("service_name") or "",
            "plano": data.get("plan_name") or "",
            "comprador": data.get("customer_name") or "",
            "valor": f"{float(data.get('price') or 0):.2f}",
        }
    if entry_type == PendingMessageType.DELIVERY:
        return config.delivery_message, {
            "cliente": data.get("customer_name") or "",
            "produto": data.get("service_name") or "",
            "plano": data.get("plan_name") or "",
            "acesso": data.get("deliverable_content") or "",
        }
    if entry_type == PendingMessageType.TICKET_NOTIFICATION:
        template = config.ticket_notification_message
        if not template.strip():
            template = DEFAULT_TICKET_NOTIFICATION
        return template, {
            "cliente": data.get("customer_name") or "Cliente",
            "vendedor": data.get("seller_name") or "Vendedor",
            "link_ticket": f"{settings.public_base_url}/meus-tickets/{data.get('ticket_id') or ''}",
        }
    return "", {}


def render_message(entry_type: PendingMessageType, data: dict, config: WhatsappConfig) -> str:
    """Render the configured template for an entry. Returns "" when no template is configured."""
    template, variables = _template_and_variables(entry_type, data, config)
    if not template or not template.strip():
        return ""
    return resolve_template(template, variables)


# ---------------------------------------------------------------------------
# Producer side
# ---------------------------------------------------------------------------

def enqueue(
    db: Session,
    message_type: PendingMessageType,
    phone: Optional[str],
    data: dict,
) -> Optional[PendingWhatsappMessage]:
    """Add a queue entry (flushed, not committed). Returns None when there is no phone."""
    if not phone:
        logger.info("enqueue %s skipped: recipient has no phone number", message_type.value)
        return None

    entry = PendingWhatsappMessage(
        type=message_type,
        recipient_phone_number=phone,
        data=data,
        status=PendingMessageStatus.PENDING,
        attempts=0,
        created_at=datetime.now(timezone.utc),
    )
    db.add(entry)
    db.flush()
    return entry


def dispatch_pending_messages(message_ids: Iterable[int]) -> None:
    """
    Hand committed entries to the worker. A broker outage is not fatal: the rows
    stay pending and the periodic drain picks them up.
    """
    from app.tasks import deliver_pending_message

    for message_id in message_ids:
        try:
            deliver_pending_message.delay(message_id)
        except Exception as e:
            logger.warning("Could not dispatch WhatsApp message %s (will be drained later): %s", message_id, e)


# ---------------------------------------------------------------------------
# Consumer side
# ---------------------------------------------------------------------------

def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _backoff(attempts: int) -> timedelta:
    return timedelta(seconds=settings.notification_backoff_base_seconds * (2 ** max(attempts - 1, 0)))


def process_pending_message(db: Session, message_id: int, now: Optional[datetime] = None) -> str:
    """Claim, render and send one queue entry. Returns the outcome constant."""
    now = now or datetime.now(timezone.utc)

    entry = db.query(PendingWhatsappMessage).filter(PendingWhatsappMessage.id == message_id).first()
    if entry is None or entry.status != PendingMessageStatus.PENDING:
        return SKIPPED
    next_attempt_at = _as_utc(entry.next_attempt_at)
    if next_attempt_at is not None and next_attempt_at > now:
        return SKIPPED

    won = claim(
        db, PendingWhatsappMessage, message_id,
        where={"status": PendingMessageStatus.PENDING},
        values={"status": PendingMessageStatus.PROCESSING, "claimed_at": now},
    )
    db.commit()
    if not won:
        logger.info("WhatsApp message %s already claimed by another worker", message_id)
        return SKIPPED
    db.refresh(entry)

    config = get_whatsapp_config(db)
    text = render_message(entry.type, entry.data or {}, config)
    if not text.strip():
        logger.warning(
            "Template for message type '%s' is empty or not configured. Dropping entry %s.",
            entry.type.value, entry.id,
        )
        db.delete(entry)
        db.commit()
        return DROPPED

    ok = evolution.send_message(
        entry.recipient_phone_number, text, token=config.api_token, send_id=entry.type.value
    )

    if ok:
        logger.info("WhatsApp '%s' message sent to %s", entry.type.value, entry.recipient_phone_number)
        db.delete(entry)
        db.commit()
        return SENT

    entry.attempts = (entry.attempts or 0) + 1
    entry.last_error = "send_message returned False"
    entry.claimed_at = None
    if entry.attempts >= settings.notification_max_attempts:
        entry.status = PendingMessageStatus.FAILED
        db.commit()
        logger.error(
            "WhatsApp '%s' message %s to %s failed after %d attempts",
            entry.type.value, entry.id, entry.recipient_phone_number, entry.attempts,
        )
        return FAILED

    entry.status = PendingMessageStatus.PENDING
    entry.next_attempt_at = now + _backoff(entry.attempts)
    db.commit()
    logger.warning(
        "WhatsApp '%s' message %s failed (attempt %d), retrying at %s",
        entry.type.value, entry.id, entry.attempts, entry.next_attempt_at.isoformat(),
    )
    return RETRY


def release_stale_claims(db: Session, now: Optional[datetime] = None) -> int:
    """Return entries stuck in processing (crashed worker) to the pending state."""
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(minutes=settings.notification_claim_timeout_minutes)
    released = (
        db.query(PendingWhatsappMessage)
        .filter(
            PendingWhatsappMessage.status == PendingMessageStatus.PROCESSING,
            PendingWhatsappMessage.claimed_at < cutoff,
        )
        .update(
            {"status": PendingMessageStatus.PENDING, "claimed_at": None},
            synchronize_session=False,
        )
    )
    db.commit()
    if released:
        logger.warning("Released %d stale WhatsApp queue claims", released)
    return released


def due_message_ids(db: Session, now: Optional[datetime] = None, limit: int = 100) -> List[int]:
    """Pending entries whose next attempt is due, oldest first."""
    now = now or datetime.now(timezone.utc)
    rows = (
        db.query(PendingWhatsappMessage.id)
        .filter(
            PendingWhatsappMessage.status == PendingMessageStatus.PENDING,
            or_(
                PendingWhatsappMessage.next_attempt_at.is_(None),
                PendingWhatsappMessage.next_attempt_at <= now,
            ),
        )
        .order_by(PendingWhatsappMessage.created_at, PendingWhatsappMessage.id)
        .limit(limit)
        .all()
    )
    return [r[0] for r in rows]

