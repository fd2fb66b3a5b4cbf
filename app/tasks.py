"""
Celery tasks for async processing

Tasks:
- deliver_pending_message: Claim, render and send one WhatsApp queue entry
- drain_pending_messages: Periodic catch-up for due retries and stale claims
- send_media_acknowledgement: Delayed seller auto-reply after a customer image
"""
import logging

from sqlalchemy.orm import Session

from app.celery_app import celery_app
from app.database import SessionLocal
from app.services import change_feed, notifications
from app.services.tickets import acknowledge_media

logger = logging.getLogger(__name__)

# Workers publish change events too (queue deletions, acknowledgement messages)
change_feed.register_listeners()


@celery_app.task(name="app.tasks.deliver_pending_message")
def deliver_pending_message(message_id: int):
    """
    Process one queue entry. Safe to run more than once for the same id: only the
    worker that wins the pending → processing claim sends it.
    """
    db: Session = SessionLocal()
    try:
        outcome = notifications.process_pending_message(db, message_id)
        return {"message_id": message_id, "outcome": outcome}
    finally:
        db.close()


@celery_app.task(name="app.tasks.drain_pending_messages")
def drain_pending_messages():
    """
    Release claims left by crashed workers, then process every due entry.
    Scheduled every minute by celery beat.
    """
    db: Session = SessionLocal()
    try:
        released = notifications.release_stale_claims(db)
        message_ids = notifications.due_message_ids(db)
    finally:
        db.close()

    outcomes = {}
    for message_id in message_ids:
        db = SessionLocal()
        try:
            outcome = notifications.process_pending_message(db, message_id)
        except Exception as e:
            db.rollback()
            logger.error("drain: entry %s raised %s", message_id, e, exc_info=True)
            outcome = "error"
        finally:
            db.close()
        outcomes[outcome] = outcomes.get(outcome, 0) + 1

    if message_ids:
        logger.info("drain: processed %d entries %s", len(message_ids), outcomes)
    return {"released": released, "processed": len(message_ids), "outcomes": outcomes}


@celery_app.task(name="app.tasks.send_media_acknowledgement")
def send_media_acknowledgement(ticket_id: int):
    db: Session = SessionLocal()
    try:
        message = acknowledge_media(db, ticket_id)
        return {"ticket_id": ticket_id, "message_id": message.id if message else None}
    finally:
        db.close()
