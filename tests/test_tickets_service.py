"""Tests for the ticket chat workflow (app/services/tickets.py)"""
import base64
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from unittest.mock import patch

from app.models.pending_message import PendingWhatsappMessage, PendingMessageType
from app.models.ticket import Ticket, ChatMessage, MessageType
from app.models.user import UserRole
from app.models.user_subscription import UserSubscription
from app.services import tickets


NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def _image(size=16):
    return "data:image/png;base64," + base64.b64encode(b"\x89PNG" + b"\x00" * (size - 4)).decode()


@pytest.fixture
def ticket(db_session, marketplace):
    plan, customer, seller = marketplace["plan"], marketplace["customer"], marketplace["seller"]
    sub = UserSubscription(
        user_id=customer.id,
        plan_id=plan.id,
        service_id=plan.service_id,
        plan_name=plan.name,
        service_name="Netflix",
        price=plan.price,
        payment_method="PIX",
        start_date=NOW - timedelta(days=1),
        end_date=NOW + timedelta(days=29),
    )
    db_session.add(sub)
    db_session.flush()
    t = Ticket(
        user_subscription_id=sub.id,
        customer_id=customer.id,
        customer_name=customer.name,
        seller_id=seller.id,
        seller_name=seller.name,
        plan_id=plan.id,
        service_name="Netflix",
        plan_name=plan.name,
        unread_by_seller_count=0,
        unread_by_customer_count=0,
    )
    db_session.add(t)
    db_session.commit()
    return t


class TestAccess:
    def test_participants_and_admin(self, db_session, ticket, marketplace, make_user):
        admin = make_user(UserRole.ADMIN)
        assert tickets.get_ticket_for(db_session, ticket.id, marketplace["customer"])[1] == tickets.CUSTOMER
        assert tickets.get_ticket_for(db_session, ticket.id, marketplace["seller"])[1] == tickets.SELLER
        assert tickets.get_ticket_for(db_session, ticket.id, admin)[1] == tickets.ADMIN

    def test_outsider_denied(self, db_session, ticket, make_user):
        with pytest.raises(tickets.TicketAccessError):
            tickets.get_ticket_for(db_session, ticket.id, make_user())

    def test_missing_ticket(self, db_session, marketplace):
        with pytest.raises(LookupError):
            tickets.get_ticket_for(db_session, 404, marketplace["customer"])


class TestPostMessage:
    def test_customer_message_increments_seller_counter_only(self, db_session, ticket, marketplace):
        msg, queued = tickets.post_message(db_session, ticket, marketplace["customer"], "Oi, tudo bem?", now=NOW)
        db_session.commit()
        db_session.refresh(ticket)

        assert msg.sender_name == marketplace["customer"].name
        assert ticket.unread_by_seller_count == 1
        assert ticket.unread_by_customer_count == 0
        assert ticket.last_message_text == "Oi, tudo bem?"
        assert queued == []

    def test_seller_message_notifies_customer(self, db_session, ticket, marketplace):
        _, queued = tickets.post_message(db_session, ticket, marketplace["seller"], "Segue o acesso", now=NOW)
        db_session.commit()
        db_session.refresh(ticket)

        assert ticket.unread_by_customer_count == 1
        assert ticket.unread_by_seller_count == 0
        assert len(queued) == 1
        entry = db_session.query(PendingWhatsappMessage).one()
        assert entry.type == PendingMessageType.TICKET_NOTIFICATION
        assert entry.recipient_phone_number == marketplace["customer"].phone_number
        assert entry.data == {
            "customer_name": ticket.customer_name,
            "seller_name": ticket.seller_name,
            "ticket_id": ticket.id,
        }

    def test_counters_accumulate(self, db_session, ticket, marketplace):
        for text in ("um", "dois", "três"):
            tickets.post_message(db_session, ticket, marketplace["customer"], text, now=NOW)
        db_session.commit()
        db_session.refresh(ticket)
        assert ticket.unread_by_seller_count == 3

    def test_mark_read_zeroes_own_counter(self, db_session, ticket, marketplace):
        tickets.post_message(db_session, ticket, marketplace["customer"], "oi", now=NOW)
        tickets.post_message(db_session, ticket, marketplace["seller"], "olá", now=NOW)
        db_session.commit()

        tickets.mark_read(db_session, ticket, tickets.SELLER)

        assert ticket.unread_by_seller_count == 0
        assert ticket.unread_by_customer_count == 1

    def test_empty_text_rejected(self, db_session, ticket, marketplace):
        with pytest.raises(tickets.InvalidMessageError):
            tickets.post_message(db_session, ticket, marketplace["customer"], "   ", now=NOW)

    def test_expired_ticket_is_read_only(self, db_session, ticket, marketplace):
        later = NOW + timedelta(days=30)
        with pytest.raises(tickets.TicketExpiredError):
            tickets.post_message(db_session, ticket, marketplace["customer"], "ainda vale?", now=later)
        assert tickets.is_expired(ticket, later) is True
        assert tickets.is_expired(ticket, NOW) is False

    def test_admin_cannot_post(self, db_session, ticket, make_user):
        with pytest.raises(tickets.TicketAccessError):
            tickets.post_message(db_session, ticket, make_user(UserRole.ADMIN), "oi", now=NOW)

    def test_only_seller_requests_media(self, db_session, ticket, marketplace):
        with pytest.raises(tickets.InvalidMessageError):
            tickets.post_message(
                db_session, ticket, marketplace["customer"], "", MessageType.MEDIA_REQUEST, now=NOW
            )
        msg, _ = tickets.post_message(
            db_session, ticket, marketplace["seller"], "", MessageType.MEDIA_REQUEST, now=NOW
        )
        assert msg.type == MessageType.MEDIA_REQUEST
        assert ticket.last_message_text == "[Solicitação de imagem]"

    def test_customer_sends_image(self, db_session, ticket, marketplace):
        msg, _ = tickets.post_message(
            db_session, ticket, marketplace["customer"], "", MessageType.MEDIA_RESPONSE, _image(), now=NOW
        )
        assert msg.payload.startswith("data:image/png;base64,")

    def test_oversized_image_rejected(self, db_session, ticket, marketplace):
        with patch("app.services.tickets.settings") as mock_settings:
            mock_settings.media_max_bytes = 8
            with pytest.raises(tickets.InvalidMessageError):
                tickets.post_message(
                    db_session, ticket, marketplace["customer"], "", MessageType.MEDIA_RESPONSE, _image(16), now=NOW
                )


class TestMediaPayload:
    def test_valid_payload_returns_size(self):
        assert tickets.validate_media_payload(_image(32)) == 32

    @pytest.mark.parametrize("payload", [None, "", "data:text/plain;base64,aGVsbG8=", "data:image/png;base64,@@@"])
    def test_invalid_payloads(self, payload):
        with pytest.raises(tickets.InvalidMessageError):
            tickets.validate_media_payload(payload)


class TestPendingMediaRequest:
    def _msg(self, id, sender_id, type, minutes):
        return SimpleNamespace(id=id, sender_id=sender_id, type=type, created_at=NOW + timedelta(minutes=minutes))

    def test_open_request(self):
        messages = [self._msg(1, 2, MessageType.MEDIA_REQUEST, 0)]
        assert tickets.has_pending_media_request(messages, viewer_id=1) is True

    def test_answered_request(self):
        messages = [
            self._msg(1, 2, MessageType.MEDIA_REQUEST, 0),
            self._msg(2, 1, MessageType.MEDIA_RESPONSE, 1),
        ]
        assert tickets.has_pending_media_request(messages, viewer_id=1) is False

    def test_new_request_after_answer(self):
        messages = [
            self._msg(1, 2, MessageType.MEDIA_REQUEST, 0),
            self._msg(2, 1, MessageType.MEDIA_RESPONSE, 1),
            self._msg(3, 2, MessageType.MEDIA_REQUEST, 2),
        ]
        assert tickets.has_pending_media_request(messages, viewer_id=1) is True

    def test_requester_sees_nothing_pending(self):
        messages = [self._msg(1, 2, MessageType.MEDIA_REQUEST, 0)]
        assert tickets.has_pending_media_request(messages, viewer_id=2) is False


class TestAcknowledgeMedia:
    def test_seller_reply_added(self, db_session, ticket):
        msg = tickets.acknowledge_media(db_session, ticket.id)
        db_session.refresh(ticket)

        assert msg.text == tickets.MEDIA_ACK_TEXT
        assert msg.sender_id == ticket.seller_id
        assert ticket.unread_by_customer_count == 1

    def test_missing_ticket(self, db_session):
        assert tickets.acknowledge_media(db_session, 999) is None

    def test_schedule_survives_broker_outage(self):
        with patch("app.tasks.send_media_acknowledgement.apply_async", side_effect=ConnectionError("no broker")):
            tickets.schedule_media_acknowledgement(5)


class TestListMessages:
    def test_since_filter(self, db_session, ticket, marketplace):
        tickets.post_message(db_session, ticket, marketplace["customer"], "antiga", now=NOW)
        tickets.post_message(db_session, ticket, marketplace["customer"], "nova", now=NOW + timedelta(minutes=5))
        db_session.commit()

        assert [m.text for m in tickets.list_messages(db_session, ticket)] == ["antiga", "nova"]
        newer = tickets.list_messages(db_session, ticket, since=NOW + timedelta(minutes=1))
        assert [m.text for m in newer] == ["nova"]


class TestPresence:
    def test_never_seen(self):
        p = tickets.presence(None, NOW)
        assert p.online is False
        assert p.label == "Offline"

    def test_recently_seen_is_online(self):
        p = tickets.presence(NOW - timedelta(minutes=2), NOW)
        assert p.online is True
        assert p.label == "Online"

    def test_naive_timestamp_treated_as_utc(self):
        p = tickets.presence(datetime(2026, 3, 10, 11, 59), NOW)
        assert p.online is True

    @pytest.mark.parametrize("delta,label", [
        (timedelta(minutes=10), "Visto por último há 10 minutos"),
        (timedelta(hours=1, minutes=5), "Visto por último há 1 hora"),
        (timedelta(hours=5), "Visto por último há 5 horas"),
        (timedelta(days=1, hours=2), "Visto por último há 1 dia"),
        (timedelta(days=65), "Visto por último há 2 meses"),
    ])
    def test_last_seen_labels(self, delta, label):
        p = tickets.presence(NOW - delta, NOW)
        assert p.online is False
        assert p.label == label
