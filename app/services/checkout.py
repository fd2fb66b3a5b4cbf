"""
Checkout: price a plan (optionally with a coupon), take the PIX payment and fulfil
the purchase once the provider reports it paid.

Charge lifecycle (PaymentCharge.status):
    pending → paid → fulfilled
                   ↘ fulfillment_failed → (admin retry) → paid → ...

The pending → paid step is a conditional UPDATE, so however many pollers see the
provider's 'paid' answer, exactly one of them runs the fulfilment side effects:
    1. UserSubscription (start now, end now + validity days)
    2. Ticket with the seller's confirmation message
    3. earliest available deliverable claimed and posted in the ticket,
       or a "no stock" message flagging the ticket for manual delivery
    4. WhatsApp delivery (buyer) and sale notification (seller) queued

A renewal charge instead pushes the subscription end date forward.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.config import settings
from app.database import claim, increment_counter
from app.integrations import pix
from app.models.catalog import Plan, Deliverable, DeliverableStatus
from app.models.payment_charge import PaymentCharge, ChargePurpose, ChargeStatus
from app.models.pending_message import PendingMessageType
from app.models.ticket import Ticket, TicketStatus
from app.models.user import User
from app.models.user_subscription import UserSubscription
from app.services import change_feed, coupons, notifications
from app.services.settings import get_payment_config
from app.services.tickets import add_message, as_utc, SYSTEM_SENDER_NAME

logger = logging.getLogger(__name__)

COUPON_PROVIDER = "coupon"

MSG_PAYMENT_CONFIRMED = (
    "Pagamento confirmado! Obrigado pela compra de {service} - {plan}. "
    "Seus dados de acesso serão enviados por aqui."
)
MSG_DELIVERY = "Aqui estão seus dados de acesso:\n\n{content}"
MSG_NO_STOCK = (
    "No momento não há acessos disponíveis em estoque para este plano. "
    "O vendedor foi notificado e fará a entrega manualmente por aqui."
)
MSG_RENEWED = "Assinatura renovada! Nova data de expiração: {end_date}."


class CheckoutError(Exception):
    """Checkout could not start; message is safe to show to the buyer."""


class FulfillmentError(Exception):
    """Payment was confirmed but the purchase could not be recorded."""


@dataclass
class PriceQuote:
    original_price: Decimal
    final_price: Decimal
    amount_cents: int
    coupon_code: Optional[str] = None
    discount_percentage: int = 0


@dataclass
class CheckoutOutcome:
    """Result of a checkout step. queued_message_ids must be dispatched after commit."""
    charge: PaymentCharge
    ticket_id: Optional[int] = None
    queued_message_ids: List[int] = field(default_factory=list)


def quote(db: Session, plan: Plan, coupon_code: Optional[str] = None) -> PriceQuote:
    """Final price for a plan; raises coupons.InvalidCouponError for a bad code."""
    discount = 0
    code = None
    if coupon_code and coupon_code.strip():
        coupon = coupons.find_coupon(db, coupon_code)
        discount = coupon.discount_percentage
        code = coupon.code

    original = Decimal(str(plan.price))
    final = coupons.apply_discount(original, discount)
    return PriceQuote(
        original_price=original,
        final_price=final,
        amount_cents=coupons.to_cents(final),
        coupon_code=code,
        discount_percentage=discount,
    )


def payment_method_label(coupon_code: Optional[str], free: bool) -> str:
    if free:
        return f"Cupom {coupon_code}"
    if coupon_code:
        return f"PIX (cupom {coupon_code})"
    return "PIX"


def _issue_pix(db: Session, amount_cents: int) -> tuple:
    """Create the provider charge; PixConfigurationError / PixGatewayError propagate."""
    config = get_payment_config(db)
    try:
        charge = pix.create_charge(config, amount_cents)
    except pix.PixConfigurationError as e:
        logger.error("PIX configuration error: %s", e)
        raise
    except pix.PixGatewayError as e:
        logger.error("PIX charge creation failed: %s", e)
        raise
    return config.active_provider, charge


def start_checkout(db: Session, buyer: User, plan_id: int, coupon_code: Optional[str] = None) -> CheckoutOutcome:
    """
    Begin a purchase. A 100% coupon completes it immediately; otherwise a PIX
    charge is issued and the returned charge is pending.
    """
    plan = db.query(Plan).filter(Plan.id == plan_id).first()
    if plan is None:
        raise LookupError("Plano não encontrado.")

    price = quote(db, plan, coupon_code)

    if price.amount_cents <= 0:
        charge = PaymentCharge(
            provider=COUPON_PROVIDER,
            purpose=ChargePurpose.PURCHASE,
            status=ChargeStatus.PAID,
            user_id=buyer.id,
            plan_id=plan.id,
            coupon_code=price.coupon_code,
            original_price=price.original_price,
            final_price=price.final_price,
            amount_cents=0,
            paid_at=datetime.now(timezone.utc),
        )
        db.add(charge)
        db.commit()
        logger.info("Free checkout with coupon %s for plan %s by user %s", price.coupon_code, plan.id, buyer.id)
        return apply_paid_charge(db, charge)

    provider, pix_charge = _issue_pix(db, price.amount_cents)
    charge = PaymentCharge(
        transaction_id=pix_charge.id,
        provider=provider,
        purpose=ChargePurpose.PURCHASE,
        status=ChargeStatus.PENDING,
        user_id=buyer.id,
        plan_id=plan.id,
        coupon_code=price.coupon_code,
        original_price=price.original_price,
        final_price=price.final_price,
        amount_cents=price.amount_cents,
        qr_code=pix_charge.qr_code,
        qr_code_base64=pix_charge.qr_code_base64,
    )
    db.add(charge)
    db.commit()
    db.refresh(charge)
    logger.info("PIX charge %s issued (%d cents) for plan %s", charge.transaction_id, charge.amount_cents, plan.id)
    return CheckoutOutcome(charge=charge)


def start_renewal(db: Session, buyer: User, ticket: Ticket) -> CheckoutOutcome:
    """Issue a PIX charge that extends the ticket's subscription when paid."""
    if ticket.customer_id != buyer.id:
        raise PermissionError("Somente o comprador pode renovar esta assinatura.")
    sub = ticket.user_subscription

    # Coupon-redeemed subscriptions renew at the plan's current price
    price = Decimal(str(sub.price))
    if price <= 0 and sub.plan is not None:
        price = Decimal(str(sub.plan.price))
    amount_cents = coupons.to_cents(price)
    if amount_cents <= 0:
        raise CheckoutError("Não há valor de renovação para esta assinatura.")

    provider, pix_charge = _issue_pix(db, amount_cents)
    charge = PaymentCharge(
        transaction_id=pix_charge.id,
        provider=provider,
        purpose=ChargePurpose.RENEWAL,
        status=ChargeStatus.PENDING,
        user_id=buyer.id,
        plan_id=sub.plan_id,
        ticket_id=ticket.id,
        original_price=price,
        final_price=price,
        amount_cents=amount_cents,
        qr_code=pix_charge.qr_code,
        qr_code_base64=pix_charge.qr_code_base64,
    )
    db.add(charge)
    db.commit()
    db.refresh(charge)
    return CheckoutOutcome(charge=charge, ticket_id=ticket.id)


def poll_charge(db: Session, charge: PaymentCharge) -> CheckoutOutcome:
    """
    One status check against the provider. Pollers call this every few seconds
    until the charge leaves 'pending'; gateway errors propagate as PixGatewayError.
    """
    if charge.status != ChargeStatus.PENDING:
        return CheckoutOutcome(charge=charge, ticket_id=charge.ticket_id)

    status = pix.get_status(get_payment_config(db), charge.transaction_id)
    if status != pix.STATUS_PAID:
        return CheckoutOutcome(charge=charge)

    won = claim(
        db, PaymentCharge, charge.id,
        where={"status": ChargeStatus.PENDING},
        values={"status": ChargeStatus.PAID, "paid_at": datetime.now(timezone.utc)},
    )
    db.commit()
    db.refresh(charge)
    if not won:
        logger.info("Charge %s already claimed by another poller", charge.id)
        return CheckoutOutcome(charge=charge, ticket_id=charge.ticket_id)

    logger.info("Charge %s confirmed paid", charge.transaction_id)
    return apply_paid_charge(db, charge)


def retry_fulfillment(db: Session, charge: PaymentCharge) -> CheckoutOutcome:
    """Re-run the side effects of a paid charge whose fulfilment failed."""
    won = claim(
        db, PaymentCharge, charge.id,
        where={"status": ChargeStatus.FULFILLMENT_FAILED},
        values={"status": ChargeStatus.PAID, "error_message": None},
    )
    db.commit()
    db.refresh(charge)
    if not won:
        raise CheckoutError("Somente cobranças com falha de processamento podem ser reprocessadas.")
    return apply_paid_charge(db, charge)


def apply_paid_charge(db: Session, charge: PaymentCharge) -> CheckoutOutcome:
    """Run the side effects of a charge in status 'paid', all in one transaction."""
    now = datetime.now(timezone.utc)
    try:
        if charge.purpose == ChargePurpose.RENEWAL:
            ticket, queued = _renew(db, charge, now)
        else:
            ticket, queued = _fulfil_purchase(db, charge, now)
        charge.ticket_id = ticket.id
        charge.status = ChargeStatus.FULFILLED
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error("ADMIN ALERT: fulfilment of charge %s failed: %s", charge.id, e, exc_info=True)
        db.refresh(charge)
        charge.status = ChargeStatus.FULFILLMENT_FAILED
        charge.error_message = str(e)
        db.commit()
        raise FulfillmentError(
            "Pagamento confirmado, mas houve um erro ao registrar sua compra. "
            "Nossa equipe foi notificada."
        ) from e

    db.refresh(charge)
    return CheckoutOutcome(
        charge=charge,
        ticket_id=ticket.id,
        queued_message_ids=[entry.id for entry in queued],
    )


def claim_deliverable(db: Session, plan_id: int, user_subscription_id: int, now: datetime) -> Optional[Deliverable]:
    """
    Mark the earliest available deliverable of a plan as sold to one subscription.
    Returns None when the plan has no stock left.
    """
    while True:
        candidate = (
            db.query(Deliverable.id)
            .filter(Deliverable.plan_id == plan_id, Deliverable.status == DeliverableStatus.AVAILABLE)
            .order_by(Deliverable.created_at, Deliverable.id)
            .first()
        )
        if candidate is None:
            return None

        won = claim(
            db, Deliverable, candidate[0],
            where={"status": DeliverableStatus.AVAILABLE},
            values={
                "status": DeliverableStatus.SOLD,
                "sold_at": now,
                "user_subscription_id": user_subscription_id,
            },
        )
        if won:
            db.execute(
                update(Plan)
                .where(Plan.id == plan_id, Plan.stock > 0)
                .values(stock=Plan.stock - 1)
                .execution_options(synchronize_session=False)
            )
            deliverable = db.get(Deliverable, candidate[0])
            db.refresh(deliverable)
            return deliverable
        # Lost the race for this one; try the next


def _fulfil_purchase(db: Session, charge: PaymentCharge, now: datetime):
    plan = charge.plan
    if plan is None:
        raise FulfillmentError("Plano da cobrança não existe mais.")
    buyer = charge.user
    seller = plan.seller
    service = plan.service
    free = charge.amount_cents == 0

    sub = UserSubscription(
        user_id=buyer.id,
        plan_id=plan.id,
        service_id=service.id,
        plan_name=plan.name,
        service_name=service.name,
        price=charge.final_price,
        payment_method=payment_method_label(charge.coupon_code, free),
        start_date=now,
        end_date=now + timedelta(days=settings.subscription_validity_days),
    )
    db.add(sub)
    db.flush()

    ticket = Ticket(
        user_subscription_id=sub.id,
        customer_id=buyer.id,
        customer_name=buyer.name,
        seller_id=seller.id,
        seller_name=seller.name,
        plan_id=plan.id,
        service_name=service.name,
        plan_name=plan.name,
        status=TicketStatus.OPEN,
        needs_manual_delivery=False,
        unread_by_seller_count=1,
        unread_by_customer_count=0,
    )
    db.add(ticket)
    db.flush()

    add_message(
        db, ticket,
        MSG_PAYMENT_CONFIRMED.format(service=service.name, plan=plan.name),
        seller.id, seller.name, now=now,
    )

    deliverable = claim_deliverable(db, plan.id, sub.id, now)
    if deliverable is not None:
        add_message(db, ticket, MSG_DELIVERY.format(content=deliverable.content), seller.id, seller.name, now=now)
        ticket.unread_by_customer_count = 1
        ticket.unread_by_seller_count = 0
        logger.info("Deliverable %s sold to subscription %s", deliverable.id, sub.id)
    else:
        add_message(db, ticket, MSG_NO_STOCK, None, SYSTEM_SENDER_NAME, now=now)
        ticket.needs_manual_delivery = True
        ticket.unread_by_customer_count = 1
        ticket.unread_by_seller_count = 2
        logger.warning("Plan %s out of stock; ticket %s needs manual delivery", plan.id, ticket.id)
    db.flush()

    data = {
        "customer_name": buyer.name,
        "customer_email": buyer.email,
        "seller_name": seller.name,
        "service_name": service.name,
        "plan_name": plan.name,
        "price": str(charge.final_price),
        "deliverable_content": deliverable.content if deliverable else "",
        "ticket_id": ticket.id,
    }
    queued = []
    for message_type, phone in (
        (PendingMessageType.DELIVERY, buyer.phone_number),
        (PendingMessageType.SALE_NOTIFICATION, seller.phone_number),
    ):
        entry = notifications.enqueue(db, message_type, phone, data)
        if entry is not None:
            queued.append(entry)

    return ticket, queued


def _renew(db: Session, charge: PaymentCharge, now: datetime):
    ticket = charge.ticket
    if ticket is None or ticket.user_subscription is None:
        raise FulfillmentError("Ticket da renovação não encontrado.")
    sub = ticket.user_subscription

    base = max(as_utc(sub.end_date), now)
    sub.end_date = base + timedelta(days=settings.subscription_validity_days)

    add_message(
        db, ticket,
        MSG_RENEWED.format(end_date=sub.end_date.strftime("%d/%m/%Y")),
        None, SYSTEM_SENDER_NAME, now=now,
    )
    db.flush()
    increment_counter(db, Ticket, ticket.id, unread_by_seller_count=1, unread_by_customer_count=1)
    change_feed.record_change(db, "tickets", ticket.id, scope=ticket.id)
    logger.info("Subscription %s renewed until %s", sub.id, sub.end_date.isoformat())
    return ticket, []
