# Database models
from .base import Base
from .user import User, UserRole
from .catalog import SubscriptionService, Plan, Deliverable, AccountModel, DeliverableStatus
from .coupon import Coupon
from .user_subscription import UserSubscription
from .ticket import Ticket, ChatMessage, TicketStatus, MessageType
from .pending_message import PendingWhatsappMessage, PendingMessageType, PendingMessageStatus
from .payment_charge import PaymentCharge, ChargePurpose, ChargeStatus
from .system_settings import PaymentSettings, WhatsappSettings, SpecialCouponsSettings

__all__ = [
    "Base",
    "User",
    "UserRole",
    "SubscriptionService",
    "Plan",
    "Deliverable",
    "AccountModel",
    "DeliverableStatus",
    "Coupon",
    "UserSubscription",
    "Ticket",
    "ChatMessage",
    "TicketStatus",
    "MessageType",
    "PendingWhatsappMessage",
    "PendingMessageType",
    "PendingMessageStatus",
    "PaymentCharge",
    "ChargePurpose",
    "ChargeStatus",
    "PaymentSettings",
    "WhatsappSettings",
    "SpecialCouponsSettings",
]
