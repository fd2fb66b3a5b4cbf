from pydantic import BaseModel
from typing import Optional


# Valid template placeholders per queue entry type
TEMPLATE_VARIABLES = {
    "welcome": {"cliente", "email"},
    "sale_notification": {"vendedor", "produto", "plano", "comprador", "valor"},
    "delivery": {"cliente", "produto", "plano", "acesso"},
    "ticket_notification": {"cliente", "vendedor", "link_ticket"},
}


class WhatsappTemplatesOut(BaseModel):
    welcome_message: str = ""
    sale_notification_message: str = ""
    delivery_message: str = ""
    ticket_notification_message: str = ""
    variables: dict[str, list[str]] = {
        k: sorted(v) for k, v in TEMPLATE_VARIABLES.items()
    }


class WhatsappTemplatesUpdate(BaseModel):
    welcome_message: Optional[str] = None
    sale_notification_message: Optional[str] = None
    delivery_message: Optional[str] = None
    ticket_notification_message: Optional[str] = None
