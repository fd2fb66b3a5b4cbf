"""
Evolution API client for the WhatsApp gateway.

Every call takes the instance token explicitly (the admin-configured token for queue
deliveries, or a seller's own token); settings.evolution_api_key is the fallback.
"""
import logging
from typing import Optional

import httpx

from app.config import settings

logger = logging.getLogger(__name__)

# Evolution connectionState → our status vocabulary
_STATE_MAP = {
    "open": "connected",
    "connecting": "connecting",
    "close": "disconnected",
}


class WhatsappGatewayError(Exception):
    """Raised when the gateway cannot answer a status/connect request."""


def normalize_phone(phone: str) -> str:
    """
    Normalize a phone number to E.164-style digits only.

    Signup stores Brazilian numbers without the country code (e.g. '11999999999').
    - 10-11 digits → Brazilian number → prepend '55'
    - 12+ digits → already has country code → keep as-is
    """
    digits = "".join(c for c in phone if c.isdigit()).lstrip("0")
    if len(digits) in (10, 11):
        return "55" + digits
    return digits


def _headers(token: Optional[str]) -> dict:
    return {
        "apikey": token or settings.evolution_api_key,
        "Content-Type": "application/json",
    }


def _instance_url(path: str) -> str:
    return f"{settings.evolution_api_url}/{path}/{settings.evolution_instance}"


def send_message(phone: str, text: str, token: Optional[str] = None, send_id: Optional[str] = None) -> bool:
    """
    Send a WhatsApp text message via Evolution API.
    Returns True on success, False on error. Never raises.
    """
    if not settings.evolution_enabled:
        logger.info("Evolution API disabled. Skipping send_message to %s", phone)
        return True

    if settings.evolution_dev_mode:
        from app.integrations.evolution_dev import send_message as dev_send
        return dev_send(phone, text, send_id=send_id)

    if not phone:
        logger.warning("send_message called with empty phone number. Skipping.")
        return False

    payload = {
        "number": normalize_phone(phone),
        "text": text,
    }

    try:
        with httpx.Client(timeout=10) as client:
            resp = client.post(_instance_url("message/sendText"), headers=_headers(token), json=payload)
        if resp.status_code in (200, 201):
            return True
        logger.error("send_message failed: %s %s", resp.status_code, resp.text)
        return False
    except Exception as e:
        logger.error("send_message exception: %s", e)
        return False


def get_instance_status(token: Optional[str] = None) -> str:
    """Return 'connected', 'connecting' or 'disconnected' for the instance."""
    try:
        with httpx.Client(timeout=10) as client:
            resp = client.get(_instance_url("instance/connectionState"), headers=_headers(token))
    except httpx.HTTPError as e:
        raise WhatsappGatewayError(f"Erro de conexão com o gateway WhatsApp: {e}") from e

    if resp.status_code != 200:
        raise WhatsappGatewayError(f"Erro ao checar status: {resp.status_code} {resp.text}")

    state = (resp.json().get("instance") or {}).get("state", "")
    return _STATE_MAP.get(state, "disconnected")


def connect_instance(token: Optional[str] = None) -> dict:
    """
    Start a pairing session. Returns {"qrcode": <base64 image>, "pairing_code": <code>}.
    """
    try:
        with httpx.Client(timeout=30) as client:
            resp = client.get(_instance_url("instance/connect"), headers=_headers(token))
    except httpx.HTTPError as e:
        raise WhatsappGatewayError(f"Exceção ao conectar: {e}") from e

    if resp.status_code != 200:
        raise WhatsappGatewayError(f"Erro ao conectar: {resp.status_code} {resp.text}")

    data = resp.json()
    if not data.get("base64"):
        raise WhatsappGatewayError("Resposta de conexão inesperada.")
    return {"qrcode": data["base64"], "pairing_code": data.get("pairingCode") or data.get("code")}
