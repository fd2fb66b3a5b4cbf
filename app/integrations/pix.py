"""
PIX payment gateway client.

Two providers are supported, selected by the active payment configuration:
- PushinPay: static bearer API key.
- AxenPay: client_credentials login, bearer token cached in Redis for 55 minutes.

Both expose the same two calls: create a charge for an amount in cents, and
check a transaction's status ('paid' or 'pending').
"""
import logging
import uuid
from dataclasses import dataclass
from typing import Optional

import requests

from app.config import settings

logger = logging.getLogger(__name__)

PUSHINPAY = "pushinpay"
AXENPAY = "axenpay"
SUPPORTED_PROVIDERS = {PUSHINPAY, AXENPAY}

STATUS_PAID = "paid"
STATUS_PENDING = "pending"

_AXENPAY_TOKEN_CACHE_KEY = "axenpay:access_token"
_AXENPAY_TOKEN_TTL = 55 * 60


class PixConfigurationError(ValueError):
    """No usable payment provider configuration. Message is meant for the operator."""


class PixGatewayError(Exception):
    """The provider rejected the request or could not be reached."""


@dataclass
class PaymentConfig:
    """Resolved payment configuration (secrets already decrypted)"""
    active_provider: str
    pushinpay_api_key: str = ""
    axenpay_client_id: str = ""
    axenpay_client_secret: str = ""


@dataclass
class PixCharge:
    id: str
    qr_code: str
    qr_code_base64: str


def _check_config(config: Optional[PaymentConfig]) -> PaymentConfig:
    if config is None or not config.active_provider:
        raise PixConfigurationError(
            "CONFIGURAÇÃO INCOMPLETA: Nenhum provedor de pagamento configurado. "
            "Vá para o painel de administração para configurar."
        )
    if config.active_provider == AXENPAY:
        if not config.axenpay_client_id or not config.axenpay_client_secret:
            raise PixConfigurationError("CONFIGURAÇÃO INCOMPLETA: Credenciais da AxenPay não encontradas.")
    elif config.active_provider == PUSHINPAY:
        if not config.pushinpay_api_key:
            raise PixConfigurationError("CONFIGURAÇÃO INCOMPLETA: Token da API PushinPay não encontrado.")
    else:
        raise PixConfigurationError(f"Provedor de pagamento desconhecido: {config.active_provider}")
    return config


def create_charge(config: Optional[PaymentConfig], value_in_cents: int) -> PixCharge:
    """
    Issue a PIX charge for value_in_cents.

    Raises:
        PixConfigurationError: provider missing or incomplete
        PixGatewayError: provider returned an error or was unreachable
    """
    if not isinstance(value_in_cents, int) or value_in_cents <= 0:
        raise ValueError("value_in_cents must be a positive integer")

    config = _check_config(config)
    if config.active_provider == AXENPAY:
        return _axenpay_create(config, value_in_cents)
    return _pushinpay_create(config, value_in_cents)


def get_status(config: Optional[PaymentConfig], transaction_id: str) -> str:
    """Return the provider status for a transaction ('paid', 'pending', ...)."""
    config = _check_config(config)
    if config.active_provider == AXENPAY:
        return _axenpay_status(config, transaction_id)
    return _pushinpay_status(config, transaction_id)


# ---------------------------------------------------------------------------
# PushinPay
# ---------------------------------------------------------------------------

def _pushinpay_headers(config: PaymentConfig) -> dict:
    return {
        "Authorization": f"Bearer {config.pushinpay_api_key}",
        "Content-Type": "application/json",
        "Accept": "application/json",
    }


def _pushinpay_create(config: PaymentConfig, value_in_cents: int) -> PixCharge:
    payload = {"value": value_in_cents}
    if settings.pix_webhook_url:
        payload["webhook_url"] = settings.pix_webhook_url

    try:
        resp = requests.post(
            f"{settings.pushinpay_api_base}/pix/cashIn",
            headers=_pushinpay_headers(config),
            json=payload,
            timeout=15,
        )
    except requests.RequestException as e:
        logger.error("PushinPay cashIn request failed: %s", e)
        raise PixGatewayError(f"Ocorreu um erro de conexão com PushinPay: {e}") from e

    if not resp.ok:
        logger.error("PushinPay error: %s %s", resp.status_code, resp.text)
        raise PixGatewayError(f"Erro ao gerar PIX na PushinPay: {resp.status_code} {resp.text}")

    data = resp.json()
    return PixCharge(
        id=str(data.get("id") or data.get("transactionId") or data.get("txid") or ""),
        qr_code=data.get("qr_code") or data.get("qrCode") or "",
        qr_code_base64=data.get("qr_code_base64") or data.get("qrCodeBase64") or "",
    )


def _pushinpay_status(config: PaymentConfig, transaction_id: str) -> str:
    try:
        resp = requests.get(
            f"{settings.pushinpay_api_base}/transactions/{transaction_id}",
            headers=_pushinpay_headers(config),
            timeout=15,
        )
    except requests.RequestException as e:
        raise PixGatewayError(f"Ocorreu um erro de conexão com PushinPay: {e}") from e

    if not resp.ok:
        raise PixGatewayError(f"Erro ao checar status PushinPay: {resp.status_code} {resp.text}")
    return resp.json().get("status", STATUS_PENDING)


# ---------------------------------------------------------------------------
# AxenPay
# ---------------------------------------------------------------------------

def _get_axenpay_token(config: PaymentConfig, force: bool = False) -> str:
    """Login with client credentials; token cached in Redis unless force=True."""
    redis = None
    try:
        from app.redis_client import get_redis_client
        redis = get_redis_client()
        if not force:
            cached = redis.get(_AXENPAY_TOKEN_CACHE_KEY)
            if cached:
                return cached
    except Exception as e:
        logger.warning("Redis unavailable for AxenPay token cache: %s", e)
        redis = None

    try:
        resp = requests.post(
            f"{settings.axenpay_api_base}/api/auth/login",
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            json={"client_id": config.axenpay_client_id, "client_secret": config.axenpay_client_secret},
            timeout=15,
        )
    except requests.RequestException as e:
        raise PixGatewayError(f"Falha ao autenticar na AxenPay: {e}") from e

    if not resp.ok:
        logger.error("AxenPay auth error: %s", resp.text)
        raise PixGatewayError("Falha ao autenticar na AxenPay")

    token = resp.json().get("token")
    if not token:
        raise PixGatewayError("Token da AxenPay ausente na resposta")

    if redis is not None:
        try:
            redis.setex(_AXENPAY_TOKEN_CACHE_KEY, _AXENPAY_TOKEN_TTL, token)
        except Exception as e:
            logger.warning("Failed to cache AxenPay token in Redis: %s", e)

    return token


def _axenpay_create(config: PaymentConfig, value_in_cents: int) -> PixCharge:
    token = _get_axenpay_token(config)
    payload = {
        "amount": value_in_cents / 100,
        "external_id": f"dep-{uuid.uuid4()}",
    }
    if settings.pix_webhook_url:
        payload["clientCallbackUrl"] = settings.pix_webhook_url

    try:
        resp = requests.post(
            f"{settings.axenpay_api_base}/api/payments/deposit",
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            json=payload,
            timeout=15,
        )
    except requests.RequestException as e:
        raise PixGatewayError(f"Ocorreu um erro de conexão com AxenPay: {e}") from e

    if resp.status_code != 201:
        logger.error("AxenPay error: %s %s", resp.status_code, resp.text)
        raise PixGatewayError(f"Erro ao gerar PIX na AxenPay: {resp.status_code} {resp.text}")

    qr = resp.json().get("qrCodeResponse") or {}
    return PixCharge(
        id=str(qr.get("transactionId", "")),
        qr_code=qr.get("qrcode", ""),
        qr_code_base64=qr.get("qrCodeImage") or qr.get("qrCodeBase64") or "",
    )


def _axenpay_status(config: PaymentConfig, transaction_id: str) -> str:
    url = f"{settings.axenpay_api_base}/api/transactions/getStatusTransac/{transaction_id}"

    def _fetch(token: str):
        try:
            return requests.get(url, headers={"Authorization": f"Bearer {token}"}, timeout=15)
        except requests.RequestException as e:
            raise PixGatewayError(f"Ocorreu um erro de conexão com AxenPay: {e}") from e

    resp = _fetch(_get_axenpay_token(config))
    if resp.status_code == 401:
        # Cached token revoked early; log in again once
        resp = _fetch(_get_axenpay_token(config, force=True))

    if not resp.ok:
        raise PixGatewayError(f"Erro ao checar status AxenPay: {resp.status_code} {resp.text}")

    return STATUS_PAID if resp.json().get("status") == "COMPLETED" else STATUS_PENDING
