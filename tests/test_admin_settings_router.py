"""Tests for admin settings router."""
import pytest
from unittest.mock import Mock, patch
from datetime import datetime
from app.integrations.evolution import WhatsappGatewayError
from app.models.pending_message import PendingWhatsappMessage, PendingMessageType, PendingMessageStatus
from app.models.system_settings import PaymentSettings, WhatsappSettings
from app.services.settings import WhatsappConfig


class TestPaymentSettings:
    def test_get_empty(self, client_with_admin):
        client, mock_db, _ = client_with_admin
        mock_db.query.return_value.first.return_value = None

        with patch("app.routers.admin_settings.settings") as mock_settings:
            mock_settings.pix_provider = ""
            response = client.get("/admin/settings/payment")

        assert response.status_code == 200
        data = response.json()
        assert data["active_provider"] == ""
        assert data["source"] == "none"

    @patch("app.routers.admin_settings.decrypt_value")
    def test_get_from_db_is_masked(self, mock_decrypt, client_with_admin):
        client, mock_db, _ = client_with_admin

        row = Mock(spec=PaymentSettings)
        row.active_provider = "axenpay"
        row.pushinpay_api_key_encrypted = None
        row.axenpay_client_id = "client-1"
        row.axenpay_client_secret_encrypted = "encrypted-secret"
        row.updated_at = datetime(2026, 1, 1)
        mock_db.query.return_value.first.return_value = row

        mock_decrypt.side_effect = lambda x: {"encrypted-secret": "axen-secret-0123456789"}.get(x, "")

        response = client.get("/admin/settings/payment")
        assert response.status_code == 200
        data = response.json()
        assert data["source"] == "db"
        assert data["active_provider"] == "axenpay"
        assert data["axenpay_client_id"] == "client-1"
        assert data["axenpay_client_secret_masked"] == "axen-secre****"
        assert data["pushinpay_api_key_masked"] == ""

    def test_env_fallback(self, client_with_admin):
        client, mock_db, _ = client_with_admin
        mock_db.query.return_value.first.return_value = None

        with patch("app.routers.admin_settings.settings") as mock_settings:
            mock_settings.pix_provider = "pushinpay"
            mock_settings.pushinpay_api_key = "short"
            mock_settings.axenpay_client_id = ""
            mock_settings.axenpay_client_secret = ""
            response = client.get("/admin/settings/payment")

        data = response.json()
        assert data["source"] == "env"
        assert data["pushinpay_api_key_masked"] == "****"

    def test_forbidden_for_seller(self, client_with_seller):
        client, _, _ = client_with_seller
        assert client.get("/admin/settings/payment").status_code == 403

    @patch("app.routers.admin_settings.decrypt_value", return_value="pk-live-abcdefghij")
    @patch("app.routers.admin_settings.encrypt_value", return_value="encrypted-new")
    def test_update_creates_row_and_encrypts(self, mock_encrypt, mock_decrypt, client_with_admin):
        client, mock_db, admin = client_with_admin
        mock_db.query.return_value.first.return_value = None

        def fake_refresh(obj):
            obj.updated_at = datetime.now()

        mock_db.refresh.side_effect = fake_refresh

        response = client.put("/admin/settings/payment", json={
            "active_provider": "pushinpay",
            "pushinpay_api_key": "pk-live-abcdefghij",
        })

        assert response.status_code == 200
        mock_encrypt.assert_called_once_with("pk-live-abcdefghij")
        row = mock_db.add.call_args[0][0]
        assert isinstance(row, PaymentSettings)
        assert row.pushinpay_api_key_encrypted == "encrypted-new"
        assert row.updated_by == admin.id
        assert response.json()["pushinpay_api_key_masked"] == "pk-live-ab****"

    @patch("app.routers.admin_settings.encrypt_value")
    def test_update_keeps_secret_when_omitted(self, mock_encrypt, client_with_admin):
        client, mock_db, _ = client_with_admin
        row = Mock(spec=PaymentSettings)
        row.active_provider = "pushinpay"
        row.pushinpay_api_key_encrypted = "existing"
        row.axenpay_client_id = None
        row.axenpay_client_secret_encrypted = None
        row.updated_at = datetime(2026, 1, 1)
        mock_db.query.return_value.first.return_value = row

        with patch("app.routers.admin_settings.decrypt_value", return_value=""):
            response = client.put("/admin/settings/payment", json={"active_provider": "axenpay"})

        assert response.status_code == 200
        mock_encrypt.assert_not_called()
        assert row.pushinpay_api_key_encrypted == "existing"
        assert row.active_provider == "axenpay"

    def test_unknown_provider_rejected(self, client_with_admin):
        client, _, _ = client_with_admin
        response = client.put("/admin/settings/payment", json={"active_provider": "paypal"})
        assert response.status_code == 422


class TestWhatsappTemplates:
    @patch("app.routers.admin_settings.get_whatsapp_config")
    def test_get_templates_lists_variables(self, mock_config, client_with_admin):
        client, _, _ = client_with_admin
        mock_config.return_value = WhatsappConfig(welcome_message="Oi {cliente}")

        response = client.get("/admin/settings/whatsapp/templates")
        data = response.json()
        assert data["welcome_message"] == "Oi {cliente}"
        assert "link_ticket" in data["variables"]["ticket_notification"]

    def test_unknown_placeholder_rejected(self, client_with_admin):
        client, mock_db, _ = client_with_admin
        response = client.put("/admin/settings/whatsapp/templates", json={
            "delivery_message": "Seu acesso: {acesso} senha {senha}",
        })
        assert response.status_code == 422
        assert "{senha}" in response.json()["detail"]
        mock_db.commit.assert_not_called()

    @patch("app.routers.admin_settings.get_whatsapp_config", return_value=WhatsappConfig())
    def test_partial_update(self, mock_config, client_with_admin):
        client, mock_db, _ = client_with_admin
        row = Mock(spec=WhatsappSettings)
        row.welcome_message = "antiga"
        row.delivery_message = "mantida"
        mock_db.query.return_value.first.return_value = row

        response = client.put("/admin/settings/whatsapp/templates", json={
            "welcome_message": "Bem-vindo {cliente}!",
        })

        assert response.status_code == 200
        assert row.welcome_message == "Bem-vindo {cliente}!"
        assert row.delivery_message == "mantida"
        mock_db.commit.assert_called_once()


class TestWhatsappInstance:
    @patch("app.routers.admin_settings.get_whatsapp_config", return_value=WhatsappConfig(api_token="evo"))
    @patch("app.routers.admin_settings.evolution.get_instance_status", return_value="connected")
    def test_status(self, mock_status, mock_config, client_with_admin):
        client, _, _ = client_with_admin
        response = client.get("/admin/settings/whatsapp/status")
        assert response.json() == {"state": "connected"}
        mock_status.assert_called_once_with("evo")

    @patch("app.routers.admin_settings.get_whatsapp_config", return_value=WhatsappConfig(api_token="evo"))
    @patch("app.routers.admin_settings.evolution.connect_instance", side_effect=WhatsappGatewayError("fora do ar"))
    def test_connect_gateway_error(self, mock_connect, mock_config, client_with_admin):
        client, _, _ = client_with_admin
        response = client.post("/admin/settings/whatsapp/connect")
        assert response.status_code == 502


class TestQueue:
    def _entry(self, status):
        entry = Mock(spec=PendingWhatsappMessage)
        entry.id = 9
        entry.type = PendingMessageType.DELIVERY
        entry.recipient_phone_number = "11999990000"
        entry.status = status
        entry.attempts = 5
        entry.last_error = "send_message returned False"
        entry.next_attempt_at = None
        entry.created_at = datetime(2026, 1, 1)
        return entry

    def test_list_failed(self, client_with_admin):
        client, mock_db, _ = client_with_admin
        mock_db.all.return_value = [self._entry(PendingMessageStatus.FAILED)]

        response = client.get("/admin/settings/whatsapp/queue?status_filter=failed")
        assert response.status_code == 200
        assert response.json()[0]["status"] == "failed"

    @patch("app.routers.admin_settings.dispatch_pending_messages")
    def test_requeue_failed(self, mock_dispatch, client_with_admin):
        client, mock_db, _ = client_with_admin
        entry = self._entry(PendingMessageStatus.FAILED)
        mock_db.first.return_value = entry

        response = client.post("/admin/settings/whatsapp/queue/9/requeue")

        assert response.status_code == 200
        assert entry.status == PendingMessageStatus.PENDING
        assert entry.attempts == 0
        mock_dispatch.assert_called_once_with([9])

    def test_requeue_pending_conflicts(self, client_with_admin):
        client, mock_db, _ = client_with_admin
        mock_db.first.return_value = self._entry(PendingMessageStatus.PENDING)
        response = client.post("/admin/settings/whatsapp/queue/9/requeue")
        assert response.status_code == 409
