"""Tests for file-based Evolution dev sink (app/integrations/evolution_dev.py)"""
import pytest
from unittest.mock import patch

from app.integrations.evolution_dev import send_message as dev_send


@pytest.fixture
def output_dir(tmp_path):
    """Provide a temp dir and patch settings to use it."""
    with patch("app.integrations.evolution_dev.settings") as mock_settings:
        mock_settings.evolution_dev_output_dir = str(tmp_path)
        yield tmp_path


class TestDevSendMessage:
    def test_grouped_by_queue_type(self, output_dir):
        assert dev_send("11991747887", "Seu acesso: conta-1", send_id="delivery") is True

        file_path = output_dir / "delivery" / "5511991747887.txt"
        content = file_path.read_text()
        assert content.startswith("TO: 5511991747887\nAT: ")
        assert "---\nSeu acesso: conta-1" in content

    def test_ungrouped_without_send_id(self, output_dir):
        dev_send("5511991747887", "Oi")
        assert (output_dir / "_ungrouped" / "5511991747887.txt").exists()

    def test_appends_for_same_recipient(self, output_dir):
        dev_send("11991747887", "Nova venda!", send_id="sale_notification")
        dev_send("+55 11 99174-7887", "Outra venda!", send_id="sale_notification")

        content = (output_dir / "sale_notification" / "5511991747887.txt").read_text()
        assert content.count("TO: 5511991747887") == 2
        assert content.index("Nova venda!") < content.index("Outra venda!")

    def test_empty_phone_returns_false(self, output_dir):
        assert dev_send("", "Oi", send_id="welcome") is False
        assert not (output_dir / "welcome").exists()


class TestDevModeRouting:
    def test_dev_mode_routes_to_file_sink(self):
        with patch("app.integrations.evolution.settings") as mock_settings:
            mock_settings.evolution_enabled = True
            mock_settings.evolution_dev_mode = True
            with patch("app.integrations.evolution_dev.send_message", return_value=True) as mock_dev, \
                 patch("httpx.Client") as mock_client_cls:
                from app.integrations.evolution import send_message
                result = send_message("5511991747887", "Oi", token="ignored", send_id="ticket_notification")

        assert result is True
        mock_dev.assert_called_once_with("5511991747887", "Oi", send_id="ticket_notification")
        mock_client_cls.assert_not_called()
