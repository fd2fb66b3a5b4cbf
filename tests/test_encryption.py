"""Tests for app.services.encryption module."""
import pytest
from unittest.mock import patch

from app.services.encryption import encrypt_value, decrypt_value


@pytest.fixture
def secret():
    with patch("app.services.encryption.settings") as mock_settings:
        mock_settings.jwt_secret_key = "test-secret-key-for-encryption"
        yield mock_settings


def test_provider_key_roundtrip(secret):
    encrypted = encrypt_value("pk-live-pushinpay-123")
    assert encrypted not in ("", "pk-live-pushinpay-123")
    assert decrypt_value(encrypted) == "pk-live-pushinpay-123"


@pytest.mark.parametrize("blank", ["", None])
def test_blank_values(secret, blank):
    assert encrypt_value("") == ""
    assert decrypt_value(blank) == ""


def test_garbage_ciphertext_decrypts_to_empty(secret):
    assert decrypt_value("not-a-valid-ciphertext") == ""


def test_rotated_secret_invalidates_stored_tokens(secret):
    encrypted = encrypt_value("evolution-token")
    secret.jwt_secret_key = "rotated"
    assert decrypt_value(encrypted) == ""
