import pytest
from cryptography.fernet import InvalidToken

from app.core.fernet_crypto import get_fernet, rotate_token
from app.core.settings import settings
from app.models.types import EncryptedString

OLD = "retired-column-secret"
NEW = "current-column-secret"


def test_previous_keys_still_decrypt():
    token = get_fernet(secrets=[OLD]).encrypt(b"22345678901")

    assert get_fernet(secrets=[NEW, OLD]).decrypt(token) == b"22345678901"
    with pytest.raises(InvalidToken):
        get_fernet(secrets=[NEW]).decrypt(token)


def test_rotate_token_moves_value_to_current_key():
    token = get_fernet(secrets=[OLD]).encrypt(b"0123456789")

    rotated = rotate_token(token, secrets=[NEW, OLD])

    assert get_fernet(secrets=[NEW]).decrypt(rotated) == b"0123456789"


def test_settings_list_current_secret_first(monkeypatch):
    monkeypatch.setattr(settings, "field_encryption_key", NEW)
    monkeypatch.setattr(settings, "field_encryption_previous_keys", f" {OLD}, ,{NEW}")

    assert settings.field_encryption_secrets == [NEW, OLD]


def test_settings_fall_back_to_secret_key(monkeypatch):
    monkeypatch.setattr(settings, "field_encryption_key", "")
    monkeypatch.setattr(settings, "field_encryption_previous_keys", "")

    assert settings.field_encryption_secrets == [settings.secret_key]


def test_encrypted_column_round_trip_strips_and_blanks():
    column = EncryptedString(secrets=[NEW])

    stored = column.process_bind_param(" 22345678901 ", None)

    assert b"22345678901" not in stored
    assert column.process_result_value(stored, None) == "22345678901"
    assert column.process_bind_param("   ", None) is None
    assert column.process_result_value(None, None) is None


def test_encrypted_column_reports_wrong_key():
    stored = EncryptedString(secrets=[OLD]).process_bind_param("22345678901", None)

    with pytest.raises(ValueError):
        EncryptedString(secrets=[NEW]).process_result_value(stored, None)
