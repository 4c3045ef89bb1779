"""Unit tests for settings, engine options and token helpers."""

from types import SimpleNamespace
from uuid import uuid4

from jose import jwt

from lms.auth.security import access_token_for, hash_password, verify_password
from lms.core.config import Settings, settings
from lms.db.session import engine_options


def test_settings_read_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "postgresql+asyncpg://u:p@db/lms")
    monkeypatch.setenv("JWT_SECRET_KEY", "s3cret")
    monkeypatch.setenv("CORS_ORIGINS", "http://a.test, http://b.test")
    monkeypatch.setenv("UNRELATED_SETTING", "ignored")

    loaded = Settings(_env_file=None)
    assert loaded.database_url == "postgresql+asyncpg://u:p@db/lms"
    assert loaded.default_page_size == 25
    assert loaded.cors_origin_list == ["http://a.test", "http://b.test"]
    assert Settings.model_config["extra"] == "ignore"


def test_sqlite_keeps_dialect_pool() -> None:
    assert engine_options("sqlite+aiosqlite:///:memory:") == {}


def test_server_database_gets_pool_tuning() -> None:
    assert engine_options("postgresql+asyncpg://u:p@db/lms") == {"pool_pre_ping": True, "pool_recycle": 300}


def test_access_token_claims() -> None:
    user = SimpleNamespace(id=uuid4(), role="Teacher", username="teacher1")
    claims = jwt.decode(access_token_for(user), settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])

    assert claims["user_id"] == str(user.id)
    assert claims["sub"] == str(user.id)
    assert claims["role"] == "Teacher"
    assert claims["exp"] > claims["iat"]


def test_verify_password_rejects_non_bcrypt_hash() -> None:
    assert verify_password("StrongPass123", hash_password("StrongPass123"))
    assert not verify_password("StrongPass123", "not-a-hash")
