import pytest
from pydantic import ValidationError

from core.config import Settings


def test_cors_origins_accepts_single_url(monkeypatch):
    monkeypatch.setenv("FRONTEND_URL", "https://chat.example.com")
    monkeypatch.delenv("CORS_ORIGINS", raising=False)

    assert Settings().CORS_ORIGINS == ["https://chat.example.com"]


@pytest.mark.parametrize(
    "raw,expected",
    [
        ('["https://a.example", "https://b.example"]', ["https://a.example", "https://b.example"]),
        ("https://a.example, https://b.example", ["https://a.example", "https://b.example"]),
    ],
)
def test_cors_origins_list_formats(monkeypatch, raw, expected):
    monkeypatch.setenv("CORS_ORIGINS", raw)

    assert Settings().CORS_ORIGINS == expected


def test_provider_aliases_and_nested_settings(monkeypatch):
    monkeypatch.setenv("GROQ_API_KEY", "gsk_test")
    monkeypatch.setenv("MODEL", "llama-3.1-8b-instant")
    monkeypatch.setenv("AI__TEMPERATURE", "0.2")

    s = Settings()

    assert s.AI_API_KEY == "gsk_test"
    assert s.AI_MODEL == "llama-3.1-8b-instant"
    assert s.ai.temperature == 0.2
    assert s.ai.system_prompt == "You are a support assistant."
    assert s.database.backend == "memory"


def test_production_requires_provider_keys(monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "production")
    for name in ("CLERK_SECRET_KEY", "AI_API_KEY", "GROQ_API_KEY", "AI_MODEL", "MODEL"):
        monkeypatch.delenv(name, raising=False)

    with pytest.raises(ValidationError):
        Settings(_env_file=None)
