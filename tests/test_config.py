from __future__ import annotations

import pytest

from conftest import make_settings
from core.config import AppSettings, _parse_env_lines, write_user_env_vars
from core.errors import ConfigurationError, InvalidRequest
from core.services.validation import ValidationRuleTable


def test_token_only_is_enough() -> None:
    make_settings(api_token="real-token").require_credentials()


def test_admin_only_is_enough() -> None:
    make_settings(admin_email="a@b.c", admin_password="pw").require_credentials()


def test_missing_credentials_fail_fast() -> None:
    with pytest.raises(ConfigurationError):
        make_settings().require_credentials()


def test_placeholder_token_is_rejected() -> None:
    settings = make_settings(api_token="strapi_token")

    assert settings.has_api_token is False
    with pytest.raises(ConfigurationError):
        settings.require_credentials()


def test_half_admin_credentials_are_rejected() -> None:
    with pytest.raises(ConfigurationError):
        make_settings(api_token="real-token", admin_email="a@b.c").require_credentials()


def test_settings_are_read_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STRAPI_URL", "https://cms.example.com/")
    monkeypatch.setenv("STRAPI_API_TOKEN", "abc")
    monkeypatch.setenv("STRAPI_DISCOVERY_CANDIDATES", "news, events")
    monkeypatch.setenv("STRAPI_VALIDATION_RULES", '{"api::news.news": {"required": ["title"]}}')

    settings = AppSettings(_env_file=None)

    assert settings.url == "https://cms.example.com"
    assert settings.has_api_token
    assert settings.probe_names == ["news", "events"]
    assert settings.validation_rules == {"api::news.news": {"required": ["title"]}}


def test_write_user_env_vars_merges(tmp_path) -> None:
    env_path = tmp_path / "strapi-mcp" / ".env"
    write_user_env_vars({"STRAPI_URL": "http://a"}, env_path=env_path)
    write_user_env_vars({"STRAPI_API_TOKEN": "t", "STRAPI_ADMIN_EMAIL": ""}, env_path=env_path)

    values = _parse_env_lines(env_path.read_text(encoding="utf-8"))

    assert values == {"STRAPI_URL": "http://a", "STRAPI_API_TOKEN": "t"}


def test_validation_rules_block_bad_writes() -> None:
    table = ValidationRuleTable.from_mapping(
        {
            "api::doc.doc": {
                "required": ["title"],
                "max_lengths": {"title": 5},
                "forbidden_fields": {"body": "use 'content'"},
            }
        }
    )

    table.validate("api::doc.doc", {"title": "short"})
    table.validate("api::other.other", {"body": "anything"})
    table.validate("api::doc.doc", {"content": "x"}, partial=True)

    with pytest.raises(InvalidRequest) as info:
        table.validate("api::doc.doc", {"title": "too long", "body": "x"})

    assert "use 'content'" in info.value.detail
    assert "max 5" in info.value.detail


def test_invalid_validation_rules_are_a_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        ValidationRuleTable.from_mapping({"api::doc.doc": {"required": "title"}})
