"""
Tests for appsettings.json loading
"""
import json

import pytest

from config import (
    DEFAULT_BASE_URL,
    ENV_TEAMLEADER_BASE_URL,
    ENV_TEAMLEADER_CLIENT_ID,
    ENV_TEAMLEADER_CLIENT_SECRET,
    ENV_TEAMLEADER_TOKEN,
    CreationPolicy,
    load_settings,
    parse_creation_policy
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (ENV_TEAMLEADER_BASE_URL, ENV_TEAMLEADER_TOKEN,
                 ENV_TEAMLEADER_CLIENT_ID, ENV_TEAMLEADER_CLIENT_SECRET):
        monkeypatch.delenv(name, raising=False)


def write_config(tmp_path, data):
    path = tmp_path / "appsettings.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


def test_defaults_for_empty_file(tmp_path):
    settings = load_settings(write_config(tmp_path, {}))
    assert settings.base_url == DEFAULT_BASE_URL
    assert settings.api_token is None
    assert settings.authentication is None
    assert settings.creation_policy == CreationPolicy()


def test_reads_all_sections(tmp_path):
    settings = load_settings(write_config(tmp_path, {
        "BaseUrl": "https://api.example.test/",
        "ApiToken": "abc",
        "Authentication": {"ClientId": "id", "ClientSecret": "secret", "RedirectUri": "https://example.test/cb"},
        "Import": {"CreateCompanies": False, "CreateTasks": "no"}
    }))
    assert settings.base_url == "https://api.example.test"
    assert settings.api_token == "abc"
    assert settings.authentication.client_id == "id"
    assert settings.authentication.has_credentials
    assert settings.authentication.redirect_uri == "https://example.test/cb"
    assert settings.creation_policy == CreationPolicy(create_companies=False, create_tasks=False)


def test_key_casing_does_not_matter(tmp_path):
    settings = load_settings(write_config(tmp_path, {
        "baseUrl": "https://api.example.test",
        "import": {"createProjects": False, "create_groups": "false"}
    }))
    assert settings.base_url == "https://api.example.test"
    assert settings.creation_policy.create_projects is False
    assert settings.creation_policy.create_groups is False
    assert settings.creation_policy.create_companies is True


def test_environment_overrides(tmp_path, monkeypatch):
    monkeypatch.setenv(ENV_TEAMLEADER_TOKEN, "from-env")
    monkeypatch.setenv(ENV_TEAMLEADER_BASE_URL, "https://env.example.test/")
    monkeypatch.setenv(ENV_TEAMLEADER_CLIENT_ID, "env-id")
    settings = load_settings(write_config(tmp_path, {"ApiToken": "from-file"}))
    assert settings.api_token == "from-env"
    assert settings.base_url == "https://env.example.test"
    assert settings.authentication.client_id == "env-id"
    assert not settings.authentication.has_credentials


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_settings(str(tmp_path / "missing.json"))


def test_invalid_json(tmp_path):
    path = tmp_path / "appsettings.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ValueError):
        load_settings(str(path))


def test_creation_policy_unknown_values_keep_default():
    policy = parse_creation_policy({"CreateCompanies": "sometimes", "CreateTasks": 0})
    assert policy.create_companies is True
    assert policy.create_tasks is False
    assert parse_creation_policy(None) == CreationPolicy()
