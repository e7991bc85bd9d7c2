import os

import pytest
from click.testing import CliRunner

import flights_ui.mcp.__main__ as cli
from flights_ui.config import DEFAULT_TEMPLATE_DIR, Settings

ENV_NAMES = ["HOST", "PORT", "PUBLIC_BASE_URL", "EXTERNAL_URL", "TEMPLATE_DIR", "LWC_BUNDLE_DIR",
             "JSON_RESPONSE", "LOG_LEVEL", "CORS_ORIGINS"]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    # Set before deleting so undo also removes values a .env file adds.
    for name in ENV_NAMES:
        monkeypatch.setenv(f"FLIGHTS_UI_{name}", "")
        monkeypatch.delenv(f"FLIGHTS_UI_{name}")


def test_defaults(tmp_path):
    settings = Settings.from_env(tmp_path / ".env")

    assert settings.host == "localhost"
    assert settings.port == 3000
    assert settings.base_url == "http://localhost:3000"
    assert settings.template_dir == DEFAULT_TEMPLATE_DIR
    assert settings.json_response is True
    assert settings.cors_origins == ("*",)


def test_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("FLIGHTS_UI_PORT", "8080")
    monkeypatch.setenv("FLIGHTS_UI_PUBLIC_BASE_URL", "https://flights.example.org")
    monkeypatch.setenv("FLIGHTS_UI_JSON_RESPONSE", "false")
    monkeypatch.setenv("FLIGHTS_UI_LOG_LEVEL", "debug")
    monkeypatch.setenv("FLIGHTS_UI_CORS_ORIGINS", "http://a.test, http://b.test")

    settings = Settings.from_env(tmp_path / ".env")

    assert settings.port == 8080
    assert settings.base_url == "https://flights.example.org"
    assert settings.json_response is False
    assert settings.log_level == "DEBUG"
    assert settings.cors_origins == ("http://a.test", "http://b.test")


def test_dotenv_file(tmp_path, monkeypatch):
    dotenv = tmp_path / ".env"
    dotenv.write_text("FLIGHTS_UI_HOST=0.0.0.0\nFLIGHTS_UI_PORT=4000\n")

    settings = Settings.from_env(dotenv)

    assert settings.host == "0.0.0.0"
    assert settings.base_url == "http://0.0.0.0:4000"

    monkeypatch.undo()
    assert os.environ.get("FLIGHTS_UI_HOST") != "0.0.0.0"
    assert os.environ.get("FLIGHTS_UI_PORT") != "4000"


def test_overrides_skip_missing_values():
    settings = Settings().with_overrides(host="127.0.0.1", port=None)
    assert settings.host == "127.0.0.1"
    assert settings.port == 3000


def test_cli_runs_server_with_options(monkeypatch):
    calls = []
    monkeypatch.setattr(cli.uvicorn, "run", lambda app, **kwargs: calls.append(kwargs))

    result = CliRunner().invoke(cli.main, ["--host", "127.0.0.1", "--port", "9000", "--log-level", "warning"])

    assert result.exit_code == 0, result.output
    assert calls == [{"host": "127.0.0.1", "port": 9000, "log_level": "warning"}]
