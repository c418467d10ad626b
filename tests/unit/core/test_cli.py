"""Tests for the verbio command-line interface."""

from unittest.mock import AsyncMock, MagicMock, patch

from click.testing import CliRunner
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from verbio.cli import cli


def _sqlite_settings(**overrides) -> MagicMock:
    settings = MagicMock()
    settings.database_url = "sqlite+aiosqlite:///./data/verbio.db"
    settings.host = "0.0.0.0"
    settings.port = 8000
    settings.workers = 1
    settings.log_level = "INFO"
    settings.environment = "development"
    for key, value in overrides.items():
        setattr(settings, key, value)
    return settings


def test_serve_rejects_multiple_workers_with_sqlite():
    runner = CliRunner()

    with patch("verbio.cli.get_settings", return_value=_sqlite_settings()), patch(
        "uvicorn.run"
    ) as mock_run:
        result = runner.invoke(cli, ["serve", "--workers", "2"])

    assert result.exit_code == 1
    assert "SQLite does not support multiple worker processes" in result.output
    mock_run.assert_not_called()


def test_serve_runs_uvicorn():
    runner = CliRunner()

    with patch("verbio.cli.get_settings", return_value=_sqlite_settings()), patch(
        "verbio.cli.configure_logging"
    ), patch("uvicorn.run") as mock_run:
        result = runner.invoke(cli, ["serve", "--port", "9000"])

    assert result.exit_code == 0, result.output
    args, kwargs = mock_run.call_args
    assert args[0] == "verbio.infrastructure.api.app:app"
    assert kwargs["port"] == 9000
    assert kwargs["workers"] == 1


def test_generate_keys_prints_usable_es256_pair():
    runner = CliRunner()

    result = runner.invoke(cli, ["generate-keys"])

    assert result.exit_code == 0
    private_pem, _, public_pem = result.output.partition("-----END PRIVATE KEY-----")
    private_key = serialization.load_pem_private_key(
        (private_pem + "-----END PRIVATE KEY-----").encode(), password=None
    )
    public_key = serialization.load_pem_public_key(public_pem.strip().encode())

    assert isinstance(private_key, ec.EllipticCurvePrivateKey)
    assert isinstance(private_key.curve, ec.SECP256R1)
    assert isinstance(public_key, ec.EllipticCurvePublicKey)


def test_purge_tokens_reports_count():
    runner = CliRunner()
    purge = AsyncMock(return_value=3)

    with patch("verbio.cli.configure_logging"), patch(
        "verbio.application.services.SessionService.purge_expired", purge
    ), patch(
        "verbio.infrastructure.persistence.database.DatabaseManager.disconnect",
        AsyncMock(),
    ):
        result = runner.invoke(cli, ["purge-tokens", "--older-than-days", "7"])

    assert result.exit_code == 0, result.output
    assert "Purged 3 expired refresh token(s)." in result.output
    purge.assert_awaited_once_with(7)


def test_info_shows_token_settings():
    runner = CliRunner()

    result = runner.invoke(cli, ["info"])

    assert result.exit_code == 0
    assert "verbio-api" in result.output
    assert "com.verbio.ios" in result.output
    assert "Signing Key:  configured" in result.output
