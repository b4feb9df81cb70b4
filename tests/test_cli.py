"""Tests for CLI commands."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from push_relay.cli import main
from push_relay.config import Config
from push_relay.errors import ApiError, FatalProtocolError, SecretStoreError, TwoFactorRequired
from push_relay.models import Credentials


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def store():
    """Patched SecretStore instance."""
    with patch("push_relay.secret_store.SecretStore") as mock_cls:
        instance = mock_cls.return_value
        instance.has_any.return_value = False
        instance.load_credentials.return_value = Credentials(secret="s3cret", device_id="dev123")
        yield instance


@pytest.fixture
def default_config():
    with patch("push_relay.config.Config.load", return_value=Config()) as mock_load:
        yield mock_load


class TestRegisterCommand:
    """Tests for the register command."""

    def test_register_stores_credentials(self, runner, store, default_config):
        with (
            patch("push_relay.api_client.ApiClient.login", new=AsyncMock(return_value="abc")),
            patch(
                "push_relay.api_client.ApiClient.register_device",
                new=AsyncMock(return_value="dev1"),
            ),
        ):
            result = runner.invoke(main, ["register"], input="me@example.com\nhunter2\nlaptop\n")

        assert result.exit_code == 0, result.output
        assert "Registered device 'laptop'" in result.output
        store.store_credentials.assert_called_once_with(Credentials(secret="abc", device_id="dev1"))

    def test_register_prompts_for_two_factor_code(self, runner, store, default_config):
        login = AsyncMock(side_effect=[TwoFactorRequired("Two-factor code required", 412), "abc"])
        with (
            patch("push_relay.api_client.ApiClient.login", new=login),
            patch(
                "push_relay.api_client.ApiClient.register_device",
                new=AsyncMock(return_value="dev1"),
            ),
        ):
            result = runner.invoke(
                main, ["register"], input="me@example.com\nhunter2\nlaptop\n123456\n"
            )

        assert result.exit_code == 0, result.output
        assert "Two-factor code" in result.output
        assert login.await_args_list[1].kwargs == {"twofa": "123456"}

    def test_register_rejects_bad_device_name(self, runner, store, default_config):
        with (
            patch("push_relay.api_client.ApiClient.login", new=AsyncMock(return_value="abc")),
            patch(
                "push_relay.api_client.ApiClient.register_device",
                new=AsyncMock(return_value="dev1"),
            ),
        ):
            result = runner.invoke(
                main, ["register"], input="me@example.com\nhunter2\nmy laptop!\nlaptop\n"
            )

        assert result.exit_code == 0, result.output
        assert "Registered device 'laptop'" in result.output

    def test_register_already_registered(self, runner, store, default_config):
        store.has_any.return_value = True

        result = runner.invoke(main, ["register"])

        assert result.exit_code == 0
        assert "already registered" in result.output
        store.store_credentials.assert_not_called()

    def test_register_api_failure(self, runner, store, default_config):
        with patch(
            "push_relay.api_client.ApiClient.login",
            new=AsyncMock(side_effect=ApiError("login failed: invalid password", 400)),
        ):
            result = runner.invoke(main, ["register"], input="me@example.com\nwrong\nlaptop\n")

        assert result.exit_code == 1
        assert "invalid password" in result.output
        store.store_credentials.assert_not_called()


class TestDeleteCommand:
    """Tests for the delete command."""

    def test_delete(self, runner, store):
        store.delete_credentials.return_value = 2

        result = runner.invoke(main, ["delete"])

        assert result.exit_code == 0
        assert "Credentials deleted" in result.output

    def test_delete_nothing_stored(self, runner, store):
        store.delete_credentials.return_value = 0

        result = runner.invoke(main, ["delete"])

        assert "No credentials stored" in result.output

    def test_delete_keyring_failure(self, runner, store):
        store.delete_credentials.side_effect = SecretStoreError("keyring locked")

        result = runner.invoke(main, ["delete"])

        assert result.exit_code == 1
        assert "keyring locked" in result.output


class TestDownloadCommand:
    """Tests for the download command."""

    def test_download_reports_count(self, runner, store, default_config):
        with patch("push_relay.cli._download", new=AsyncMock(return_value=3)):
            result = runner.invoke(main, ["download"])

        assert result.exit_code == 0, result.output
        assert "3 messages downloaded" in result.output

    def test_download_single_message(self, runner, store, default_config):
        with patch("push_relay.cli._download", new=AsyncMock(return_value=1)):
            result = runner.invoke(main, ["download"])

        assert "1 message downloaded" in result.output

    def test_download_not_registered(self, runner, store, default_config):
        store.load_credentials.return_value = None

        result = runner.invoke(main, ["download"])

        assert result.exit_code == 1
        assert "push-relay register" in result.output

    def test_download_api_failure(self, runner, store, default_config):
        with patch("push_relay.cli._download", new=AsyncMock(side_effect=ApiError("HTTP 500"))):
            result = runner.invoke(main, ["download"])

        assert result.exit_code == 1
        assert "HTTP 500" in result.output


class TestRunCommand:
    """Tests for the run command."""

    def test_run_fatal_exits_2(self, runner, store, default_config):
        with (
            patch("push_relay.logging.configure") as mock_configure,
            patch(
                "push_relay.daemon.run_daemon",
                new=AsyncMock(side_effect=FatalProtocolError("aborted")),
            ),
        ):
            result = runner.invoke(main, ["run"])

        assert result.exit_code == 2
        mock_configure.assert_called_once()
        assert mock_configure.call_args.kwargs == {"verbose": False}

    def test_run_clean_stop(self, runner, store, default_config):
        run_daemon = AsyncMock(return_value=None)
        with (
            patch("push_relay.logging.configure"),
            patch("push_relay.daemon.run_daemon", new=run_daemon),
        ):
            result = runner.invoke(main, ["run", "--verbose"])

        assert result.exit_code == 0, result.output
        run_daemon.assert_awaited_once()
        assert run_daemon.await_args.args[1] == Credentials(secret="s3cret", device_id="dev123")

    def test_run_not_registered(self, runner, store, default_config):
        store.load_credentials.return_value = None

        with patch("push_relay.daemon.run_daemon", new=AsyncMock()) as run_daemon:
            result = runner.invoke(main, ["run"])

        assert result.exit_code == 1
        run_daemon.assert_not_awaited()


class TestConfigCommands:
    """Tests for the config subcommands."""

    def test_config_show(self, runner, default_config):
        result = runner.invoke(main, ["config", "show"])

        assert result.exit_code == 0
        assert "[relay]" in result.output
        assert "backoff_ceiling = 60.0" in result.output
        assert "[notifications]" in result.output

    def test_config_reset(self, runner):
        with patch("push_relay.config.Config.save") as mock_save:
            result = runner.invoke(main, ["config", "reset"], input="y\n")

        assert result.exit_code == 0
        mock_save.assert_called_once()
        assert "Config reset" in result.output


def test_cache_clear(runner, tmp_path: Path):
    (tmp_path / "bell.png").write_bytes(b"png")
    (tmp_path / "door.png").write_bytes(b"png")

    with patch("push_relay.config.Config.load") as mock_load:
        mock_config = MagicMock(spec=Config)
        mock_config.icon_dir = tmp_path
        mock_load.return_value = mock_config
        result = runner.invoke(main, ["cache", "clear"])

    assert result.exit_code == 0
    assert "Removed 2 cached icons" in result.output
    assert list(tmp_path.iterdir()) == []


def test_version(runner):
    result = runner.invoke(main, ["--version"])

    assert result.exit_code == 0
    assert "version" in result.output
