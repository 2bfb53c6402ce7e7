"""Tests for CLI commands - init, sync, cache-info."""

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from nassync.cli import cli
from nassync.core.config import ConfigurationError
from nassync.sync.cache import ChecksumCache
from tests.fakes import FakeExecutor, FakeRemote, make_tree


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def clean_environ(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep settings from the real environment out of the tests."""
    for key in ("NAS_HOST", "DESTINATION", "SOURCE_1", "SOURCE_2", "USE_CHECKSUM", "LOG_FILE"):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def photos(tmp_path: Path) -> Path:
    return make_tree(tmp_path / "photos", {"a.jpg": b"a" * 10, "sub/b.jpg": b"b" * 20})


@pytest.fixture
def env_file(tmp_path: Path, photos: Path) -> Path:
    """A .env file pointing at the photos folder, logs under tmp_path."""
    path = tmp_path / "nas.env"
    path.write_text(
        "NAS_HOST=admin@nas.local\n"
        "DESTINATION=/volume1/backup\n"
        f"SOURCE_1={photos}\n"
        f"LOG_FILE={tmp_path / 'logs' / 'sync.log'}\n"
        f"CHECKSUM_CACHE={tmp_path / 'checksums.cache'}\n"
        "BASE_DELAY=0\n"
    )
    return path


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def executor(remote: FakeRemote) -> FakeExecutor:
    return FakeExecutor(remote)


@pytest.fixture
def fake_transport(remote: FakeRemote, executor: FakeExecutor):
    """Replace SSH and rsync with in-memory fakes."""
    rsync_cls = MagicMock()
    rsync_cls.from_settings.return_value = executor
    with patch("nassync.cli.sync.SSHRemoteProbe", return_value=remote) as probe_cls, patch(
        "nassync.cli.sync.RsyncExecutor", rsync_cls
    ):
        yield probe_cls


class TestInitCommand:
    """Tests for 'nassync init' command."""

    def test_init_writes_config(self, runner: CliRunner, tmp_path: Path, photos: Path) -> None:
        """Init should store host, destination and sources."""
        config_file = tmp_path / "config.json"
        result = runner.invoke(
            cli,
            ["init", "--config", str(config_file)],
            input=f"admin@nas.local\n/volume1/backup\n{photos}\n\ny\n5\n",
        )

        assert result.exit_code == 0, result.output
        config = json.loads(config_file.read_text())
        assert config["nas_host"] == "admin@nas.local"
        assert config["destination"] == "/volume1/backup"
        assert config["sources"] == [str(photos)]
        assert config["use_checksum"] is True
        assert config["max_attempts"] == 5

    def test_init_requires_a_source(self, runner: CliRunner, tmp_path: Path) -> None:
        """Init should fail when no source folder is given."""
        config_file = tmp_path / "config.json"
        result = runner.invoke(
            cli, ["init", "--config", str(config_file)], input="nas\n/backup\n\n"
        )
        assert result.exit_code == 1
        assert not config_file.exists()

    def test_init_fails_if_config_exists(self, runner: CliRunner, tmp_path: Path) -> None:
        """Init should not overwrite without --force."""
        config_file = tmp_path / "config.json"
        config_file.write_text("{}")
        result = runner.invoke(cli, ["init", "--config", str(config_file)])
        assert result.exit_code == 1
        assert "already exists" in result.output
        assert config_file.read_text() == "{}"

    def test_init_force_keeps_other_keys(
        self, runner: CliRunner, tmp_path: Path, photos: Path
    ) -> None:
        """--force rewrites prompted keys and keeps the rest."""
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"nas_host": "old", "compress": True}))
        result = runner.invoke(
            cli,
            ["init", "--config", str(config_file), "--force"],
            input=f"new\n/backup\n{photos}\n\nn\n3\n",
        )
        assert result.exit_code == 0, result.output
        config = json.loads(config_file.read_text())
        assert config["nas_host"] == "new"
        assert config["compress"] is True


@pytest.mark.usefixtures("clean_environ")
class TestSyncCommand:
    """Tests for 'nassync sync' command."""

    def test_sync_transfers_files(
        self,
        runner: CliRunner,
        tmp_path: Path,
        env_file: Path,
        remote: FakeRemote,
        fake_transport: MagicMock,
    ) -> None:
        """A clean session reports success and writes the session log."""
        result = runner.invoke(
            cli,
            ["sync", "--config", str(tmp_path / "absent.json"), "--env-file", str(env_file)],
        )

        assert result.exit_code == 0, result.output
        assert "Synchronization success: 2 transferred" in result.output
        assert remote.stat("/volume1/backup/photos/sub/b.jpg").size == 20
        assert (tmp_path / "logs" / "sync.log").exists()
        assert fake_transport.call_args[0][0] == "admin@nas.local"

    def test_sync_with_errors_still_exits_zero(
        self,
        runner: CliRunner,
        tmp_path: Path,
        env_file: Path,
        photos: Path,
        executor: FakeExecutor,
        fake_transport: MagicMock,
    ) -> None:
        """Failed files are reported, not turned into an exit status."""
        executor.script(photos / "a.jpg", [False, False, False])

        result = runner.invoke(
            cli,
            ["sync", "--config", str(tmp_path / "absent.json"), "--env-file", str(env_file)],
        )

        assert result.exit_code == 0, result.output
        assert "completed with errors" in result.output
        assert "TransferFailed: 3" in result.output
        assert "Critical: 1" in result.output
        assert (tmp_path / "logs" / "sync_errors.log").exists()

    def test_sync_second_run_is_up_to_date(
        self,
        runner: CliRunner,
        tmp_path: Path,
        env_file: Path,
        executor: FakeExecutor,
        fake_transport: MagicMock,
    ) -> None:
        """Running twice transfers nothing the second time."""
        args = ["sync", "--config", str(tmp_path / "absent.json"), "--env-file", str(env_file)]
        runner.invoke(cli, args)
        executor.file_calls.clear()

        result = runner.invoke(cli, args)

        assert result.exit_code == 0, result.output
        assert "0 transferred, 2 up to date" in result.output
        assert executor.file_calls == []

    def test_sync_missing_settings(self, runner: CliRunner, tmp_path: Path) -> None:
        """Missing host or destination is fatal."""
        env_file = tmp_path / "empty.env"
        env_file.write_text("SOURCE_1=/data\n")
        result = runner.invoke(
            cli,
            ["sync", "--config", str(tmp_path / "absent.json"), "--env-file", str(env_file)],
        )
        assert result.exit_code == 1
        assert "NAS_HOST" in result.output

    def test_sync_all_sources_missing(
        self, runner: CliRunner, tmp_path: Path, fake_transport: MagicMock
    ) -> None:
        """With no existing source the session aborts with status 1."""
        env_file = tmp_path / "nas.env"
        env_file.write_text(
            "NAS_HOST=nas\nDESTINATION=/backup\n"
            f"SOURCE_1={tmp_path / 'gone'}\n"
            f"LOG_FILE={tmp_path / 'sync.log'}\n"
            f"CHECKSUM_CACHE={tmp_path / 'c.cache'}\n"
        )
        result = runner.invoke(
            cli,
            ["sync", "--config", str(tmp_path / "absent.json"), "--env-file", str(env_file)],
        )
        assert result.exit_code == 1
        assert "No valid source folder" in result.output

    def test_sync_options_override_settings(
        self, runner: CliRunner, tmp_path: Path, env_file: Path
    ) -> None:
        """Command-line flags take precedence over configured values."""
        with patch("nassync.cli.sync.run_session") as run_session:
            run_session.side_effect = ConfigurationError("stop here")
            runner.invoke(
                cli,
                [
                    "sync",
                    "--config", str(tmp_path / "absent.json"),
                    "--env-file", str(env_file),
                    "--checksum",
                    "--exhaustive",
                    "--tree",
                    "-j", "4",
                    "--max-attempts", "2",
                ],
            )

        settings = run_session.call_args[0][0]
        assert settings.use_checksum is True
        assert settings.exhaustive_checksum is True
        assert settings.per_file is False
        assert settings.parallel_jobs == 4
        assert settings.max_attempts == 2


@pytest.mark.usefixtures("clean_environ")
class TestCacheInfoCommand:
    """Tests for 'nassync cache-info' command."""

    def test_cache_info(self, runner: CliRunner, tmp_path: Path, env_file: Path) -> None:
        """Shows the cache location and entry count."""
        cache = ChecksumCache()
        cache.update("/data/a", "fp", 1)
        cache.save(tmp_path / "checksums.cache")

        result = runner.invoke(
            cli,
            ["cache-info", "--config", str(tmp_path / "absent.json"), "--env-file", str(env_file)],
        )

        assert result.exit_code == 0, result.output
        assert "Entries: 1" in result.output
        assert "present" in result.output

    def test_cache_info_bad_config(self, runner: CliRunner, tmp_path: Path) -> None:
        config_file = tmp_path / "config.json"
        config_file.write_text("{broken")
        result = runner.invoke(cli, ["cache-info", "--config", str(config_file)])
        assert result.exit_code == 1
        assert "Invalid config file" in result.output
