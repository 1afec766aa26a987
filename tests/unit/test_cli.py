"""Tests for the vmtop command line entry point."""

from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from tests.fakes import FakeComputeProvider
from vmtop.cli.main import VmtopCLI, create_compute_provider, main
from vmtop.constants import EXIT_CONFIG_ERROR, EXIT_ERROR, EXIT_SUCCESS
from vmtop.core.config import Settings
from vmtop.core.interaction import InteractionStateMachine
from vmtop.providers import ProviderAPIError, ProviderConnectionError, ProviderCredentialsError
from vmtop.providers.aws import EC2Manager
from vmtop.providers.gcp import ComputeEngineManager


@pytest.fixture
def app() -> MagicMock:
    app = MagicMock()
    app.run.return_value = EXIT_SUCCESS
    return app


@pytest.fixture
def app_factory(app: MagicMock) -> MagicMock:
    return MagicMock(return_value=app)


@pytest.fixture
def cli(provider: FakeComputeProvider, app_factory: MagicMock) -> VmtopCLI:
    return VmtopCLI(compute_provider_factory=lambda settings: provider, app_factory=app_factory)


class TestStartDashboard:
    def test_wires_engine_and_runs_app(
        self, cli: VmtopCLI, provider: FakeComputeProvider, app_factory: MagicMock
    ) -> None:
        settings = Settings(project="demo", region="us-central1", refresh_interval=10.0)

        assert cli.start_dashboard(settings) == EXIT_SUCCESS

        kwargs = app_factory.call_args.kwargs
        assert len(kwargs["store"]) == 2
        assert kwargs["poller"].project == "demo"
        assert kwargs["poller"].region_filter == "us-central1"
        assert kwargs["poller"].backoff.base == 10.0
        assert isinstance(kwargs["machine"], InteractionStateMachine)
        assert kwargs["header"].project == "demo"
        assert kwargs["header"].provider == "gcp"
        assert kwargs["shutdown_grace"] == settings.shutdown_grace
        assert provider.list_calls == [("demo", "us-central1")]

    def test_detects_project_from_provider(
        self, cli: VmtopCLI, provider: FakeComputeProvider
    ) -> None:
        cli.start_dashboard(Settings())

        assert provider.list_calls == [("test-project", None)]

    def test_missing_project_is_config_error(
        self, cli: VmtopCLI, provider: FakeComputeProvider, app_factory: MagicMock
    ) -> None:
        provider.default_project = lambda: None

        with pytest.raises(ValueError, match="No project configured"):
            cli.start_dashboard(Settings())

        app_factory.assert_not_called()

    def test_fatal_first_poll_aborts_before_app(
        self, cli: VmtopCLI, provider: FakeComputeProvider, app_factory: MagicMock
    ) -> None:
        provider.list_errors.append(ProviderCredentialsError("token expired"))

        with pytest.raises(ProviderCredentialsError):
            cli.start_dashboard(Settings(project="demo"))

        app_factory.assert_not_called()

    def test_transient_first_poll_starts_stale(
        self, cli: VmtopCLI, provider: FakeComputeProvider, app_factory: MagicMock
    ) -> None:
        provider.list_errors.append(ProviderConnectionError("timed out"))

        cli.start_dashboard(Settings(project="demo"))

        store = app_factory.call_args.kwargs["store"]
        assert len(store) == 0
        assert store.snapshot().stale


class TestRun:
    def test_run_exits_with_app_code(
        self, cli: VmtopCLI, write_config: Callable[[dict[str, Any]], Path]
    ) -> None:
        write_config({"project": "from-file"})

        with patch("vmtop.cli.main.configure_logging") as configure:
            with pytest.raises(SystemExit) as exc_info:
                cli.run(refresh="2s", log_level="DEBUG")

        assert exc_info.value.code == EXIT_SUCCESS
        assert cli.provider_name == "gcp"
        configure.assert_called_once_with("debug", None, "text")

    def test_load_settings_merges_flags_over_file(
        self, cli: VmtopCLI, write_config: Callable[[dict[str, Any]], Path]
    ) -> None:
        write_config({"project": "from-file", "region": "us-east1"})

        settings = cli.load_settings(project="from-flag", refresh=30)

        assert settings.project == "from-flag"
        assert settings.region == "us-east1"
        assert settings.refresh_interval == 30.0


class TestCreateComputeProvider:
    def test_gcp(self) -> None:
        compute = create_compute_provider(Settings(provider="gcp"))

        assert isinstance(compute, ComputeEngineManager)
        assert compute.region == "us-central1"

    def test_aws_uses_region_setting(self) -> None:
        compute = create_compute_provider(Settings(provider="aws", region="eu-west-1"))

        assert isinstance(compute, EC2Manager)
        assert compute.region == "eu-west-1"


class TestMain:
    def run_main(self, error: Exception, monkeypatch: pytest.MonkeyPatch) -> int:
        monkeypatch.delenv("VMTOP_DEBUG", raising=False)

        with patch("vmtop.cli.main.fire.Fire", side_effect=error):
            with pytest.raises(SystemExit) as exc_info:
                main()
        return exc_info.value.code

    def test_config_error_exit_code(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        code = self.run_main(ValueError("refresh_interval must be positive"), monkeypatch)

        assert code == EXIT_CONFIG_ERROR
        assert "Configuration error: refresh_interval must be positive" in capsys.readouterr().err

    def test_missing_project_exit_code(
        self,
        provider: FakeComputeProvider,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        monkeypatch.delenv("VMTOP_DEBUG", raising=False)
        provider.default_project = lambda: None

        def run_without_project(command: Any, name: str) -> None:
            command.__self__.start_dashboard(Settings())

        with patch("vmtop.cli.main.create_compute_provider", return_value=provider):
            with patch("vmtop.cli.main.fire.Fire", side_effect=run_without_project):
                with pytest.raises(SystemExit) as exc_info:
                    main()

        assert exc_info.value.code == EXIT_CONFIG_ERROR
        assert "No project configured" in capsys.readouterr().err

    def test_credentials_error_exit_code(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        code = self.run_main(ProviderCredentialsError("no credentials"), monkeypatch)

        assert code == EXIT_ERROR
        err = capsys.readouterr().err
        assert "gcloud auth application-default login" in err
        assert "Details: no credentials" in err

    def test_permission_error_exit_code(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        code = self.run_main(ProviderAPIError("denied", "PERMISSION_DENIED"), monkeypatch)

        assert code == EXIT_ERROR
        assert "Insufficient permissions" in capsys.readouterr().err

    def test_other_provider_error_exit_code(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        code = self.run_main(ProviderAPIError("project not found"), monkeypatch)

        assert code == EXIT_ERROR
        assert "Cloud API error: project not found" in capsys.readouterr().err

    def test_debug_mode_reraises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("VMTOP_DEBUG", "1")

        with patch("vmtop.cli.main.fire.Fire", side_effect=ValueError("bad")):
            with pytest.raises(ValueError, match="bad"):
                main()

    def test_clean_run_returns_normally(self) -> None:
        with patch("vmtop.cli.main.fire.Fire") as fire_mock:
            main()

        fire_mock.assert_called_once()
        assert fire_mock.call_args.kwargs["name"] == "vmtop"
