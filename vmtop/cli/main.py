"""CLI entry point for vmtop."""

from __future__ import annotations

import logging
import os
import queue
import sys
from collections.abc import Callable
from typing import Any

import fire

from vmtop import __version__
from vmtop.cli.parsing import apply_cli_overrides
from vmtop.constants import DEBUG_ENV_VAR, EXIT_CONFIG_ERROR, EXIT_ERROR, EXIT_SUCCESS
from vmtop.core.config import ConfigLoader, Settings
from vmtop.core.dispatcher import CommandDispatcher
from vmtop.core.interaction import InteractionStateMachine
from vmtop.core.interfaces import ComputeProvider
from vmtop.core.poller import Poller
from vmtop.core.projector import HeaderInfo
from vmtop.core.store import InstanceStore
from vmtop.logging import configure_logging
from vmtop.providers import (
    ProviderAPIError,
    ProviderCredentialsError,
    ProviderError,
    get_default_region,
    get_provider,
)
from vmtop.providers.aws.utils import get_aws_credentials_error_message

logger = logging.getLogger(__name__)

GCP_CREDENTIALS_HELP = (
    "Google Cloud credentials not found or expired\n\n"
    "Configure your credentials:\n"
    "  gcloud auth application-default login\n\n"
    "Or point to a service account key:\n"
    "  export GOOGLE_APPLICATION_CREDENTIALS=/path/to/key.json\n"
    "  vmtop --config config.yaml   # with credentials_path: /path/to/key.json"
)


def create_compute_provider(settings: Settings) -> ComputeProvider:
    """Instantiate the configured provider's compute adapter.

    Parameters
    ----------
    settings : Settings
        Runtime settings

    Returns
    -------
    ComputeProvider
        Adapter for the configured provider
    """
    compute_class = get_provider(settings.provider)["compute"]
    return compute_class(
        region=settings.region or get_default_region(settings.provider),
        credentials_path=settings.credentials_path,
    )


def create_app(**kwargs: Any) -> Any:
    """Build the Textual app (imported lazily to keep ``--help`` fast)."""
    from vmtop.tui.app import VmtopTUI

    return VmtopTUI(**kwargs)


class VmtopCLI:
    """Command line front end: resolve settings, wire the engine, run the TUI.

    Parameters
    ----------
    compute_provider_factory : Callable[[Settings], ComputeProvider] | None
        Optional factory for the compute adapter. If None, uses the provider
        registry
    app_factory : Callable[..., Any] | None
        Optional factory for the Textual app. If None, uses VmtopTUI
    """

    def __init__(
        self,
        compute_provider_factory: Callable[[Settings], ComputeProvider] | None = None,
        app_factory: Callable[..., Any] | None = None,
    ) -> None:
        self.compute_provider_factory = compute_provider_factory or create_compute_provider
        self.app_factory = app_factory or create_app
        self.provider_name: str | None = None

    def load_settings(
        self,
        config: str | None = None,
        project: str | None = None,
        region: str | None = None,
        refresh: str | int | float | None = None,
        provider: str | None = None,
        log_file: str | None = None,
        log_level: str | None = None,
        log_format: str | None = None,
    ) -> Settings:
        """Merge built-in defaults, the config file and CLI flags.

        Raises
        ------
        ValueError
            If the configuration file or any value is invalid
        """
        loader = ConfigLoader()
        merged = loader.merge_defaults(loader.load_config(config))
        apply_cli_overrides(
            merged,
            project=project,
            region=region,
            refresh=refresh,
            provider=provider,
            log_file=log_file,
            log_level=log_level,
            log_format=log_format,
        )
        return loader.build_settings(merged)

    def run(
        self,
        project: str | None = None,
        region: str | None = None,
        refresh: str | int | float | None = None,
        config: str | None = None,
        provider: str | None = None,
        log_file: str | None = None,
        log_level: str | None = None,
        log_format: str | None = None,
    ) -> None:
        """Start the instance dashboard.

        Parameters
        ----------
        project : str | None
            Project to show (default: from config, then provider credentials)
        region : str | None
            Only show instances in this region (default: all regions)
        refresh : str | int | float | None
            Refresh interval, e.g. 5 or 10s (default: 5s)
        config : str | None
            Configuration file (default: $VMTOP_CONFIG, ./vmtop.yaml,
            ~/.config/vmtop/config.yaml)
        provider : str | None
            Cloud provider: gcp or aws (default: gcp)
        log_file : str | None
            Also write logs to this file
        log_level : str | None
            debug, info, warning, error or critical (default: info)
        log_format : str | None
            Log file format: text or json (default: text)
        """
        settings = self.load_settings(
            config=config,
            project=project,
            region=region,
            refresh=refresh,
            provider=provider,
            log_file=log_file,
            log_level=log_level,
            log_format=log_format,
        )
        self.provider_name = settings.provider
        configure_logging(settings.log_level, settings.log_file, settings.log_format)

        sys.exit(self.start_dashboard(settings))

    def start_dashboard(self, settings: Settings) -> int:
        """Wire store, poller, dispatcher and state machine, then run the TUI.

        Returns
        -------
        int
            Process exit code

        Raises
        ------
        ProviderError
            If the first poll fails with an authentication or fatal error
        ValueError
            If no project is configured and none can be detected
        """
        compute = self.compute_provider_factory(settings)

        project = settings.project
        if not project and hasattr(compute, "default_project"):
            project = compute.default_project()
        if not project:
            raise ValueError(
                "No project configured. Pass --project, set 'project' in the config "
                "file, or configure a default project for your credentials"
            )

        update_queue: queue.Queue = queue.Queue()
        store = InstanceStore(eviction_threshold=settings.eviction_threshold)
        poller = Poller(
            compute,
            store,
            project,
            region_filter=settings.region,
            interval=settings.refresh_interval,
            max_interval=settings.max_refresh_interval,
            on_update=update_queue.put,
        )
        dispatcher = CommandDispatcher(
            compute, store, command_timeout=settings.command_timeout, on_update=update_queue.put
        )
        machine = InteractionStateMachine(
            store, dispatcher, poller=poller, message_ttl=settings.message_ttl
        )

        logger.info("Loading instances for project %s...", project)
        poller.initial_poll()

        app = self.app_factory(
            store=store,
            poller=poller,
            dispatcher=dispatcher,
            machine=machine,
            header=HeaderInfo(
                provider=settings.provider,
                project=project,
                region=settings.region,
                refresh_interval=settings.refresh_interval,
                version=__version__,
            ),
            update_queue=update_queue,
            shutdown_grace=settings.shutdown_grace,
        )
        result = app.run()
        return result if isinstance(result, int) else EXIT_SUCCESS


def handle_credentials_error(
    error: ProviderCredentialsError, provider_name: str | None, debug_mode: bool
) -> None:
    """Handle provider credentials error.

    Raises
    ------
    ProviderCredentialsError
        Re-raised if debug mode is enabled
    """
    if debug_mode:
        raise error

    if provider_name == "aws":
        print(get_aws_credentials_error_message(), file=sys.stderr)
    else:
        print(GCP_CREDENTIALS_HELP, file=sys.stderr)
    print(f"\nDetails: {error}", file=sys.stderr)
    sys.exit(EXIT_ERROR)


def handle_value_error(error: ValueError, debug_mode: bool) -> None:
    """Handle configuration error.

    Raises
    ------
    ValueError
        Re-raised if debug mode is enabled
    """
    if debug_mode:
        raise error

    print(f"Configuration error: {error}", file=sys.stderr)
    sys.exit(EXIT_CONFIG_ERROR)


def handle_provider_error(error: ProviderError, debug_mode: bool) -> None:
    """Handle provider error raised before the dashboard could start.

    Raises
    ------
    ProviderError
        Re-raised if debug mode is enabled
    """
    if debug_mode:
        raise error

    if isinstance(error, ProviderAPIError) and error.error_code in (
        "UnauthorizedOperation",
        "PERMISSION_DENIED",
        "FORBIDDEN",
    ):
        print("Insufficient permissions\n", file=sys.stderr)
        print("Your credentials cannot list compute instances.", file=sys.stderr)
        print("Grant read access to compute instances and try again.", file=sys.stderr)
        print(f"\nDetails: {error}", file=sys.stderr)
    else:
        print(f"Cloud API error: {error}", file=sys.stderr)

    sys.exit(EXIT_ERROR)


def main() -> None:
    """Entry point for Fire CLI with graceful error handling.

    Notes
    -----
    Fire maps the keyword arguments of ``VmtopCLI.run`` to command line flags
    (``--project``, ``--region``, ``--refresh``, ...).
    """
    debug_mode = os.environ.get(DEBUG_ENV_VAR) == "1"
    cli = VmtopCLI()

    try:
        fire.Fire(cli.run, name="vmtop")
    except ProviderCredentialsError as e:
        handle_credentials_error(e, cli.provider_name, debug_mode)
    except ValueError as e:
        handle_value_error(e, debug_mode)
    except ProviderError as e:
        handle_provider_error(e, debug_mode)
