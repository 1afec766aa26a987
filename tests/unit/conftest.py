"""Pytest configuration and fixtures for vmtop tests."""

import os
import sys
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest
import yaml

project_root = Path(__file__).parent.parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from tests.fakes.fake_compute_provider import FakeComputeProvider, make_instance  # noqa: E402


@pytest.fixture
def provider() -> FakeComputeProvider:
    """Fake provider holding two instances: web-1 (running), db-1 (stopped)."""
    return FakeComputeProvider(
        [
            make_instance("1001", "web-1"),
            make_instance("1002", "db-1", status="Stopped"),
        ]
    )


@pytest.fixture
def aws_credentials() -> Generator[None, None, None]:
    """Fixture to set AWS credentials for testing with proper cleanup.

    Sets mock AWS credentials in environment variables for the duration of the test,
    then restores the original environment state.

    Yields
    ------
    None
        Control back to test after setting credentials
    """
    names = ("AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY", "AWS_DEFAULT_REGION")
    original = {name: os.environ.get(name) for name in names}

    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"

    yield

    for name, value in original.items():
        if value is not None:
            os.environ[name] = value
        else:
            os.environ.pop(name, None)


@pytest.fixture
def config_file(tmp_path: Path) -> Generator[Path, None, None]:
    """Create a temporary config file path and point VMTOP_CONFIG at it.

    Parameters
    ----------
    tmp_path : Path
        Pytest temporary directory path

    Yields
    ------
    Path
        Path to temporary config file
    """
    config_path = tmp_path / "vmtop.yaml"

    original_env = os.environ.get("VMTOP_CONFIG")
    os.environ["VMTOP_CONFIG"] = str(config_path)

    yield config_path

    if original_env is not None:
        os.environ["VMTOP_CONFIG"] = original_env
    else:
        os.environ.pop("VMTOP_CONFIG", None)


@pytest.fixture
def write_config(config_file: Path) -> Callable[[dict[str, Any]], Path]:
    """Helper fixture to write config data to file.

    Parameters
    ----------
    config_file : Path
        Path to config file from config_file fixture

    Returns
    -------
    Callable[[dict[str, Any]], Path]
        Function writing a dict as YAML and returning the file path
    """

    def _write(data: dict[str, Any]) -> Path:
        config_file.write_text(yaml.dump(data))
        return config_file

    return _write


@pytest.fixture(autouse=True)
def isolate_config_lookup(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> Generator[None, None, None]:
    """Keep real user config files out of tests.

    Runs each test from an empty directory with XDG_CONFIG_HOME pointing
    into it, so ./vmtop.yaml and ~/.config/vmtop/config.yaml are never read.
    """
    workdir = tmp_path / "cwd"
    workdir.mkdir()
    monkeypatch.chdir(workdir)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.delenv("VMTOP_CONFIG", raising=False)
    yield
