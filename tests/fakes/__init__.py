"""Test fake implementations for dependency injection testing."""

from tests.fakes.fake_compute_provider import FakeComputeProvider, make_instance

__all__ = ["FakeComputeProvider", "make_instance"]
