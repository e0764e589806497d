"""Shared fixtures for the scanner tests."""

import pytest

from pricescan.adapters.camera.mock_camera import MockCamera
from pricescan.orchestrator.state_machine import ScannerLoop
from pricescan.services.override_store import OverrideStore
from pricescan.services.publisher import ResultPublisher
from pricescan.services.status_store import StatusStore
from tests.helpers import MILK


@pytest.fixture
def status():
    return StatusStore()


@pytest.fixture
def defaults():
    return {"A": MILK}


@pytest.fixture
def overrides_path(tmp_path):
    return tmp_path / "overrides.json"


@pytest.fixture
def store(overrides_path, defaults, status):
    return OverrideStore(overrides_path, defaults, status)


@pytest.fixture
def publisher(status):
    return ResultPublisher(status)


@pytest.fixture
def camera(status):
    return MockCamera(status)


@pytest.fixture
def make_loop(camera, store, publisher, status):
    """Build a ScannerLoop around the given classifier; ticks are driven by the test."""
    def _make(classifier, threshold=0.85, tick_interval=0.0):
        return ScannerLoop(
            classifier=classifier,
            camera=camera,
            override_store=store,
            publisher=publisher,
            status_store=status,
            threshold=threshold,
            model_location="model.onnx",
            metadata_location="metadata.json",
            tick_interval=tick_interval,
        )
    return _make
