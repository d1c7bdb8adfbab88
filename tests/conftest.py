"""Shared fixtures for pantry tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from pantry.config import ImagesConfig, LimitsConfig, LivenessConfig, PantryConfig, ServerConfig
from pantry.logger import EventLog, EventRecorder

from tests.utils import FakeClock, FakeEndpoint, write_image


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
def events(recorder: EventRecorder) -> EventLog:
    return EventLog(sinks=[recorder])


@pytest.fixture
def endpoint() -> FakeEndpoint:
    return FakeEndpoint()


@pytest.fixture
def images_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "images"
    directory.mkdir()
    write_image(directory / "tomato_salad.jpg")
    return directory


@pytest.fixture
def server_config(images_dir: Path) -> PantryConfig:
    return PantryConfig(
        server=ServerConfig(host="127.0.0.1", port=0),
        limits=LimitsConfig(max_clients=100, max_requests_per_hour=10),
        liveness=LivenessConfig(idle_timeout=600.0, sweep_interval=60.0),
        images=ImagesConfig(directory=images_dir),
    )
