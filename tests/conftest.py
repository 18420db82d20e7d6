# tests/conftest.py
import dataclasses

import pytest
from fastapi.testclient import TestClient

from geolite_api.config import Settings
from geolite_api.main import create_app
from geolite_api.runtime import GeoRuntime
from tests.support import FakeDistributor, distributor_archive, fake_db_bytes, fake_loader, fake_snapshot


@pytest.fixture
def staging_root(tmp_path):
    p = tmp_path / "staging"
    p.mkdir()
    return p


@pytest.fixture
def settings(tmp_path, staging_root):
    return Settings(
        db_path=str(tmp_path / "data" / "GeoLite2-City.mmdb"),
        staging_dir=str(staging_root),
        account_id="123456",
        license_key="test-license-key",
        refresh_enabled=False,
        initial_refresh_attempts=2,
        initial_refresh_retry_sec=0,
        shutdown_timeout_sec=10,
    )


@pytest.fixture
def make_runtime(settings):
    """
    Build a runtime wired to a fake distributor and the JSON fake loader.
    By default a snapshot is installed, as after a successful bootstrap.
    """
    def _make(distributor=None, with_snapshot=True, **overrides):
        distributor = distributor or FakeDistributor([distributor_archive(fake_db_bytes())])
        runtime = GeoRuntime.from_settings(
            dataclasses.replace(settings, **overrides),
            distributor=distributor,
            loader=fake_loader,
        )
        if with_snapshot:
            runtime.store.swap(fake_snapshot())
        return runtime
    return _make


@pytest.fixture
def runtime(make_runtime):
    return make_runtime()


@pytest.fixture
def client(runtime):
    """TestClient running the app lifespan (scheduler start, RUNNING state, shutdown)"""
    with TestClient(create_app(runtime)) as test_client:
        yield test_client
