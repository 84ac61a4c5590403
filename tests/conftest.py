"""Test configuration for pytest."""

import sys
from pathlib import Path
from typing import List

import pytest

# Add the project root directory to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from flickr_exporter.api.client import FlickrClient  # noqa: E402
from flickr_exporter.manifest.manifest_manager import RunManifest  # noqa: E402
from tests.helpers import REST_URL, FakeSession  # noqa: E402


@pytest.fixture
def fake_session() -> FakeSession:
    """Create a fake HTTP session."""
    return FakeSession()


@pytest.fixture
def client(fake_session: FakeSession) -> FlickrClient:
    """Create a Flickr client backed by the fake session."""
    return FlickrClient("test-key", base_url=REST_URL, session=fake_session, timeout=5)


@pytest.fixture
def manifest(tmp_path: Path) -> RunManifest:
    """Create an empty run directory."""
    run_manifest = RunManifest(tmp_path / "flickr_test_run")
    run_manifest.create()
    return run_manifest


@pytest.fixture
def sleeps() -> List[float]:
    """Collects the durations passed to an injected sleep."""
    return []
