import os
import sys
import pathlib

import pytest

# Ensure project root is on sys.path so 'import pubscan' works when pytest runs from
# different working directories or when running individual tests.
_ROOT = pathlib.Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

# Keep the database and the remote browser out of the loop for tests
os.environ.setdefault("PUBSCAN_DISABLE_DB", "1")
os.environ.pop("PUBSCAN_BROWSER_WS", None)

from pubscan import create_app  # noqa: E402

from helpers import FakeCapture, FakeTraffic  # noqa: E402


@pytest.fixture
def app():
    app = create_app()
    app.testing = True
    app.extensions["limiter"].enabled = False
    orch = app.extensions["pubscan_orchestrator"]
    orch.capture_adapter = FakeCapture()
    orch.traffic_estimator = FakeTraffic()
    orch._sleep = lambda seconds: None
    yield app
    app.extensions["pubscan_queue"].stop_worker()


@pytest.fixture
def client(app):
    return app.test_client()
